"""
Structured logging for the payment engine.

Log records carry optional context (loan_id, payment_id, installment_id,
action) passed through ``extra=`` and rendered as JSON lines.
"""

import json
import logging
from datetime import datetime, timezone

CONTEXT_FIELDS = ("loan_id", "installment_id", "payment_id", "action", "actor_id")


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json", logger_name: str = "app") -> logging.Logger:
    """
    Configure the application logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        fmt: "json" for structured output, anything else for plain text
        logger_name: Root of the logger hierarchy to configure

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    return logger
