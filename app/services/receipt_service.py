import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


def receipt_number(payment_id: int) -> str:
    return f"REC-{int(payment_id):06d}"


class ReceiptDispatcher(ABC):
    """Renders/sends a receipt for a committed payment. Returns True on success."""

    @abstractmethod
    def dispatch(self, outcome) -> bool:
        ...


class LoggingReceiptDispatcher(ReceiptDispatcher):
    """Default dispatcher: no rendering backend, just records the receipt number."""

    def dispatch(self, outcome) -> bool:
        if outcome.payment_id is None:
            return False
        logger.info(
            "Receipt %s ready", receipt_number(outcome.payment_id),
            extra={"loan_id": outcome.loan_id, "payment_id": outcome.payment_id, "action": "receipt"},
        )
        return True
