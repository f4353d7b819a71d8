import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


class LedgerEngineError(Exception):
    """Base class for payment engine errors surfaced to callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "engine_error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class PaymentValidationError(LedgerEngineError):
    """Bad input (amount, method, loan id). Raised before any state change."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "validation_error"


class PrecondContractError(LedgerEngineError):
    """Loan not in a state that accepts payments, or nothing left to pay."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "precondition_failed"


class NotFoundError(PrecondContractError):
    """Referenced loan or installment does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"


class ConflictError(LedgerEngineError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"


class PostingError(LedgerEngineError):
    """A ledger write failed; the whole payment transaction was rolled back."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "posting_failed"


def _envelope(message: str, error: str, details: dict | None = None) -> dict:
    body = {"message": message, "error": error}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LedgerEngineError)
    async def engine_error_handler(request: Request, exc: LedgerEngineError):
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(_envelope(exc.message, exc.error_code, exc.details)),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=jsonable_encoder(_envelope("Invalid request", "validation_error", {"errors": errors})),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope("Internal server error", "internal_error"),
        )
