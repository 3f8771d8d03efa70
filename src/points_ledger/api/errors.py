"""Translate ledger errors raised by the core into HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from points_ledger.services.ledger.errors import (
    AccountNotEligibleError,
    InsufficientBalanceError,
    InvalidInputError,
    InvalidPromotionError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
)

# Most specific first: AccountNotEligibleError is an InvalidStateError.
_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (AccountNotEligibleError, status.HTTP_403_FORBIDDEN),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (InvalidPromotionError, status.HTTP_400_BAD_REQUEST),
    (InsufficientBalanceError, status.HTTP_400_BAD_REQUEST),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
)


def status_for(error: LedgerError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={"detail": str(exc), "code": exc.code},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)


__all__ = ["ledger_error_handler", "register_error_handlers", "status_for"]
