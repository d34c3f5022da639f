"""Translate ledger domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from dorfladen_api.services.ledger.errors import (
    CONFLICT_ERRORS,
    NOT_FOUND_ERRORS,
    VALIDATION_ERRORS,
    LedgerError,
)


def status_for_error(error: LedgerError) -> int:
    if isinstance(error, NOT_FOUND_ERRORS):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, CONFLICT_ERRORS):
        return status.HTTP_409_CONFLICT
    if isinstance(error, VALIDATION_ERRORS):
        return 422
    return status.HTTP_400_BAD_REQUEST


async def ledger_error_handler(request: Request, error: LedgerError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for_error(error),
        content={"detail": {"code": error.code, "message": error.message}},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
