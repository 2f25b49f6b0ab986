"""HTTP mapping for domain errors.

Starlette resolves handlers along the exception's MRO, so the subclasses
listed here take precedence over the generic protean handlers registered
first.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers as register_protean_handlers

from grocery.errors import (
    AssignmentRetryExhausted,
    CancellationRequiresNote,
    InvalidOrder,
    InvalidTransition,
    ItemNotFound,
    PackingNotOpen,
    PaymentNotSettled,
    PersonnelUnavailable,
    QuantityOutOfRange,
    RoleNotPermitted,
    TerminalState,
    VersionConflict,
)

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    RoleNotPermitted: 403,
    InvalidTransition: 422,
    TerminalState: 422,
    CancellationRequiresNote: 422,
    InvalidOrder: 422,
    PaymentNotSettled: 422,
    QuantityOutOfRange: 400,
    VersionConflict: 409,
    PersonnelUnavailable: 409,
    PackingNotOpen: 409,
    AssignmentRetryExhausted: 503,
    ItemNotFound: 404,
    ObjectNotFoundError: 404,
    ValidationError: 422,
    InvalidOperationError: 409,
    ExpectedVersionError: 409,
}


def error_body(exc: Exception) -> dict:
    return {"error": type(exc).__name__, "messages": getattr(exc, "messages", str(exc))}


def _handler_for(status_code: int):
    async def handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
        logger.info(
            "Request rejected",
            path=request.url.path,
            error=type(exc).__name__,
            status_code=status_code,
        )
        return JSONResponse(status_code=status_code, content=error_body(exc))

    return handle_domain_error


def register_exception_handlers(app: FastAPI) -> None:
    register_protean_handlers(app)
    for exc_class, status_code in STATUS_CODES.items():
        app.add_exception_handler(exc_class, _handler_for(status_code))
