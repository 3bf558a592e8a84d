"""Error Handlers — map every failure to the {"error": {...}} envelope.

Invariants:
    - CustomRolesError -> its own to_response() at its own http_status
    - RequestValidationError -> 400 VALIDATION_ERROR, one entry per offending field
    - Framework HTTP errors (unknown route, wrong method) keep their status
    - Anything else -> 500 INTERNAL_ERROR, message never includes exception text

Design Decisions:
    - One envelope builder shared by the non-domain handlers so every body has
      the same keys the domain hierarchy produces
    - Log level follows status: rejected requests are INFO, server faults ERROR
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from custom_roles.core.errors import CustomRolesError, ErrorCategory, ErrorSeverity

logger = logging.getLogger(__name__)


def error_envelope(
    code: str,
    message: str,
    category: ErrorCategory,
    severity: ErrorSeverity,
    details=None,
) -> dict:
    body = {
        "code": code,
        "message": message,
        "category": category.value,
        "severity": severity.value,
    }
    if details is not None:
        body["details"] = details
    return {"error": body}


def _field_errors(exc: RequestValidationError) -> list[dict]:
    # loc includes the request part, e.g. body.custom_role.name
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]


async def handle_domain_error(request: Request, exc: CustomRolesError):
    level = logging.ERROR if exc.http_status >= 500 else logging.INFO
    logger.log(
        level,
        f"{exc.code}: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "account_id": exc.context.account_id,
            "role_id": exc.context.role_id,
            "principal_id": exc.context.principal_id,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def handle_request_validation(request: Request, exc: RequestValidationError):
    details = _field_errors(exc)
    logger.info(
        f"Malformed request ({len(details)} field errors)",
        extra={"error_code": "VALIDATION_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope(
            "VALIDATION_ERROR", "Invalid request data",
            ErrorCategory.VALIDATION, ErrorSeverity.ERROR, details,
        ),
    )


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        code, category = "NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND
    else:
        code, category = f"HTTP_{exc.status_code}", ErrorCategory.VALIDATION
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(code, str(exc.detail), category, ErrorSeverity.WARNING),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected(request: Request, exc: Exception):
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"error_code": "INTERNAL_ERROR", "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(
            "INTERNAL_ERROR", "An unexpected error occurred",
            ErrorCategory.INTERNAL, ErrorSeverity.CRITICAL,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the handlers; most specific first."""
    app.add_exception_handler(CustomRolesError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected)
