"""
Central error handling for the Field Operations backend

Business rejections raised by the services are HTTPException subclasses carrying a
machine-readable ``code``. They are surfaced synchronously and never retried by the core.
"""
import logging
import traceback
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


class FieldOpsError(HTTPException):
    """Base class for business rejections raised by the core services."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, detail: str, headers: Optional[dict] = None):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)


class PreconditionFailed(FieldOpsError):
    """Missing GPS/selfie on punch-in, punch-out without punch-in, and similar."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "precondition_failed"


class PolicyViolation(FieldOpsError):
    """Legitimate business rejection, e.g. market not live on the session date."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "policy_violation"


class NotFound(FieldOpsError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class Conflict(FieldOpsError):
    """Double punch-in, backward task transition, locked session or task."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException (and FieldOpsError) with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    content = {
        "error": True,
        "status_code": exc.status_code,
        "detail": exc.detail,
        "path": str(request.url.path)
    }
    code = getattr(exc, "code", None)
    if code:
        content["code"] = code
    headers = dict(CORS_HEADERS)
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from app.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "status_code": 422,
                "detail": "Validation error: Invalid request data",
                "path": str(request.url.path)
            }
        )

    # ctx.error may hold a ValueError instance, which is not JSON serializable
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": True,
            "status_code": 422,
            "detail": "Validation error",
            "errors": errors,
            "path": str(request.url.path)
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from app.core.config import settings

    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "status_code": 500,
                "detail": "Internal server error",
                "path": str(request.url.path)
            },
            headers=CORS_HEADERS,
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "detail": str(exc),
            "path": str(request.url.path),
            "traceback": traceback.format_exc() if settings.APP_ENV == "local" else None
        },
        headers=CORS_HEADERS,
    )
