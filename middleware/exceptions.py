"""
Exception handlers for consistent error responses.

Every error leaves the service as ``{"error": "<message>"}``. Store and
unexpected failures are logged in full and answered with a generic message.
"""
import logging
from typing import Union

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import AccessControlError, StoreError

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Internal server error"


def create_error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def access_control_exception_handler(
    request: Request, exc: AccessControlError
) -> JSONResponse:
    """Handle the service's own exceptions"""
    if isinstance(exc, StoreError):
        logger.error(
            f"Store error on {request.method} {request.url.path}: {exc.__cause__ or exc}"
        )
    else:
        logger.info(
            f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}"
        )
    return create_error_response(exc.status_code, exc.to_dict()["error"])


async def http_exception_handler(
    request: Request, exc: Union[HTTPException, StarletteHTTPException]
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Missing or malformed request fields are a plain 400"""
    errors = exc.errors()
    logger.info(f"Validation error on {request.url.path}: {errors}")

    if errors:
        first = errors[0]
        field = ".".join(str(loc) for loc in first["loc"] if loc != "body")
        message = f"{field}: {first['msg']}" if field else first["msg"]
    else:
        message = "Invalid request"
    return create_error_response(status.HTTP_400_BAD_REQUEST, message)


async def integrity_exception_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    """Unique or foreign key violations that slipped past the repository checks"""
    logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
    return create_error_response(
        status.HTTP_409_CONFLICT, "A record with this value already exists"
    )


async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    logger.error(f"Database error on {request.url.path}: {exc}")
    return create_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions"""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return create_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(AccessControlError, access_control_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
