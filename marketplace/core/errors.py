import traceback

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.core.config import settings


class NotFoundError(HTTPException):
    """Missing resource, or one the caller may not see. Both read the same."""

    def __init__(self, detail: str = "Resource not found or access denied."):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class InvalidStateError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InsufficientStockError(HTTPException):
    def __init__(self, detail: str = "Insufficient stock available."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InvalidQuantityError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class DuplicateError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ExpiredError(HTTPException):
    def __init__(self, detail: str = "RFQ has expired."):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "Access denied."):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _error_body(message, **extra) -> dict:
    return {"success": False, "error": {"message": message, **extra}}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())[1:])
        messages.append(
            f"{location}: {err['msg']}" if location else err["msg"])

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(", ".join(messages)),
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity violation on {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_error_body("Duplicate field value entered"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    extra = {}
    if settings.debug:
        extra["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__))

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "An unexpected error occurred while processing your request.", **extra),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(
        RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
