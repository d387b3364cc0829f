"""Error kinds raised by handlers and the HTTP status each one maps to."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import pymongo.errors

logger = logging.getLogger("prodvent.errors")


class ProdVentError(Exception):
    """Base class for every error the API turns into a response"""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ProdVentError):
    status_code = 401
    default_message = "Authentication required"


class Unauthorized(ProdVentError):
    status_code = 401
    default_message = "Unauthorized access"


class NotFound(ProdVentError):
    status_code = 404
    default_message = "Not found"


class DuplicateEntity(ProdVentError):
    status_code = 409
    default_message = "Already exists"


class DuplicateReview(DuplicateEntity):
    default_message = "You have already reviewed this product"


class ValidationError(ProdVentError):
    status_code = 400
    default_message = "Invalid request"


class StoreError(ProdVentError):
    status_code = 500
    default_message = "Database operation failed"


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


async def prodvent_error_handler(request: Request, exc: ProdVentError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return _error_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed request fields become a 400 with the first problem"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        message = ValidationError.default_message
    logger.info("%s %s -> 400 %s", request.method, request.url.path, message)
    return _error_response(ValidationError.status_code, message)


async def store_error_handler(request: Request, exc: pymongo.errors.PyMongoError):
    logger.error("%s %s database failure", request.method, request.url.path, exc_info=exc)
    return _error_response(StoreError.status_code, StoreError.default_message)


def register_error_handlers(app: FastAPI):
    """Attach the error kind -> status table to the app"""
    app.add_exception_handler(ProdVentError, prodvent_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(pymongo.errors.PyMongoError, store_error_handler)
