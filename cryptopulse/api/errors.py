import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cryptopulse.core.exceptions import CryptoPulseError, ValidationError
from cryptopulse.risk.validation import format_pydantic_errors
from cryptopulse.schemas.common import envelope

logger = logging.getLogger("API")


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(success=False, message=message))


async def handle_domain_error(request: Request, exc: CryptoPulseError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc!r}", exc_info=exc)
    else:
        logger.info(f"⚠️ {request.method} {request.url.path} -> {exc.status_code}: {exc}")
    return error_response(exc.status_code, exc.public_message)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = format_pydantic_errors(exc) or ["invalid request"]
    return await handle_domain_error(request, ValidationError(errors[0], errors))


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"🔥 Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(500, CryptoPulseError.public_message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CryptoPulseError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
