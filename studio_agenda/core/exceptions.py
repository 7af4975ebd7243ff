import logging

from fastapi import Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse

from studio_agenda.schemas.common import APIResponse, APIError
from studio_agenda.core.error_codes import ErrorCode

from studio_agenda.core.domain_exceptions import DomainException

logger = logging.getLogger(__name__)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse(
            success=False,
            error=APIError(code=code, message=message),
        ).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    code = ErrorCode.NOT_FOUND if exc.status_code == 404 else ErrorCode.VALIDATION_ERROR
    return _error_response(exc.status_code, code, str(exc.detail))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request.")
    if location:
        message = f"{location}: {message}"
    return _error_response(422, ErrorCode.VALIDATION_ERROR, message)


async def domain_exception_handler(request: Request, exc: DomainException):
    logger.info(
        "Domain error %s on %s %s: %s",
        exc.code,
        request.method,
        request.url.path,
        exc.message,
    )
    return _error_response(exc.status_code, exc.code, exc.message)
