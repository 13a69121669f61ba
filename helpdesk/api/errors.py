from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from helpdesk.errors import HelpdeskError, TransientInfraError, ValidationError

logger = logging.getLogger(__name__)

_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


async def helpdesk_error_handler(request: Request, exc: HelpdeskError) -> JSONResponse:
    if isinstance(exc, TransientInfraError):
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def describe_request_errors(errors: list[dict]) -> str:
    """Render pydantic request errors as ``field: message`` pairs."""

    parts = []
    for error in errors:
        location = [str(item) for item in error.get("loc", ()) if item not in _LOCATION_PREFIXES]
        message = error.get("msg", "invalid value")
        parts.append(f"{'.'.join(location)}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed input is reported like any other ValidationError.
    return await helpdesk_error_handler(request, ValidationError(describe_request_errors(exc.errors())))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HelpdeskError, helpdesk_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
