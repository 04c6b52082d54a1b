import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger("fanclub.api")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def api_response(data: Any, status_code: int = 200, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        jsonable_encoder(data),
        status_code=status_code,
        headers={**NO_CACHE_HEADERS, **(headers or {})},
    )


def success_response(data: Any, status_code: int = 200) -> JSONResponse:
    return api_response({"success": True, "data": data}, status_code)


def error_response(message: str, status_code: int = 400) -> JSONResponse:
    return api_response({"error": message}, status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(message, exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("invalid request path=%s errors=%s", request.url.path, exc.errors())
    return error_response("Invalid request data", 400)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error path=%s", request.url.path)
    return error_response("Internal server error", 500)
