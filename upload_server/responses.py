from fastapi import Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from upload_server import config
from upload_server.logger_config import setup_logger, structured_log

logger = setup_logger()

ALLOW_HEADER = ",".join(config.SUPPORTED_METHODS)


class UploadResponse(BaseModel):
    filename: str


class ErrorResponse(BaseModel):
    error: str


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Render every HTTPException as {"error": ...}, keeping its headers."""
    headers = dict(exc.headers or {})
    if exc.status_code == 405:
        headers["Allow"] = ALLOW_HEADER
    logger.debug(structured_log(
        "Request rejected",
        method=request.method,
        path=request.url.path,
        status=exc.status_code,
        error=exc.detail,
    ))
    if request.method == "HEAD":
        return Response(status_code=exc.status_code, headers=headers)
    return error_response(exc.status_code, str(exc.detail), headers=headers)
