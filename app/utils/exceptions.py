import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.utils.response import error_response

logger = logging.getLogger(__name__)


class AppException(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ClientError(AppException):
    """Failure talking to a remote HTTP service."""

    def __init__(self, message: str):
        super().__init__(message, status_code=502)


class TransportError(ClientError):
    def __init__(self, message: str = "Request failed before a response was received"):
        super().__init__(message)


class InvalidStatus(ClientError):
    def __init__(self, code: int):
        super().__init__(f"Invalid status code: ({code})")
        self.code = code


class InvalidResponse(ClientError):
    def __init__(self, message: str = "Your request returned an invalid response"):
        super().__init__(message)


class NoData(ClientError):
    def __init__(self, message: str = "No data returned"):
        super().__init__(message)


class DecodeError(ClientError):
    def __init__(self, payload: bytes, message: str = "Could not parse the data as JSON"):
        super().__init__(f"{message}: {payload[:200]!r}")
        self.payload = payload


class MalformedSearchResponse(ClientError):
    def __init__(self, message: str = "Could not parse 'photos.photo' from search response"):
        super().__init__(message)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        if isinstance(exc, ClientError):
            logger.warning("Upstream failure on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.message),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response("Internal server error"),
        )
