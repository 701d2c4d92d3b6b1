"""Error taxonomy shared by repositories, services and the HTTP layer.

Services raise these; ``register_exception_handlers`` maps each category to a
status code once, so no service needs to know about HTTP.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DriveError(Exception):
    status_code = 500
    retryable = False

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        body.update(self.extra)
        return body


class Unauthenticated(DriveError):
    status_code = 401


class Forbidden(DriveError):
    status_code = 403


class NotFound(DriveError):
    status_code = 404


class ValidationError(DriveError):
    status_code = 400


class Conflict(DriveError):
    status_code = 409


class UploadProtocolError(DriveError):
    status_code = 400


class MissingChunkError(UploadProtocolError):
    def __init__(self, chunk_index: int, received_chunks: List[int], total_chunks: int):
        super().__init__(
            f"Missing chunk {chunk_index}",
            chunkIndex=chunk_index,
            receivedChunks=received_chunks,
            totalChunks=total_chunks,
        )
        self.chunk_index = chunk_index


class StorageIOError(DriveError):
    status_code = 503
    retryable = True


async def drive_error_handler(request: Request, exc: DriveError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid input", "errors": errors})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DriveError, drive_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
