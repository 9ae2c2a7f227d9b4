"""Error taxonomy of the file store and the handlers mapping it onto HTTP."""

import logging
from typing import Optional

import pydantic
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

THROTTLING_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "SlowDown",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "ServiceUnavailable",
        "RequestTimeout",
    }
)


class FileStoreError(Exception):
    """Base class for every error raised by the file store."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationError(FileStoreError):
    """The request itself is unacceptable: missing, empty, oversized or badly named payload."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        return body


class PayloadTooLargeError(ValidationError):
    """The upload exceeds the configured maximum size."""

    status_code = 413

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File is {size} bytes, the maximum accepted size is {limit} bytes",
            field="file",
        )
        self.size = size
        self.limit = limit


class NotFoundError(FileStoreError):
    """The named file does not exist in the bucket."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, name: str):
        super().__init__("File not found")
        self.name = name

    def to_dict(self) -> dict:
        return {"message": self.message, "name": self.name}


class BackendError(FileStoreError):
    """
    Any failure reported by the storage backend.

    Carries the backend error ``code`` and HTTP ``status`` (when the backend
    sent one) so callers can tell transient causes from permanent ones.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(f"Storage backend error during {operation}: {message}")
        self.operation = operation
        self.code = code
        self.status = status

    @property
    def transient(self) -> bool:
        """Throttling, backend 5xx and transport failures are worth retrying."""
        if self.code in THROTTLING_CODES:
            return True
        return self.status is None or self.status >= 500

    @property
    def status_code(self) -> int:  # type: ignore[override]
        if self.transient:
            return status.HTTP_502_BAD_GATEWAY
        return status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["code"] = self.code
        body["transient"] = self.transient
        return body


async def handle_file_store_errors(request: Request, exc: FileStoreError) -> JSONResponse:
    """Map a file store error onto its HTTP status."""
    if isinstance(exc, BackendError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} (code={exc.code}, status={exc.status})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """Report pydantic validation failures raised outside of request parsing."""
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "message": "Validation error",
            "detail": [{"msg": error["msg"], "loc": list(error["loc"])} for error in errors],
        },
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception:  # pylint: disable=broad-except
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error"},
        )
