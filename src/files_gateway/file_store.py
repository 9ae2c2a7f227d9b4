"""
File store façade over an S3 bucket.

``FileStore`` turns the four logical file operations (store, list, fetch,
remove) into boto3 calls. It derives object names with the configured
``NamingPolicy``, makes sure the bucket exists before each operation and
reports every failure as one of ``ValidationError``, ``NotFoundError`` or
``BackendError``.

boto3 is blocking, so every backend call runs in the worker thread pool and
the event loop keeps serving other requests while it waits.
"""

import logging
import time
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, List, Optional
from urllib.parse import quote, unquote

from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from files_gateway.errors import BackendError, NotFoundError, PayloadTooLargeError, ValidationError
from files_gateway.naming import NamingPolicy, derive_name, strip_path
from files_gateway.s3.buckets import ensure_bucket_exists
from files_gateway.s3.delete_objects import delete_s3_object
from files_gateway.s3.read_objects import (
    fetch_s3_object,
    fetch_s3_objects_metadata,
    is_not_found,
    object_exists_in_s3,
)
from files_gateway.s3.write_objects import DEFAULT_CONTENT_TYPE, upload_s3_object
from files_gateway.schemas import StoredFile
from files_gateway.settings import DEFAULT_MAX_UPLOAD_BYTES, Settings, create_s3_client
from files_gateway.utils.decorators import async_log_execution_time

if TYPE_CHECKING:
    from botocore.response import StreamingBody
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

ORIGINAL_NAME_METADATA_KEY = "original-name"
# S3 limits: object keys in UTF-8 bytes, user metadata as the sum of keys and values
MAX_OBJECT_KEY_BYTES = 1024
MAX_METADATA_BYTES = 2048
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def content_disposition(filename: str) -> str:
    """Build an attachment header value with the filename percent-encoded."""
    return f'attachment; filename="{quote(filename, safe="!()*")}"'


class FileDownload:
    """
    An open download of one stored object.

    The backend body stays open until it has been read to the end through
    ``iter_bytes`` or ``close`` is called; both paths release the connection.
    """

    def __init__(
        self,
        name: str,
        filename: str,
        content_type: str,
        content_length: Optional[int],
        body: "StreamingBody",
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
    ):
        self.name = name
        self.filename = filename
        self.content_type = content_type
        self.content_length = content_length
        self._body = body
        self._chunk_size = chunk_size
        self._closed = False

    @property
    def content_disposition(self) -> str:
        return content_disposition(self.filename)

    @property
    def closed(self) -> bool:
        return self._closed

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Forward the object in chunks, closing the backend body however iteration ends."""
        try:
            while True:
                try:
                    chunk = await run_in_threadpool(self._body.read, self._chunk_size)
                except (BotoCoreError, OSError) as err:
                    raise BackendError("fetch", str(err)) from err
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._body.close()


class FileStore:
    """Store, list, fetch and remove files in a single S3 bucket."""

    def __init__(
        self,
        s3_client: "S3Client",
        bucket_name: str,
        *,
        region: str = "us-east-1",
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        naming_policy: NamingPolicy = NamingPolicy.TIMESTAMP,
        container_check_ttl: float = 0.0,
    ):
        self._s3 = s3_client
        self.bucket_name = bucket_name
        self.region = region
        self.max_upload_bytes = max_upload_bytes
        self.naming_policy = NamingPolicy(naming_policy)
        self.container_check_ttl = container_check_ttl
        self._container_checked_at: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: Settings, s3_client: Optional["S3Client"] = None) -> "FileStore":
        return cls(
            s3_client or create_s3_client(settings),
            settings.s3_bucket_name,
            region=settings.aws_region,
            max_upload_bytes=settings.max_upload_bytes,
            naming_policy=settings.naming_policy,
            container_check_ttl=settings.container_check_ttl,
        )

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any, missing_name: Optional[str] = None) -> Any:
        """
        Run a blocking backend call in the thread pool and translate its errors.

        When ``missing_name`` is given, a not-found answer from the backend
        becomes ``NotFoundError`` for that name.
        """
        try:
            return await run_in_threadpool(func, *args)
        except ClientError as err:
            error = err.response.get("Error", {})
            code = error.get("Code")
            if code == "NoSuchBucket":
                self._container_checked_at = None
            if missing_name is not None and is_not_found(err):
                raise NotFoundError(missing_name) from err
            raise BackendError(
                operation,
                error.get("Message") or str(err),
                code=code,
                status=err.response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
            ) from err
        except BotoCoreError as err:
            raise BackendError(operation, str(err)) from err

    async def ensure_container(self) -> None:
        """Create the bucket if missing, skipping the check while a recent one is still fresh."""
        if self.container_check_ttl and self._container_checked_at is not None:
            if time.monotonic() - self._container_checked_at < self.container_check_ttl:
                return
        await self._call("ensure_container", ensure_bucket_exists, self._s3, self.bucket_name, self.region)
        if self.container_check_ttl:
            self._container_checked_at = time.monotonic()

    async def _require_existing(self, operation: str, name: str) -> None:
        if not name:
            raise ValidationError("File name is required", field="name")
        await self.ensure_container()
        if not await self._call(operation, object_exists_in_s3, self._s3, self.bucket_name, name):
            raise NotFoundError(name)

    @async_log_execution_time
    async def store(
        self,
        original_name: str,
        content: bytes,
        content_type: Optional[str] = None,
        declared_size: Optional[int] = None,
    ) -> StoredFile:
        """
        Upload ``content`` under a name derived from ``original_name``.

        Every validation happens before the backend is contacted. Under the
        ``preserve`` and ``sanitize`` policies an existing object with the same
        derived name is overwritten.
        """
        if not original_name or not original_name.strip():
            raise ValidationError("File name is required", field="filename")
        if not content:
            raise ValidationError("No file provided", field="file")
        size = len(content)
        if declared_size is not None and declared_size != size:
            raise ValidationError(
                f"Declared size {declared_size} does not match received {size} bytes", field="file"
            )
        if size > self.max_upload_bytes:
            raise PayloadTooLargeError(size, self.max_upload_bytes)

        name = derive_name(original_name, self.naming_policy)
        if name in ("", ".", ".."):
            raise ValidationError(f"'{original_name}' is not a usable file name", field="filename")
        if len(name.encode("utf-8")) > MAX_OBJECT_KEY_BYTES:
            raise ValidationError(
                f"File name is longer than {MAX_OBJECT_KEY_BYTES} bytes once stored", field="filename"
            )
        metadata = {ORIGINAL_NAME_METADATA_KEY: quote(original_name, safe="")}
        if sum(len(k) + len(v) for k, v in metadata.items()) > MAX_METADATA_BYTES:
            raise ValidationError(
                f"File name is too long to keep as metadata (limit {MAX_METADATA_BYTES} bytes encoded)",
                field="filename",
            )
        content_type = content_type or DEFAULT_CONTENT_TYPE

        await self.ensure_container()
        await self._call(
            "store",
            upload_s3_object,
            self._s3,
            self.bucket_name,
            name,
            content,
            content_type,
            metadata,
        )
        logger.info(f"Stored '{original_name}' as '{name}' ({size} bytes, {content_type})")
        return StoredFile(name=name, size=size, content_type=content_type, original_name=original_name)

    @async_log_execution_time
    async def list_files(self) -> List[StoredFile]:
        """Every object in the bucket, in the order the backend lists them."""
        await self.ensure_container()
        objects = await self._call("list", fetch_s3_objects_metadata, self._s3, self.bucket_name)
        return [
            StoredFile(name=obj["Key"], size=obj.get("Size"), created_on=obj.get("LastModified"))
            for obj in objects
        ]

    @async_log_execution_time
    async def fetch(self, name: str) -> FileDownload:
        """Open a download of ``name``. Close the result or read it to the end."""
        await self._require_existing("fetch", name)
        # the object can still vanish between the check and the read
        response = await self._call("fetch", fetch_s3_object, self._s3, self.bucket_name, name, missing_name=name)

        original_name = response.get("Metadata", {}).get(ORIGINAL_NAME_METADATA_KEY)
        filename = strip_path(unquote(original_name)) if original_name else name
        return FileDownload(
            name=name,
            filename=filename,
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
            content_length=response.get("ContentLength"),
            body=response["Body"],
        )

    @async_log_execution_time
    async def remove(self, name: str) -> None:
        """Delete ``name``; a missing name is an error, including on a second delete."""
        await self._require_existing("remove", name)
        await self._call("remove", delete_s3_object, self._s3, self.bucket_name, name)
        logger.info(f"Removed '{name}'")
