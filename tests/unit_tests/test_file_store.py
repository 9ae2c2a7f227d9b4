from io import BytesIO
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from files_gateway.errors import BackendError, NotFoundError, PayloadTooLargeError, ValidationError
from files_gateway.file_store import FileDownload, FileStore
from files_gateway.naming import NamingPolicy
from tests.consts import (
    TEST_BUCKET_NAME,
    TEST_FILE_CONTENT,
    TEST_FILE_CONTENT_TYPE,
    TEST_FILE_NAME,
    TEST_PDF_CONTENT,
    TEST_PDF_CONTENT_TYPE,
    TEST_PDF_NAME,
)
from tests.fixtures.app_fixtures import TEST_MAX_UPLOAD_BYTES


async def read_all(download: FileDownload) -> bytes:
    return b"".join([chunk async for chunk in download.iter_bytes()])


def client_error(code: str, http_status: int, operation: str = "HeadBucket") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} happened"},
            "ResponseMetadata": {"HTTPStatusCode": http_status},
        },
        operation,
    )


def mock_s3_client() -> MagicMock:
    s3_client = MagicMock()
    s3_client.head_bucket.return_value = {}
    s3_client.get_paginator.return_value.paginate.return_value = [{"Contents": []}]
    return s3_client


async def test_store_then_list_includes_file(file_store: FileStore):
    saved = await file_store.store(TEST_FILE_NAME, TEST_FILE_CONTENT, TEST_FILE_CONTENT_TYPE)

    files = await file_store.list_files()

    listed = {f.name: f for f in files}
    assert saved.name in listed
    assert listed[saved.name].size == len(TEST_FILE_CONTENT)
    assert listed[saved.name].created_on is not None


async def test_store_returns_descriptor(file_store: FileStore):
    saved = await file_store.store(TEST_FILE_NAME, TEST_FILE_CONTENT, TEST_FILE_CONTENT_TYPE)

    assert saved.name.endswith(f"-{TEST_FILE_NAME}")
    assert saved.size == len(TEST_FILE_CONTENT)
    assert saved.content_type == TEST_FILE_CONTENT_TYPE
    assert saved.original_name == TEST_FILE_NAME


async def test_store_creates_missing_bucket(file_store: FileStore, s3_client):
    await file_store.store(TEST_FILE_NAME, TEST_FILE_CONTENT)

    buckets = [b["Name"] for b in s3_client.list_buckets()["Buckets"]]
    assert TEST_BUCKET_NAME in buckets


async def test_bucket_recreated_after_out_of_band_delete(file_store: FileStore, s3_client):
    saved = await file_store.store(TEST_FILE_NAME, TEST_FILE_CONTENT)
    s3_client.delete_object(Bucket=TEST_BUCKET_NAME, Key=saved.name)
    s3_client.delete_bucket(Bucket=TEST_BUCKET_NAME)

    assert await file_store.list_files() == []
    again = await file_store.store(TEST_FILE_NAME, TEST_FILE_CONTENT)
    assert [f.name for f in await file_store.list_files()] == [again.name]


@pytest.mark.parametrize("name", ["never-stored.txt", "report.pdf"])
async def test_unknown_name_is_not_found(file_store: FileStore, name: str):
    with pytest.raises(NotFoundError) as exc_info:
        await file_store.fetch(name)
    assert exc_info.value.name == name

    with pytest.raises(NotFoundError):
        await file_store.remove(name)


@pytest.mark.parametrize(
    "content_type, expected",
    [
        ("image/png", "image/png"),
        (None, "application/octet-stream"),
        ("", "application/octet-stream"),
    ],
)
async def test_round_trip(file_store: FileStore, content_type, expected):
    payload = bytes(range(256)) * 3

    saved = await file_store.store("blob.bin", payload, content_type)
    download = await file_store.fetch(saved.name)

    assert download.content_type == expected
    assert download.content_length == len(payload)
    assert await read_all(download) == payload
    assert download.closed


async def test_listing_is_idempotent(file_store: FileStore):
    for i in range(3):
        await file_store.store(f"file{i}.txt", TEST_FILE_CONTENT)

    first = {f.name for f in await file_store.list_files()}
    second = {f.name for f in await file_store.list_files()}

    assert first == second
    assert len(first) == 3


async def test_remove_then_fetch_and_remove_are_not_found(file_store: FileStore):
    saved = await file_store.store(TEST_FILE_NAME, TEST_FILE_CONTENT)

    await file_store.remove(saved.name)

    with pytest.raises(NotFoundError):
        await file_store.fetch(saved.name)
    with pytest.raises(NotFoundError):
        await file_store.remove(saved.name)
    assert await file_store.list_files() == []


async def test_payload_at_limit_is_accepted(file_store: FileStore):
    saved = await file_store.store("limit.bin", b"x" * TEST_MAX_UPLOAD_BYTES)
    assert saved.size == TEST_MAX_UPLOAD_BYTES


async def test_payload_over_limit_never_reaches_backend():
    s3_client = mock_s3_client()
    file_store = FileStore(s3_client, TEST_BUCKET_NAME, max_upload_bytes=16)

    with pytest.raises(PayloadTooLargeError) as exc_info:
        await file_store.store("big.bin", b"x" * 17)

    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.limit == 16
    assert s3_client.method_calls == []


@pytest.mark.parametrize(
    "name, content, declared_size",
    [
        ("", TEST_FILE_CONTENT, None),
        ("   ", TEST_FILE_CONTENT, None),
        (TEST_FILE_NAME, b"", None),
        (TEST_FILE_NAME, TEST_FILE_CONTENT, len(TEST_FILE_CONTENT) + 1),
        ("uploads/", TEST_FILE_CONTENT, None),
        ("a" * 1100 + ".txt", TEST_FILE_CONTENT, None),
        ("é" * 400 + ".txt", TEST_FILE_CONTENT, None),
    ],
)
async def test_invalid_uploads_never_reach_backend(name, content, declared_size):
    s3_client = mock_s3_client()
    file_store = FileStore(s3_client, TEST_BUCKET_NAME)

    with pytest.raises(ValidationError):
        await file_store.store(name, content, declared_size=declared_size)

    assert s3_client.method_calls == []


async def test_report_pdf_scenario(file_store: FileStore):
    saved = await file_store.store(TEST_PDF_NAME, TEST_PDF_CONTENT, TEST_PDF_CONTENT_TYPE)
    assert saved.size == 1024
    assert saved.content_type == TEST_PDF_CONTENT_TYPE
    assert saved.name in {f.name for f in await file_store.list_files()}

    download = await file_store.fetch(saved.name)
    assert download.content_type == TEST_PDF_CONTENT_TYPE
    assert download.content_disposition == 'attachment; filename="report.pdf"'
    assert len(await read_all(download)) == 1024

    await file_store.remove(saved.name)
    with pytest.raises(NotFoundError):
        await file_store.fetch(saved.name)


async def test_same_name_twice_with_timestamp_policy_keeps_both(file_store: FileStore):
    first = await file_store.store("a b.txt", b"first")
    second = await file_store.store("a b.txt", b"second")

    names = [f.name for f in await file_store.list_files()]
    assert first.name != second.name
    assert sorted(names) == sorted([first.name, second.name])


async def test_same_name_twice_with_sanitize_policy_overwrites(sanitizing_file_store: FileStore):
    await sanitizing_file_store.store("a b.txt", b"first")
    saved = await sanitizing_file_store.store("a b.txt", b"second")

    files = await sanitizing_file_store.list_files()
    assert [f.name for f in files] == ["a_b.txt"]
    assert saved.name == "a_b.txt"
    assert await read_all(await sanitizing_file_store.fetch("a_b.txt")) == b"second"


async def test_preserve_policy_keeps_original_name(settings, s3_client):
    file_store = FileStore.from_settings(
        settings.model_copy(update={"naming_policy": NamingPolicy.PRESERVE}), s3_client=s3_client
    )

    saved = await file_store.store("my report (final).pdf", TEST_PDF_CONTENT, TEST_PDF_CONTENT_TYPE)

    assert saved.name == "my report (final).pdf"
    assert [f.name for f in await file_store.list_files()] == ["my report (final).pdf"]


async def test_fetch_uses_original_name_percent_encoded(file_store: FileStore):
    saved = await file_store.store("résumé final.pdf", TEST_PDF_CONTENT, TEST_PDF_CONTENT_TYPE)

    download = await file_store.fetch(saved.name)
    download.close()

    assert download.filename == "résumé final.pdf"
    assert download.content_disposition == 'attachment; filename="r%C3%A9sum%C3%A9%20final.pdf"'


async def test_fetch_falls_back_to_stored_name_without_metadata(file_store: FileStore, s3_client):
    await file_store.ensure_container()
    s3_client.put_object(Bucket=TEST_BUCKET_NAME, Key="raw.dat", Body=b"raw")

    download = await file_store.fetch("raw.dat")

    assert download.filename == "raw.dat"
    assert await read_all(download) == b"raw"


async def test_closing_download_early_releases_body():
    body = BytesIO(b"0123456789")
    download = FileDownload("n", "n", "text/plain", 10, body, chunk_size=4)

    chunks = download.iter_bytes()
    assert await chunks.__anext__() == b"0123"
    await chunks.aclose()

    assert body.closed
    assert download.closed


async def test_backend_error_carries_code_and_status():
    s3_client = mock_s3_client()
    s3_client.head_bucket.side_effect = client_error("AccessDenied", 403)
    file_store = FileStore(s3_client, TEST_BUCKET_NAME)

    with pytest.raises(BackendError) as exc_info:
        await file_store.list_files()

    error = exc_info.value
    assert error.code == "AccessDenied"
    assert error.status == 403
    assert error.operation == "ensure_container"
    assert not error.transient
    assert error.status_code == 500


async def test_throttling_is_transient():
    s3_client = mock_s3_client()
    s3_client.put_object.side_effect = client_error("SlowDown", 503, "PutObject")
    file_store = FileStore(s3_client, TEST_BUCKET_NAME)

    with pytest.raises(BackendError) as exc_info:
        await file_store.store(TEST_FILE_NAME, TEST_FILE_CONTENT)

    assert exc_info.value.transient
    assert exc_info.value.status_code == 502


async def test_network_failure_is_backend_error():
    s3_client = mock_s3_client()
    s3_client.head_bucket.side_effect = EndpointConnectionError(endpoint_url="http://nowhere")
    file_store = FileStore(s3_client, TEST_BUCKET_NAME)

    with pytest.raises(BackendError) as exc_info:
        await file_store.fetch(TEST_FILE_NAME)

    assert exc_info.value.code is None
    assert exc_info.value.transient


async def test_object_vanishing_before_read_is_not_found():
    s3_client = mock_s3_client()
    s3_client.head_object.return_value = {}
    s3_client.get_object.side_effect = client_error("NoSuchKey", 404, "GetObject")
    file_store = FileStore(s3_client, TEST_BUCKET_NAME)

    with pytest.raises(NotFoundError):
        await file_store.fetch(TEST_FILE_NAME)


async def test_container_check_runs_on_every_call_by_default():
    s3_client = mock_s3_client()
    file_store = FileStore(s3_client, TEST_BUCKET_NAME)

    await file_store.list_files()
    await file_store.list_files()

    assert s3_client.head_bucket.call_count == 2


async def test_container_check_is_cached_within_ttl():
    s3_client = mock_s3_client()
    file_store = FileStore(s3_client, TEST_BUCKET_NAME, container_check_ttl=60)

    await file_store.list_files()
    await file_store.list_files()

    assert s3_client.head_bucket.call_count == 1


async def test_missing_bucket_invalidates_cached_check():
    s3_client = mock_s3_client()
    file_store = FileStore(s3_client, TEST_BUCKET_NAME, container_check_ttl=60)
    await file_store.list_files()

    s3_client.get_paginator.return_value.paginate.side_effect = client_error("NoSuchBucket", 404, "ListObjectsV2")
    with pytest.raises(BackendError) as exc_info:
        await file_store.list_files()
    assert exc_info.value.code == "NoSuchBucket"

    s3_client.get_paginator.return_value.paginate.side_effect = None
    await file_store.list_files()
    assert s3_client.head_bucket.call_count == 2


async def test_preserve_policy_rejects_key_longer_than_s3_allows():
    s3_client = mock_s3_client()
    file_store = FileStore(s3_client, TEST_BUCKET_NAME, naming_policy=NamingPolicy.PRESERVE)

    with pytest.raises(ValidationError) as exc_info:
        await file_store.store("a" * 1100 + ".txt", TEST_FILE_CONTENT)

    assert exc_info.value.field == "filename"
    assert s3_client.method_calls == []


async def test_name_at_key_limit_is_accepted(settings, s3_client):
    file_store = FileStore.from_settings(
        settings.model_copy(update={"naming_policy": NamingPolicy.PRESERVE}), s3_client=s3_client
    )
    name = "a" * 1020 + ".txt"

    saved = await file_store.store(name, TEST_FILE_CONTENT)

    assert saved.name == name
