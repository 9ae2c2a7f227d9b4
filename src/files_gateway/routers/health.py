from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from files_gateway.dependencies import get_file_store
from files_gateway.errors import BackendError
from files_gateway.file_store import FileStore

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def liveness() -> str:
    """Fast liveness check; never touches the storage backend."""
    return "OK"


@router.get("/health")
async def health_check(file_store: FileStore = Depends(get_file_store)):
    """
    Health check endpoint reporting API status and storage readiness.

    The storage component is checked by making sure the bucket exists, so a
    bucket deleted out-of-band is recreated here as well.
    """
    health_status = {
        "status": "ok",
        "bucket": file_store.bucket_name,
        "components": {
            "api": "ready",
            "storage": "ready",
        },
    }

    try:
        await file_store.ensure_container()
    except BackendError as e:
        health_status["components"]["storage"] = f"error: {e.code or e.message}"
        health_status["status"] = "degraded"

    return health_status
