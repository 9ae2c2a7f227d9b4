import logging
from contextlib import asynccontextmanager
from textwrap import dedent
from typing import TYPE_CHECKING, Optional

import pydantic
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from files_gateway import __version__
from files_gateway.errors import (
    FileStoreError,
    handle_broad_exceptions,
    handle_file_store_errors,
    handle_pydantic_validation_errors,
)
from files_gateway.file_store import FileStore
from files_gateway.logging_config import configure_logging
from files_gateway.routers.files import router as files_router
from files_gateway.routers.health import router as health_router
from files_gateway.settings import Settings, create_s3_client

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

# Set up logging
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(
        f"{settings.app_name} serving bucket '{settings.s3_bucket_name}' "
        f"(naming policy: {settings.naming_policy.value}, max upload: {settings.max_upload_bytes} bytes)"
    )
    yield
    logger.info("Shutting down, closing storage client")
    app.state.s3_client.close()


def create_app(settings: Optional[Settings] = None, s3_client: Optional["S3Client"] = None) -> FastAPI:
    """
    Create a FastAPI application.

    Settings are resolved here, so missing storage configuration stops the
    process before it starts serving. The S3 client and the ``FileStore``
    are built once and shared by every request.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="File Management API",
        summary="Upload, list, download and delete files kept in object storage",
        version=__version__,
        description=dedent(
            """\
        | Method | Path | Operation |
        | --- | --- | --- |
        | `POST` | `/files` | Upload a file (multipart field `file`) |
        | `GET` | `/files` | List files |
        | `GET` | `/files/{name}` | Download a file |
        | `DELETE` | `/files/{name}` | Delete a file |
        """
        ),
        docs_url="/api-docs",
        lifespan=lifespan,
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    s3_client = s3_client or create_s3_client(settings)
    app.state.settings = settings
    app.state.s3_client = s3_client
    app.state.file_store = FileStore.from_settings(settings, s3_client=s3_client)

    app.include_router(files_router, tags=["files"])
    app.include_router(health_router, tags=["health"])

    app.add_exception_handler(
        exc_class_or_status_code=FileStoreError,
        handler=handle_file_store_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
