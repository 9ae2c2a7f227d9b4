"""FastAPI dependencies resolving the per-process objects stored on ``app.state``."""

from fastapi import Request

from files_gateway.file_store import FileStore


def get_file_store(request: Request) -> FileStore:
    return request.app.state.file_store
