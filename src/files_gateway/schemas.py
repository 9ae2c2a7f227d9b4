####################################
# --- Request/response schemas --- #
####################################

from datetime import datetime
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class StoredFile(BaseModel):
    """A file held in the bucket. Listing entries leave unknown fields as null."""
    name: str = Field(
        description="The name of the object in the bucket.",
        json_schema_extra={"example": "1718000000000-3f9a1c2b-report.pdf"},
    )
    size: Optional[int] = Field(None, ge=0, description="The size of the file in bytes.")
    content_type: Optional[str] = Field(
        None,
        alias="contentType",
        description="The MIME type given at upload time.",
    )
    created_on: Optional[datetime] = Field(
        None,
        alias="createdOn",
        description="When the backend last wrote the object.",
    )
    original_name: Optional[str] = Field(
        None,
        alias="originalName",
        description="The filename as uploaded, before sanitization.",
    )

    model_config = ConfigDict(populate_by_name=True)


class UploadFileResponse(BaseModel):
    """Response model for `POST /files`."""
    message: str = Field(description="A message about the operation.")
    file: StoredFile

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "File uploaded",
                "file": {
                    "name": "1718000000000-3f9a1c2b-report.pdf",
                    "size": 1024,
                    "contentType": "application/pdf",
                    "createdOn": None,
                    "originalName": "report.pdf",
                },
            }
        }
    )


class DeleteFileResponse(BaseModel):
    """Response model for `DELETE /files/:name`."""
    message: str


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx response raised by the file store."""
    message: str
    name: Optional[str] = None
    field: Optional[str] = None
    code: Optional[str] = None
    transient: Optional[bool] = None
