"""
Pydantic models for request validation, and public projections of stored shares.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

CODE_SHARE_PUBLIC_FIELDS = (
    "id", "title", "code", "language", "hasPassword", "createdAt", "expiresAt",
)
FILE_SHARE_PUBLIC_FIELDS = (
    "id", "title", "description", "fileName", "fileSize", "mimeType",
    "hasPassword", "createdAt", "expiresAt",
)


def public_code_share(record: dict) -> dict:
    """Fields of a code share that are safe to return over the network."""
    return {name: record.get(name) for name in CODE_SHARE_PUBLIC_FIELDS}


def public_file_share(record: dict) -> dict:
    """File share metadata; never includes the password hash or the content."""
    return {name: record.get(name) for name in FILE_SHARE_PUBLIC_FIELDS}


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CodeShareCreate(_Body):
    """Request model for creating a code share."""
    title: Optional[str] = None
    code: str
    language: Optional[str] = None
    password: Optional[str] = None


class CodeShareUpdate(_Body):
    """Request model for editing a code share."""
    slug: str
    code: str
    password: Optional[str] = None
    language: Optional[str] = None


class ShareCredentials(_Body):
    """Slug and password, for deletes and password checks."""
    slug: str
    password: Optional[str] = None


class FileShareCreate(_Body):
    """Request model for uploading a file share. Content is base64."""
    title: Optional[str] = None
    description: Optional[str] = None
    file_name: str = Field(alias="fileName")
    file_size: int = Field(alias="fileSize", ge=0)
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    content: str
    password: Optional[str] = None


class FileContentRequest(_Body):
    """Request model for downloading or viewing a file share."""
    slug: str
    password: Optional[str] = None
    action: str


class FileContentResponse(_Body):
    """Decoded file payload, re-encoded as base64 for JSON transport."""
    file_name: str = Field(serialization_alias="fileName")
    mime_type: str = Field(serialization_alias="mimeType")
    content: str


class SlugAvailability(BaseModel):
    slug: str
    available: bool
