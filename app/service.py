"""
Share lifecycle and access control.

Every operation sweeps expired shares first, so an expired slug is free
for reuse and never readable. Slugs are unique across code shares and
file shares together.
"""
import base64
import binascii
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from cleanup import is_expired, sweep_expired, utc_now
from database import CODE_SHARES, FILE_SHARES, NAMESPACES, ShareRepository
from errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PayloadTooLargeError,
    UnauthorizedError,
    ValidationError,
)
from models import public_code_share, public_file_share
from security import hash_password, log_security_event, sanitize_filename, verify_password
from utils.code_generator import (
    MAX_SLUG_LENGTH,
    MIN_SLUG_LENGTH,
    generate_code,
    is_valid_slug_length,
    slugify,
)

logger = logging.getLogger(__name__)

CODE_SHARE_TTL = timedelta(days=14)
FILE_SHARE_TTL = timedelta(days=3)
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_LANGUAGE = "plaintext"
DEFAULT_MIME_TYPE = "application/octet-stream"
FILE_ACTIONS = ("download", "view")


@dataclass
class FileContent:
    """Decoded payload of a file share."""
    file_name: str
    mime_type: str
    content: bytes


class ShareService:
    """Orchestrates slugs, passwords, expiry and storage for both share kinds."""

    def __init__(self, repository: ShareRepository, clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self.clock = clock

    # ============ SHARED HELPERS ============

    async def _sweep(self) -> datetime:
        now = self.clock()
        await sweep_expired(self.repository, now)
        return now

    def _make_slug(self, title: Optional[str]) -> str:
        if not title or not title.strip():
            return generate_code()
        slug = slugify(title)
        if not is_valid_slug_length(slug):
            raise ValidationError(
                f"Title must produce a URL between {MIN_SLUG_LENGTH} and "
                f"{MAX_SLUG_LENGTH} characters"
            )
        return slug

    async def _is_taken(self, slug: str, now: datetime) -> bool:
        for namespace in NAMESPACES:
            record = await self.repository.get(namespace, slug)
            if record and not is_expired(record, now):
                return True
        return False

    async def _get_active(self, namespace: str, slug: str, now: datetime) -> dict:
        record = await self.repository.get(namespace, slug) if slug else None
        if not record or is_expired(record, now):
            kind = "Code share" if namespace == CODE_SHARES else "File share"
            raise NotFoundError(f"{kind} not found")
        return record

    def _require_password(self, record: dict, password: Optional[str], action: str):
        if not password:
            raise UnauthorizedError(f"Password is required to {action} this share")
        if not verify_password(password, record["passwordHash"]):
            log_security_event("invalid_password", {"slug": record["title"], "action": action})
            raise UnauthorizedError("Invalid password")

    async def _claim_slug(self, title: Optional[str], now: datetime) -> str:
        slug = self._make_slug(title)
        if await self._is_taken(slug, now):
            raise ConflictError(
                "This title is already in use for an active share. Please choose "
                "a different title or wait for the previous one to expire."
            )
        return slug

    # ============ SLUGS ============

    async def check_slug_availability(self, candidate: str) -> Tuple[str, bool]:
        """Return the normalized slug and whether a new share could claim it."""
        if not candidate or not candidate.strip():
            raise ValidationError("Candidate slug is required")
        now = await self._sweep()
        slug = slugify(candidate)
        if not is_valid_slug_length(slug):
            return slug, False
        return slug, not await self._is_taken(slug, now)

    # ============ CODE SHARES ============

    async def create_code_share(
        self,
        code: str,
        title: Optional[str] = None,
        language: Optional[str] = None,
        password: Optional[str] = None,
    ) -> dict:
        if not code:
            raise ValidationError("Code is required")
        now = await self._sweep()
        slug = await self._claim_slug(title, now)
        password_hash = hash_password(password)

        record = {
            "id": uuid.uuid4().hex,
            "title": slug,
            "code": code,
            "language": language or DEFAULT_LANGUAGE,
            "passwordHash": password_hash,
            "hasPassword": bool(password_hash),
            "createdAt": now.isoformat(),
            "expiresAt": (now + CODE_SHARE_TTL).isoformat(),
        }
        await self.repository.put(CODE_SHARES, record)
        logger.info(f"Created code share: {slug}")
        return public_code_share(record)

    async def get_code_share(self, slug: str) -> dict:
        now = await self._sweep()
        return public_code_share(await self._get_active(CODE_SHARES, slug, now))

    async def verify_code_share_password(self, slug: str, password: Optional[str]) -> None:
        """Check that a password unlocks editing, without changing anything."""
        now = await self._sweep()
        record = await self._get_active(CODE_SHARES, slug, now)
        if not record["hasPassword"]:
            raise ForbiddenError("This code share is public and cannot be edited")
        self._require_password(record, password, "edit")

    async def update_code_share(
        self,
        slug: str,
        code: str,
        password: Optional[str],
        language: Optional[str] = None,
    ) -> dict:
        now = await self._sweep()
        record = await self._get_active(CODE_SHARES, slug, now)
        if not record["hasPassword"]:
            raise ForbiddenError("This code share is public and cannot be edited")
        self._require_password(record, password, "edit")

        changes = {"code": code}
        if language:
            changes["language"] = language
        updated = await self.repository.update(CODE_SHARES, slug, changes)
        if updated is None:
            # Deleted by a concurrent request between read and write
            raise NotFoundError("Code share not found")
        logger.info(f"Updated code share: {slug}")
        return public_code_share(updated)

    async def delete_code_share(self, slug: str, password: Optional[str]) -> None:
        await self._delete(CODE_SHARES, slug, password)

    # ============ FILE SHARES ============

    async def create_file_share(
        self,
        content: str,
        file_name: str,
        file_size: int,
        title: Optional[str] = None,
        mime_type: Optional[str] = None,
        description: Optional[str] = None,
        password: Optional[str] = None,
    ) -> dict:
        if not content or not file_name:
            raise ValidationError("Missing required fields")
        if file_size > MAX_FILE_SIZE:
            raise PayloadTooLargeError("File size exceeds 10MB limit")
        try:
            decoded = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("File content must be base64 encoded")
        if len(decoded) > MAX_FILE_SIZE:
            raise PayloadTooLargeError("File size exceeds 10MB limit")

        now = await self._sweep()
        slug = await self._claim_slug(title, now)
        password_hash = hash_password(password)

        record = {
            "id": uuid.uuid4().hex,
            "title": slug,
            "description": description or "",
            "fileName": sanitize_filename(file_name),
            "fileSize": file_size,
            "mimeType": mime_type or DEFAULT_MIME_TYPE,
            "content": content,
            "passwordHash": password_hash,
            "hasPassword": bool(password_hash),
            "createdAt": now.isoformat(),
            "expiresAt": (now + FILE_SHARE_TTL).isoformat(),
        }
        await self.repository.put(FILE_SHARES, record)
        logger.info(f"Created file share: {slug} ({file_size} bytes)")
        return public_file_share(record)

    async def get_file_share(self, slug: str) -> dict:
        now = await self._sweep()
        return public_file_share(await self._get_active(FILE_SHARES, slug, now))

    async def retrieve_file_content(
        self,
        slug: str,
        password: Optional[str],
        action: str,
    ) -> FileContent:
        """
        Authorize and return a file's bytes. "download" and "view" are
        authorized identically; they differ only in how the client
        presents the result.
        """
        if action not in FILE_ACTIONS:
            raise ValidationError("Invalid action")
        now = await self._sweep()
        record = await self._get_active(FILE_SHARES, slug, now)
        if record["hasPassword"]:
            self._require_password(record, password, action)
        return FileContent(
            file_name=record["fileName"],
            mime_type=record["mimeType"],
            content=base64.b64decode(record["content"]),
        )

    async def retrieve_public_file(self, slug: str) -> FileContent:
        """Direct download, only for shares created without a password."""
        now = await self._sweep()
        record = await self._get_active(FILE_SHARES, slug, now)
        if record["hasPassword"]:
            raise ForbiddenError(
                "This file is password-protected and cannot be downloaded directly"
            )
        return FileContent(
            file_name=record["fileName"],
            mime_type=record["mimeType"],
            content=base64.b64decode(record["content"]),
        )

    async def delete_file_share(self, slug: str, password: Optional[str]) -> None:
        await self._delete(FILE_SHARES, slug, password)

    # ============ DELETE ============

    async def _delete(self, namespace: str, slug: str, password: Optional[str]):
        # A password is required even for shares created without one,
        # which makes those shares undeletable here.
        now = await self._sweep()
        record = await self._get_active(namespace, slug, now)
        self._require_password(record, password, "delete")
        if not await self.repository.delete(namespace, slug):
            raise NotFoundError("Share not found")
        logger.info(f"Deleted {namespace}: {slug}")
