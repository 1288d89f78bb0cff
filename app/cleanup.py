"""
Expiration sweeper for shares.
"""
import asyncio
import logging
from datetime import datetime, timezone

from database import NAMESPACES, ShareRepository

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, including JavaScript's trailing "Z"."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_expired(record: dict, now: datetime) -> bool:
    """A share is expired once now reaches its expiresAt."""
    return parse_timestamp(record["expiresAt"]) <= now


async def sweep_expired(repository: ShareRepository, now: datetime) -> int:
    """
    Delete every expired share in both namespaces.

    Only slugs and expiry times are requested from storage. Returns
    the number of shares removed. Storage is only written when
    something expired.
    """
    removed = 0
    for namespace in NAMESPACES:
        expirations = await repository.list_expirations(namespace)
        expired = [slug for slug, expires_at in expirations.items()
                   if parse_timestamp(expires_at) <= now]
        if expired:
            count = await repository.delete_many(namespace, expired)
            logger.info(f"Cleaned up {count} expired {namespace}")
            removed += count
    return removed


async def cleanup_loop(repository: ShareRepository, interval_seconds: int):
    """Sweep periodically, in addition to the sweep run before each request."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await sweep_expired(repository, utc_now())
        except Exception:
            logger.exception("Cleanup error")
