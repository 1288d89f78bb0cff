"""
Expiration sweeper tests.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

import cleanup
from cleanup import cleanup_loop, is_expired, parse_timestamp, sweep_expired
from database import CODE_SHARES, FILE_SHARES

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def share(slug: str, expires_at: datetime) -> dict:
    return {"title": slug, "expiresAt": expires_at.isoformat()}


class TestIsExpired:

    def test_future_is_active(self):
        assert not is_expired(share("a", NOW + timedelta(seconds=1)), NOW)

    def test_exact_expiry_is_expired(self):
        assert is_expired(share("a", NOW), NOW)

    def test_past_is_expired(self):
        assert is_expired(share("a", NOW - timedelta(days=1)), NOW)

    def test_javascript_z_suffix(self):
        assert is_expired({"expiresAt": "2025-06-01T11:59:59.000Z"}, NOW)
        assert not is_expired({"expiresAt": "2025-06-01T12:00:01.000Z"}, NOW)


class TestParseTimestamp:

    def test_z_suffix_is_utc(self):
        assert parse_timestamp("2025-06-01T12:00:00.000Z") == NOW

    def test_offset_is_kept(self):
        assert parse_timestamp("2025-06-01T14:00:00+02:00") == NOW

    def test_naive_is_treated_as_utc(self):
        assert parse_timestamp("2025-06-01T12:00:00") == NOW


class TestSweepExpired:

    @pytest.mark.asyncio
    async def test_removes_expired_from_both_namespaces(self, repository):
        await repository.put(CODE_SHARES, share("old-code", NOW - timedelta(hours=1)))
        await repository.put(CODE_SHARES, share("new-code", NOW + timedelta(hours=1)))
        await repository.put(FILE_SHARES, share("old-file", NOW))
        await repository.put(FILE_SHARES, share("new-file", NOW + timedelta(days=2)))

        assert await sweep_expired(repository, NOW) == 2

        assert [s["title"] for s in await repository.list_all(CODE_SHARES)] == ["new-code"]
        assert [s["title"] for s in await repository.list_all(FILE_SHARES)] == ["new-file"]

    @pytest.mark.asyncio
    async def test_is_idempotent(self, repository):
        await repository.put(CODE_SHARES, share("old", NOW - timedelta(hours=1)))
        assert await sweep_expired(repository, NOW) == 1
        assert await sweep_expired(repository, NOW) == 0

    @pytest.mark.asyncio
    async def test_clean_store_is_not_written(self, repository):
        await repository.put(CODE_SHARES, share("fresh", NOW + timedelta(days=1)))
        repository.delete_many = AsyncMock(return_value=0)
        assert await sweep_expired(repository, NOW) == 0
        repository.delete_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_removes_z_suffixed_records(self, repository):
        await repository.put(CODE_SHARES, {"title": "old", "expiresAt": "2025-05-31T12:00:00.000Z"})
        await repository.put(CODE_SHARES, {"title": "new", "expiresAt": "2025-06-02T12:00:00.000Z"})
        assert await sweep_expired(repository, NOW) == 1
        assert [s["title"] for s in await repository.list_all(CODE_SHARES)] == ["new"]

    @pytest.mark.asyncio
    async def test_does_not_load_full_records(self, repository):
        await repository.put(FILE_SHARES, share("old-file", NOW - timedelta(hours=1)))
        repository.list_all = AsyncMock(side_effect=AssertionError("full records loaded"))
        assert await sweep_expired(repository, NOW) == 1
        repository.list_all.assert_not_awaited()


class TestCleanupLoop:

    @pytest.mark.asyncio
    async def test_keeps_running_after_errors(self, monkeypatch):
        calls = []

        async def flaky_sweep(repository, now):
            calls.append(now)
            if len(calls) == 1:
                raise RuntimeError("storage down")
            return 0

        monkeypatch.setattr(cleanup, "sweep_expired", flaky_sweep)
        task = asyncio.create_task(cleanup_loop(object(), 0))
        while len(calls) < 3:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(calls) >= 3
