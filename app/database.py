"""
Share storage: a key-value repository over two namespaces, with
in-memory, JSON file, SQLite and REST key-value adapters.
"""
import asyncio
import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

import aiosqlite
import httpx

from config import Settings
from errors import StorageError

logger = logging.getLogger(__name__)

CODE_SHARES = "codeshares"
FILE_SHARES = "fileshares"
NAMESPACES = (CODE_SHARES, FILE_SHARES)


def _check_namespace(namespace: str):
    if namespace not in NAMESPACES:
        raise ValueError(f"Unknown namespace: {namespace}")


class ShareRepository(Protocol):
    """
    Key-value storage of share records, keyed by slug within a namespace.

    Records are plain dicts; the slug is the record's "title" field.
    Writers are not coordinated: the last write to a slug wins.
    """

    async def get(self, namespace: str, slug: str) -> Optional[dict]: ...

    async def put(self, namespace: str, record: dict) -> None: ...

    async def update(self, namespace: str, slug: str, fields: dict) -> Optional[dict]: ...

    async def delete(self, namespace: str, slug: str) -> bool: ...

    async def delete_many(self, namespace: str, slugs: Iterable[str]) -> int: ...

    async def list_all(self, namespace: str) -> List[dict]: ...

    async def list_expirations(self, namespace: str) -> Dict[str, str]: ...

    async def close(self) -> None: ...


class _MappingRepository:
    """
    Shared logic for adapters that load a whole namespace as a mapping
    and write it back. Subclasses implement _load and _save.
    """

    async def _load(self, namespace: str) -> Dict[str, dict]:
        raise NotImplementedError

    async def _save(self, namespace: str, shares: Dict[str, dict]) -> None:
        raise NotImplementedError

    async def get(self, namespace: str, slug: str) -> Optional[dict]:
        shares = await self._load(namespace)
        record = shares.get(slug)
        return dict(record) if record is not None else None

    async def put(self, namespace: str, record: dict) -> None:
        shares = await self._load(namespace)
        shares[record["title"]] = dict(record)
        await self._save(namespace, shares)

    async def update(self, namespace: str, slug: str, fields: dict) -> Optional[dict]:
        shares = await self._load(namespace)
        if slug not in shares:
            return None
        merged = {**shares[slug], **fields}
        shares[slug] = merged
        await self._save(namespace, shares)
        return dict(merged)

    async def delete(self, namespace: str, slug: str) -> bool:
        return await self.delete_many(namespace, [slug]) == 1

    async def delete_many(self, namespace: str, slugs: Iterable[str]) -> int:
        shares = await self._load(namespace)
        removed = 0
        for slug in set(slugs):
            if shares.pop(slug, None) is not None:
                removed += 1
        if removed:
            await self._save(namespace, shares)
        return removed

    async def list_all(self, namespace: str) -> List[dict]:
        shares = await self._load(namespace)
        return [dict(record) for record in shares.values()]

    async def list_expirations(self, namespace: str) -> Dict[str, str]:
        shares = await self._load(namespace)
        return {slug: record["expiresAt"] for slug, record in shares.items()}

    async def close(self) -> None:
        pass


class InMemoryShareRepository(_MappingRepository):
    """Process-local storage, for development and tests."""

    def __init__(self):
        self._shares: Dict[str, Dict[str, dict]] = {ns: {} for ns in NAMESPACES}

    async def _load(self, namespace: str) -> Dict[str, dict]:
        _check_namespace(namespace)
        return dict(self._shares[namespace])

    async def _save(self, namespace: str, shares: Dict[str, dict]) -> None:
        self._shares[namespace] = shares


class JsonFileShareRepository(_MappingRepository):
    """
    One JSON document per namespace on local disk.

    Each write goes to its own temp file in the same directory, which
    then replaces the document. Concurrent writers (several gunicorn
    workers) never share a temp file, so the document is always one
    complete write; the last one wins. File I/O runs in a worker thread
    so large documents do not stall the event loop.
    """

    FILE_NAMES = {CODE_SHARES: "codeshares.json", FILE_SHARES: "files.json"}

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, namespace: str) -> Path:
        _check_namespace(namespace)
        return self.data_dir / self.FILE_NAMES[namespace]

    async def _load(self, namespace: str) -> Dict[str, dict]:
        return await asyncio.to_thread(self._read, namespace)

    async def _save(self, namespace: str, shares: Dict[str, dict]) -> None:
        await asyncio.to_thread(self._write, namespace, shares)

    def _read(self, namespace: str) -> Dict[str, dict]:
        path = self._path(namespace)
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading {namespace} from {path}: {e}")
            raise StorageError(f"Failed to read {namespace}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Failed to read {namespace}")
        return data

    def _write(self, namespace: str, shares: Dict[str, dict]) -> None:
        path = self._path(namespace)
        temp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.data_dir,
                prefix=f"{path.stem}.", suffix=".tmp", delete=False,
            ) as f:
                temp_name = f.name
                json.dump(shares, f, indent=2)
            os.replace(temp_name, path)
        except OSError as e:
            logger.error(f"Error saving {namespace} to {path}: {e}")
            if temp_name:
                with contextlib.suppress(OSError):
                    os.remove(temp_name)
            raise StorageError(f"Failed to save {namespace}") from e


class SqliteShareRepository:
    """SQLite storage via aiosqlite; each record is a JSON document in one row."""

    def __init__(self, database_path: Path):
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False

    async def _connect(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(self.database_path)
        db.row_factory = aiosqlite.Row
        if not self._initialized:
            await self._init_db(db)
            self._initialized = True
        return db

    async def _init_db(self, db: aiosqlite.Connection):
        """Create the shares table if missing."""
        await db.execute("""
            CREATE TABLE IF NOT EXISTS shares (
                namespace TEXT NOT NULL,
                slug TEXT NOT NULL,
                data TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                PRIMARY KEY (namespace, slug)
            )
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_shares_expires ON shares(expires_at)
        """)
        await db.commit()

    async def get(self, namespace: str, slug: str) -> Optional[dict]:
        _check_namespace(namespace)
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    "SELECT data FROM shares WHERE namespace = ? AND slug = ?",
                    (namespace, slug)
                )
                row = await cursor.fetchone()
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to read {namespace}") from e
        return json.loads(row["data"]) if row else None

    async def put(self, namespace: str, record: dict) -> None:
        _check_namespace(namespace)
        try:
            db = await self._connect()
            try:
                await db.execute(
                    """
                    INSERT OR REPLACE INTO shares (namespace, slug, data, expires_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (namespace, record["title"], json.dumps(record), record.get("expiresAt", ""))
                )
                await db.commit()
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to save {namespace}") from e

    async def update(self, namespace: str, slug: str, fields: dict) -> Optional[dict]:
        record = await self.get(namespace, slug)
        if record is None:
            return None
        record.update(fields)
        await self.put(namespace, record)
        return record

    async def delete(self, namespace: str, slug: str) -> bool:
        return await self.delete_many(namespace, [slug]) == 1

    async def delete_many(self, namespace: str, slugs: Iterable[str]) -> int:
        _check_namespace(namespace)
        slugs = list(set(slugs))
        if not slugs:
            return 0
        placeholders = ", ".join("?" for _ in slugs)
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    f"DELETE FROM shares WHERE namespace = ? AND slug IN ({placeholders})",
                    (namespace, *slugs)
                )
                await db.commit()
                return cursor.rowcount
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to delete from {namespace}") from e

    async def list_all(self, namespace: str) -> List[dict]:
        _check_namespace(namespace)
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    "SELECT data FROM shares WHERE namespace = ?", (namespace,)
                )
                rows = await cursor.fetchall()
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to read {namespace}") from e
        return [json.loads(row["data"]) for row in rows]

    async def list_expirations(self, namespace: str) -> Dict[str, str]:
        _check_namespace(namespace)
        try:
            db = await self._connect()
            try:
                cursor = await db.execute(
                    "SELECT slug, expires_at FROM shares WHERE namespace = ?", (namespace,)
                )
                rows = await cursor.fetchall()
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to read {namespace}") from e
        return {row["slug"]: row["expires_at"] for row in rows}

    async def close(self) -> None:
        pass


class RestKVShareRepository:
    """
    Managed key-value storage over a Redis-compatible REST API
    (Vercel KV / Upstash). Each namespace is one hash: field = slug,
    value = JSON record.

    Commands are POSTed as a JSON array, e.g. ["HGET", "codeshares", "my-slug"],
    and answered with {"result": ...} or {"error": "..."}.
    """

    def __init__(self, url: str, token: str, client: Optional[httpx.AsyncClient] = None):
        self.url = url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._client = client or httpx.AsyncClient(timeout=10.0)

    async def _command(self, *args):
        try:
            response = await self._client.post(self.url, json=list(args), headers=self._headers)
        except httpx.HTTPError as e:
            logger.error(f"KV request {args[0]} failed: {e}")
            raise StorageError("Key-value store unavailable") from e
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if response.status_code >= 400 or "error" in payload:
            logger.error(f"KV command {args[0]} failed with status {response.status_code}")
            raise StorageError("Key-value store request failed")
        return payload.get("result")

    async def get(self, namespace: str, slug: str) -> Optional[dict]:
        _check_namespace(namespace)
        raw = await self._command("HGET", namespace, slug)
        return json.loads(raw) if raw is not None else None

    async def put(self, namespace: str, record: dict) -> None:
        _check_namespace(namespace)
        await self._command("HSET", namespace, record["title"], json.dumps(record))

    async def update(self, namespace: str, slug: str, fields: dict) -> Optional[dict]:
        record = await self.get(namespace, slug)
        if record is None:
            return None
        record.update(fields)
        await self.put(namespace, record)
        return record

    async def delete(self, namespace: str, slug: str) -> bool:
        return await self.delete_many(namespace, [slug]) == 1

    async def delete_many(self, namespace: str, slugs: Iterable[str]) -> int:
        _check_namespace(namespace)
        slugs = list(set(slugs))
        if not slugs:
            return 0
        return int(await self._command("HDEL", namespace, *slugs) or 0)

    async def list_all(self, namespace: str) -> List[dict]:
        _check_namespace(namespace)
        flat = await self._command("HGETALL", namespace) or []
        # HGETALL answers [field1, value1, field2, value2, ...]
        return [json.loads(value) for value in flat[1::2]]

    async def list_expirations(self, namespace: str) -> Dict[str, str]:
        return {record["title"]: record["expiresAt"] for record in await self.list_all(namespace)}

    async def close(self) -> None:
        await self._client.aclose()


def create_repository(settings: Settings) -> ShareRepository:
    """Build the repository selected by STORAGE_BACKEND."""
    backend = settings.storage_backend
    if backend == "memory":
        return InMemoryShareRepository()
    if backend == "json":
        return JsonFileShareRepository(settings.data_dir)
    if backend == "sqlite":
        return SqliteShareRepository(settings.database_path)
    if backend == "kv":
        if not settings.kv_rest_api_url or not settings.kv_rest_api_token:
            raise ValueError("KV_REST_API_URL and KV_REST_API_TOKEN are required for the kv backend")
        return RestKVShareRepository(settings.kv_rest_api_url, settings.kv_rest_api_token)
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
