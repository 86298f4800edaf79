"""Shared fixtures: master secrets, codecs, bookmark factories and a fake pool."""
import base64
import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from bookmark_vault import store
from bookmark_vault.codec import RecordCodec
from bookmark_vault.config import (
    ENCRYPTION_KEY_ENV,
    derive_master_secret,
    reset_master_secret,
)
from bookmark_vault.models import Bookmark

RAW_SECRET = "test-encryption-key-0123456789abcdef"
OTHER_SECRET = "another-deployment-key-9876543210zyxw"
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def master_secret() -> bytes:
    return derive_master_secret(RAW_SECRET)


@pytest.fixture
def codec(master_secret) -> RecordCodec:
    return RecordCodec(master_secret)


@pytest.fixture
def secret_env(monkeypatch):
    """Set ENCRYPTION_KEY and start from an empty master secret cache."""
    monkeypatch.setenv(ENCRYPTION_KEY_ENV, RAW_SECRET)
    reset_master_secret()
    yield RAW_SECRET
    reset_master_secret()


def corrupt(envelope: str, index: int = -1) -> str:
    """Flip one byte of an envelope and re-encode it."""
    raw = bytearray(base64.b64decode(envelope))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


@pytest.fixture
def make_bookmark(codec):
    """Build a protected (encrypted) bookmark updated ``minutes`` after BASE_TIME."""
    def factory(title, minutes=0, url=None, description=None, **extra):
        record = Bookmark(
            id=extra.pop("id", uuid.uuid4().hex),
            user_id=extra.pop("user_id", "user-1"),
            title=title,
            url=url or f"https://example.com/{title.lower().replace(' ', '-')}",
            description=description,
            created_at=BASE_TIME,
            updated_at=BASE_TIME + timedelta(minutes=minutes),
            **extra,
        )
        return codec.protect(record)
    return factory


# --- Fake asyncpg-style pool ---

_COLUMN_FILTER = re.compile(r"b\.(user_id|collection_id|is_favorite|is_read) = \$(\d+)")
_TAG_FILTER = re.compile(r"lower\(t\.name\) = lower\(\$(\d+)\)")


def _matches(row, sql, args):
    """Apply the clear-text predicates of a listing statement to one row."""
    for column, position in _COLUMN_FILTER.findall(sql):
        if row[column] != args[int(position) - 1]:
            return False
    for position in _TAG_FILTER.findall(sql):
        wanted = args[int(position) - 1].lower()
        if wanted not in (tag.lower() for tag in row["tags"]):
            return False
    return True


class FakeConnection:
    """Answers the vault's statements from an in-memory bookmark table."""

    def __init__(self, pool: "FakePool"):
        self._pool = pool

    async def fetchrow(self, sql, *args):
        self._pool.statements.append((sql, args))
        rows = self._pool.rows
        if sql == store._INSERT_BOOKMARK:
            row = {
                "id": uuid.uuid4().hex,
                "user_id": args[0],
                "title": args[1],
                "url": args[2],
                "description": args[3],
                "image": args[4],
                "collection_id": args[5],
                "is_favorite": args[6],
                "is_read": args[7],
                "tags": [],
                "created_at": self._pool.tick(),
            }
            row["updated_at"] = row["created_at"]
            rows[row["id"]] = row
            return dict(row)
        if sql == store._SELECT_BOOKMARK:
            row = rows.get(args[0])
            if row is None or row["user_id"] != args[1]:
                return None
            return dict(row)
        if sql == store._UPDATE_BOOKMARK:
            row = rows.get(args[0])
            if row is None or row["user_id"] != args[1]:
                return None
            row.update(
                title=args[2], url=args[3], description=args[4], image=args[5],
                collection_id=args[6], is_favorite=args[7], is_read=args[8],
                updated_at=self._pool.tick(),
            )
            return dict(row)
        raise AssertionError(f"unexpected fetchrow: {sql}")

    async def fetch(self, sql, *args):
        self._pool.statements.append((sql, args))
        owned = [dict(r) for r in self._pool.rows.values() if _matches(r, sql, args)]
        if "LIMIT" in sql:
            owned.sort(key=lambda r: r["updated_at"], reverse=True)
            limit, offset = args[-2], args[-1]
            return owned[offset:offset + limit]
        return owned

    async def fetchval(self, sql, *args):
        self._pool.statements.append((sql, args))
        if sql == store._DELETE_BOOKMARK:
            row = self._pool.rows.get(args[0])
            if row is None or row["user_id"] != args[1]:
                return None
            del self._pool.rows[args[0]]
            return row["id"]
        if sql.startswith("SELECT count(*)"):
            return sum(1 for r in self._pool.rows.values() if _matches(r, sql, args))
        raise AssertionError(f"unexpected fetchval: {sql}")


class _Acquire:
    def __init__(self, conn):
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, *exc):
        return False


class FakePool:
    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.statements: list = []
        self._clock = 0

    def tick(self) -> datetime:
        self._clock += 1
        return BASE_TIME + timedelta(seconds=self._clock)

    def acquire(self):
        return _Acquire(FakeConnection(self))


@pytest.fixture
def pool() -> FakePool:
    return FakePool()


@pytest.fixture
def corrupt_envelope():
    return corrupt


@pytest.fixture
def other_secret() -> bytes:
    return derive_master_secret(OTHER_SECRET)
