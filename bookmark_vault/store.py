"""
BookmarkVault: Encrypted bookmark storage over an asyncpg-compatible pool.

Provides the public API used by the request layer:
- ``create(user_id, data)``: seal protected fields and insert
- ``get(user_id, bookmark_id)``: strict single-record read
- ``update(user_id, bookmark_id, data)``: replace changed envelopes
- ``delete(user_id, bookmark_id)``: remove a bookmark
- ``list(user_id, query)``: filtered, paginated listing and text search

Ownership and clear-text predicates are always pushed to SQL. Protected
columns hold envelopes and are never used in a WHERE clause: a text search
fetches the full candidate set and hands it to ``ConfidentialSearch``.

Security Note:
    Never log plaintext or envelope values. Only log bookmark ids,
    user ids and counts.
"""
import asyncio
import logging
from typing import Any, Optional

from .codec import RecordCodec
from .config import VaultConfig
from .exceptions import BookmarkNotFound, EnvelopeError
from .models import (
    Bookmark,
    BookmarkCreate,
    BookmarkPage,
    BookmarkQuery,
    BookmarkUpdate,
    PROTECTED_FIELDS,
)
from .search import ConfidentialSearch

logger = logging.getLogger("bookmark_vault")

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_COLUMNS = """
b.id, b.user_id, b.title, b.url, b.description, b.image, b.collection_id,
b.is_favorite, b.is_read, b.created_at, b.updated_at,
COALESCE(
    (SELECT array_agg(t.name ORDER BY t.name)
     FROM bookmark_tags bt JOIN tags t ON t.id = bt.tag_id
     WHERE bt.bookmark_id = b.id),
    '{}'
) AS tags
"""

_INSERT_BOOKMARK = f"""
INSERT INTO bookmarks AS b
    (user_id, title, url, description, image, collection_id, is_favorite, is_read)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
RETURNING {_COLUMNS}
"""

_SELECT_BOOKMARK = f"""
SELECT {_COLUMNS}
FROM bookmarks b
WHERE b.id = $1 AND b.user_id = $2
"""

_UPDATE_BOOKMARK = f"""
UPDATE bookmarks AS b
SET title = $3, url = $4, description = $5, image = $6,
    collection_id = $7, is_favorite = $8, is_read = $9,
    updated_at = NOW()
WHERE b.id = $1 AND b.user_id = $2
RETURNING {_COLUMNS}
"""

_DELETE_BOOKMARK = """
DELETE FROM bookmarks
WHERE id = $1 AND user_id = $2
RETURNING id
"""

_TAG_FILTER = """EXISTS (
    SELECT 1 FROM bookmark_tags bt JOIN tags t ON t.id = bt.tag_id
    WHERE bt.bookmark_id = b.id AND lower(t.name) = lower(${n})
)"""


def build_filters(user_id: str, query: BookmarkQuery) -> tuple[str, list]:
    """Build the WHERE clause for the clear-text predicates of ``query``.

    Returns:
        Tuple of (where_sql, positional_args). ``query.search`` is never
        part of it.
    """
    clauses = ["b.user_id = $1"]
    args: list[Any] = [user_id]

    def add(template: str, value: Any) -> None:
        args.append(value)
        clauses.append(template.format(n=len(args)))

    if query.collection_id is not None:
        add("b.collection_id = ${n}", query.collection_id)
    if query.is_favorite is not None:
        add("b.is_favorite = ${n}", query.is_favorite)
    if query.is_read is not None:
        add("b.is_read = ${n}", query.is_read)
    if query.tag:
        add(_TAG_FILTER, query.tag)
    return " AND ".join(clauses), args


def _to_bookmark(row: Any) -> Bookmark:
    """Map a database row to a (still protected) Bookmark."""
    collection_id = row["collection_id"]
    return Bookmark(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        title=row["title"],
        url=row["url"],
        description=row["description"],
        image=row["image"],
        collection_id=str(collection_id) if collection_id is not None else None,
        is_favorite=row["is_favorite"],
        is_read=row["is_read"],
        tags=list(row["tags"] or []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class BookmarkVault:
    """Bookmark storage that keeps title, url, description and image encrypted.

    Cipher work is CPU-bound (one scrypt per field), so it runs in a worker
    thread via ``asyncio.to_thread`` and never blocks the event loop.
    """

    def __init__(self, db_pool: Any, config: Optional[VaultConfig] = None):
        self._db = db_pool
        self._config = config or VaultConfig.from_env()
        self._codec = RecordCodec(self._config.master_secret)
        self._search = ConfidentialSearch(
            self._codec, max_workers=self._config.search_workers,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_one(self, user_id: str, bookmark_id: str) -> Bookmark:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(_SELECT_BOOKMARK, bookmark_id, user_id)
        if row is None:
            raise BookmarkNotFound(bookmark_id)
        return _to_bookmark(row)

    async def _reveal(self, record: Bookmark) -> Bookmark:
        try:
            return await asyncio.to_thread(self._codec.reveal, record)
        except EnvelopeError as err:
            logger.error(
                "Failed to decrypt bookmark id=%s for user=%s: %s",
                record.id, record.user_id, type(err).__name__,
            )
            raise

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create(self, user_id: str, data: BookmarkCreate) -> Bookmark:
        """Encrypt and insert a new bookmark.

        Returns:
            The stored bookmark with plaintext protected fields.
        """
        plain = {name: getattr(data, name) for name in PROTECTED_FIELDS}
        sealed = await asyncio.to_thread(self._codec.seal_fields, plain)

        async with self._db.acquire() as conn:
            row = await conn.fetchrow(
                _INSERT_BOOKMARK,
                user_id,
                sealed["title"], sealed["url"],
                sealed["description"], sealed["image"],
                data.collection_id, data.favorite, data.read,
            )

        bookmark = _to_bookmark(row)
        logger.info("Bookmark created: user=%s id=%s", user_id, bookmark.id)
        return await self._reveal(bookmark)

    async def get(self, user_id: str, bookmark_id: str) -> Bookmark:
        """Fetch and decrypt one bookmark.

        Raises:
            BookmarkNotFound: If the bookmark does not exist for this user.
            EncodingError: If a stored envelope is malformed.
            DecryptionError: If a stored envelope fails authentication.
        """
        return await self._reveal(await self._fetch_one(user_id, bookmark_id))

    async def update(
        self, user_id: str, bookmark_id: str, data: BookmarkUpdate,
    ) -> Bookmark:
        """Apply a partial update; changed protected fields get new envelopes.

        The stored record is revealed before anything is written, so a
        corrupted envelope fails the update without changing the row.

        Raises:
            BookmarkNotFound: If the bookmark does not exist for this user.
            EncodingError: If a stored envelope is malformed.
            DecryptionError: If a stored envelope fails authentication.
        """
        current = await self._fetch_one(user_id, bookmark_id)
        revealed = await self._reveal(current)
        changes = data.changes()
        sealed = await asyncio.to_thread(self._codec.seal_fields, changes)
        merged = current.model_copy(update=sealed)

        async with self._db.acquire() as conn:
            row = await conn.fetchrow(
                _UPDATE_BOOKMARK,
                bookmark_id, user_id,
                merged.title, merged.url, merged.description, merged.image,
                merged.collection_id, merged.is_favorite, merged.is_read,
            )
        if row is None:
            raise BookmarkNotFound(bookmark_id)

        logger.info("Bookmark updated: user=%s id=%s", user_id, bookmark_id)
        plain = revealed.model_copy(update=changes)
        return _to_bookmark(row).model_copy(
            update={name: getattr(plain, name) for name in PROTECTED_FIELDS},
        )

    async def delete(self, user_id: str, bookmark_id: str) -> None:
        """Delete a bookmark.

        Raises:
            BookmarkNotFound: If the bookmark does not exist for this user.
        """
        async with self._db.acquire() as conn:
            deleted = await conn.fetchval(_DELETE_BOOKMARK, bookmark_id, user_id)
        if deleted is None:
            raise BookmarkNotFound(bookmark_id)
        logger.info("Bookmark deleted: user=%s id=%s", user_id, bookmark_id)

    async def list(
        self, user_id: str, query: Optional[BookmarkQuery] = None,
    ) -> BookmarkPage:
        """List a user's bookmarks, optionally searching protected text.

        Without ``query.search`` ordering, LIMIT/OFFSET and COUNT run in SQL.
        With it, every candidate matching the other filters is fetched and
        decrypted before filtering and paging.
        """
        query = query or BookmarkQuery(limit=self._config.default_limit)
        where, args = build_filters(user_id, query)

        if query.has_text_search:
            sql = f"SELECT {_COLUMNS} FROM bookmarks b WHERE {where}"
            async with self._db.acquire() as conn:
                rows = await conn.fetch(sql, *args)
            candidates = [_to_bookmark(row) for row in rows]
            page = await asyncio.to_thread(self._search.execute, candidates, query)
            logger.debug(
                "Search for user=%s: %d candidate(s), %d match(es)",
                user_id, len(candidates), page.total,
            )
            return page

        n = len(args)
        sql = (
            f"SELECT {_COLUMNS} FROM bookmarks b WHERE {where} "
            f"ORDER BY b.updated_at DESC LIMIT ${n + 1} OFFSET ${n + 2}"
        )
        count_sql = f"SELECT count(*) FROM bookmarks b WHERE {where}"
        async with self._db.acquire() as conn:
            rows = await conn.fetch(sql, *args, query.limit, query.offset)
            total = await conn.fetchval(count_sql, *args)
        page = [_to_bookmark(row) for row in rows]
        data = await asyncio.to_thread(self._search.reveal_many, page)
        return BookmarkPage(
            data=data, total=total, limit=query.limit, offset=query.offset,
        )
