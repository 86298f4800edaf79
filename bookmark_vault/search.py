"""
Confidential Search: substring search over encrypted bookmark fields.

Envelopes are randomized, so storage cannot compare them and a text search
cannot be pushed down as ``LIKE``/``ILIKE``. Storage narrows the candidate
set with the clear-text predicates (owner, tag, collection, flags); this
module then decrypts *every* candidate, filters, sorts and paginates.

Cost: one AEAD open (plus one scrypt) per protected field per candidate,
regardless of page size. A text search is O(candidates), not O(limit).

Failure policy: a candidate whose envelope cannot be opened is left out
of the results and logged; the search itself does not fail. Single-record
reads (``RecordCodec.reveal``) are strict instead.
"""
import logging
from typing import Optional
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from .codec import RecordCodec
from .exceptions import EnvelopeError
from .models import Bookmark, BookmarkPage, BookmarkQuery

logger = logging.getLogger("bookmark_vault")


def matches_text(record: Bookmark, search: str) -> bool:
    """Case-insensitive substring match on title, description or url."""
    needle = search.lower()
    for value in (record.title, record.description, record.url):
        if value and needle in value.lower():
            return True
    return False


def _newest_first(records: Iterable[Bookmark]) -> list[Bookmark]:
    return sorted(records, key=lambda r: r.updated_at, reverse=True)


class ConfidentialSearch:
    """Decrypt-then-filter search executor.

    Args:
        codec: Record codec used to reveal candidates.
        max_workers: Threads used to decrypt candidates in parallel;
            0 decrypts sequentially.
    """

    def __init__(self, codec: Optional[RecordCodec] = None, max_workers: int = 0):
        self._codec = codec or RecordCodec()
        self._max_workers = max_workers

    def _try_reveal(self, record: Bookmark) -> Optional[Bookmark]:
        try:
            return self._codec.reveal(record)
        except EnvelopeError as err:
            logger.warning(
                "Excluding bookmark id=%s from results: %s",
                record.id, type(err).__name__,
            )
            return None

    def reveal_many(self, records: list[Bookmark]) -> list[Bookmark]:
        """Reveal every record, dropping the ones that fail; order is kept."""
        if self._max_workers > 0 and len(records) > 1:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                # map() only returns once every reveal has resolved
                results = list(pool.map(self._try_reveal, records))
        else:
            results = [self._try_reveal(record) for record in records]
        revealed = [r for r in results if r is not None]
        skipped = len(records) - len(revealed)
        if skipped:
            logger.warning(
                "%d of %d bookmark(s) could not be decrypted", skipped, len(records),
            )
        return revealed

    def execute(
        self,
        candidates: list[Bookmark],
        query: BookmarkQuery,
    ) -> BookmarkPage:
        """Search a candidate set already narrowed by clear-text predicates.

        Args:
            candidates: Protected records (envelopes) matching the query's
                non-protected filters.
            query: Text search plus ``limit``/``offset``.

        Returns:
            A page of plaintext bookmarks, newest update first. With a text
            search ``total`` is the number of matches, not of candidates.
        """
        start, stop = query.offset, query.offset + query.limit
        if not query.has_text_search:
            ordered = _newest_first(candidates)
            return BookmarkPage(
                data=self.reveal_many(ordered[start:stop]),
                total=len(ordered),
                limit=query.limit,
                offset=query.offset,
            )

        logger.debug("Text search over %d candidate(s)", len(candidates))
        revealed = self.reveal_many(candidates)
        matched = _newest_first(r for r in revealed if matches_text(r, query.search))
        return BookmarkPage(
            data=matched[start:stop],
            total=len(matched),
            limit=query.limit,
            offset=query.offset,
        )
