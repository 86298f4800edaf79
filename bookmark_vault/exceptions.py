"""Errors raised by the bookmark vault.

``ConfigurationError`` is fatal at startup. ``EnvelopeError`` and its
subclasses mean a stored value cannot be turned back into plaintext;
none of them are retryable with the same master secret.
"""


class VaultError(Exception):
    """Base class for every vault error."""


class ConfigurationError(VaultError, RuntimeError):
    """Master secret missing or too short."""


class EnvelopeError(VaultError, ValueError):
    """A stored envelope could not be opened."""


class EncodingError(EnvelopeError):
    """Envelope is not valid base64, is truncated, or the cipher failed."""


class DecryptionError(EnvelopeError):
    """Authentication tag mismatch: tampered data or wrong master secret."""


class BookmarkNotFound(VaultError, LookupError):
    """No bookmark with that id is owned by the caller."""

    def __init__(self, bookmark_id: str):
        super().__init__(f"Bookmark {bookmark_id} not found")
        self.bookmark_id = bookmark_id
