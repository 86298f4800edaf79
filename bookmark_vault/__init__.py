"""Bookmark Vault: Confidential field store for bookmarks.

Security Note (Threat Model):
    Title, url, description and image are encrypted at rest with a
    per-value scrypt-derived AES-256-GCM key. Plaintext exists only in
    process memory while a request is served. Text search decrypts every
    candidate in memory; it is never pushed to storage, because that would
    require storing something comparable to the plaintext.
"""

from .version import __version__
from .exceptions import (
    VaultError,
    ConfigurationError,
    EnvelopeError,
    EncodingError,
    DecryptionError,
    BookmarkNotFound,
)
from .config import VaultConfig, derive_master_secret, get_master_secret
from .crypto import encrypt, decrypt
from .models import (
    Bookmark,
    BookmarkCreate,
    BookmarkUpdate,
    BookmarkQuery,
    BookmarkPage,
    PROTECTED_FIELDS,
)
from .codec import RecordCodec
from .search import ConfidentialSearch
from .store import BookmarkVault

__all__ = [
    "__version__",
    "VaultError",
    "ConfigurationError",
    "EnvelopeError",
    "EncodingError",
    "DecryptionError",
    "BookmarkNotFound",
    "VaultConfig",
    "derive_master_secret",
    "get_master_secret",
    "encrypt",
    "decrypt",
    "Bookmark",
    "BookmarkCreate",
    "BookmarkUpdate",
    "BookmarkQuery",
    "BookmarkPage",
    "PROTECTED_FIELDS",
    "RecordCodec",
    "ConfidentialSearch",
    "BookmarkVault",
]
