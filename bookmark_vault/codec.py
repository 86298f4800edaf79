"""
Record Codec: seals protected bookmark fields on write, opens them on read.

Security Note:
    ``reveal`` is all-or-nothing. A record with one bad envelope raises
    instead of coming back half decrypted.
"""
import logging
from typing import Optional

from .config import get_master_secret
from .crypto import encrypt, decrypt
from .models import Bookmark, PROTECTED_FIELDS

logger = logging.getLogger("bookmark_vault")


class RecordCodec:
    """Applies the envelope cipher to the protected fields of one bookmark.

    Args:
        master_secret: 32-byte master secret. When omitted the process-wide
            secret from ``ENCRYPTION_KEY`` is used, resolved on first use.
    """

    def __init__(self, master_secret: Optional[bytes] = None):
        self._master_secret = master_secret

    @property
    def master_secret(self) -> bytes:
        if self._master_secret is None:
            return get_master_secret()
        return self._master_secret

    def seal_fields(self, values: dict) -> dict:
        """Encrypt the protected entries of a plain mapping; None stays None."""
        secret = self.master_secret
        sealed = dict(values)
        for name in PROTECTED_FIELDS:
            value = sealed.get(name)
            if value is not None:
                sealed[name] = encrypt(value, secret)
        return sealed

    def protect(self, record: Bookmark) -> Bookmark:
        """Return a copy of ``record`` with protected fields as envelopes."""
        fields = {name: getattr(record, name) for name in PROTECTED_FIELDS}
        return record.model_copy(update=self.seal_fields(fields))

    def reveal(self, record: Bookmark) -> Bookmark:
        """Return a copy of ``record`` with protected fields as plaintext.

        Raises:
            EncodingError: If an envelope is malformed.
            DecryptionError: If an envelope fails authentication.
        """
        secret = self.master_secret
        opened = {}
        for name in PROTECTED_FIELDS:
            value = getattr(record, name)
            if value is not None:
                opened[name] = decrypt(value, secret)
        return record.model_copy(update=opened)
