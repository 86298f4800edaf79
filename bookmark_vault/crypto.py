"""
Vault Crypto Core: Key derivation and envelope encryption/decryption.

Every protected value is sealed into its own envelope:
    base64( salt 64B | iv 16B | GCM tag 16B | ciphertext )

The per-record key is scrypt(master_secret, salt). Salt and IV are fresh
on every call, so sealing the same plaintext twice gives two different
envelopes.

Security Note:
    Never log plaintext, envelopes or key material.
    scrypt is deliberately slow (~16 MiB of memory per call); every
    encrypt/decrypt pays for one derivation.
"""
import os
import base64
import binascii
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import EncodingError, DecryptionError

logger = logging.getLogger("bookmark_vault")

SALT_SIZE = 64
IV_SIZE = 16
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
HEADER_SIZE = SALT_SIZE + IV_SIZE + TAG_SIZE

SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(secret: bytes, salt: bytes) -> bytes:
    """Derive a 32-byte key with scrypt (N=16384, r=8, p=1).

    Args:
        secret: Input key material (master secret or raw operator secret).
        salt: Salt bytes; random per envelope, fixed for the master fallback.

    Returns:
        32-byte derived key.
    """
    kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret)


def _is_blank(value: str) -> bool:
    return not value or not value.strip()


# ---------------------------------------------------------------------------
# Envelope encryption
# ---------------------------------------------------------------------------

def encrypt(plaintext: str, master_secret: bytes) -> str:
    """Seal a string into a base64 envelope.

    Empty or whitespace-only strings are returned unchanged so that blank
    fields round-trip as blank.

    Args:
        plaintext: Value to protect.
        master_secret: 32-byte process master secret.

    Returns:
        Base64 envelope text.

    Raises:
        EncodingError: If the underlying cipher rejects the key or IV.
    """
    if _is_blank(plaintext):
        return plaintext
    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    try:
        key = derive_key(master_secret, salt)
        sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    except (ValueError, TypeError) as err:
        raise EncodingError(f"Unable to encrypt value: {err}") from err
    # AESGCM appends the tag; the envelope keeps it ahead of the ciphertext.
    ct, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return base64.b64encode(salt + iv + tag + ct).decode("ascii")


def decrypt(envelope: str, master_secret: bytes) -> str:
    """Open a base64 envelope produced by :func:`encrypt`.

    Fails closed: no plaintext is returned unless the tag verifies.

    Args:
        envelope: Base64 envelope text (blank values pass through).
        master_secret: 32-byte process master secret.

    Returns:
        Decrypted plaintext.

    Raises:
        EncodingError: If the envelope is not base64 or is shorter than
            salt + iv + tag.
        DecryptionError: If authentication fails.
    """
    if _is_blank(envelope):
        return envelope
    try:
        data = base64.b64decode(envelope, validate=True)
    except (binascii.Error, ValueError) as err:
        raise EncodingError("Envelope is not valid base64") from err
    if len(data) < HEADER_SIZE:
        raise EncodingError(
            f"Envelope too short: {len(data)} bytes (minimum {HEADER_SIZE})"
        )
    salt = data[:SALT_SIZE]
    iv = data[SALT_SIZE:SALT_SIZE + IV_SIZE]
    tag = data[SALT_SIZE + IV_SIZE:HEADER_SIZE]
    ct = data[HEADER_SIZE:]
    key = derive_key(master_secret, salt)
    try:
        plaintext = AESGCM(key).decrypt(iv, ct + tag, None)
    except InvalidTag as err:
        raise DecryptionError("Envelope failed authentication") from err
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as err:
        raise EncodingError("Envelope plaintext is not UTF-8") from err
