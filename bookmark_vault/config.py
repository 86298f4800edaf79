"""
Vault Configuration: Master secret loading and validated settings.

Reads the operator secret from the environment:
    ENCRYPTION_KEY = <at least 32 characters>
    VAULT_SEARCH_WORKERS = <integer, optional, 0 = sequential>

Security Note:
    Never log key material. Only log which derivation branch was used.
"""
import os
import logging
from functools import lru_cache

from pydantic import BaseModel, Field, ValidationError, field_validator

from .crypto import KEY_LENGTH, derive_key
from .exceptions import ConfigurationError

logger = logging.getLogger("bookmark_vault")

ENCRYPTION_KEY_ENV = "ENCRYPTION_KEY"
SEARCH_WORKERS_ENV = "VAULT_SEARCH_WORKERS"
MIN_SECRET_LENGTH = 32

# Salt for secrets whose UTF-8 form is shorter than the key length.
_FALLBACK_SALT = b"bookmark-vault-master-salt-v1"


def load_encryption_key() -> str:
    """Read the raw operator secret from ENCRYPTION_KEY.

    Returns:
        The raw secret string.

    Raises:
        ConfigurationError: If the variable is unset or too short.
    """
    raw = os.environ.get(ENCRYPTION_KEY_ENV)
    _check_secret(raw)
    return raw


def _check_secret(raw_secret: str | None) -> None:
    if not raw_secret:
        raise ConfigurationError(
            f"{ENCRYPTION_KEY_ENV} environment variable is required"
        )
    if len(raw_secret) < MIN_SECRET_LENGTH:
        raise ConfigurationError(
            f"{ENCRYPTION_KEY_ENV} must be at least "
            f"{MIN_SECRET_LENGTH} characters long"
        )


def derive_master_secret(raw_secret: str | None) -> bytes:
    """Turn the operator secret into the 32-byte master secret.

    If the UTF-8 encoding is at least 32 bytes its first 32 bytes are used
    as-is; otherwise the secret is stretched with scrypt under a fixed salt.

    Args:
        raw_secret: Operator-provided secret.

    Returns:
        32-byte master secret.

    Raises:
        ConfigurationError: If the secret is missing or shorter than
            32 characters.
    """
    _check_secret(raw_secret)
    encoded = raw_secret.encode("utf-8")
    if len(encoded) >= KEY_LENGTH:
        logger.debug("Master secret taken directly from %s", ENCRYPTION_KEY_ENV)
        return encoded[:KEY_LENGTH]
    logger.debug("Master secret derived with scrypt")
    return derive_key(encoded, _FALLBACK_SALT)


@lru_cache(maxsize=1)
def get_master_secret() -> bytes:
    """Return the process-wide master secret, deriving it on first use.

    Concurrent first callers may each derive it; the result is identical
    and the cache keeps exactly one value.
    """
    return derive_master_secret(load_encryption_key())


def reset_master_secret() -> None:
    """Forget the cached master secret (tests only)."""
    get_master_secret.cache_clear()


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    master_secret: bytes = Field(repr=False)
    search_workers: int = Field(default=0, ge=0, le=64)
    default_limit: int = Field(default=20, ge=1, le=100)

    @field_validator("master_secret")
    @classmethod
    def validate_master_secret(cls, v: bytes) -> bytes:
        """Master secret must be exactly one AES-256 key."""
        if len(v) != KEY_LENGTH:
            raise ValueError(
                f"master_secret must be {KEY_LENGTH} bytes, got {len(v)}"
            )
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig from environment, using the cached master secret.

        Raises:
            ConfigurationError: If any setting is missing or invalid.
        """
        workers = os.environ.get(SEARCH_WORKERS_ENV, "0")
        try:
            return cls(
                master_secret=get_master_secret(),
                search_workers=workers,
            )
        except ValidationError as err:
            raise ConfigurationError(f"Invalid vault configuration: {err}") from err
