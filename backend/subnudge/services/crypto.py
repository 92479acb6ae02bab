"""Per-user authenticated encryption for subscription account names.

Every user gets their own AES-256-GCM key, derived from the server-wide
``ENCRYPTION_SECRET`` and the user's id. Encrypted values are stored as

    enc:<base64 iv>:<base64 ciphertext>:<base64 auth tag>

Values without the ``enc:`` prefix are legacy plaintext and pass through
decryption unchanged, so rows written before encryption was rolled out keep
working until they are migrated.
"""
import base64
import binascii
import hashlib
import hmac
import os
from dataclasses import dataclass
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from subnudge.config import ENCRYPTION_SECRET_LENGTH, ConfigurationError, get_settings

ENCRYPTION_PREFIX = "enc:"
KEY_CONTEXT = b"subscription-account"
IV_LENGTH = 16
TAG_LENGTH = 16


class CipherError(Exception):
    """Base class for account field decryption errors."""


class MalformedFormat(CipherError):
    """Encoded value carries the prefix but not exactly four parts."""


class DecryptionFailed(CipherError):
    """Encoded value could not be decrypted.

    The message is identical for every cause (bad base64, tampered data,
    wrong key) so callers cannot tell them apart.
    """

    def __init__(self) -> None:
        super().__init__("Unable to decrypt value.")


@dataclass(frozen=True)
class Plaintext:
    """Legacy account name stored before encryption was enabled."""

    value: str

    def encode(self) -> str:
        return self.value


@dataclass(frozen=True)
class Encrypted:
    """Account name sealed with a per-user key."""

    iv: bytes
    ciphertext: bytes
    tag: bytes

    def encode(self) -> str:
        return ENCRYPTION_PREFIX + ":".join(
            base64.b64encode(part).decode("ascii")
            for part in (self.iv, self.ciphertext, self.tag)
        )


AccountField = Plaintext | Encrypted


def is_encrypted(value: str) -> bool:
    """Check whether a stored value carries the encryption prefix."""
    return value.startswith(ENCRYPTION_PREFIX)


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionFailed() from exc


def parse_account_field(raw: str) -> AccountField:
    """Parse a stored account name into its tagged form.

    Raises:
        MalformedFormat: prefixed value without exactly four parts.
        DecryptionFailed: a payload part is not valid base64 or the IV/tag
            have the wrong size.
    """
    if not is_encrypted(raw):
        return Plaintext(raw)

    parts = raw.split(":")
    if len(parts) != 4:
        raise MalformedFormat(f"Expected 4 parts in encrypted value, got {len(parts)}.")

    iv, ciphertext, tag = (_b64decode(part) for part in parts[1:])
    if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
        raise DecryptionFailed()

    return Encrypted(iv=iv, ciphertext=ciphertext, tag=tag)


class KeyDeriver:
    """Derives a stable 256-bit key per user from the server secret."""

    def __init__(self, secret: str | bytes | None) -> None:
        if not secret:
            raise ConfigurationError("ENCRYPTION_SECRET must be set.")
        # Length is counted in characters, matching Settings validation
        if len(secret) != ENCRYPTION_SECRET_LENGTH:
            raise ConfigurationError(
                f"ENCRYPTION_SECRET must be exactly {ENCRYPTION_SECRET_LENGTH} characters."
            )
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        self._secret = secret

    def derive_key(self, user_id: str) -> bytes:
        mac = hmac.new(self._secret, digestmod=hashlib.sha256)
        mac.update(user_id.encode("utf-8"))
        mac.update(KEY_CONTEXT)
        return mac.digest()


class FieldCipher:
    """Encrypts and decrypts single string fields with per-user keys."""

    def __init__(self, key_deriver: KeyDeriver) -> None:
        self._keys = key_deriver

    def encrypt(self, plaintext: str, user_id: str) -> str:
        """Encrypt a value for a user. Every call uses a fresh random IV."""
        iv = os.urandom(IV_LENGTH)
        aesgcm = AESGCM(self._keys.derive_key(user_id))
        sealed = aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        field = Encrypted(iv=iv, ciphertext=sealed[:-TAG_LENGTH], tag=sealed[-TAG_LENGTH:])
        return field.encode()

    def decrypt(self, encoded: str, user_id: str) -> str:
        """Decrypt a stored value, passing legacy plaintext through unchanged."""
        return self.reveal(parse_account_field(encoded), user_id)

    def reveal(self, field: AccountField, user_id: str) -> str:
        """Return the plaintext for an already parsed field."""
        if isinstance(field, Plaintext):
            return field.value

        aesgcm = AESGCM(self._keys.derive_key(user_id))
        try:
            data = aesgcm.decrypt(field.iv, field.ciphertext + field.tag, None)
            return data.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as exc:
            raise DecryptionFailed() from exc

    @staticmethod
    def is_encrypted(value: str) -> bool:
        return is_encrypted(value)


@lru_cache
def get_field_cipher() -> FieldCipher:
    """Get the process-wide cipher built from settings."""
    return FieldCipher(KeyDeriver(get_settings().encryption_secret))
