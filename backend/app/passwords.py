"""
Password hashing and verification (scrypt).

Stored hashes have the form ``<salt>.<derivedKeyHex>`` where ``salt`` is 16
random bytes rendered as 32 hex characters.  The hex text of the salt is
what is fed to scrypt, which keeps hashes written by the previous Node
service (``crypto.scrypt(password, saltHex, 32)``) verifiable.

Cost parameters: N=2**14, r=8, p=1, 32-byte key.  Each derivation touches
128 * N * r = 16 MiB of memory; ``maxmem`` is raised to 64 MiB so the
default OpenSSL cap of 32 MiB never trips on this setting.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets

from starlette.concurrency import run_in_threadpool

from app.errors import KeyDerivationError

logger = logging.getLogger(__name__)

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_MAXMEM = 64 * 1024 * 1024
KEY_LENGTH = 32
SALT_BYTES = 16
SEPARATOR = "."

_HEX_RE = re.compile(r"^[0-9a-f]+$")


def _derive_key(password: str, salt: str) -> bytes:
    try:
        return hashlib.scrypt(
            password.encode("utf-8"),
            salt=salt.encode("ascii"),
            n=SCRYPT_N,
            r=SCRYPT_R,
            p=SCRYPT_P,
            maxmem=SCRYPT_MAXMEM,
            dklen=KEY_LENGTH,
        )
    except (ValueError, MemoryError) as exc:
        logger.error("scrypt key derivation failed: %s", exc)
        raise KeyDerivationError(str(exc)) from exc


def _split_stored_hash(stored_hash: str) -> tuple[str, bytes] | None:
    """Return ``(salt, expected_key)`` or ``None`` when *stored_hash* is malformed."""
    if not stored_hash or stored_hash.count(SEPARATOR) != 1:
        return None
    salt, key_hex = stored_hash.split(SEPARATOR)
    if not salt or not _HEX_RE.match(salt):
        return None
    if len(key_hex) != KEY_LENGTH * 2 or not _HEX_RE.match(key_hex):
        return None
    return salt, bytes.fromhex(key_hex)


def hash_password(password: str) -> str:
    """Hash a plain-text password, returning ``salt.derivedKeyHex``."""
    if not password:
        raise ValueError("Password must not be empty")
    salt = secrets.token_hex(SALT_BYTES)
    derived = _derive_key(password, salt)
    return f"{salt}{SEPARATOR}{derived.hex()}"


def verify_password(password: str, stored_hash: str | None) -> bool:
    """
    Check *password* against a stored ``salt.derivedKeyHex`` hash.

    The derived keys are compared with :func:`hmac.compare_digest`, so the
    running time does not depend on where they first differ.  A malformed
    stored hash yields ``False`` and a warning in the log; only a failure of
    the scrypt primitive itself raises (``KeyDerivationError``).
    """
    parts = _split_stored_hash(stored_hash or "")
    if parts is None:
        logger.warning("Malformed stored password hash (expected salt.%d-byte-hex)", KEY_LENGTH)
        return False
    salt, expected = parts
    derived = _derive_key(password or "", salt)
    return hmac.compare_digest(derived, expected)


def has_usable_password(stored_hash: str | None) -> bool:
    """True when *stored_hash* is shaped like something ``verify_password`` can check."""
    return _split_stored_hash(stored_hash or "") is not None


async def hash_password_async(password: str) -> str:
    """``hash_password`` on the worker threadpool, for async callers."""
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(password: str, stored_hash: str | None) -> bool:
    """``verify_password`` on the worker threadpool, for async callers."""
    return await run_in_threadpool(verify_password, password, stored_hash)
