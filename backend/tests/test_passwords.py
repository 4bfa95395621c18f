"""Tests for scrypt password hashing and verification."""

import asyncio
import hashlib
import logging

import pytest

from app import passwords
from app.errors import KeyDerivationError
from app.passwords import (
    has_usable_password,
    hash_password,
    hash_password_async,
    verify_password,
    verify_password_async,
)


class TestHashPassword:
    def test_format_is_salt_dot_key_hex(self):
        stored = hash_password("secret123")
        salt, key_hex = stored.split(".")
        assert len(salt) == 32
        assert len(key_hex) == 64
        int(salt, 16)
        int(key_hex, 16)

    def test_same_password_gets_fresh_salt(self):
        first = hash_password("secret123")
        second = hash_password("secret123")
        assert first != second
        assert first.split(".")[0] != second.split(".")[0]

    def test_hash_is_not_plaintext(self):
        assert "secret123" not in hash_password("secret123")

    def test_empty_password_rejected(self):
        with pytest.raises(ValueError):
            hash_password("")

    def test_matches_node_scrypt_with_hex_salt(self):
        # crypto.scrypt(password, saltHex, 32) uses the hex text as salt bytes
        salt = "00112233445566778899aabbccddeeff"
        key = hashlib.scrypt(b"secret123", salt=salt.encode(), n=16384, r=8, p=1, dklen=32)
        assert verify_password("secret123", f"{salt}.{key.hex()}") is True

    def test_primitive_failure_raises_key_derivation_error(self, monkeypatch):
        monkeypatch.setattr(passwords, "SCRYPT_MAXMEM", 1024)
        with pytest.raises(KeyDerivationError):
            hash_password("secret123")


class TestVerifyPassword:
    @pytest.mark.parametrize("password", ["secret123", "p", "pässwörd ✓", " spaces "])
    def test_round_trip(self, password):
        assert verify_password(password, hash_password(password)) is True

    def test_wrong_password(self):
        stored = hash_password("secret123")
        assert verify_password("wrong", stored) is False

    def test_uses_constant_time_compare(self, monkeypatch):
        calls = []
        real = passwords.hmac.compare_digest

        def spy(a, b):
            calls.append((a, b))
            return real(a, b)

        monkeypatch.setattr(passwords.hmac, "compare_digest", spy)
        verify_password("secret123", hash_password("secret123"))
        assert len(calls) == 1

    @pytest.mark.parametrize(
        "stored",
        [
            "",
            None,
            "no-separator-here",
            "abcd.ef",                              # key too short
            "a.b.c",                                # two separators
            "." + "00" * 32,                        # empty salt
            "zzzz." + "00" * 32,                    # salt not hex
            "0011." + "gg" * 32,                    # key not hex
            "0011." + "00" * 33,                    # key too long
        ],
    )
    def test_malformed_hash_is_false_not_error(self, stored, caplog):
        with caplog.at_level(logging.WARNING, logger="app.passwords"):
            assert verify_password("secret123", stored) is False
        assert "Malformed stored password hash" in caplog.text

    def test_has_usable_password(self):
        assert has_usable_password(hash_password("secret123")) is True
        assert has_usable_password(None) is False
        assert has_usable_password("") is False


class TestAsyncWrappers:
    def test_async_round_trip(self):
        async def run():
            stored = await hash_password_async("secret123")
            return await verify_password_async("secret123", stored)

        assert asyncio.run(run()) is True
