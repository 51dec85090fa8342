"""Encryption at rest for stored mail app-passwords.

Stored values have the form ``"{iv_hex}:{cipher_hex}"``: AES-256-CBC with
PKCS#7 padding and a fresh 16-byte IV per encryption. The key is derived
from a passphrase with scrypt over a fixed salt. The salt and scrypt cost
parameters are part of the stored format; changing them would make every
previously stored secret undecryptable.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

KEY_SIZE = 32
IV_SIZE = 16

_SALT = b"salt"
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1


class DecryptionError(Exception):
    """A stored secret could not be decrypted (corruption or key mismatch)."""


def derive_key(passphrase: str) -> bytes:
    """Derive a 32-byte AES key from ``passphrase``. Deterministic."""
    kdf = Scrypt(salt=_SALT, length=KEY_SIZE, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P)
    return kdf.derive(passphrase.encode("utf-8"))


class CredentialCipher:
    """Encrypts and decrypts short secrets under one fixed key.

    Build it once at startup and pass it to whatever needs it; the key is
    read-only after construction so instances are safe to share.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            msg = f"key must be {KEY_SIZE} bytes, got {len(key)}"
            raise ValueError(msg)
        self._key = key

    @classmethod
    def from_passphrase(cls, passphrase: str) -> CredentialCipher:
        """Derive the key from ``passphrase`` and build a cipher."""
        return cls(derive_key(passphrase))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` under a fresh IV."""
        iv = os.urandom(IV_SIZE)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}:{ciphertext.hex()}"

    def decrypt(self, stored: str) -> str:
        """Recover the plaintext from a stored ``iv_hex:cipher_hex`` value."""
        iv_hex, sep, cipher_hex = stored.partition(":")
        if not sep or not iv_hex or not cipher_hex:
            msg = "Invalid encrypted secret format, expected 'iv:ciphertext'"
            raise DecryptionError(msg)

        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(cipher_hex)
        except ValueError as exc:
            msg = "Encrypted secret is not valid hex"
            raise DecryptionError(msg) from exc

        if len(iv) != IV_SIZE:
            msg = f"IV must be {IV_SIZE} bytes, got {len(iv)}"
            raise DecryptionError(msg)

        try:
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except ValueError as exc:
            # UnicodeDecodeError is a ValueError subclass.
            msg = "Could not decrypt secret (wrong key or corrupted data)"
            raise DecryptionError(msg) from exc
