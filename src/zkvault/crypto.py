"""Cryptographic primitives for zkvault.

Vault key: PBKDF2-HMAC-SHA512 over ``password + email`` (75 000 iterations,
           64-byte output, hex).
Auth key:  SHA-256 over ``vault_key_hex + email`` (hex).  One-way; safe to
           hand to the account service.
Vault:     AES-256-GCM, key = first 32 bytes of the vault key, fresh 96-bit
           IV per call, JSON plaintext.
"""

from __future__ import annotations

import json
import os
from typing import Any, Union

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import BaseModel

from .encoding import b64_to_bytes, bytes_to_b64, bytes_to_hex, hex_to_bytes, utf8_encode
from .exceptions import (
    CryptoUnavailable,
    DecryptionFailed,
    InvalidInput,
    InvalidKeyMaterial,
    MalformedPayload,
)
from .models import EncryptedEnvelope

SALT_SIZE = 32
MIN_SALT_SIZE = 16
MAX_SALT_SIZE = 32
PBKDF2_ITERATIONS = 75_000
VAULT_KEY_LENGTH = 64
ENCRYPTION_KEY_LENGTH = 32  # AES-256
IV_SIZE = 12
TAG_SIZE = 16


def generate_salt(size: int = SALT_SIZE) -> bytes:
    """Return a cryptographically-random salt of *size* bytes (16..32)."""
    if not MIN_SALT_SIZE <= size <= MAX_SALT_SIZE:
        raise InvalidInput(f"Salt size must be between {MIN_SALT_SIZE} and {MAX_SALT_SIZE} bytes.")
    return os.urandom(size)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


def derive_vault_key(
    password: str,
    email: str,
    salt: Union[bytes, str],
    iterations: int = PBKDF2_ITERATIONS,
) -> str:
    """Derive the 64-byte vault key as lowercase hex.

    *salt* may be raw bytes or the hex string the account service returns.
    Deterministic: signin rebuilds the same key from the same inputs.
    """
    if not password:
        raise InvalidInput("Master password cannot be empty.")
    if not email:
        raise InvalidInput("Email cannot be empty.")
    if isinstance(salt, str):
        salt = hex_to_bytes(salt)
    if not salt:
        raise InvalidInput("Salt cannot be empty.")
    if iterations < 1:
        raise InvalidInput("KDF iteration count must be positive.")

    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=VAULT_KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )
        raw = kdf.derive(utf8_encode(password + email))
    except UnsupportedAlgorithm as exc:
        raise CryptoUnavailable("PBKDF2-HMAC-SHA512 is not available.") from exc
    return bytes_to_hex(raw)


def derive_auth_key(vault_key_hex: str, email: str) -> str:
    """SHA-256 of ``vault_key_hex + email`` as lowercase hex."""
    if not vault_key_hex:
        raise InvalidInput("Vault key cannot be empty.")
    if not email:
        raise InvalidInput("Email cannot be empty.")
    hex_to_bytes(vault_key_hex)

    try:
        digest = hashes.Hash(hashes.SHA256())
    except UnsupportedAlgorithm as exc:
        raise CryptoUnavailable("SHA-256 is not available.") from exc
    digest.update(utf8_encode(vault_key_hex + email))
    return bytes_to_hex(digest.finalize())


def _encryption_key(vault_key_hex: str) -> bytes:
    key = hex_to_bytes(vault_key_hex)[:ENCRYPTION_KEY_LENGTH]
    if len(key) < ENCRYPTION_KEY_LENGTH:
        raise InvalidKeyMaterial(
            f"Vault key must provide at least {ENCRYPTION_KEY_LENGTH} bytes, got {len(key)}."
        )
    return key


# ---------------------------------------------------------------------------
# Vault encryption
# ---------------------------------------------------------------------------


def _to_jsonable(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(by_alias=True, exclude_none=True)
    if isinstance(payload, (list, tuple)):
        return [_to_jsonable(p) for p in payload]
    return payload


def serialize_payload(payload: Any) -> bytes:
    """Canonical compact JSON bytes; pydantic models are dumped by alias."""
    try:
        text = json.dumps(_to_jsonable(payload), separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Vault payload is not JSON-serialisable: {exc}") from exc
    return utf8_encode(text)


def encrypt(payload: Any, vault_key_hex: str) -> EncryptedEnvelope:
    """Encrypt a JSON-serialisable *payload* under the vault key."""
    key = _encryption_key(vault_key_hex)
    plaintext = serialize_payload(payload)
    iv = os.urandom(IV_SIZE)
    ciphertext = AESGCM(key).encrypt(iv, plaintext, None)
    return EncryptedEnvelope(encrypted=bytes_to_b64(ciphertext), iv=bytes_to_b64(iv))


def decrypt(ciphertext_b64: str, vault_key_hex: str, iv_b64: str) -> Any:
    """Decrypt and JSON-parse a vault payload.

    Raises :class:`DecryptionFailed` on a tag mismatch and
    :class:`MalformedPayload` when the inputs or the recovered bytes do not
    decode.
    """
    key = _encryption_key(vault_key_hex)
    try:
        ciphertext = b64_to_bytes(ciphertext_b64)
        iv = b64_to_bytes(iv_b64)
    except InvalidInput as exc:
        raise MalformedPayload("Ciphertext or IV is not valid base64.") from exc

    if len(iv) != IV_SIZE:
        raise MalformedPayload(f"IV must be {IV_SIZE} bytes, got {len(iv)}.")
    if len(ciphertext) < TAG_SIZE:
        raise MalformedPayload(f"Ciphertext too short: {len(ciphertext)} bytes (minimum {TAG_SIZE}).")

    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionFailed("Decryption failed: wrong vault key or corrupted vault.") from exc

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayload("Decrypted vault is not valid JSON.") from exc


def decrypt_envelope(envelope: EncryptedEnvelope, vault_key_hex: str) -> Any:
    return decrypt(envelope.encrypted or "", vault_key_hex, envelope.iv or "")
