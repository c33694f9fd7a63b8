"""zkvault — zero-knowledge password vault.

The master password and the vault key stay on the client; only the public
salt, a one-way auth key and the AES-GCM ``{encrypted, iv}`` envelope are
ever handed to a server.

Example::

    from zkvault import MemoryEnvelopeStorage, VaultCodec

    codec = VaultCodec(MemoryEnvelopeStorage())
    keys = await codec.signup("a@b.com", "correct horse battery staple")
    await codec.signin("a@b.com", "correct horse battery staple", keys.salt)
    await codec.write_vault([{"site": "github.com", "username": "a", "password": "s3cret"}])
    items = await codec.read_vault()
"""

__version__ = "0.1.0"

from .codec import ImportStrategy, VaultCodec, parse_export, validate_import_items
from .config import VaultConfig
from .crypto import decrypt, derive_auth_key, derive_vault_key, encrypt, generate_salt
from .exceptions import (
    AuthenticationFailed,
    BadVaultError,
    CryptoUnavailable,
    DecryptionFailed,
    ImportValidationFailed,
    InvalidInput,
    InvalidKeyMaterial,
    ItemNotFound,
    MalformedEnvelope,
    MalformedPayload,
    VaultError,
    VaultKeyUnavailable,
)
from .models import EncryptedEnvelope, SignupKeys, VaultExport, VaultItem
from .session import KeyStore, MemoryKeyStore, SessionState, VaultSession
from .store import EnvelopeStorage, FileEnvelopeStorage, MemoryEnvelopeStorage
from .tokens import unverified_claims, unverified_email_hint

__all__ = [
    "ImportStrategy",
    "VaultCodec",
    "parse_export",
    "validate_import_items",
    "VaultConfig",
    "decrypt",
    "derive_auth_key",
    "derive_vault_key",
    "encrypt",
    "generate_salt",
    "AuthenticationFailed",
    "BadVaultError",
    "CryptoUnavailable",
    "DecryptionFailed",
    "ImportValidationFailed",
    "InvalidInput",
    "InvalidKeyMaterial",
    "ItemNotFound",
    "MalformedEnvelope",
    "MalformedPayload",
    "VaultError",
    "VaultKeyUnavailable",
    "EncryptedEnvelope",
    "SignupKeys",
    "VaultExport",
    "VaultItem",
    "KeyStore",
    "MemoryKeyStore",
    "SessionState",
    "VaultSession",
    "EnvelopeStorage",
    "FileEnvelopeStorage",
    "MemoryEnvelopeStorage",
    "unverified_claims",
    "unverified_email_hint",
]
