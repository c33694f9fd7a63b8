"""Error taxonomy for zkvault.

Every failure the core can produce is a :class:`VaultError`.  Input problems
additionally subclass :class:`ValueError` so callers that only care about
"bad argument" can catch the builtin.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base class for all zkvault errors."""


class InvalidInput(VaultError, ValueError):
    """Empty password/salt/email or malformed hex/base64, rejected before any crypto call."""


class InvalidKeyMaterial(InvalidInput):
    """Vault key too short to yield a 256-bit encryption key."""


class MalformedPayload(InvalidInput):
    """Ciphertext, IV or recovered plaintext that cannot be decoded."""


class CryptoUnavailable(VaultError):
    """A required primitive is not provided by the installed crypto backend."""


class VaultKeyUnavailable(VaultError):
    """A vault read/write was attempted while no vault key is cached."""

    def __init__(self, message: str = "Vault key not available. Please re-authenticate.") -> None:
        super().__init__(message)


class DecryptionFailed(VaultError):
    """Authentication tag mismatch: wrong key, or corrupted/tampered data."""


class MalformedEnvelope(VaultError):
    """Envelope carries only one of ciphertext and IV."""


class BadVaultError(MalformedEnvelope):
    """Raised when the stored vault file is unreadable or corrupt."""


class AuthenticationFailed(VaultError):
    """Derived auth key does not match the one recorded for the account."""


class ItemNotFound(VaultError, LookupError):
    """No vault item carries the requested id."""


class ImportValidationFailed(InvalidInput):
    """An item in an import batch is missing a required field.

    The whole batch is rejected; nothing is written.
    """

    def __init__(self, index: int, missing: list[str], reason: str = "missing required field(s)") -> None:
        self.index = index
        self.missing = missing
        super().__init__(f"Invalid import data: item {index} {reason}: " + ", ".join(missing))
