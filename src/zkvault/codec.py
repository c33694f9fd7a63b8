"""VaultCodec: the four client operations plus import/export.

Ties key derivation, the AES-GCM cipher and the envelope storage together
against an explicit :class:`~zkvault.session.VaultSession`:

- ``signup``       create salt + auth key for a new account (vault key discarded)
- ``signin``       re-derive the vault key and cache it in the session
- ``read_vault``   decrypt the stored envelope into items
- ``write_vault``  re-encrypt the whole item list and store it
- ``import_vault`` validate a batch, then merge or replace
- ``export_vault`` plaintext ``{data, exportedAt}`` document

The CPU-bound primitives run in worker threads so the event loop keeps
going; none of them can be cancelled once started.  Writes are not
serialised here: two overlapping read-modify-write calls on the same
session can lose an update, so callers must not run them concurrently.

Security Note:
    Never log passwords, keys, ciphertext or item contents.  Only log
    operations, counts and strategies.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from pydantic import ValidationError

from . import crypto
from .config import VaultConfig
from .encoding import bytes_to_hex
from .exceptions import (
    DecryptionFailed,
    ImportValidationFailed,
    InvalidInput,
    ItemNotFound,
    MalformedEnvelope,
    MalformedPayload,
    VaultKeyUnavailable,
)
from .models import EncryptedEnvelope, SignupKeys, VaultExport, VaultItem
from .session import VaultSession
from .store import EnvelopeStorage

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "site", "username", "password", "createdAt")

ItemLike = Union[VaultItem, Mapping[str, Any]]


class ImportStrategy(str, enum.Enum):
    MERGE = "merge"
    REPLACE = "replace"


# ---------------------------------------------------------------------------
# Item helpers
# ---------------------------------------------------------------------------


def validate_import_items(items: Any) -> list[VaultItem]:
    """Check every item of an import batch; all-or-nothing.

    Raises :class:`ImportValidationFailed` naming the first offending item.
    """
    if not isinstance(items, (list, tuple)):
        raise InvalidInput("Invalid import data: expected array of vault items.")

    validated: list[VaultItem] = []
    seen_ids: set[str] = set()
    for index, raw in enumerate(items):
        data = raw.to_wire() if isinstance(raw, VaultItem) else raw
        if not isinstance(data, Mapping):
            raise ImportValidationFailed(index, list(REQUIRED_FIELDS))
        missing = [field for field in REQUIRED_FIELDS if not data.get(field)]
        if missing:
            raise ImportValidationFailed(index, missing)
        if data["id"] in seen_ids:
            raise ImportValidationFailed(index, ["id"], reason="duplicates an earlier item id")
        seen_ids.add(data["id"])
        try:
            validated.append(VaultItem.model_validate(dict(data)))
        except ValidationError as exc:
            fields = [".".join(str(p) for p in e["loc"]) for e in exc.errors()]
            raise ImportValidationFailed(index, fields, reason="has invalid field(s)") from exc
    return validated


def _coerce_items(items: Iterable[ItemLike]) -> list[VaultItem]:
    try:
        return [
            item if isinstance(item, VaultItem) else VaultItem.model_validate(dict(item))
            for item in items
        ]
    except ValidationError as exc:
        raise InvalidInput(f"Invalid vault item: {exc}") from exc


def parse_export(document: Any) -> list[Any]:
    """Pull the raw item list out of an export document.

    Accepts ``{"data": [...], "exportedAt": ...}`` or a bare list.  Items are
    returned unvalidated; :meth:`VaultCodec.import_vault` validates them.
    """
    if isinstance(document, list):
        return document
    if isinstance(document, Mapping) and isinstance(document.get("data"), list):
        return document["data"]
    raise InvalidInput("Invalid import data: expected an export document or an array of vault items.")


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class VaultCodec:
    """Client-side vault operations bound to one session and one storage."""

    def __init__(
        self,
        storage: EnvelopeStorage,
        session: Optional[VaultSession] = None,
        config: Optional[VaultConfig] = None,
    ) -> None:
        self.storage = storage
        self.session = session if session is not None else VaultSession()
        self.config = config if config is not None else VaultConfig()

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    async def _derive_vault_key(self, email: str, password: str, salt: Union[bytes, str]) -> str:
        return await asyncio.to_thread(
            crypto.derive_vault_key, password, email, salt, self.config.kdf_iterations,
        )

    async def signup(self, email: str, password: str) -> SignupKeys:
        """Create the public values for a new account.

        The vault key derived here is not cached; the session is keyed only
        by a later :meth:`signin`.
        """
        salt = crypto.generate_salt(self.config.salt_size)
        vault_key = await self._derive_vault_key(email, password, salt)
        auth_key = await asyncio.to_thread(crypto.derive_auth_key, vault_key, email)
        logger.info("Created account keys (salt_size=%d)", len(salt))
        return SignupKeys(auth_key=auth_key, salt=bytes_to_hex(salt))

    async def signin(self, email: str, password: str, salt_hex: str) -> str:
        """Re-derive the vault key from credentials and cache it in the session."""
        try:
            if not salt_hex:
                raise InvalidInput("Salt cannot be empty.")
            vault_key = await self._derive_vault_key(email, password, salt_hex)
        except Exception:
            self.session.clear()
            raise
        self.session.remember(vault_key)
        logger.info("Vault key derived; session keyed")
        return vault_key

    async def signin_from_response(self, email: str, password: str, response: Mapping[str, Any]) -> str:
        """Sign in from an account-service response ``{session: {...}, salt}``."""
        salt = response.get("salt")
        if not isinstance(salt, str) or not salt:
            self.session.clear()
            raise InvalidInput("Signin response carries no salt.")
        return await self.signin(email, password, salt)

    async def auth_key_for(self, email: str, password: str, salt_hex: str) -> str:
        """Auth key for existing credentials; nothing is cached."""
        vault_key = await self._derive_vault_key(email, password, salt_hex)
        return await asyncio.to_thread(crypto.derive_auth_key, vault_key, email)

    def sign_out(self) -> None:
        self.session.clear()
        logger.info("Signed out; vault key cleared")

    # ------------------------------------------------------------------
    # Vault
    # ------------------------------------------------------------------

    async def read_vault(self, envelope: Optional[EncryptedEnvelope] = None) -> list[VaultItem]:
        """Decrypt *envelope* (fetched from storage when omitted) into items.

        An envelope with neither ciphertext nor IV is a vault that was never
        written and reads as ``[]``.
        """
        vault_key = self.session.vault_key
        if envelope is None:
            envelope = await self.storage.fetch()

        if envelope.is_empty:
            logger.debug("Empty envelope; returning empty vault")
            return []
        if not envelope.encrypted or not envelope.iv:
            raise MalformedEnvelope("Envelope is missing its ciphertext or IV.")

        try:
            payload = await asyncio.to_thread(crypto.decrypt_envelope, envelope, vault_key)
        except DecryptionFailed:
            self.session.clear()
            logger.warning("Vault decryption failed; session key cleared")
            raise

        if not isinstance(payload, list):
            raise MalformedPayload("Decrypted vault is not a list of items.")
        try:
            items = [VaultItem.model_validate(entry) for entry in payload]
        except ValidationError as exc:
            raise MalformedPayload("Decrypted vault contains invalid items.") from exc

        logger.debug("Vault read: %d item(s)", len(items))
        return items

    async def write_vault(self, items: Iterable[ItemLike]) -> EncryptedEnvelope:
        """Encrypt the entire item list under the session key and store it."""
        vault_key = self.session.vault_key
        vault_items = _coerce_items(items)
        payload = [item.to_wire() for item in vault_items]

        envelope = await asyncio.to_thread(crypto.encrypt, payload, vault_key)
        await self.storage.save(envelope)

        logger.debug("Vault written: %d item(s)", len(vault_items))
        return envelope

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    async def import_vault(
        self,
        items: Any,
        strategy: Union[ImportStrategy, str] = ImportStrategy.MERGE,
    ) -> list[VaultItem]:
        """Replace the vault with *items*, or merge in those with unseen ids.

        The batch is validated before anything is read or written.  Merge
        re-reads the stored vault rather than trusting a copy the caller may
        hold, and keeps existing items on id collisions.
        """
        try:
            strategy = ImportStrategy(strategy)
        except ValueError as exc:
            raise InvalidInput(f"Unknown import strategy: {strategy!r}") from exc

        incoming = validate_import_items(items)
        if not self.session.is_keyed:
            raise VaultKeyUnavailable()

        if strategy is ImportStrategy.REPLACE:
            result = incoming
        else:
            current = await self.read_vault()
            existing_ids = {item.id for item in current}
            new_items = [item for item in incoming if item.id not in existing_ids]
            result = current + new_items

        await self.write_vault(result)
        logger.info(
            "Imported %d item(s) with strategy=%s; vault now holds %d",
            len(incoming), strategy.value, len(result),
        )
        return result

    async def export_vault(self) -> VaultExport:
        """Decrypted vault stamped with the export time."""
        items = await self.read_vault()
        logger.info("Exported %d item(s)", len(items))
        return VaultExport(data=items)

    # ------------------------------------------------------------------
    # Item mutations (full read-modify-write each)
    # ------------------------------------------------------------------

    async def add_item(self, item: ItemLike) -> list[VaultItem]:
        new_item = _coerce_items([item])[0]
        current = await self.read_vault()
        if any(existing.id == new_item.id for existing in current):
            raise InvalidInput(f"A vault item with id {new_item.id!r} already exists.")
        updated = current + [new_item]
        await self.write_vault(updated)
        return updated

    async def update_item(self, item: ItemLike) -> list[VaultItem]:
        changed = _coerce_items([item])[0]
        current = await self.read_vault()
        if not any(existing.id == changed.id for existing in current):
            raise ItemNotFound(f"No vault item with id {changed.id!r}.")
        updated = [changed if existing.id == changed.id else existing for existing in current]
        await self.write_vault(updated)
        return updated

    async def delete_item(self, item_id: str) -> list[VaultItem]:
        current = await self.read_vault()
        updated = [item for item in current if item.id != item_id]
        if len(updated) == len(current):
            raise ItemNotFound(f"No vault item with id {item_id!r}.")
        await self.write_vault(updated)
        return updated
