"""Envelope storage.

The core never sees more of the server than the ``{encrypted, iv}`` pair.
This module provides the storage seam the codec reads from and writes to,
plus a local account record the CLI uses in place of an account service.

On-disk format (``vault.json``)::

    {"encrypted": "<base64 ciphertext+tag>", "iv": "<base64 96-bit IV>"}

A missing file is the empty envelope of a freshly created account.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import BadVaultError
from .models import EncryptedEnvelope

logger = logging.getLogger(__name__)


@runtime_checkable
class EnvelopeStorage(Protocol):
    async def fetch(self) -> EncryptedEnvelope: ...

    async def save(self, envelope: EncryptedEnvelope) -> None: ...


class MemoryEnvelopeStorage:
    """Holds a single envelope in memory."""

    def __init__(self, envelope: Optional[EncryptedEnvelope] = None) -> None:
        self.envelope = envelope if envelope is not None else EncryptedEnvelope()
        self.writes = 0

    async def fetch(self) -> EncryptedEnvelope:
        return self.envelope.model_copy()

    async def save(self, envelope: EncryptedEnvelope) -> None:
        self.envelope = envelope.model_copy()
        self.writes += 1


class FileEnvelopeStorage:
    """Reads and writes the encrypted vault envelope as a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.path.exists()

    async def fetch(self) -> EncryptedEnvelope:
        return await asyncio.to_thread(self.load)

    async def save(self, envelope: EncryptedEnvelope) -> None:
        await asyncio.to_thread(self.write, envelope)

    def load(self) -> EncryptedEnvelope:
        if not self.path.exists():
            return EncryptedEnvelope()
        try:
            return EncryptedEnvelope.model_validate_json(self.path.read_bytes())
        except ValidationError as exc:
            raise BadVaultError(f"Not a valid zkvault vault file: {self.path}") from exc

    def write(self, envelope: EncryptedEnvelope) -> None:
        atomic_write(self.path, json.dumps(envelope.to_wire()).encode("utf-8"))
        logger.debug("Vault envelope written to %s", self.path)


class AccountRecord(BaseModel):
    """What an account service would keep: email, public salt, auth key."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    salt: str
    auth_key: str = Field(alias="authKey")


class AccountFile:
    """Local stand-in for the account service used by the CLI."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> AccountRecord:
        try:
            return AccountRecord.model_validate_json(self.path.read_bytes())
        except ValidationError as exc:
            raise BadVaultError(f"Account file is unreadable or corrupt: {self.path}") from exc

    def save(self, record: AccountRecord) -> None:
        atomic_write(self.path, record.model_dump_json(by_alias=True).encode("utf-8"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def atomic_write(path: Path, data: bytes) -> None:
    """Write *data* to *path* via a temp file that is owner-only from creation."""
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp = path.with_suffix(".tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)
    # O_CREAT mode does not apply to a pre-existing temp file
    os.chmod(tmp, 0o600)
    tmp.replace(path)
