"""Domain models for zkvault."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _new_id() -> str:
    return str(uuid.uuid4())


class VaultItem(BaseModel):
    """A single stored login."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(default_factory=_new_id)
    site: str
    username: str
    password: str
    created_at: str = Field(default_factory=utcnow_iso, alias="createdAt")
    notes: Optional[str] = None
    tags: Optional[list[str]] = None

    def to_wire(self) -> dict[str, Any]:
        """Dict in the ``{id, site, username, password, createdAt, ...}`` wire shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class EncryptedEnvelope(BaseModel):
    """The ``{encrypted, iv}`` pair; the only form of the vault that leaves the device."""

    encrypted: Optional[str] = None
    iv: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        """True for the "vault not yet created" envelope."""
        return not self.encrypted and not self.iv

    def to_wire(self) -> dict[str, Any]:
        return {"encrypted": self.encrypted or "", "iv": self.iv or ""}


class VaultExport(BaseModel):
    """Plaintext export document."""

    model_config = ConfigDict(populate_by_name=True)

    data: list[VaultItem] = Field(default_factory=list)
    exported_at: str = Field(default_factory=utcnow_iso, alias="exportedAt")

    def to_wire(self) -> dict[str, Any]:
        return {
            "data": [item.to_wire() for item in self.data],
            "exportedAt": self.exported_at,
        }


class SignupKeys(BaseModel):
    """What signup hands to the account service. Never contains the vault key."""

    auth_key: str
    salt: str

    def signup_payload(self, email: str, password: str) -> dict[str, str]:
        return {
            "email": email,
            "password": password,
            "authKey": self.auth_key,
            "salt": self.salt,
        }
