"""
Vault configuration: validated settings loaded from the environment.

Environment variables:
    ZKVAULT_KDF_ITERATIONS = <int>   PBKDF2 cost, fixed per deployment
    ZKVAULT_SALT_SIZE      = <int>   salt length for new accounts (16..32)
    ZKVAULT_HOME           = <path>  CLI data directory

Changing the iteration count invalidates every existing vault key.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from pydantic import BaseModel, Field

from .crypto import MAX_SALT_SIZE, MIN_SALT_SIZE, PBKDF2_ITERATIONS, SALT_SIZE

logger = logging.getLogger(__name__)


def default_home() -> Path:
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home()))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "zkvault"


class VaultConfig(BaseModel):
    """Validated zkvault configuration."""

    kdf_iterations: int = Field(default=PBKDF2_ITERATIONS, ge=1)
    salt_size: int = Field(default=SALT_SIZE, ge=MIN_SALT_SIZE, le=MAX_SALT_SIZE)
    home: Path = Field(default_factory=default_home)

    @property
    def vault_path(self) -> Path:
        return self.home / "vault.json"

    @property
    def account_path(self) -> Path:
        return self.home / "account.json"

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create a VaultConfig from ``ZKVAULT_*`` environment variables."""
        values: dict[str, object] = {}
        iterations = os.environ.get("ZKVAULT_KDF_ITERATIONS")
        if iterations:
            values["kdf_iterations"] = int(iterations)
        salt_size = os.environ.get("ZKVAULT_SALT_SIZE")
        if salt_size:
            values["salt_size"] = int(salt_size)
        home = os.environ.get("ZKVAULT_HOME")
        if home:
            values["home"] = Path(home)
        config = cls(**values)
        if config.kdf_iterations != PBKDF2_ITERATIONS:
            logger.warning(
                "KDF iteration count overridden to %d; keys derived with a different count will not match",
                config.kdf_iterations,
            )
        return config
