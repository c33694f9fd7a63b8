"""Tests for zkvault.store."""

import json
import os

import pytest

from zkvault.exceptions import BadVaultError, MalformedEnvelope
from zkvault.models import EncryptedEnvelope
from zkvault.store import (
    AccountFile,
    AccountRecord,
    EnvelopeStorage,
    FileEnvelopeStorage,
    MemoryEnvelopeStorage,
    atomic_write,
)


def _storage(tmp_path, name="vault.json") -> FileEnvelopeStorage:
    return FileEnvelopeStorage(tmp_path / name)


# ---------------------------------------------------------------------------
# File storage
# ---------------------------------------------------------------------------


def test_new_storage_does_not_exist(tmp_path):
    assert not _storage(tmp_path).exists()


def test_missing_file_loads_empty_envelope(tmp_path):
    assert _storage(tmp_path).load().is_empty


def test_write_then_load(tmp_path):
    storage = _storage(tmp_path)
    storage.write(EncryptedEnvelope(encrypted="Y3Q=", iv="aXY="))
    assert storage.exists()
    assert storage.load() == EncryptedEnvelope(encrypted="Y3Q=", iv="aXY=")


def test_file_holds_wire_payload(tmp_path):
    storage = _storage(tmp_path)
    storage.write(EncryptedEnvelope(encrypted="Y3Q=", iv="aXY="))
    assert json.loads(storage.path.read_text()) == {"encrypted": "Y3Q=", "iv": "aXY="}


def test_write_sets_restricted_permissions(tmp_path):
    storage = _storage(tmp_path)
    storage.write(EncryptedEnvelope(encrypted="Y3Q=", iv="aXY="))
    assert storage.path.stat().st_mode & 0o777 == 0o600


def test_atomic_write_is_private_under_permissive_umask(tmp_path):
    path = tmp_path / "export.json"
    old_umask = os.umask(0)
    try:
        atomic_write(path, b"{}")
    finally:
        os.umask(old_umask)
    assert path.read_bytes() == b"{}"
    assert path.stat().st_mode & 0o777 == 0o600


def test_atomic_write_tightens_stale_temp_and_target(tmp_path):
    path = tmp_path / "export.json"
    path.write_text("old")
    path.chmod(0o644)
    stale = path.with_suffix(".tmp")
    stale.write_text("leftover")
    stale.chmod(0o666)

    atomic_write(path, b"new")
    assert path.read_bytes() == b"new"
    assert path.stat().st_mode & 0o777 == 0o600
    assert not stale.exists()


def test_write_creates_parent_directories(tmp_path):
    storage = FileEnvelopeStorage(tmp_path / "a" / "b" / "vault.json")
    storage.write(EncryptedEnvelope())
    assert storage.exists()


def test_write_leaves_no_temp_file(tmp_path):
    storage = _storage(tmp_path)
    storage.write(EncryptedEnvelope(encrypted="Y3Q=", iv="aXY="))
    assert [p.name for p in tmp_path.iterdir()] == ["vault.json"]


def test_corrupt_file_raises(tmp_path):
    path = tmp_path / "vault.json"
    path.write_text("not json at all")
    with pytest.raises(BadVaultError):
        FileEnvelopeStorage(path).load()


def test_bad_vault_error_is_malformed_envelope(tmp_path):
    path = tmp_path / "vault.json"
    path.write_text('{"encrypted": 12}')
    with pytest.raises(MalformedEnvelope):
        FileEnvelopeStorage(path).load()


@pytest.mark.asyncio
async def test_async_fetch_and_save(tmp_path):
    storage = _storage(tmp_path)
    await storage.save(EncryptedEnvelope(encrypted="Y3Q=", iv="aXY="))
    assert (await storage.fetch()).encrypted == "Y3Q="


# ---------------------------------------------------------------------------
# Memory storage
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_memory_storage_starts_empty():
    assert (await MemoryEnvelopeStorage().fetch()).is_empty


@pytest.mark.asyncio
async def test_memory_storage_counts_writes():
    storage = MemoryEnvelopeStorage()
    await storage.save(EncryptedEnvelope(encrypted="a", iv="b"))
    await storage.save(EncryptedEnvelope(encrypted="c", iv="d"))
    assert storage.writes == 2
    assert (await storage.fetch()).encrypted == "c"


def test_storages_satisfy_protocol(tmp_path):
    assert isinstance(MemoryEnvelopeStorage(), EnvelopeStorage)
    assert isinstance(_storage(tmp_path), EnvelopeStorage)


# ---------------------------------------------------------------------------
# Account file
# ---------------------------------------------------------------------------


def test_account_roundtrip(tmp_path):
    account = AccountFile(tmp_path / "account.json")
    account.save(AccountRecord(email="a@b.com", salt="00" * 32, auth_key="ff" * 32))
    record = account.load()
    assert record.email == "a@b.com"
    assert record.auth_key == "ff" * 32


def test_account_file_uses_wire_names(tmp_path):
    account = AccountFile(tmp_path / "account.json")
    account.save(AccountRecord(email="a@b.com", salt="00", auth_key="ff"))
    assert json.loads(account.path.read_text()) == {"email": "a@b.com", "salt": "00", "authKey": "ff"}
    assert account.path.stat().st_mode & 0o777 == 0o600


def test_corrupt_account_file_raises(tmp_path):
    path = tmp_path / "account.json"
    path.write_text("{}")
    with pytest.raises(BadVaultError):
        AccountFile(path).load()
