"""Tests for zkvault.session."""

import pytest

from zkvault.exceptions import VaultKeyUnavailable
from zkvault.session import KeyStore, MemoryKeyStore, SessionState, VaultSession


class RecordingKeyStore:
    """KeyStore double that records every call."""

    def __init__(self):
        self.value = None
        self.calls = []

    def get(self):
        return self.value

    def set(self, key):
        self.calls.append("set")
        self.value = key

    def clear(self):
        self.calls.append("clear")
        self.value = None


def test_new_session_is_unkeyed():
    session = VaultSession()
    assert session.state is SessionState.UNKEYED
    assert not session.is_keyed


def test_unkeyed_session_has_no_vault_key():
    with pytest.raises(VaultKeyUnavailable, match="re-authenticate"):
        VaultSession().vault_key


def test_remember_then_clear():
    session = VaultSession()
    session.remember("ab" * 64)
    assert session.state is SessionState.KEYED
    assert session.vault_key == "ab" * 64

    session.clear()
    assert session.state is SessionState.UNKEYED
    with pytest.raises(VaultKeyUnavailable):
        session.vault_key


def test_remember_replaces_previous_key():
    session = VaultSession()
    session.remember("aa" * 64)
    session.remember("bb" * 64)
    assert session.vault_key == "bb" * 64


def test_sessions_do_not_share_keys():
    a, b = VaultSession(), VaultSession()
    a.remember("aa" * 64)
    assert not b.is_keyed


def test_custom_key_store_is_used():
    store = RecordingKeyStore()
    session = VaultSession(store)
    session.remember("cc" * 64)
    session.clear()
    assert store.calls == ["set", "clear"]
    assert isinstance(store, KeyStore)


def test_memory_key_store_satisfies_protocol():
    assert isinstance(MemoryKeyStore(), KeyStore)
