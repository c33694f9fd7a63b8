"""Tests for the zkvault command line."""

import json

import pytest
from typer.testing import CliRunner

from zkvault import cli
from zkvault.store import AccountFile, FileEnvelopeStorage

EMAIL = "alice@example.com"
MASTER = "correct horse battery staple"

runner = CliRunner()


class Answers:
    """Stand-in for ``Prompt.ask`` / ``Confirm.ask`` returning canned replies."""

    def __init__(self, *answers):
        self.answers = list(answers)

    def __call__(self, *args, **kwargs):
        return self.answers.pop(0)


@pytest.fixture(autouse=True)
def _home(monkeypatch, tmp_path):
    monkeypatch.setenv("ZKVAULT_HOME", str(tmp_path))
    monkeypatch.setenv("ZKVAULT_KDF_ITERATIONS", "1000")
    return tmp_path


def _answer(monkeypatch, *answers, confirm=None):
    monkeypatch.setattr(cli.Prompt, "ask", Answers(*answers))
    if confirm is not None:
        monkeypatch.setattr(cli.Confirm, "ask", Answers(*confirm))


def _signup(monkeypatch):
    _answer(monkeypatch, MASTER, MASTER)
    result = runner.invoke(cli.app, ["signup", "--email", EMAIL])
    assert result.exit_code == 0, result.output


def _add(monkeypatch, site, password="s3cret", username="alice"):
    _answer(monkeypatch, MASTER, password)
    result = runner.invoke(cli.app, ["add", site, "-u", username, "-n", "note", "-t", "dev,work"])
    assert result.exit_code == 0, result.output


# ---------------------------------------------------------------------------
# signup
# ---------------------------------------------------------------------------


def test_signup_writes_account_and_empty_vault(monkeypatch, tmp_path):
    _signup(monkeypatch)

    record = AccountFile(tmp_path / "account.json").load()
    assert record.email == EMAIL
    assert len(record.salt) == 64
    assert len(record.auth_key) == 64

    envelope = FileEnvelopeStorage(tmp_path / "vault.json").load()
    assert envelope.encrypted and envelope.iv


def test_signup_never_stores_master_password(monkeypatch, tmp_path):
    _signup(monkeypatch)
    for path in tmp_path.iterdir():
        assert MASTER not in path.read_text()


def test_signup_rejects_mismatched_confirmation(monkeypatch, tmp_path):
    _answer(monkeypatch, MASTER, "something else")
    result = runner.invoke(cli.app, ["signup", "--email", EMAIL])
    assert result.exit_code == 1
    assert not (tmp_path / "account.json").exists()


def test_signup_keeps_existing_account_when_declined(monkeypatch, tmp_path):
    _signup(monkeypatch)
    before = (tmp_path / "account.json").read_text()
    _answer(monkeypatch, confirm=[False])
    result = runner.invoke(cli.app, ["signup", "--email", EMAIL])
    assert result.exit_code == 0
    assert (tmp_path / "account.json").read_text() == before


# ---------------------------------------------------------------------------
# vault commands
# ---------------------------------------------------------------------------


def test_commands_require_account(monkeypatch):
    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["list"])
    assert result.exit_code == 1


def test_wrong_master_password_is_rejected(monkeypatch):
    _signup(monkeypatch)
    _answer(monkeypatch, "wrong password")
    result = runner.invoke(cli.app, ["list"])
    assert result.exit_code == 1
    assert "Wrong master password" in result.output


def test_add_then_get(monkeypatch):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["get", "github", "--show"])
    assert result.exit_code == 0, result.output
    assert "s3cret" in result.output
    assert "alice" in result.output


def test_get_hides_password_by_default(monkeypatch):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["get", "github.com"])
    assert result.exit_code == 0
    assert "s3cret" not in result.output


def test_get_unknown_site(monkeypatch):
    _signup(monkeypatch)
    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["get", "nowhere"])
    assert result.exit_code == 1


def test_list_and_filter_by_tag(monkeypatch):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")
    _add(monkeypatch, "gitlab.com")

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["list"])
    assert result.exit_code == 0
    assert "github.com" in result.output
    assert "gitlab.com" in result.output

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["list", "--tag", "personal"])
    assert "No logins" in result.output


def test_search(monkeypatch):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com", username="octocat")

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["search", "octo"])
    assert result.exit_code == 0
    assert "github.com" in result.output


def test_update_password(monkeypatch):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")

    _answer(monkeypatch, MASTER, "n3w-secret")
    result = runner.invoke(cli.app, ["update", "github.com"])
    assert result.exit_code == 0, result.output

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["get", "github.com", "--show"])
    assert "n3w-secret" in result.output


def test_delete(monkeypatch):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["delete", "github.com", "--yes"])
    assert result.exit_code == 0

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["list"])
    assert "No logins" in result.output


# ---------------------------------------------------------------------------
# export / import
# ---------------------------------------------------------------------------


def test_export_writes_plaintext_document(monkeypatch, tmp_path):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")
    out = tmp_path / "export.json"

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["export", "--output", str(out), "--yes"])
    assert result.exit_code == 0, result.output

    document = json.loads(out.read_text())
    assert set(document) == {"data", "exportedAt"}
    assert document["data"][0]["site"] == "github.com"
    assert document["data"][0]["password"] == "s3cret"
    assert out.stat().st_mode & 0o777 == 0o600


def test_export_overwrite_does_not_keep_loose_permissions(monkeypatch, tmp_path):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")
    out = tmp_path / "export.json"
    out.write_text("stale")
    out.chmod(0o644)

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["export", "--output", str(out), "--yes"])
    assert result.exit_code == 0, result.output

    assert json.loads(out.read_text())["data"][0]["site"] == "github.com"
    assert out.stat().st_mode & 0o777 == 0o600


def test_import_merge(monkeypatch, tmp_path):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")
    source = tmp_path / "import.json"
    source.write_text(json.dumps({
        "data": [{
            "id": "imported-1",
            "site": "example.org",
            "username": "bob",
            "password": "pw",
            "createdAt": "2024-01-01T00:00:00.000Z",
        }],
        "exportedAt": "2024-01-02T00:00:00.000Z",
    }))

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["import", str(source)])
    assert result.exit_code == 0, result.output
    assert "1 → 2" in result.output


def test_import_rejects_invalid_items(monkeypatch, tmp_path):
    _signup(monkeypatch)
    _add(monkeypatch, "github.com")
    source = tmp_path / "import.json"
    source.write_text(json.dumps([{"id": "x", "site": "example.org"}]))

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["import", str(source), "--strategy", "replace"])
    assert result.exit_code == 1

    _answer(monkeypatch, MASTER)
    result = runner.invoke(cli.app, ["list"])
    assert "github.com" in result.output


def test_import_missing_file(tmp_path):
    result = runner.invoke(cli.app, ["import", str(tmp_path / "nope.json")])
    assert result.exit_code == 1


# ---------------------------------------------------------------------------
# generate / info
# ---------------------------------------------------------------------------


def test_generate_multiple():
    result = runner.invoke(cli.app, ["generate", "--count", "3", "--length", "12"])
    assert result.exit_code == 0
    assert "Generated 3 passwords" in result.output


def test_generate_rejects_zero_length():
    result = runner.invoke(cli.app, ["generate", "--length", "0"])
    assert result.exit_code == 1


def test_info_without_account():
    result = runner.invoke(cli.app, ["info"])
    assert result.exit_code == 0
    assert "zkvault info" in result.output


def test_info_with_account(monkeypatch):
    _signup(monkeypatch)
    result = runner.invoke(cli.app, ["info"])
    assert result.exit_code == 0
    assert EMAIL in result.output
