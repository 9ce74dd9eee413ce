"""Tests for the pairing admin CLI."""

import asyncio
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from lainclaw import __version__
from lainclaw.cli.commands import app
from lainclaw.pairing import AllowFromRegistry, PairingLedger, PairingStateStore

runner = CliRunner()


@pytest.fixture
def home(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.setenv("LAINCLAW_HOME", str(tmp_path))
    return tmp_path


def _store(home: Path) -> PairingStateStore:
    return PairingStateStore(home / "gateway.json")


def _seed_request(home: Path, sender: str, channel: str = "feishu", account: str | None = None) -> str:
    result = asyncio.run(PairingLedger(_store(home)).upsert(channel, sender, account_id=account))
    return result.code


def _allowed(home: Path, channel: str = "feishu", account: str | None = None) -> list[str]:
    return asyncio.run(AllowFromRegistry(_store(home)).read(channel, account))


# ── version ─────────────────────────────────────────────────────────


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


# ── list ────────────────────────────────────────────────────────────


class TestPairingList:
    def test_empty(self, home):
        result = runner.invoke(app, ["pairing", "list"])
        assert result.exit_code == 0
        assert "No pending feishu pairing requests" in result.output

    def test_json_output(self, home):
        code = _seed_request(home, "ou_alice")

        result = runner.invoke(app, ["pairing", "list", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["channel"] == "feishu"
        assert [r["code"] for r in data["requests"]] == [code]
        assert data["requests"][0]["id"] == "ou_alice"

    def test_account_filter(self, home):
        _seed_request(home, "ou_alice", account="bot-a")
        code_b = _seed_request(home, "ou_bob", account="bot-b")

        result = runner.invoke(app, ["pairing", "list", "--json", "--account", "bot-b"])
        data = json.loads(result.stdout)
        assert [r["code"] for r in data["requests"]] == [code_b]

    def test_table_output(self, home):
        code = _seed_request(home, "ou_alice")
        result = runner.invoke(app, ["pairing", "list"])
        assert result.exit_code == 0
        assert code in result.output

    def test_invalid_channel(self, home):
        result = runner.invoke(app, ["pairing", "list", "--channel", "slack"])
        assert result.exit_code == 1
        assert "Invalid channel" in result.output


# ── approve ─────────────────────────────────────────────────────────


class TestPairingApprove:
    def test_approve_adds_sender(self, home):
        code = _seed_request(home, "ou_alice")

        result = runner.invoke(app, ["pairing", "approve", code.lower()])
        assert result.exit_code == 0
        assert "ou_alice" in result.output
        assert _allowed(home) == ["ou_alice"]

    def test_unknown_code(self, home):
        result = runner.invoke(app, ["pairing", "approve", "ZZZZZZZZ"])
        assert result.exit_code == 1
        assert "No pending pairing request" in result.output

    def test_approve_on_local_channel(self, home):
        code = _seed_request(home, "desk-1", channel="local")

        result = runner.invoke(app, ["pairing", "approve", "--channel", "local", code])
        assert result.exit_code == 0
        assert _allowed(home, "local") == ["desk-1"]
        assert _allowed(home, "feishu") == []

    def test_approve_keeps_account_scope(self, home):
        code = _seed_request(home, "ou_alice", account="bot-a")

        result = runner.invoke(app, ["pairing", "approve", "--account", "bot-a", code])
        assert result.exit_code == 0
        assert _allowed(home, account="bot-a") == ["ou_alice"]
        assert _allowed(home) == []


# ── revoke / allowed ────────────────────────────────────────────────


class TestPairingRevoke:
    def test_revoke_existing(self, home):
        asyncio.run(AllowFromRegistry(_store(home)).add_entry("feishu", "ou_alice"))

        result = runner.invoke(app, ["pairing", "revoke", "OU_Alice"])
        assert result.exit_code == 0
        assert "Revoked" in result.output
        assert _allowed(home) == []

    def test_revoke_missing(self, home):
        result = runner.invoke(app, ["pairing", "revoke", "ou_nobody"])
        assert result.exit_code == 0
        assert "No matching allow entry" in result.output


class TestPairingAllowed:
    def test_lists_entries(self, home):
        asyncio.run(AllowFromRegistry(_store(home)).add_entry("feishu", "ou_alice"))

        result = runner.invoke(app, ["pairing", "allowed"])
        assert result.exit_code == 0
        assert "ou_alice" in result.output

    def test_empty(self, home):
        result = runner.invoke(app, ["pairing", "allowed"])
        assert result.exit_code == 0
        assert "No senders" in result.output


def test_status(home):
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "policy=open" in result.output
