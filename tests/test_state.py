"""Tests for the pairing state document."""

import json
from pathlib import Path

import pytest

from lainclaw.pairing import AllowFromRegistry, PairingLedger, PairingStateStore, PairingValidationError
from lainclaw.pairing.state import (
    ChannelState,
    normalize_and_dedup,
    normalize_document,
    normalize_request_list,
    safe_channel_key,
)


# ── Normalization ───────────────────────────────────────────────────


class TestSafeChannelKey:
    def test_lowercases(self):
        assert safe_channel_key("  Feishu ") == "feishu"

    def test_sanitizes(self):
        assert safe_channel_key("a/b:c") == "a_b_c"
        assert safe_channel_key("../etc") == "__etc"
        assert safe_channel_key("my.chan-1") == "my.chan-1"

    @pytest.mark.parametrize("raw", ["", "   ", "/", "..", "..."])
    def test_invalid(self, raw):
        with pytest.raises(PairingValidationError):
            safe_channel_key(raw)


class TestNormalizeDocument:
    def test_non_dict_yields_default(self):
        assert normalize_document(["x"]) == {
            "version": 1,
            "pairing": {"version": 1, "channels": {}},
        }

    def test_preserves_unrelated_keys(self):
        document = normalize_document({"version": 1, "gateway": {"port": 1234}})
        assert document["gateway"] == {"port": 1234}

    def test_unknown_pairing_version_is_reset(self):
        document = normalize_document({
            "version": 1,
            "pairing": {"version": 2, "channels": {"feishu": {"allowFrom": ["ou_a"]}}},
        })
        assert document["pairing"] == {"version": 1, "channels": {}}

    def test_empty_channels_dropped(self):
        document = normalize_document({
            "version": 1,
            "pairing": {"version": 1, "channels": {"feishu": {"requests": []}, "local": "junk"}},
        })
        assert document["pairing"]["channels"] == {}


class TestNormalizeRequests:
    def test_drops_incomplete_records(self):
        requests = normalize_request_list([
            {"id": "ou_a", "code": "AAAAAAAA", "createdAt": "2026-01-01T00:00:00.000Z",
             "lastSeenAt": "2026-01-01T00:00:00.000Z", "meta": {"username": " alice ", "blank": ""}},
            {"id": "ou_b", "code": "BBBBBBBB"},
            "garbage",
            None,
        ])
        assert len(requests) == 1
        assert requests[0].meta == {"username": "alice"}

    def test_accepts_wrapped_list(self):
        assert normalize_request_list({"requests": []}) == []
        assert normalize_request_list("nope") == []


class TestChannelState:
    def test_account_map_normalized(self):
        state = ChannelState.from_raw({
            "accountAllowFrom": {" Bot-A ": ["OU_X", "ou_x", ""], "": ["ou_y"], "bot-b": []},
        })
        assert state.account_allow_from == {"bot-a": ["ou_x"]}

    def test_dedup(self):
        assert normalize_and_dedup([" A ", "a", None, "", "b"]) == ["a", "b"]


# ── Store behavior ──────────────────────────────────────────────────


class TestPairingStateStore:
    @pytest.mark.asyncio
    async def test_corrupt_file_fails_open(self, tmp_path: Path):
        path = tmp_path / "gateway.json"
        path.write_text("{not json")
        store = PairingStateStore(path)

        assert await AllowFromRegistry(store).read("feishu") == []
        result = await PairingLedger(store).upsert("feishu", "ou_a")
        assert result.created is True
        assert json.loads(path.read_text())["pairing"]["channels"]["feishu"]["requests"]

    @pytest.mark.asyncio
    async def test_writes_keep_other_settings(self, tmp_path: Path):
        path = tmp_path / "gateway.json"
        path.write_text(json.dumps({"version": 1, "feishu": {"appId": "cli_123"}}))
        store = PairingStateStore(path)

        await AllowFromRegistry(store).add_entry("feishu", "ou_a")

        document = json.loads(path.read_text())
        assert document["feishu"] == {"appId": "cli_123"}
        assert document["pairing"]["channels"]["feishu"]["allowFrom"] == ["ou_a"]

    @pytest.mark.asyncio
    async def test_missing_file_is_initialized_on_first_update(self, tmp_path: Path):
        path = tmp_path / "sub" / "gateway.json"
        store = PairingStateStore(path)
        assert await PairingLedger(store).list_requests("feishu") == []
        assert json.loads(path.read_text()) == {
            "version": 1,
            "pairing": {"version": 1, "channels": {}},
        }

    @pytest.mark.asyncio
    async def test_read_does_not_create_file(self, tmp_path: Path):
        path = tmp_path / "gateway.json"
        assert await AllowFromRegistry(PairingStateStore(path)).read("feishu") == []
        assert not path.exists()
