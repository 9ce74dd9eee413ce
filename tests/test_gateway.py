"""Tests for the gateway core and its HTTP API."""

from pathlib import Path

import pytest
from aiohttp import test_utils

from lainclaw.bus.events import InboundMessage
from lainclaw.config.schema import (
    ChannelsConfig,
    Config,
    FeishuConfig,
    GatewayConfig,
    PairingConfig,
)
from lainclaw.gateway import GatewayCore, GatewayServer


class StubAgent:
    """Records the messages it was asked to answer."""

    def __init__(self, answer: str | None = "pong"):
        self.answer = answer
        self.seen: list[InboundMessage] = []

    async def __call__(self, inbound: InboundMessage) -> str | None:
        self.seen.append(inbound)
        return self.answer


@pytest.fixture
def agent() -> StubAgent:
    return StubAgent()


@pytest.fixture
def core(tmp_path: Path, agent: StubAgent) -> GatewayCore:
    config = Config(
        gateway=GatewayConfig(state_file=str(tmp_path / "gw.json")),
        channels=ChannelsConfig(feishu=FeishuConfig(pairing=PairingConfig(policy="pairing"))),
    )
    return GatewayCore(config, agent)


def _inbound(actor: str = "ou_stranger", **kwargs) -> InboundMessage:
    return InboundMessage(channel="feishu", actor_id=actor, text="ping", request_id="req-1", **kwargs)


# ── Core ────────────────────────────────────────────────────────────


class TestGatewayCore:
    @pytest.mark.asyncio
    async def test_unknown_sender_gets_pairing_reply(self, core: GatewayCore, agent: StubAgent):
        outbound = await core.handle_inbound(_inbound())

        assert outbound is not None
        assert outbound.reply_to == "ou_stranger"
        assert outbound.request_id == "req-1"
        assert "Pairing code:" in outbound.text
        assert agent.seen == []

    @pytest.mark.asyncio
    async def test_approved_sender_reaches_agent(self, core: GatewayCore, agent: StubAgent):
        await core.handle_inbound(_inbound())
        [pending] = await core.ledger.list_requests("feishu")
        await core.ledger.approve("feishu", pending.code)

        outbound = await core.handle_inbound(_inbound(reply_to="chat-9"))

        assert outbound is not None
        assert outbound.text == "pong"
        assert outbound.reply_to == "chat-9"
        assert len(agent.seen) == 1

    @pytest.mark.asyncio
    async def test_ignored_message_is_dropped(self, core: GatewayCore, agent: StubAgent):
        decision, outbound = await core.process(_inbound(kind="ignored"))

        assert decision.allowed is False
        assert outbound is None
        assert await core.ledger.list_requests("feishu") == []

    @pytest.mark.asyncio
    async def test_empty_agent_answer_sends_nothing(self, core: GatewayCore, agent: StubAgent):
        await core.registry.add_entry("feishu", "ou_friend")
        agent.answer = None

        assert await core.handle_inbound(_inbound("ou_friend")) is None
        assert len(agent.seen) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_channel_is_open(self, core: GatewayCore, agent: StubAgent):
        outbound = await core.handle_inbound(InboundMessage(channel="webchat", actor_id="u1"))
        assert outbound is not None
        assert outbound.text == "pong"


# ── HTTP API ────────────────────────────────────────────────────────


class TestGatewayServer:
    @pytest.mark.asyncio
    async def test_health(self, core: GatewayCore):
        server = GatewayServer(core)
        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            assert await resp.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_inbound_pairing_flow(self, core: GatewayCore):
        server = GatewayServer(core)
        payload = {"channel": "feishu", "actorId": "ou_stranger", "requestId": "r1", "text": "hi"}
        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            resp = await client.post("/api/inbound", json=payload)
            assert resp.status == 200
            body = await resp.json()
            assert body["allowed"] is False
            assert "Pairing code:" in body["reply"]

            await core.registry.add_entry("feishu", "ou_stranger")
            resp = await client.post("/api/inbound", json=payload)
            body = await resp.json()
            assert body == {"allowed": True, "reply": "pong"}

    @pytest.mark.asyncio
    async def test_invalid_json(self, core: GatewayCore):
        server = GatewayServer(core)
        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            resp = await client.post(
                "/api/inbound", data="not json{", headers={"Content-Type": "application/json"}
            )
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_missing_channel(self, core: GatewayCore):
        server = GatewayServer(core)
        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            resp = await client.post("/api/inbound", json={"actorId": "ou_x"})
            assert resp.status == 400

