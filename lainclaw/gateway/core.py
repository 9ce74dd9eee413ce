"""Gateway core: access control in front of the agent runtime."""

from typing import Awaitable, Callable

from loguru import logger

from lainclaw.bus.events import InboundMessage, OutboundMessage
from lainclaw.config.schema import Config
from lainclaw.pairing import (
    AccessDecision,
    AccessPolicyEngine,
    AllowFromRegistry,
    JsonFileBackend,
    PairingLedger,
    PairingStateStore,
)

AgentHandler = Callable[[InboundMessage], Awaitable[str | None]]


class GatewayCore:
    """
    Routes inbound channel messages to the agent, after access control.

    The agent handler is the external agent runtime; it is only invoked for
    allowed senders, and never while a pairing store lock is held.
    """

    def __init__(
        self,
        config: Config,
        agent: AgentHandler,
        backend: JsonFileBackend | None = None,
    ):
        self.config = config
        self.agent = agent
        store = PairingStateStore(config.state_path, backend or JsonFileBackend())
        self.ledger = PairingLedger(store)
        self.registry = AllowFromRegistry(store)
        self.access = AccessPolicyEngine(
            self.ledger,
            self.registry,
            channels=config.channels.pairing_by_channel(),
        )

    async def evaluate(self, inbound: InboundMessage) -> AccessDecision:
        return await self.access.evaluate(inbound)

    async def handle_inbound(self, inbound: InboundMessage) -> OutboundMessage | None:
        """Process one inbound message. Returns the reply to send, if any."""
        _, outbound = await self.process(inbound)
        return outbound

    async def process(self, inbound: InboundMessage) -> tuple[AccessDecision, OutboundMessage | None]:
        """Evaluate access and, if allowed, run the agent. Returns (decision, reply)."""
        if inbound.kind == "ignored":
            logger.debug(f"Ignoring {inbound.channel} message {inbound.request_id}")
            return AccessDecision(allowed=False, reason="ignored"), None

        decision = await self.evaluate(inbound)
        if not decision.allowed:
            logger.debug(
                f"Access denied on {inbound.channel} for {inbound.actor_id} ({decision.reason})"
            )
            if not decision.reply_text:
                return decision, None
            return decision, self._reply(inbound, decision.reply_text)

        response = await self.agent(inbound)
        if not response:
            return decision, None
        return decision, self._reply(inbound, response)

    def _reply(self, inbound: InboundMessage, text: str) -> OutboundMessage:
        return OutboundMessage(
            channel=inbound.channel,
            reply_to=inbound.reply_to or inbound.actor_id,
            text=text,
            request_id=inbound.request_id,
        )
