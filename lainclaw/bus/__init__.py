"""Message bus types shared between transports and the gateway core."""

from lainclaw.bus.events import InboundMessage, OutboundMessage

__all__ = ["InboundMessage", "OutboundMessage"]
