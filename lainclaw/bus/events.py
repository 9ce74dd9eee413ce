"""Event types for the message bus."""

from dataclasses import dataclass, field
from typing import Any, Literal

InboundKind = Literal["message", "ignored"]


@dataclass
class InboundMessage:
    """Message received from a chat channel."""
    channel: str  # feishu, local
    actor_id: str  # Sender identity as asserted by the transport
    text: str = ""
    request_id: str = ""
    conversation_id: str = ""
    reply_to: str = ""
    account_id: str | None = None  # Connected bot account, if the channel has several
    kind: InboundKind = "message"
    meta: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InboundMessage":
        """Build from a camelCase or snake_case payload."""
        def pick(*keys: str) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        kind = pick("kind") or "message"
        meta = pick("meta")
        return cls(
            channel=str(pick("channel") or "").strip(),
            actor_id=str(pick("actorId", "actor_id") or ""),
            text=str(pick("text") or ""),
            request_id=str(pick("requestId", "request_id") or ""),
            conversation_id=str(pick("conversationId", "conversation_id") or ""),
            reply_to=str(pick("replyTo", "reply_to") or ""),
            account_id=pick("accountId", "account_id"),
            kind="ignored" if kind == "ignored" else "message",
            meta=meta if isinstance(meta, dict) else {},
        )


@dataclass
class OutboundMessage:
    """Message to send back through a chat channel."""
    channel: str
    reply_to: str
    text: str
    request_id: str = ""
    meta: dict[str, Any] = field(default_factory=dict)
