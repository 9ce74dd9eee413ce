"""Type definitions for channel pairing and access control."""

import math
from dataclasses import dataclass, field
from typing import Any, Literal

# Access policies, from most to least permissive
PairingPolicy = Literal["open", "allowlist", "pairing", "disabled"]
PAIRING_POLICIES: tuple[str, ...] = ("open", "allowlist", "pairing", "disabled")

DEFAULT_PENDING_TTL_MS = 60 * 60 * 1000  # 1 hour
DEFAULT_PENDING_MAX = 3

# Decision kinds returned by the access policy engine
DecisionKind = Literal["allow", "deny-silent", "deny-with-reply"]


@dataclass
class PairingRequest:
    """A pending pairing request awaiting administrator approval."""
    id: str
    code: str
    created_at: str
    last_seen_at: str
    meta: dict[str, str] = field(default_factory=dict)

    @property
    def account_id(self) -> str:
        return self.meta.get("accountId", "").strip().lower()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "code": self.code,
            "createdAt": self.created_at,
            "lastSeenAt": self.last_seen_at,
        }
        if self.meta:
            data["meta"] = dict(self.meta)
        return data


@dataclass(frozen=True)
class PendingLimits:
    """TTL and capacity applied to the pending queue of one channel."""
    ttl_ms: int = DEFAULT_PENDING_TTL_MS
    max_pending: int = DEFAULT_PENDING_MAX

    @classmethod
    def resolve(cls, ttl_ms: float | None = None, max_pending: float | None = None) -> "PendingLimits":
        """Build limits, falling back to defaults for missing or non-positive values."""
        return cls(
            ttl_ms=_positive_int(ttl_ms, DEFAULT_PENDING_TTL_MS),
            max_pending=_positive_int(max_pending, DEFAULT_PENDING_MAX),
        )


def _positive_int(value: float | None, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value) or value <= 0:
        return default
    return max(int(math.floor(value)), 1)


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of upserting a pairing request.

    An empty code means the pending queue is full and the sender was refused.
    """
    code: str
    created: bool


@dataclass(frozen=True)
class ApprovalResult:
    """A successfully approved pairing request."""
    id: str
    entry: PairingRequest


@dataclass(frozen=True)
class AllowFromUpdate:
    """Outcome of an allow-from add or remove."""
    changed: bool
    allow_from: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AccessRequest:
    """Everything the policy engine needs to judge one inbound message."""
    channel: str
    policy: PairingPolicy
    sender_id: str
    account_id: str | None = None
    static_allow_from: tuple[str, ...] = ()
    limits: PendingLimits = field(default_factory=PendingLimits)
    meta: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AccessDecision:
    """Allow/deny verdict for one inbound message."""
    allowed: bool
    reply_text: str | None = None
    reason: str = ""

    @property
    def kind(self) -> DecisionKind:
        if self.allowed:
            return "allow"
        return "deny-with-reply" if self.reply_text else "deny-silent"
