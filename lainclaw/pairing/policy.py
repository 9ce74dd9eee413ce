"""
Access policy decision engine.

Turns a channel's pairing policy plus the live allow-from and ledger state
into an allow/deny verdict for one inbound message:

- disabled  -> deny silently
- open      -> allow
- allowlist -> allow if the sender is allow-listed, else deny silently
- pairing   -> allow if allow-listed, else issue (or repeat) a pairing code
               and deny with instructions, or deny with a queue-full notice

Storage faults under allowlist/pairing deny access; they never grant it.
"""

from typing import TYPE_CHECKING, Mapping

from loguru import logger

from lainclaw.bus.events import InboundMessage
from lainclaw.pairing.allow_from import AllowFromRegistry
from lainclaw.pairing.errors import PairingError, PairingValidationError
from lainclaw.pairing.ledger import PairingLedger
from lainclaw.pairing.messages import build_pairing_queue_full_reply, build_pairing_reply
from lainclaw.pairing.state import normalize_account_id, normalize_and_dedup, safe_channel_key
from lainclaw.pairing.types import (
    PAIRING_POLICIES,
    AccessDecision,
    AccessRequest,
    PairingPolicy,
)

if TYPE_CHECKING:
    from lainclaw.config.schema import PairingConfig

WILDCARD = "*"


def resolve_policy(raw: str | None) -> PairingPolicy:
    """Normalize a configured policy name; unknown values fall back to open."""
    policy = (raw or "open").strip().lower()
    return policy if policy in PAIRING_POLICIES else "open"  # type: ignore[return-value]


class AccessPolicyEngine:
    """
    Stateless admission control for inbound messages.

    Holds no state of its own; every evaluation reads the registry and, under
    the pairing policy, upserts into the ledger. No store lock is held
    outside those single calls.
    """

    def __init__(
        self,
        ledger: PairingLedger,
        registry: AllowFromRegistry,
        channels: Mapping[str, "PairingConfig"] | None = None,
    ):
        """
        Args:
            ledger: Pending pairing requests.
            registry: Approved senders.
            channels: Channel name -> pairing settings, used by evaluate().
        """
        self.ledger = ledger
        self.registry = registry
        self.channels = dict(channels or {})

    async def evaluate(self, inbound: InboundMessage) -> AccessDecision:
        """Judge an inbound message with the settings configured for its channel."""
        settings = self.channels.get(inbound.channel.strip().lower())
        if settings is None:
            return AccessDecision(allowed=True, reason="no-access-config")

        meta = {}
        for key in ("username", "name"):
            value = inbound.meta.get(key)
            if isinstance(value, str) and value.strip():
                meta[key] = value

        return await self.decide(AccessRequest(
            channel=inbound.channel,
            policy=resolve_policy(settings.policy),
            sender_id=inbound.actor_id,
            account_id=inbound.account_id,
            static_allow_from=tuple(settings.allow_from),
            limits=settings.limits(),
            meta=meta,
        ))

    async def decide(self, request: AccessRequest) -> AccessDecision:
        """Judge one sender under an explicit policy."""
        channel = safe_channel_key(request.channel)
        policy = resolve_policy(request.policy)

        if policy == "disabled":
            logger.debug(f"Denied {request.sender_id} on {channel} (channel disabled)")
            return AccessDecision(allowed=False, reason="disabled")

        if policy == "open":
            return AccessDecision(allowed=True, reason="open")

        sender = (request.sender_id or "").strip().lower()
        if not sender:
            logger.warning(f"Denied message without sender id on {channel} ({policy} mode)")
            return AccessDecision(allowed=False, reason="missing-sender")

        account_id = normalize_account_id(request.account_id) or None

        try:
            stored = await self.registry.read(channel, account_id)
        except PairingValidationError:
            raise
        except (PairingError, OSError) as e:
            logger.error(f"Allow-from read failed on {channel}, denying {sender}: {e}")
            return AccessDecision(allowed=False, reason="storage-error")

        allowed = set(normalize_and_dedup(request.static_allow_from)) | set(stored)
        if WILDCARD in allowed or sender in allowed:
            return AccessDecision(allowed=True, reason="allow-listed")

        if policy == "allowlist":
            logger.debug(f"Blocked unauthorized sender {sender} on {channel} (allowlist mode)")
            return AccessDecision(allowed=False, reason="not-allow-listed")

        try:
            result = await self.ledger.upsert(
                channel,
                sender,
                account_id=account_id,
                meta=request.meta,
                limits=request.limits,
            )
        except PairingValidationError:
            raise
        except (PairingError, OSError) as e:
            logger.error(f"Pairing upsert failed on {channel}, denying {sender}: {e}")
            return AccessDecision(allowed=False, reason="storage-error")

        if not result.code:
            return AccessDecision(
                allowed=False,
                reply_text=build_pairing_queue_full_reply(),
                reason="pairing-queue-full",
            )

        return AccessDecision(
            allowed=False,
            reply_text=build_pairing_reply(
                channel=channel,
                id_line=f"{channel}: {request.sender_id.strip()}",
                code=result.code,
                account_id=account_id,
            ),
            reason="pairing-created" if result.created else "pairing-pending",
        )
