"""
Pairing request ledger.

Pending approval requests per channel, with TTL expiry and a hard cap on
the number of pending senders. Once the cap is reached, new senders are
refused; already-pending senders are never evicted to make room for them.
"""

from datetime import datetime, timezone
from typing import Callable

from loguru import logger

from lainclaw.pairing.allow_from import add_to_state
from lainclaw.pairing.codes import generate_unique_code, normalize_pairing_code
from lainclaw.pairing.errors import PairingValidationError
from lainclaw.pairing.state import (
    ChannelState,
    PairingStateStore,
    normalize_account_id,
    normalize_allow_from_entry,
    normalize_meta,
)
from lainclaw.pairing.types import ApprovalResult, PairingRequest, PendingLimits, UpsertResult
from lainclaw.utils.helpers import parse_iso_ms, utc_now_iso

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(request: PairingRequest, now_ms: int, ttl_ms: int) -> bool:
    """A request without a parseable creation time counts as expired."""
    created_ms = parse_iso_ms(request.created_at)
    if not created_ms:
        return True
    return now_ms - created_ms > ttl_ms


def prune_expired(
    requests: list[PairingRequest], now_ms: int, ttl_ms: int
) -> tuple[list[PairingRequest], bool]:
    """Remove expired requests, return (kept, was_modified)."""
    kept = [r for r in requests if not is_expired(r, now_ms, ttl_ms)]
    return kept, len(kept) != len(requests)


def prune_excess(requests: list[PairingRequest], max_pending: int) -> tuple[list[PairingRequest], bool]:
    """Keep only the `max_pending` most recently seen requests.

    Safety net for state that is already over capacity (e.g. after the cap
    was lowered); normal admission never gets here.
    """
    if max_pending <= 0 or len(requests) <= max_pending:
        return requests, False
    ordered = sorted(requests, key=lambda r: parse_iso_ms(r.last_seen_at))
    return ordered[-max_pending:], True


def request_matches_account(request: PairingRequest, account_id: str) -> bool:
    """Empty account scope matches every request."""
    if not account_id:
        return True
    return request.account_id == account_id


class PairingLedger:
    """
    Pending pairing requests, persisted in the gateway state file.

    Every operation is a single locked read-modify-write of the channel
    scope, so concurrent upserts for one channel are fully serialized.
    """

    def __init__(self, store: PairingStateStore, clock: Clock | None = None):
        self.store = store
        self._clock = clock or _utc_now

    async def upsert(
        self,
        channel: str,
        sender_id: str,
        account_id: str | None = None,
        meta: dict[str, str | None] | None = None,
        limits: PendingLimits | None = None,
    ) -> UpsertResult:
        """
        Create or refresh the pending request of a sender.

        Returns UpsertResult(code, created). A repeat sender gets its existing
        code back with created=False. An empty code means the queue is full.
        """
        sender = sender_id.strip() if isinstance(sender_id, str) else ""
        if not sender:
            raise PairingValidationError("invalid pairing sender id")

        limits = limits or PendingLimits()
        scope = normalize_account_id(account_id)
        request_meta = normalize_meta(meta)
        if scope:
            request_meta["accountId"] = scope

        now = self._clock()
        now_iso = utc_now_iso(now)
        now_ms = int(now.timestamp() * 1000)

        def _mutate(state: ChannelState) -> tuple[bool, UpsertResult]:
            requests, expired_removed = prune_expired(state.requests, now_ms, limits.ttl_ms)
            existing_codes = {normalize_pairing_code(r.code) for r in requests if r.code}

            for i, r in enumerate(requests):
                if r.id != sender or not request_matches_account(r, scope):
                    continue
                code = normalize_pairing_code(r.code) or generate_unique_code(existing_codes)
                requests[i] = PairingRequest(
                    id=sender,
                    code=code,
                    created_at=r.created_at or now_iso,
                    last_seen_at=now_iso,
                    meta={**r.meta, **request_meta},
                )
                state.requests, _ = prune_excess(requests, limits.max_pending)
                return True, UpsertResult(code=code, created=False)

            requests, excess_removed = prune_excess(requests, limits.max_pending)
            if len(requests) >= limits.max_pending:
                logger.warning(f"Max pending pairing requests reached for {channel}")
                state.requests = requests
                return expired_removed or excess_removed, UpsertResult(code="", created=False)

            code = generate_unique_code(existing_codes)
            requests.append(PairingRequest(
                id=sender,
                code=code,
                created_at=now_iso,
                last_seen_at=now_iso,
                meta=request_meta,
            ))
            state.requests = requests
            return True, UpsertResult(code=code, created=True)

        result = await self.store.update_channel(channel, _mutate)
        if result.created:
            logger.info(f"Pairing request created on {channel} for {sender}")
        return result

    async def list_requests(
        self,
        channel: str,
        account_id: str | None = None,
        limits: PendingLimits | None = None,
    ) -> list[PairingRequest]:
        """List pending requests, oldest first. Prunes expired entries as a side effect."""
        limits = limits or PendingLimits()
        scope = normalize_account_id(account_id)
        now_ms = int(self._clock().timestamp() * 1000)

        def _mutate(state: ChannelState) -> tuple[bool, list[PairingRequest]]:
            requests, expired_removed = prune_expired(state.requests, now_ms, limits.ttl_ms)
            requests, excess_removed = prune_excess(requests, limits.max_pending)
            state.requests = requests
            return expired_removed or excess_removed, list(requests)

        requests = await self.store.update_channel(channel, _mutate)
        filtered = [r for r in requests if request_matches_account(r, scope)]
        return sorted(filtered, key=lambda r: r.created_at)

    async def approve(
        self,
        channel: str,
        code: str,
        account_id: str | None = None,
        limits: PendingLimits | None = None,
    ) -> ApprovalResult | None:
        """
        Approve a pairing code and add the sender to the allow-from registry.

        The sender is allowed in the given account scope, else in the account
        recorded on the request, else channel-wide. Returns None if no active
        request carries the code.
        """
        wanted = normalize_pairing_code(code)
        if not wanted:
            return None

        limits = limits or PendingLimits()
        scope = normalize_account_id(account_id)
        now_ms = int(self._clock().timestamp() * 1000)

        def _mutate(state: ChannelState) -> tuple[bool, ApprovalResult | None]:
            requests, expired_removed = prune_expired(state.requests, now_ms, limits.ttl_ms)
            requests, excess_removed = prune_excess(requests, limits.max_pending)
            pruned = expired_removed or excess_removed

            approved = None
            remaining = []
            for r in requests:
                if approved is None and normalize_pairing_code(r.code) == wanted and request_matches_account(r, scope):
                    approved = r
                else:
                    remaining.append(r)

            state.requests = remaining
            if approved is None:
                return pruned, None

            target_account = scope or normalize_account_id(approved.meta.get("accountId"))
            add_to_state(state, approved.id, target_account)
            return True, ApprovalResult(id=approved.id, entry=approved)

        result = await self.store.update_channel(channel, _mutate)
        if result:
            logger.info(
                f"Approved pairing on {channel} for {normalize_allow_from_entry(result.id)}"
            )
        return result
