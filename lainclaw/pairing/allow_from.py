"""Allow-from registry: permanently approved senders per channel."""

from typing import Callable

from loguru import logger

from lainclaw.pairing.state import (
    ChannelState,
    PairingStateStore,
    normalize_account_id,
    normalize_allow_from_entry,
    normalize_and_dedup,
)
from lainclaw.pairing.types import AllowFromUpdate


def scoped_allow_from(state: ChannelState, account_id: str = "") -> list[str]:
    """Entries stored in exactly one scope (account map or channel-global list)."""
    if account_id:
        return normalize_and_dedup(state.account_allow_from.get(account_id, []))
    return normalize_and_dedup(state.allow_from)


def merged_allow_from(state: ChannelState, account_id: str = "") -> list[str]:
    """Account-scoped entries plus the channel-global ones."""
    if not account_id:
        return scoped_allow_from(state)
    return normalize_and_dedup(scoped_allow_from(state, account_id) + state.allow_from)


def store_allow_from(state: ChannelState, entries: list[str], account_id: str = "") -> None:
    """Replace the entries of one scope in place, dropping the account key when empty."""
    entries = normalize_and_dedup(entries)
    if not account_id:
        state.allow_from = entries
        return
    if entries:
        state.account_allow_from[account_id] = entries
    else:
        state.account_allow_from.pop(account_id, None)


def add_to_state(state: ChannelState, entry: str, account_id: str = "") -> bool:
    """Add a normalized entry to one scope in place. Returns True if added."""
    normalized = normalize_allow_from_entry(entry)
    if not normalized:
        return False
    current = scoped_allow_from(state, account_id)
    if normalized in current:
        return False
    store_allow_from(state, current + [normalized], account_id)
    return True


class AllowFromRegistry:
    """
    Durable allow-list of approved senders.

    Each channel has a global list and an optional per-account overlay.
    Reads with an account scope return the union of both; writes touch
    only the requested scope.
    """

    def __init__(self, store: PairingStateStore):
        self.store = store

    async def read(self, channel: str, account_id: str | None = None) -> list[str]:
        """Read allowed senders for a channel (and account, if given)."""
        state = await self.store.read_channel(channel)
        return merged_allow_from(state, normalize_account_id(account_id))

    async def add_entry(self, channel: str, entry: str, account_id: str | None = None) -> AllowFromUpdate:
        """Add a sender. Idempotent and case-insensitive."""
        def _add(current: list[str], normalized: str) -> list[str] | None:
            return None if normalized in current else current + [normalized]

        update = await self._update(channel, entry, account_id, _add)
        if update.changed:
            logger.info(f"Added {normalize_allow_from_entry(entry)} to {channel} allow-from")
        return update

    async def remove_entry(self, channel: str, entry: str, account_id: str | None = None) -> AllowFromUpdate:
        """Remove a sender. No-op (changed=False) if not present."""
        def _remove(current: list[str], normalized: str) -> list[str] | None:
            remaining = [e for e in current if e != normalized]
            return None if len(remaining) == len(current) else remaining

        update = await self._update(channel, entry, account_id, _remove)
        if update.changed:
            logger.info(f"Removed {normalize_allow_from_entry(entry)} from {channel} allow-from")
        return update

    async def _update(
        self,
        channel: str,
        entry: str,
        account_id: str | None,
        apply: Callable[[list[str], str], list[str] | None],
    ) -> AllowFromUpdate:
        scope = normalize_account_id(account_id)
        normalized = normalize_allow_from_entry(entry)

        def _mutate(state: ChannelState) -> tuple[bool, AllowFromUpdate]:
            current = scoped_allow_from(state, scope)
            if not normalized:
                return False, AllowFromUpdate(changed=False, allow_from=current)
            updated = apply(current, normalized)
            if updated is None:
                return False, AllowFromUpdate(changed=False, allow_from=current)
            store_allow_from(state, updated, scope)
            return True, AllowFromUpdate(changed=True, allow_from=scoped_allow_from(state, scope))

        return await self.store.update_channel(channel, _mutate)
