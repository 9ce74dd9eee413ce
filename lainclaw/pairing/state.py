"""
Pairing state document.

All pairing data lives in the `pairing` section of the gateway state file:

    {
      "version": 1,
      "pairing": {
        "version": 1,
        "channels": {
          "feishu": {
            "requests": [...],
            "allowFrom": ["ou_abc"],
            "accountAllowFrom": {"bot-a": ["ou_def"]}
          }
        }
      }
    }

Other top-level keys are preserved untouched. Anything malformed degrades
to an empty default instead of raising.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

from lainclaw.pairing.backend import JsonFileBackend
from lainclaw.pairing.errors import PairingValidationError
from lainclaw.pairing.types import PairingRequest

CURRENT_VERSION = 1

R = TypeVar("R")

_UNSAFE_CHANNEL_CHARS = re.compile(r"[^a-z0-9._-]")


def default_document() -> dict[str, Any]:
    return {
        "version": CURRENT_VERSION,
        "pairing": {"version": CURRENT_VERSION, "channels": {}},
    }


def safe_channel_key(channel: str) -> str:
    """Lowercase and sanitize a channel name to [a-z0-9._-]."""
    raw = str(channel if channel is not None else "").strip().lower()
    if not raw:
        raise PairingValidationError("invalid pairing channel")
    safe = _UNSAFE_CHANNEL_CHARS.sub("_", raw).replace("..", "_")
    if not safe.strip("._"):
        raise PairingValidationError(f"invalid pairing channel: {channel!r}")
    return safe


def normalize_account_id(account_id: str | None) -> str:
    if not isinstance(account_id, str):
        return ""
    return account_id.strip().lower()


def normalize_allow_from_entry(raw: Any) -> str:
    if raw is None or isinstance(raw, (dict, list)):
        return ""
    return str(raw).strip().lower()


def normalize_and_dedup(entries: Iterable[Any]) -> list[str]:
    """Normalize allow-from entries (trim + lowercase), dropping empties and duplicates."""
    seen: set[str] = set()
    out: list[str] = []
    for entry in entries:
        normalized = normalize_allow_from_entry(entry)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        out.append(normalized)
    return out


def _text(raw: Any) -> str:
    return raw.strip() if isinstance(raw, str) else ""


def normalize_meta(raw: Any) -> dict[str, str]:
    """Keep string-valued meta entries with non-empty trimmed values."""
    if not isinstance(raw, dict):
        return {}
    meta = {}
    for key, value in raw.items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        value = _text(value)
        if value:
            meta[str(key)] = value
    return meta


def normalize_request_list(raw: Any) -> list[PairingRequest]:
    """Parse stored requests, dropping records without id, code or timestamps."""
    candidate = raw.get("requests") if isinstance(raw, dict) else raw
    if not isinstance(candidate, list):
        return []

    requests = []
    for item in candidate:
        if not isinstance(item, dict):
            continue
        id_ = _text(item.get("id"))
        code = _text(item.get("code"))
        created_at = _text(item.get("createdAt"))
        last_seen_at = _text(item.get("lastSeenAt"))
        if not (id_ and code and created_at and last_seen_at):
            continue
        requests.append(PairingRequest(
            id=id_,
            code=code,
            created_at=created_at,
            last_seen_at=last_seen_at,
            meta=normalize_meta(item.get("meta")),
        ))
    return requests


@dataclass
class ChannelState:
    """Pending requests and allow-lists of one channel scope."""
    requests: list[PairingRequest] = field(default_factory=list)
    allow_from: list[str] = field(default_factory=list)
    account_allow_from: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> "ChannelState":
        if not isinstance(raw, dict):
            return cls()
        allow_from = raw.get("allowFrom")
        accounts = raw.get("accountAllowFrom")
        return cls(
            requests=normalize_request_list(raw.get("requests")),
            allow_from=normalize_and_dedup(allow_from if isinstance(allow_from, list) else []),
            account_allow_from=_normalize_account_map(accounts),
        )

    def is_empty(self) -> bool:
        return not (self.requests or self.allow_from or self.account_allow_from)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"requests": [r.to_dict() for r in self.requests]}
        allow_from = normalize_and_dedup(self.allow_from)
        if allow_from:
            data["allowFrom"] = allow_from
        accounts = _normalize_account_map(self.account_allow_from)
        if accounts:
            data["accountAllowFrom"] = accounts
        return data


def _normalize_account_map(raw: Any) -> dict[str, list[str]]:
    if not isinstance(raw, dict):
        return {}
    accounts: dict[str, list[str]] = {}
    for account_id, entries in raw.items():
        key = normalize_account_id(account_id)
        if not key:
            continue
        normalized = normalize_and_dedup(entries if isinstance(entries, list) else [])
        if normalized:
            accounts[key] = normalize_and_dedup(accounts.get(key, []) + normalized)
    return accounts


def normalize_pairing_section(raw: Any) -> dict[str, Any]:
    """Normalize the `pairing` section; an unknown version yields an empty section."""
    if not isinstance(raw, dict) or raw.get("version") != CURRENT_VERSION:
        return {"version": CURRENT_VERSION, "channels": {}}

    channels_raw = raw.get("channels")
    channels: dict[str, Any] = {}
    if isinstance(channels_raw, dict):
        for key, scope in channels_raw.items():
            state = ChannelState.from_raw(scope)
            if not state.is_empty():
                channels[str(key)] = state.to_dict()
    return {"version": CURRENT_VERSION, "channels": channels}


def normalize_document(raw: Any) -> dict[str, Any]:
    """Normalize the whole state document, preserving unrelated top-level keys."""
    if not isinstance(raw, dict):
        return default_document()
    document = dict(raw)
    version = raw.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        document["version"] = CURRENT_VERSION
    document["pairing"] = normalize_pairing_section(raw.get("pairing"))
    return document


def get_channel_state(document: dict[str, Any], channel: str) -> ChannelState:
    pairing = normalize_pairing_section(document.get("pairing"))
    return ChannelState.from_raw(pairing["channels"].get(safe_channel_key(channel)))


def set_channel_state(document: dict[str, Any], channel: str, state: ChannelState) -> dict[str, Any]:
    """Return a copy of `document` with the channel scope replaced (or removed when empty)."""
    document = normalize_document(document)
    channels = dict(document["pairing"]["channels"])
    key = safe_channel_key(channel)
    if state.is_empty():
        channels.pop(key, None)
    else:
        channels[key] = state.to_dict()
    document["pairing"] = {"version": CURRENT_VERSION, "channels": channels}
    return document


class PairingStateStore:
    """Channel-scoped access to the pairing section of one state file.

    Every operation runs under the backend's lock for the file, reads the
    freshest document from disk, and writes it back only when it changed.
    """

    def __init__(self, path: Path | str, backend: JsonFileBackend | None = None):
        self.path = Path(path).expanduser()
        self.backend = backend or JsonFileBackend()

    async def read_channel(self, channel: str) -> ChannelState:
        """Read one channel scope (under the lock, never raises on bad data)."""
        safe_channel_key(channel)

        async def _read() -> ChannelState:
            result = await self.backend.read(self.path, default_document())
            return get_channel_state(normalize_document(result.value), channel)

        return await self.backend.with_lock(self.path, _read)

    async def update_channel(
        self,
        channel: str,
        mutate: Callable[[ChannelState], tuple[bool, R]],
    ) -> R:
        """Locked read-modify-write of one channel scope.

        `mutate` edits the state in place and returns `(changed, result)`.
        """
        safe_channel_key(channel)

        def _apply(raw: dict[str, Any]) -> tuple[dict[str, Any] | None, R]:
            document = normalize_document(raw)
            state = get_channel_state(document, channel)
            changed, result = mutate(state)
            if not changed:
                return None, result
            return set_channel_state(document, channel, state), result

        return await self.backend.update(self.path, default_document(), _apply)
