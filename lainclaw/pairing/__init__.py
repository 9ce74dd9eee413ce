"""Pairing and access control for chat channels."""

from lainclaw.pairing.allow_from import AllowFromRegistry
from lainclaw.pairing.backend import JsonFileBackend, ReadResult
from lainclaw.pairing.codes import PAIRING_CODE_ALPHABET, PAIRING_CODE_LENGTH, generate_pairing_code
from lainclaw.pairing.errors import (
    PairingCodeExhaustedError,
    PairingError,
    PairingStorageError,
    PairingValidationError,
)
from lainclaw.pairing.ledger import PairingLedger
from lainclaw.pairing.policy import AccessPolicyEngine, resolve_policy
from lainclaw.pairing.state import PairingStateStore, safe_channel_key
from lainclaw.pairing.types import (
    AccessDecision,
    AccessRequest,
    AllowFromUpdate,
    ApprovalResult,
    PairingPolicy,
    PairingRequest,
    PendingLimits,
    UpsertResult,
)

__all__ = [
    "AccessDecision",
    "AccessPolicyEngine",
    "AccessRequest",
    "AllowFromRegistry",
    "AllowFromUpdate",
    "ApprovalResult",
    "JsonFileBackend",
    "PAIRING_CODE_ALPHABET",
    "PAIRING_CODE_LENGTH",
    "PairingCodeExhaustedError",
    "PairingError",
    "PairingLedger",
    "PairingPolicy",
    "PairingRequest",
    "PairingStateStore",
    "PairingStorageError",
    "PairingValidationError",
    "PendingLimits",
    "ReadResult",
    "UpsertResult",
    "generate_pairing_code",
    "resolve_policy",
    "safe_channel_key",
]
