"""Error types for the pairing subsystem."""


class PairingError(Exception):
    """Base class for pairing errors."""


class PairingValidationError(PairingError, ValueError):
    """Raised for an empty or malformed sender id or channel key."""


class PairingStorageError(PairingError, OSError):
    """Raised when the pairing state file cannot be written."""


class PairingCodeExhaustedError(PairingError, RuntimeError):
    """Raised when no unused pairing code could be generated."""
