"""Errors raised by the collection core."""


class CollectionError(RuntimeError):
    """Base class for collection failures surfaced to the operator."""


class ConfigError(CollectionError):
    """Raised when a configuration value is invalid."""


class NoActiveRunError(CollectionError):
    """Raised when a continuation finds no persisted collection state."""

    def __init__(self, message: str = "No active collection run; start a new run.") -> None:
        super().__init__(message)


class MissingCredentialError(CollectionError):
    """Raised when no Places API key is stored in any credential scope."""

    def __init__(self, message: str = "No Places API key is configured; run `golfscout set-key`.") -> None:
        super().__init__(message)
