"""
Exception taxonomy.

Only UnknownModeError and TransitionError ever reach orchestrator code;
everything else is recovered inside the component that raised it.
"""


class DreamscapeError(Exception):
    """Base class for all package errors."""


class ReasoningError(DreamscapeError):
    """The reasoning service could not produce a usable answer."""


class TransportError(ReasoningError):
    """Dispatch to the reasoning endpoint failed."""


class ResponseParseError(ReasoningError):
    """The reasoning response did not contain the expected JSON payload."""


class CacheQuotaExceeded(DreamscapeError):
    """The durable cache store refused a write because it is full."""


class UnknownModeError(DreamscapeError):
    """A mode name is not present in the catalog."""

    def __init__(self, name: str, available):
        self.name = name
        self.available = list(available)
        super().__init__(
            f"Unknown mode '{name}'. Available: {', '.join(self.available)}"
        )


class TransitionError(DreamscapeError):
    """A collaborator failed to apply a parameter change."""
