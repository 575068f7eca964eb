"""Error kinds raised by the preferences subsystem."""

from __future__ import annotations


class PortalError(Exception):
    """Base class for failures surfaced by the preferences subsystem."""


class StorageError(PortalError):
    """A persistence gateway read or write failed."""


class InitializationError(PortalError):
    """The per-session preferences manager could not be constructed."""


class TransitionError(PortalError):
    """A profile/preferences transition was aborted; prior state is intact."""


__all__ = [
    "InitializationError",
    "PortalError",
    "StorageError",
    "TransitionError",
]
