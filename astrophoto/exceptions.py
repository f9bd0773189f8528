"""
AstroPhoto Exception Hierarchy

All errors raised by the astrophoto core derive from AstroError so callers
can catch the whole family at a stream boundary.

Cancellation is not an error: ComputationCancelled deliberately sits outside
this hierarchy so that ``except AstroError`` never swallows it.
"""

__all__ = [
    "AstroError",
    "ConfigurationError",
    "EphemerisError",
    "DataSourceError",
    "ComputationCancelled",
]


class AstroError(Exception):
    """Base class for astrophoto errors."""


class ConfigurationError(AstroError):
    """Configuration file missing, unreadable or invalid."""


class EphemerisError(AstroError):
    """The event source could not produce solar or lunar events."""


class DataSourceError(AstroError):
    """An external data source (space weather, geocoding) failed."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class ComputationCancelled(Exception):
    """Raised at a cooperative checkpoint when a computation was superseded."""
