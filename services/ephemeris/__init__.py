"""
AstroPhoto Ephemeris Service

Skyfield-backed implementation of the astrophoto event source.
"""

from .skyfield_service import SkyfieldEventSource

__all__ = ["SkyfieldEventSource"]
