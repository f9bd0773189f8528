"""
AstroPhoto Space Weather Service

NOAA SWPC planetary K-index and active solar region feeds.
"""

from .noaa import (
    KP_ACTIVITY_LEVELS,
    fetch_kp_index,
    fetch_sunspots,
    kp_activity_label,
    parse_kp_index,
    parse_sunspots,
)

__all__ = [
    "KP_ACTIVITY_LEVELS",
    "fetch_kp_index",
    "fetch_sunspots",
    "kp_activity_label",
    "parse_kp_index",
    "parse_sunspots",
]
