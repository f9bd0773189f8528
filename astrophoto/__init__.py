"""
AstroPhoto - astronomical event calculations for photographers.

Daily sun and moon times, moon phase, month calendar and Polaris position,
recomputed in the background as the observing location changes.
"""

from astrophoto.constants import ASTROPHOTO_VERSION

__version__ = ASTROPHOTO_VERSION
