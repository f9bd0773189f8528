"""
AstroPhoto Geocoding Service

Free-text place search for choosing an observing location.
"""

from .nominatim import parse_search_results, search_location, short_name

__all__ = ["parse_search_results", "search_location", "short_name"]
