"""
AstroPhoto Services

External data sources behind the astrophoto core: ephemeris computation,
NOAA space weather and place-name geocoding.
"""
