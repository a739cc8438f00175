"""Shared application constants.

Centralizes repeat values used across tracking and the activity store so we
can document and adjust them in one place.
"""

# Mean Earth radius used by the Haversine distance (km)
EARTH_RADIUS_KM = 6371.0

# Valid coordinate ranges (degrees)
LAT_MIN, LAT_MAX = -90.0, 90.0
LNG_MIN, LNG_MAX = -180.0, 180.0

# Minimum number of route points for a session to be worth saving
MIN_SAVABLE_POINTS = 2

# Days of the week as shown on the weekly chart, Sunday first
WEEK_DAY_LABELS = ["S", "M", "T", "W", "T", "F", "S"]

# Header the activity store reads the caller's user id from
USER_ID_HEADER = "X-User-Id"
