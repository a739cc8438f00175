def pace_sec_per_km(distance_km: float, duration_sec: float) -> float:
    """
    Pace in seconds per kilometer.
    Returns 0 while there is no distance yet ("no pace"), never inf or an error.
    Example: distance_km=5.0, duration_sec=1500 -> 300.0
    """
    if distance_km <= 0:
        return 0.0
    return duration_sec / distance_km
