import time


def now_ms() -> int:
    """Current wall-clock time as Unix epoch milliseconds."""
    return int(time.time() * 1000)


def format_duration(total_seconds: int, include_hours: bool = False) -> str:
    """
    Format a duration for the live overlay: 'M:SS', or 'H:MM:SS' once past an hour.
    Example: 305 -> '5:05', 3725 -> '1:02:05'
    """
    total_seconds = int(total_seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    if include_hours or hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_distance(distance_km: float, include_unit: bool = True) -> str:
    """Format kilometers with one decimal. Example: 5.27 -> '5.3 km'"""
    text = f"{distance_km:.1f}"
    return f"{text} km" if include_unit else text


def format_pace(sec_per_km: float) -> str:
    """
    Format pace as M'SS"/km.
    Example: 330 -> 5'30"/km. Returns '-' when there is no pace yet.
    """
    if sec_per_km <= 0:
        return "-"

    minutes = int(sec_per_km // 60)
    seconds = int(sec_per_km % 60)
    return f"{minutes}'{seconds:02d}\"/km"


def to_local_datetime(dt, tz_name: str | None = None):
    """Convert a datetime from source tz (assume UTC if naive) to local or given tz.

    - If `tz_name` is 'local' or None: use system local timezone.
    - If `tz_name` is IANA tz name (e.g., 'Asia/Tokyo'): use that.
    - If `dt` has no tzinfo, assume UTC.
    """
    from datetime import timezone
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if tz_name and tz_name != "local":
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            return dt.astimezone(ZoneInfo(tz_name))
        except ZoneInfoNotFoundError:
            return dt.astimezone()
    return dt.astimezone()
