"""Per-user aggregates over saved activities: totals, weekly chart, achievements."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from fittrack.core.config import settings
from fittrack.core.constants import WEEK_DAY_LABELS
from fittrack.core.time_utils import format_pace, to_local_datetime
from fittrack.models.activity import Activity
from fittrack.tracking.pace import pace_sec_per_km
from fittrack.tracking.session import ActivityType


def _local_date(dt: datetime, tz_name: str) -> date:
    return to_local_datetime(dt, tz_name).date()


def type_totals(db: Session, user_id: int) -> dict[str, dict]:
    """Distance/duration/average pace per activity type."""
    rows = (
        db.query(Activity.type, func.sum(Activity.distance_km), func.sum(Activity.duration_sec))
        .filter(Activity.user_id == user_id)
        .group_by(Activity.type)
        .all()
    )
    out = {t.value: {"distance_km": 0.0, "duration_sec": 0, "avg_pace_sec_per_km": 0.0} for t in ActivityType}
    for t, dist, dur in rows:
        dist = float(dist or 0.0)
        dur = int(dur or 0)
        out[str(t)] = {
            "distance_km": dist,
            "duration_sec": dur,
            "avg_pace_sec_per_km": pace_sec_per_km(dist, dur),
        }
    return out


def weekly_activity(
    activities: Iterable[Activity],
    today: Optional[date] = None,
    tz_name: Optional[str] = None,
) -> list[dict]:
    """Per-day running/walking km for the current week (Sunday .. today)."""
    tz_name = tz_name or settings.timezone
    today = today or to_local_datetime(datetime.now().astimezone(), tz_name).date()
    # Sunday = start of week; date.weekday() has Monday = 0
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)

    days = [{"day": label, "running": 0.0, "walking": 0.0} for label in WEEK_DAY_LABELS]
    for a in activities:
        d = _local_date(a.date, tz_name)
        if week_start <= d <= today:
            idx = (d.weekday() + 1) % 7
            key = "running" if a.type == ActivityType.running.value else "walking"
            days[idx][key] += float(a.distance_km)
    return days


def generate_achievements(activities: list[Activity], tz_name: Optional[str] = None) -> list[dict]:
    """Longest run, fastest running pace and most active day."""
    tz_name = tz_name or settings.timezone
    achievements: list[dict] = []
    if not activities:
        return achievements

    runs = [a for a in activities if a.type == ActivityType.running.value]

    if runs:
        longest = max(runs, key=lambda a: a.distance_km)
        achievements.append({
            "type": "longest_run",
            "title": "Longest Run",
            "description": f"{longest.distance_km:.1f}km on {_local_date(longest.date, tz_name).isoformat()}",
            "date": to_local_datetime(longest.date, tz_name).isoformat(),
            "icon": "trophy",
        })

    paced = [a for a in runs if a.average_pace_sec_per_km and a.average_pace_sec_per_km > 0]
    if paced:
        fastest = min(paced, key=lambda a: a.average_pace_sec_per_km)
        achievements.append({
            "type": "fastest_pace",
            "title": "Fastest Pace",
            "description": (
                f"{format_pace(fastest.average_pace_sec_per_km)} on "
                f"{_local_date(fastest.date, tz_name).isoformat()}"
            ),
            "date": to_local_datetime(fastest.date, tz_name).isoformat(),
            "icon": "bolt",
        })

    by_day: dict[date, float] = {}
    for a in activities:
        d = _local_date(a.date, tz_name)
        by_day[d] = by_day.get(d, 0.0) + float(a.distance_km)
    best_day, best_km = None, 0.0
    for d, km in by_day.items():
        if km > best_km:
            best_day, best_km = d, km
    if best_day is not None:
        achievements.append({
            "type": "most_active_day",
            "title": "Most Active Day",
            "description": f"{best_day.strftime('%A')}, {best_day.isoformat()}",
            "date": best_day.isoformat(),
            "icon": "calendar",
        })

    return achievements


def user_stats(db: Session, user_id: int, today: Optional[date] = None) -> dict:
    activities = (
        db.query(Activity)
        .filter(Activity.user_id == user_id)
        .order_by(Activity.date.desc())
        .all()
    )
    per_type = type_totals(db, user_id)
    return {
        "total_activities": len(activities),
        "total_distance_km": sum(v["distance_km"] for v in per_type.values()),
        "total_duration_sec": sum(v["duration_sec"] for v in per_type.values()),
        "running": per_type[ActivityType.running.value],
        "walking": per_type[ActivityType.walking.value],
        "weekly_activity": weekly_activity(activities, today=today),
        "achievements": generate_achievements(activities),
    }
