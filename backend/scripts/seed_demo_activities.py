from datetime import datetime, timedelta, timezone
import math
import random

from fittrack.db import Base, SessionLocal, engine
from fittrack.models.activity import Activity
from fittrack.tracking.geo import GeoPoint, route_distance_km
from fittrack.tracking.pace import pace_sec_per_km

DEMO_USER_ID = 1
# Imperial Palace loop start, Tokyo
START_LAT, START_LNG = 35.6852, 139.7528


def synthetic_route(start: datetime, distance_km: float, pace_s_per_km: float, step_m: float = 50.0):
    """Out-and-back zigzag route sampled every `step_m` meters at a steady pace."""
    points = []
    n = max(2, int(distance_km * 1000 / step_m))
    heading = random.uniform(0, 2 * math.pi)
    lat, lng = START_LAT, START_LNG
    for i in range(n + 1):
        ts = start + timedelta(seconds=i * step_m / 1000.0 * pace_s_per_km)
        points.append(GeoPoint(lat=lat, lng=lng, timestamp_ms=int(ts.timestamp() * 1000)))
        if i == n // 2:
            heading += math.pi  # turn around
        heading += random.uniform(-0.2, 0.2)
        lat += (step_m / 111_320.0) * math.cos(heading)
        lng += (step_m / (111_320.0 * math.cos(math.radians(lat)))) * math.sin(heading)
    return points


def clear_demo_activities(db) -> None:
    """Delete the demo user's activities so we can reseed cleanly."""
    db.query(Activity).filter(Activity.user_id == DEMO_USER_ID).delete()
    db.commit()


def seed_demo_activities(db, weeks: int = 4) -> None:
    """Insert a few weeks of demo runs (Tue/Thu/Sun) and walks (Sat)."""
    now = datetime.now(timezone.utc)
    start_day = now - timedelta(weeks=weeks)

    to_add = []
    for week in range(weeks + 1):
        week_start = start_day + timedelta(weeks=week)
        for offset, kind, title, dist_range, pace_range in [
            (1, "running", "Easy run", (4.0, 7.0), (330, 380)),
            (3, "running", "Tempo run", (6.0, 10.0), (270, 310)),
            (5, "walking", "Evening walk", (2.0, 5.0), (600, 720)),
            (6, "running", "Long run", (12.0, 21.0), (340, 400)),
        ]:
            when = (week_start + timedelta(days=offset)).replace(hour=7, minute=0, second=0, microsecond=0)
            if when > now:
                continue
            route = synthetic_route(when, random.uniform(*dist_range), random.uniform(*pace_range))
            distance_km = route_distance_km(route)
            duration_sec = int((route[-1].timestamp_ms - route[0].timestamp_ms) / 1000)
            to_add.append(
                Activity(
                    user_id=DEMO_USER_ID,
                    type=kind,
                    title=title,
                    distance_km=distance_km,
                    duration_sec=duration_sec,
                    date=when,
                    route=[p.to_dict() for p in route],
                    average_pace_sec_per_km=pace_sec_per_km(distance_km, duration_sec),
                )
            )

    if to_add:
        db.add_all(to_add)
        db.commit()

    print(f"Seeded {len(to_add)} demo activities")


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        clear_demo_activities(db)
        seed_demo_activities(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
