from datetime import datetime, timezone
from typing import Optional

import gpxpy
import gpxpy.gpx
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from fittrack.core.time_utils import format_distance, format_duration, format_pace
from fittrack.db import get_db
from fittrack.models.activity import Activity
from fittrack.schemas.activity import ActivityCreate, ActivityRead, TrackRead
from fittrack.tracking.geo import GeoPoint, route_bounds, route_geojson
from fittrack.tracking.pace import pace_sec_per_km
from fittrack.tracking.session import ActivityType
from fittrack.tracking.validation import is_session_savable

router = APIRouter(prefix="/activities", tags=["activities"])


def current_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    """Caller identity. Authentication happens in front of this service."""
    if x_user_id is None:
        raise HTTPException(status_code=400, detail="Missing X-User-Id header")
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header")


def _route_points(activity: Activity) -> list[GeoPoint]:
    return [GeoPoint.from_dict(p) for p in activity.route or []]


def _to_read(activity: Activity) -> ActivityRead:
    pace = activity.average_pace_sec_per_km or 0.0
    return ActivityRead(
        id=activity.id,
        user_id=activity.user_id,
        type=activity.type,
        title=activity.title,
        distance_km=float(activity.distance_km),
        duration_sec=activity.duration_sec,
        date=activity.date,
        route=activity.route or [],
        average_pace_sec_per_km=activity.average_pace_sec_per_km,
        distance=format_distance(float(activity.distance_km)),
        duration=format_duration(activity.duration_sec),
        pace=format_pace(pace),
    )


def _get_owned(db: Session, activity_id: int, user_id: int) -> Activity:
    activity = db.query(Activity).filter(Activity.id == activity_id).first()
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found")
    if activity.user_id != user_id:
        raise HTTPException(status_code=403, detail="Unauthorized access to activity")
    return activity


@router.post("/", response_model=ActivityRead, status_code=201)
def create_activity(
    payload: ActivityCreate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    # Same gate the recorder applies before saving
    if not is_session_savable(payload):
        raise HTTPException(status_code=422, detail="Not enough tracking data to save the activity.")

    when = payload.date or datetime.now(timezone.utc)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    pace = payload.average_pace_sec_per_km
    if pace is None:
        pace = pace_sec_per_km(payload.distance_km, payload.duration_sec)

    activity = Activity(
        user_id=user_id,
        type=payload.type.value,
        title=payload.title,
        distance_km=payload.distance_km,
        duration_sec=payload.duration_sec,
        date=when.astimezone(timezone.utc),
        route=[p.model_dump() for p in payload.route],
        average_pace_sec_per_km=pace,
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return _to_read(activity)


@router.get("/", response_model=list[ActivityRead])
def list_activities(
    type: Optional[ActivityType] = Query(None),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """
    List the caller's activities, most recent first.

      GET /activities?type=running
    """
    query = db.query(Activity).filter(Activity.user_id == user_id)
    if type is not None:
        query = query.filter(Activity.type == type.value)
    return [_to_read(a) for a in query.order_by(Activity.date.desc(), Activity.id.desc()).all()]


@router.get("/{activity_id}", response_model=ActivityRead)
def get_activity(
    activity_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    return _to_read(_get_owned(db, activity_id, user_id))


@router.get("/{activity_id}/track", response_model=TrackRead)
def get_activity_track(
    activity_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    points = _route_points(_get_owned(db, activity_id, user_id))
    return TrackRead(
        geojson=route_geojson(points),
        bounds=route_bounds(points),
        points_count=len(points),
    )


@router.get("/{activity_id}/gpx")
def export_activity_gpx(
    activity_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Route as a GPX 1.1 document with one track and one segment."""
    activity = _get_owned(db, activity_id, user_id)

    gpx = gpxpy.gpx.GPX()
    track = gpxpy.gpx.GPXTrack(name=activity.title)
    track.type = activity.type
    gpx.tracks.append(track)
    segment = gpxpy.gpx.GPXTrackSegment()
    track.segments.append(segment)
    for p in _route_points(activity):
        segment.points.append(
            gpxpy.gpx.GPXTrackPoint(
                latitude=p.lat,
                longitude=p.lng,
                time=datetime.fromtimestamp(p.timestamp_ms / 1000.0, tz=timezone.utc),
            )
        )

    filename = f"activity-{activity.id}.gpx"
    return Response(
        content=gpx.to_xml(),
        media_type="application/gpx+xml",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
