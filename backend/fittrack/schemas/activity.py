from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fittrack.tracking.session import ActivityType


class GeoPointSchema(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    timestamp_ms: int


class ActivityCreate(BaseModel):
    """Payload posted by the recorder when a finished session is saved."""

    type: ActivityType = ActivityType.running
    title: str
    distance_km: float = Field(ge=0)
    duration_sec: int = Field(ge=0)
    route: list[GeoPointSchema]
    date: Optional[datetime] = None
    # computed from distance/duration when omitted
    average_pace_sec_per_km: Optional[float] = Field(default=None, ge=0)

    model_config = ConfigDict(extra="ignore")

    @field_validator("title")
    @classmethod
    def _title_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please provide a title")
        return v


class ActivityRead(BaseModel):
    """Schema returned to the client when reading an activity."""

    id: int
    user_id: int
    type: ActivityType
    title: str
    distance_km: float
    duration_sec: int
    date: datetime
    route: list[GeoPointSchema]
    average_pace_sec_per_km: Optional[float] = None
    # display strings, e.g. "5.3 km", "27:30", 5'11"/km
    distance: str
    duration: str
    pace: str

    model_config = ConfigDict(from_attributes=True)


class TrackRead(BaseModel):
    geojson: Optional[dict] = None
    bounds: Optional[dict] = None
    points_count: int


class TypeStats(BaseModel):
    distance_km: float
    duration_sec: int
    avg_pace_sec_per_km: float


class Achievement(BaseModel):
    type: str
    title: str
    description: str
    date: str
    icon: str


class WeeklyActivityPoint(BaseModel):
    day: str
    running: float
    walking: float


class StatsRead(BaseModel):
    total_activities: int
    total_distance_km: float
    total_duration_sec: int
    running: TypeStats
    walking: TypeStats
    weekly_activity: list[WeeklyActivityPoint]
    achievements: list[Achievement]
