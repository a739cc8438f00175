from sqlalchemy import Column, Integer, String, DateTime, Float, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from fittrack.db import Base


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)

    # running | walking
    type = Column(String(20), nullable=False)
    title = Column(String, nullable=False)

    distance_km = Column(Float, nullable=False)
    duration_sec = Column(Integer, nullable=False)

    # When the activity took place (client supplied, defaults to insert time)
    date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # [{lat, lng, timestamp_ms}, ...] in recording order
    route = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)

    # Stored once at save time; records are never updated afterwards
    average_pace_sec_per_km = Column(Float, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
