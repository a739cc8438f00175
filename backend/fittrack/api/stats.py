from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fittrack.api.activities import current_user_id
from fittrack.db import get_db
from fittrack.schemas.activity import StatsRead
from fittrack.services.stats import user_stats

router = APIRouter(tags=["stats"])


@router.get("/stats", response_model=StatsRead)
def get_stats(
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Totals, per-type pace, this week's chart and achievements for the caller."""
    return user_stats(db, user_id)
