import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fittrack.api.activities import router as activities_router
from fittrack.api.stats import router as stats_router
from fittrack.db import Base, engine
from fittrack.models.activity import Activity  # noqa: F401  (import ensures table is registered)
from fittrack.core.config import settings


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="FitTrack activity store")

# Allow CORS for local frontend
origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create DB tables on startup
Base.metadata.create_all(bind=engine)

app.include_router(activities_router)
app.include_router(stats_router)


@app.get("/")
def root():
    return {"message": "FitTrack activity store is running"}
