from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from fittrack.core.config import settings

# SQLAlchemy Base class for models to inherit
Base = declarative_base()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # one shared connection, otherwise every connection gets its own empty in-memory db
        if ":memory:" in url or url.rstrip("/").endswith("sqlite"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}  # helps avoid stale connections


# Create SQLAlchemy engine (Postgres in deployment, SQLite in tests)
engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))

# Factory that creates DB sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependency we will use in FastAPI routes
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
