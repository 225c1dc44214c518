"""Engine and session factory bound to ``Settings.database_url``."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from replenishment.core.config import get_settings
from replenishment.db.models import Base

engine = create_engine(get_settings().database_url, pool_pre_ping=True)

# Results are read after the session closes, so attributes must not expire
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind or engine)
