from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import settings

engine = create_engine(settings.database_url, pool_pre_ping=True, echo=settings.sql_echo)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


@event.listens_for(Base, "before_insert", propagate=True)
def _assign_identity_and_audit(mapper, connection, target) -> None:
    if getattr(target, "id", None) is None:
        target.id = uuid4()
    now = _now()
    target.created_at = now
    target.updated_at = now


@event.listens_for(Base, "before_update", propagate=True)
def _touch_updated_at(mapper, connection, target) -> None:
    target.updated_at = _now()
