"""Mission models — the aggregate root and its per-phase snapshots."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base

PHASE_ORDER = ("discovery", "scoring", "people", "ranking")


def _now():
    return datetime.now(timezone.utc)


class Mission(Base):
    """One end-to-end run of the pipeline for one profile."""

    __tablename__ = "missions"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(128), index=True)
    profile = Column(JSON, nullable=False)
    current_phase = Column(String(20), nullable=False, default=PHASE_ORDER[0])
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(UTCDateTime, default=_now)
    updated_at = Column(UTCDateTime, default=_now, onupdate=_now)

    snapshots = relationship(
        "PhaseSnapshot",
        back_populates="mission",
        cascade="all, delete-orphan",
    )


class PhaseSnapshot(Base):
    """Merge-written JSON document holding one phase's resumable state."""

    __tablename__ = "phase_snapshots"
    id = Column(Integer, primary_key=True)
    mission_id = Column(
        String(36), ForeignKey("missions.id", ondelete="CASCADE"), nullable=False
    )
    phase_id = Column(String(20), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=0)
    last_updated = Column(UTCDateTime, default=_now)
    completed_at = Column(UTCDateTime)

    mission = relationship("Mission", back_populates="snapshots")

    __table_args__ = (
        Index("ix_phase_snapshots_mission_phase", "mission_id", "phase_id", unique=True),
    )
