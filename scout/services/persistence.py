"""Persistence Gateway — the only code that touches the mission store.

Phase snapshots are JSON documents keyed by (mission_id, phase_id) and
merge-written: nested mappings merge key by key, lists and scalars replace.
Every write bumps `version`; callers that pass `expected_version` get
optimistic concurrency, everyone else is assumed to be the single writer.

Snapshot writes are best-effort. A failed write is logged as a
PersistenceWriteFailure and reported by returning False; the caller keeps
going on its in-memory state.

Called by: services/phases/*, services/mission_orchestrator
Depends on: models.mission, database.SessionLocal
"""

import copy
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from ..database import SessionLocal
from ..exceptions import MissionNotFound, PersistenceWriteFailure
from ..models import Mission, PhaseSnapshot

log = logging.getLogger("scout.persistence")


def deep_merge(base: dict, partial: dict) -> dict:
    """Return a new dict with `partial` merged into `base`."""
    merged = copy.deepcopy(base) if base else {}
    for key, value in partial.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _snapshot_dict(row: PhaseSnapshot) -> dict:
    doc = dict(row.data or {})
    doc["version"] = row.version
    doc["last_updated"] = row.last_updated.isoformat() if row.last_updated else None
    doc["completed_at"] = row.completed_at.isoformat() if row.completed_at else None
    return doc


def _mission_dict(m: Mission) -> dict:
    return {
        "id": m.id,
        "user_id": m.user_id,
        "profile": dict(m.profile or {}),
        "current_phase": m.current_phase,
        "status": m.status,
        "created_at": m.created_at.isoformat() if m.created_at else None,
        "updated_at": m.updated_at.isoformat() if m.updated_at else None,
    }


class PersistenceGateway:
    def __init__(self, session_factory=None):
        self._session_factory = session_factory or SessionLocal

    # ── Missions ─────────────────────────────────────────────────────

    async def create_mission(self, profile: dict, user_id: str | None = None) -> dict:
        db = self._session_factory()
        try:
            mission = Mission(user_id=user_id, profile=profile)
            db.add(mission)
            db.commit()
            db.refresh(mission)
            log.info(f"Mission {mission.id} created for user {user_id or '-'}")
            return _mission_dict(mission)
        finally:
            db.close()

    async def load_mission(self, mission_id: str) -> dict:
        db = self._session_factory()
        try:
            mission = db.get(Mission, mission_id)
            if mission is None:
                raise MissionNotFound(f"Mission {mission_id} not found")
            return _mission_dict(mission)
        finally:
            db.close()

    async def update_mission(self, mission_id: str, **fields) -> bool:
        """Update current_phase / status. Non-fatal like snapshot writes."""
        db = self._session_factory()
        try:
            mission = db.get(Mission, mission_id)
            if mission is None:
                raise MissionNotFound(f"Mission {mission_id} not found")
            for key in ("current_phase", "status"):
                if key in fields:
                    setattr(mission, key, fields[key])
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            log.warning("Mission update failed for %s: %s", mission_id, e)
            return False
        finally:
            db.close()

    # ── Phase snapshots ──────────────────────────────────────────────

    async def save_phase_snapshot(
        self,
        mission_id: str,
        phase_id: str,
        partial: dict,
        expected_version: int | None = None,
    ) -> bool:
        """Merge `partial` into the (mission, phase) snapshot. Returns False on failure."""
        db = self._session_factory()
        try:
            self._write(db, mission_id, phase_id, partial, expected_version)
            return True
        except (PersistenceWriteFailure, SQLAlchemyError) as e:
            db.rollback()
            failure = e if isinstance(e, PersistenceWriteFailure) else PersistenceWriteFailure(str(e))
            log.warning(
                "Snapshot write failed for %s/%s (continuing in memory): %s",
                mission_id, phase_id, failure,
            )
            return False
        finally:
            db.close()

    def _write(self, db, mission_id, phase_id, partial, expected_version) -> None:
        row = (
            db.query(PhaseSnapshot)
            .filter(PhaseSnapshot.mission_id == mission_id, PhaseSnapshot.phase_id == phase_id)
            .first()
        )
        current_version = row.version if row else 0
        if expected_version is not None and expected_version != current_version:
            raise PersistenceWriteFailure(
                f"version conflict: expected {expected_version}, found {current_version}"
            )

        now = datetime.now(timezone.utc)
        body = {k: v for k, v in partial.items() if k not in ("completed_at", "version", "last_updated")}
        if row is None:
            row = PhaseSnapshot(mission_id=mission_id, phase_id=phase_id, data={}, version=0)
            db.add(row)

        # Reassign so the JSON column is flagged dirty
        row.data = deep_merge(row.data or {}, body)
        row.version = current_version + 1
        row.last_updated = now
        if partial.get("completed_at") and row.completed_at is None:
            row.completed_at = now
        db.commit()
        log.debug("Snapshot %s/%s saved (v%d)", mission_id, phase_id, row.version)

    async def load_phase_snapshot(self, mission_id: str, phase_id: str) -> dict | None:
        """Last saved snapshot document, or None when the phase never started."""
        db = self._session_factory()
        try:
            row = (
                db.query(PhaseSnapshot)
                .filter(PhaseSnapshot.mission_id == mission_id, PhaseSnapshot.phase_id == phase_id)
                .first()
            )
            return _snapshot_dict(row) if row else None
        finally:
            db.close()

    async def mark_complete(
        self,
        mission_id: str,
        phase_id: str,
        partial: dict | None = None,
        expected_version: int | None = None,
    ) -> bool:
        """Set completed_at once, merging any final summary fields in the same write."""
        return await self.save_phase_snapshot(
            mission_id, phase_id, {**(partial or {}), "completed_at": True}, expected_version
        )

    async def reset_phase_snapshot(self, mission_id: str, phase_id: str) -> bool:
        """Drop a phase's document so a retry starts from scratch."""
        db = self._session_factory()
        try:
            row = (
                db.query(PhaseSnapshot)
                .filter(PhaseSnapshot.mission_id == mission_id, PhaseSnapshot.phase_id == phase_id)
                .first()
            )
            if row is None:
                return True
            if row.completed_at is not None:
                raise PersistenceWriteFailure(f"{phase_id} already completed; refusing reset")
            row.data = {}
            row.version = row.version + 1
            row.last_updated = datetime.now(timezone.utc)
            db.commit()
            return True
        except (PersistenceWriteFailure, SQLAlchemyError) as e:
            db.rollback()
            log.warning("Snapshot reset failed for %s/%s: %s", mission_id, phase_id, e)
            return False
        finally:
            db.close()
