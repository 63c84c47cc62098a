"""Phase controller — the lifecycle every pipeline phase shares.

    LOADING -> (RESULTS | ERROR) -> REVIEW -> SUMMARY -> [handoff]

LOADING runs the phase's collaborator calls. RESULTS holds the raw output
and its analytics. REVIEW drives a ReviewSession over the phase's queue.
SUMMARY is reached exactly once, when the queue drains; it stamps
completed_at and exposes the accepted set as the phase output. ERROR is
only left through retry(), which reruns LOADING from the persisted input.

Subclasses implement _load() and may extend summary/handoff.
"""

import enum
import logging
from dataclasses import dataclass, field

from ...exceptions import (
    CollaboratorCallFailure,
    InvalidReviewOperation,
    MissingUpstreamSelection,
)
from ..analytics import review_summary
from ..review_session import ReviewSession

log = logging.getLogger("scout.phases")


class PhaseState(str, enum.Enum):
    LOADING = "loading"
    RESULTS = "results"
    ERROR = "error"
    REVIEW = "review"
    SUMMARY = "summary"


@dataclass
class LoadOutcome:
    entities: list[dict]
    queue: list[dict]
    analytics: dict
    message: str | None = None
    failed_batches: list[dict] = field(default_factory=list)


class PhaseController:
    phase_id: str = ""
    entities_key: str = "entities"
    review_kind: str = "company"

    def __init__(self, ctx, upstream: dict | None = None):
        self.ctx = ctx
        self.upstream = upstream or {}
        self.state: PhaseState | None = None
        self.entities: list[dict] = []
        self.queue: list[dict] = []
        self.analytics: dict = {}
        self.summary: dict = {}
        self.output: list[dict] = []
        self.message: str | None = None
        self.error: str | None = None
        self.completed_at: str | None = None
        self.session: ReviewSession | None = None
        self.version = 0

    # ── Persistence ──────────────────────────────────────────────────

    async def _save(self, partial: dict) -> bool:
        ok = await self.ctx.gateway.save_phase_snapshot(
            self.ctx.mission_id, self.phase_id, partial, expected_version=self.version
        )
        if ok:
            self.version += 1
        return ok

    async def _persist_review(self, session: ReviewSession) -> None:
        await self._save({"state": self.state.value, **session.snapshot()})

    def _new_session(self, snapshot: dict | None = None) -> ReviewSession:
        kwargs = dict(
            kind=self.review_kind,
            persist=self._persist_review,
            on_complete=self._on_review_complete,
        )
        if snapshot is not None:
            return ReviewSession.from_snapshot(self.queue, snapshot, **kwargs)
        return ReviewSession(self.queue, **kwargs)

    # ── Load-or-start ────────────────────────────────────────────────

    async def load_or_start(self) -> "PhaseController":
        """Resume from the persisted snapshot, or run LOADING if there is none."""
        snap = await self.ctx.gateway.load_phase_snapshot(self.ctx.mission_id, self.phase_id)
        if snap and snap.get("state") and snap["state"] != PhaseState.LOADING.value:
            await self.resume(snap)
            log.info(f"{self.phase_id}: resumed in {self.state.value} (v{self.version})")
            return self
        if snap:
            # LOADING never finished; its results were never stored
            self.version = snap.get("version", 0)
        await self.run()
        return self

    async def resume(self, snap: dict) -> None:
        """restore(), then finish a review whose summary write never landed."""
        self.restore(snap)
        if self.state == PhaseState.REVIEW and self.session is not None and self.session.is_complete():
            log.info(f"{self.phase_id}: all cards decided, writing missing summary")
            self.session.close()
            await self._summarize()

    def restore(self, snap: dict) -> None:
        self.state = PhaseState(snap["state"])
        self.version = snap.get("version", 0)
        self.entities = list(snap.get(self.entities_key) or [])
        self.queue = list(snap.get("review_queue") or [])
        self.analytics = dict(snap.get("analytics") or {})
        self.summary = dict(snap.get("summary") or {})
        self.output = list(snap.get("output") or [])
        self.message = snap.get("message")
        self.error = snap.get("error")
        self.completed_at = snap.get("completed_at")
        if self.state in (PhaseState.REVIEW, PhaseState.SUMMARY) and self.queue:
            self.session = self._new_session(snap)

    async def run(self) -> None:
        """LOADING: call the collaborators and land in RESULTS or ERROR."""
        self.state = PhaseState.LOADING
        self.error = None
        self.message = None
        await self._save({"state": self.state.value, "error": None})
        log.info(f"{self.phase_id}: loading")

        try:
            outcome = await self._load()
        except MissingUpstreamSelection as e:
            log.info(f"{self.phase_id}: {e}")
            outcome = LoadOutcome(entities=[], queue=[], analytics=self._empty_analytics(), message=str(e))
        except CollaboratorCallFailure as e:
            self.state = PhaseState.ERROR
            self.error = str(e)
            log.warning(f"{self.phase_id}: loading failed: {e}")
            await self._save({"state": self.state.value, "error": self.error})
            return

        self.entities = outcome.entities
        self.queue = outcome.queue
        self.analytics = outcome.analytics
        self.message = outcome.message
        self.state = PhaseState.RESULTS
        await self._save({
            "state": self.state.value,
            self.entities_key: self.entities,
            "review_queue": self.queue,
            "analytics": self.analytics,
            "message": self.message,
            "failed_batches": outcome.failed_batches,
            "progress": {
                "current_card": 0,
                "total_cards": len(self.queue),
                "percent_complete": 0 if self.queue else 100,
            },
        })
        log.info(
            f"{self.phase_id}: results ready ({len(self.entities)} entities, "
            f"{len(self.queue)} to review, {len(outcome.failed_batches)} failed batches)"
        )

    async def retry(self) -> None:
        """ERROR -> LOADING, from scratch."""
        if self.state != PhaseState.ERROR:
            raise InvalidReviewOperation(f"{self.phase_id} is {self._state_name()}, not in error")
        await self.ctx.gateway.reset_phase_snapshot(self.ctx.mission_id, self.phase_id)
        snap = await self.ctx.gateway.load_phase_snapshot(self.ctx.mission_id, self.phase_id)
        self.version = snap["version"] if snap else 0
        await self.run()

    # ── Review ───────────────────────────────────────────────────────

    async def begin_review(self) -> None:
        """RESULTS -> REVIEW, or straight to SUMMARY when there is nothing to review."""
        self._require(PhaseState.RESULTS)
        self.session = self._new_session()
        if not self.queue:
            await self._summarize()
            return
        self.state = PhaseState.REVIEW
        await self._persist_review(self.session)

    async def decide(self, action: str, reasons=()) -> None:
        self._require(PhaseState.REVIEW)
        await self.session.decide(action, reasons)

    async def undo(self) -> None:
        self._require(PhaseState.REVIEW)
        await self.session.undo()

    async def _on_review_complete(self, session: ReviewSession) -> None:
        await self._summarize()

    async def _summarize(self) -> None:
        self.state = PhaseState.SUMMARY
        self.output = list(self.session.accepted) if self.session else []
        self.summary = {**review_summary(self.session), **self._summary_extra()}
        partial = {"state": self.state.value, "summary": self.summary, "output": self.output}
        if self.session is not None:
            partial.update(self.session.snapshot())
        ok = await self.ctx.gateway.mark_complete(
            self.ctx.mission_id, self.phase_id, partial, expected_version=self.version
        )
        if ok:
            self.version += 1
            snap = await self.ctx.gateway.load_phase_snapshot(self.ctx.mission_id, self.phase_id)
            self.completed_at = snap.get("completed_at") if snap else None
        log.info(
            f"{self.phase_id}: summary ({self.summary['accepted']} accepted, "
            f"{self.summary['rejected']} rejected)"
        )

    # ── Hooks ────────────────────────────────────────────────────────

    async def _load(self) -> LoadOutcome:
        raise NotImplementedError

    def _empty_analytics(self) -> dict:
        return {}

    def _summary_extra(self) -> dict:
        return {}

    def handoff(self) -> dict:
        """What the next phase starts from."""
        self._require(PhaseState.SUMMARY)
        return {"accepted": list(self.output)}

    # ── Views ────────────────────────────────────────────────────────

    @property
    def is_complete(self) -> bool:
        return self.state == PhaseState.SUMMARY

    def progress(self) -> dict:
        if self.session is not None:
            return self.session.progress()
        total = len(self.queue)
        return {"current_card": 0, "total_cards": total, "percent_complete": 0 if total else 100}

    def view(self) -> dict:
        session = self.session
        return {
            "phase": self.phase_id,
            "state": self._state_name(),
            "counts": {
                "entities": len(self.entities),
                "queue": len(self.queue),
                "accepted": len(session.accepted) if session else 0,
                "rejected": len(session.rejected) if session else 0,
            },
            "progress": self.progress(),
            "current": session.current if session and self.state == PhaseState.REVIEW else None,
            "reason_options": session.reason_options() if session else None,
            "analytics": self.analytics,
            "summary": self.summary or None,
            "message": self.message,
            "error": self.error,
            "completed_at": self.completed_at,
        }

    def _state_name(self) -> str:
        return self.state.value if self.state else "pending"

    def _require(self, *states: PhaseState) -> None:
        if self.state not in states:
            wanted = " or ".join(s.value for s in states)
            raise InvalidReviewOperation(
                f"{self.phase_id} is {self._state_name()}; expected {wanted}"
            )
