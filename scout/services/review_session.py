"""Review Session — the binary human-review state machine every phase reuses.

A session walks a human through an ordered queue of entities (companies or
people). State is an effective decision log; everything else is derived by
replaying it over the queue:

    cursor   = len(decisions)
    accepted = [queue[d.index] for d in decisions if d.action == "accept"]
    rejected = [queue[d.index] for d in decisions if d.action == "reject"]

undo() drops the last effective decision. The append-only `history` keeps
every decide/undo event for audit, so nothing a human did is ever lost.

Each decide()/undo() is saved exactly once before returning, which bounds
data loss on restart to the in-flight decision. The decision that drains
the queue is saved by `on_complete` (fired exactly once) instead of
`persist`, so the final card and the summary land in a single write.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

from ..exceptions import InvalidReviewOperation

log = logging.getLogger("scout.review")

ACCEPT = "accept"
REJECT = "reject"
ACTIONS = (ACCEPT, REJECT)

# Reason tags offered per review kind. Free-text reasons are accepted too.
VALIDATION_ACCEPT_REASONS = [
    "Perfect industry match",
    "Ideal company size",
    "Right location/market",
    "Similar to my best customers",
    "Fast-growing company",
    "Tech-forward/innovative",
    "Strong market presence",
    "Good budget fit",
]
VALIDATION_REJECT_REASONS = [
    "Wrong industry focus",
    "Too small / Too large",
    "Wrong geographic market",
    "Not my target customer type",
    "Company stage doesn't match",
    "Technology mismatch",
    "Budget concerns",
    "Poor market fit",
]
CONTACT_ACCEPT_REASONS = [
    "Right decision maker",
    "Strong title match",
    "Reachable (email/phone)",
    "Senior enough to buy",
]
CONTACT_REJECT_REASONS = [
    "Wrong role",
    "Too senior / gatekeeper",
    "Too junior",
    "No way to reach them",
]

REASON_TAXONOMIES = {
    "validation": {ACCEPT: VALIDATION_ACCEPT_REASONS, REJECT: VALIDATION_REJECT_REASONS},
    "company": {ACCEPT: VALIDATION_ACCEPT_REASONS, REJECT: VALIDATION_REJECT_REASONS},
    "contact": {ACCEPT: CONTACT_ACCEPT_REASONS, REJECT: CONTACT_REJECT_REASONS},
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReviewDecision:
    entity_id: str
    action: str
    index: int
    reasons: tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=_now, compare=False)

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "action": self.action,
            "index": self.index,
            "reasons": list(self.reasons),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReviewDecision":
        ts = data.get("timestamp")
        return cls(
            entity_id=str(data["entity_id"]),
            action=data["action"],
            index=int(data["index"]),
            reasons=tuple(data.get("reasons") or ()),
            timestamp=datetime.fromisoformat(ts) if ts else _now(),
        )


Persist = Callable[["ReviewSession"], Awaitable[object]]
OnComplete = Callable[["ReviewSession"], Awaitable[None]]


class ReviewSession:
    """Linear accept/reject review over a queue of entity dicts (each with an "id")."""

    def __init__(
        self,
        queue: list[dict],
        decisions: list[ReviewDecision] | None = None,
        *,
        kind: str = "company",
        persist: Persist | None = None,
        on_complete: OnComplete | None = None,
        completed: bool = False,
    ):
        self.queue = list(queue)
        self.kind = kind
        self._decisions: list[ReviewDecision] = []
        self.history: list[dict] = []
        self._persist = persist
        self._on_complete = on_complete
        self._completion_fired = completed

        for d in decisions or []:
            self._replay(d)

    # ── Restore ──────────────────────────────────────────────────────

    @classmethod
    def from_snapshot(cls, queue: list[dict], snapshot: dict, **kwargs) -> "ReviewSession":
        """Rebuild a session from a persisted phase snapshot."""
        decisions = [ReviewDecision.from_dict(d) for d in snapshot.get("decisions") or []]
        session = cls(
            queue,
            decisions,
            completed=bool(snapshot.get("completed_at")),
            **kwargs,
        )
        session.history = list(snapshot.get("review_history") or [])
        return session

    def _replay(self, decision: ReviewDecision) -> None:
        if decision.index != len(self._decisions) or decision.index >= len(self.queue):
            raise InvalidReviewOperation(
                f"Decision for index {decision.index} does not fit cursor {len(self._decisions)}"
            )
        if str(self.queue[decision.index].get("id")) != decision.entity_id:
            raise InvalidReviewOperation(
                f"Decision entity {decision.entity_id} does not match queue position {decision.index}"
            )
        self._decisions.append(decision)

    # ── Derived state ────────────────────────────────────────────────

    @property
    def decisions(self) -> list[ReviewDecision]:
        return list(self._decisions)

    @property
    def cursor(self) -> int:
        return len(self._decisions)

    @property
    def accepted(self) -> list[dict]:
        return [self.queue[d.index] for d in self._decisions if d.action == ACCEPT]

    @property
    def rejected(self) -> list[dict]:
        return [self.queue[d.index] for d in self._decisions if d.action == REJECT]

    @property
    def current(self) -> dict | None:
        if self.cursor < len(self.queue):
            return self.queue[self.cursor]
        return None

    def is_complete(self) -> bool:
        return self.cursor == len(self.queue)

    def progress(self) -> dict:
        total = len(self.queue)
        return {
            "current_card": self.cursor,
            "total_cards": total,
            "percent_complete": round(self.cursor / total * 100) if total else 100,
        }

    def reason_counts(self, action: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for d in self._decisions:
            if d.action != action:
                continue
            for reason in d.reasons:
                counts[reason] = counts.get(reason, 0) + 1
        return counts

    def top_reasons(self, action: str, limit: int = 3) -> list[tuple[str, int]]:
        counts = self.reason_counts(action)
        return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]

    def reason_options(self) -> dict[str, list[str]]:
        return REASON_TAXONOMIES.get(self.kind, REASON_TAXONOMIES["company"])

    def snapshot(self) -> dict:
        """The review part of a phase snapshot."""
        return {
            "decisions": [d.to_dict() for d in self._decisions],
            "review_history": list(self.history),
            "selection_results": {
                "accepted": self.accepted,
                "rejected": self.rejected,
            },
            "progress": self.progress(),
        }

    # ── Operations ───────────────────────────────────────────────────

    async def decide(self, action: str, reasons=()) -> ReviewDecision:
        """Record accept/reject for the current card, persist, advance."""
        if action not in ACTIONS:
            raise InvalidReviewOperation(f"Unknown review action: {action!r}")
        if self.is_complete():
            raise InvalidReviewOperation(
                f"No card to decide: cursor {self.cursor} of {len(self.queue)}"
            )

        entity = self.queue[self.cursor]
        clean = tuple(r.strip() for r in reasons if r and r.strip())
        decision = ReviewDecision(
            entity_id=str(entity.get("id")),
            action=action,
            index=self.cursor,
            reasons=clean,
        )
        self._decisions.append(decision)
        self.history.append({"event": "decide", **decision.to_dict()})
        log.debug(
            "Review %s: %s %s (%d/%d)",
            self.kind, action, decision.entity_id, self.cursor, len(self.queue),
        )

        if self.is_complete() and not self._completion_fired:
            self._completion_fired = True
            if self._on_complete is not None:
                await self._on_complete(self)
                return decision

        await self._save()
        return decision

    async def undo(self) -> ReviewDecision:
        """Walk back exactly one decision."""
        if not self._decisions:
            raise InvalidReviewOperation("Nothing to undo")
        if self._completion_fired:
            raise InvalidReviewOperation("Review already summarized; undo is closed")

        decision = self._decisions.pop()
        self.history.append(
            {"event": "undo", **decision.to_dict(), "undone_at": _now().isoformat()}
        )
        log.debug("Review %s: undo %s (back to %d)", self.kind, decision.entity_id, self.cursor)

        await self._save()
        return decision

    def close(self) -> None:
        """Treat completion as handled; undo is closed from here on."""
        self._completion_fired = True

    async def _save(self) -> None:
        if self._persist is not None:
            await self._persist(self)
