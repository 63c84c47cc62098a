"""Batch Caller — fan a candidate list out to an external collaborator.

Items are split into fixed-size batches. Each batch is an independent async
call; one bad batch (non-2xx, malformed or unparsable payload, throttling)
is recorded and the rest keep going. Accepted results keep the
collaborator's own ordering within a batch and batches are concatenated in
request order; re-sorting is the phase's job.

Usage:
    result = await call_batched(companies, 25, score_batch)
    result.accepted        # merged results
    result.failed_batches  # [BatchFailure(index, size, error, soft)]
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from ..exceptions import CollaboratorCallFailure

log = logging.getLogger("scout.batch")

BatchCall = Callable[[list, int], Awaitable[list | None]]


@dataclass
class BatchFailure:
    index: int
    size: int
    error: str
    soft: bool = False


@dataclass
class BatchResult:
    accepted: list = field(default_factory=list)
    failed_batches: list[BatchFailure] = field(default_factory=list)
    batch_count: int = 0

    @property
    def all_failed_hard(self) -> bool:
        """Every dispatched batch failed at the call level (not just unparsable)."""
        return (
            self.batch_count > 0
            and len(self.failed_batches) == self.batch_count
            and not any(f.soft for f in self.failed_batches)
        )

    def summary(self) -> dict:
        return {
            "batches": self.batch_count,
            "failed": len(self.failed_batches),
            "accepted": len(self.accepted),
        }


def split_batches(items: Sequence, batch_size: int) -> list[list]:
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


async def call_batched(
    items: Sequence,
    batch_size: int,
    call: BatchCall,
    *,
    concurrency: int | None = None,
    label: str = "batch",
) -> BatchResult:
    """Run call(batch, batch_index) over ceil(len(items)/batch_size) batches.

    call returns a list of accepted results. It may raise
    CollaboratorCallFailure (UnparsableResponse for the soft kind) or any
    transport error; either way only that batch is lost.
    """
    batches = split_batches(items, batch_size)
    result = BatchResult(batch_count=len(batches))
    if not batches:
        return result

    sem = asyncio.Semaphore(concurrency) if concurrency else None

    async def _run(index: int, batch: list):
        try:
            if sem is not None:
                async with sem:
                    return await call(batch, index)
            return await call(batch, index)
        except CollaboratorCallFailure as e:
            return BatchFailure(index=index, size=len(batch), error=str(e), soft=e.soft)
        except Exception as e:
            return BatchFailure(index=index, size=len(batch), error=f"{type(e).__name__}: {e}")

    outcomes = await asyncio.gather(*(_run(i, b) for i, b in enumerate(batches)))

    for index, outcome in enumerate(outcomes):
        if isinstance(outcome, BatchFailure):
            level = logging.INFO if outcome.soft else logging.WARNING
            log.log(
                level,
                "%s %d/%d failed (%s): %s",
                label, index + 1, len(batches), "soft" if outcome.soft else "hard", outcome.error,
            )
            result.failed_batches.append(outcome)
            continue
        if outcome is None:
            result.failed_batches.append(
                BatchFailure(index=index, size=len(batches[index]), error="empty response", soft=True)
            )
            continue
        result.accepted.extend(outcome)

    log.info("%s complete: %s", label, result.summary())
    return result
