"""Pipeline error taxonomy.

CollaboratorCallFailure  : external call failed (hard) or returned nothing usable (soft)
Throttled                : collaborator answered 429; soft, the batch is simply lost
PersistenceWriteFailure  : snapshot write failed; logged, never fatal
InvalidReviewOperation   : decide/undo/move that cannot apply; state unchanged
MissingUpstreamSelection : a phase got zero accepted entities from its predecessor
PhaseOrderError          : a phase was opened out of sequence
"""


class ScoutError(Exception):
    """Base class for every pipeline error."""


class CollaboratorCallFailure(ScoutError):
    soft = False

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UnparsableResponse(CollaboratorCallFailure):
    """The call succeeded but no JSON payload could be extracted."""

    soft = True


class Throttled(CollaboratorCallFailure):
    """The collaborator rate-limited the call (HTTP 429)."""

    soft = True


class PersistenceWriteFailure(ScoutError):
    pass


class InvalidReviewOperation(ScoutError):
    pass


class MissingUpstreamSelection(ScoutError):
    def __init__(self, phase_id: str, upstream_phase_id: str):
        super().__init__(
            f"{phase_id} has no accepted entities from {upstream_phase_id} to work on"
        )
        self.phase_id = phase_id
        self.upstream_phase_id = upstream_phase_id


class PhaseOrderError(ScoutError):
    pass


class MissionNotFound(ScoutError):
    pass
