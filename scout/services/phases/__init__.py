from .base import LoadOutcome, PhaseController, PhaseState
from .discovery import DiscoveryPhase
from .people import PeopleDiscoveryPhase
from .ranking import RankingPhase
from .scoring import ScoringPhase

PHASES = {
    "discovery": DiscoveryPhase,
    "scoring": ScoringPhase,
    "people": PeopleDiscoveryPhase,
    "ranking": RankingPhase,
}

__all__ = [
    "PHASES",
    "DiscoveryPhase",
    "LoadOutcome",
    "PeopleDiscoveryPhase",
    "PhaseController",
    "PhaseState",
    "RankingPhase",
    "ScoringPhase",
]
