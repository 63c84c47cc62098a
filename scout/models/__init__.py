"""Database models — import from here: from scout.models import Mission, PhaseSnapshot."""

from .base import Base  # noqa: F401
from .mission import PHASE_ORDER, Mission, PhaseSnapshot  # noqa: F401
