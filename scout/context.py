"""Mission context — everything a phase needs, passed explicitly.

Built once when a mission is created or loaded and read-only afterwards;
the only mutable state a phase touches goes through the gateway.
"""

from dataclasses import dataclass

from .config import Settings
from .schemas.profile import Profile
from .services.collaborators import Collaborators
from .services.persistence import PersistenceGateway


@dataclass(frozen=True)
class MissionContext:
    mission_id: str
    user_id: str | None
    profile: Profile
    settings: Settings
    gateway: PersistenceGateway
    collaborators: Collaborators
