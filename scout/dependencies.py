"""FastAPI dependencies — the gateway and collaborators every route uses.

Tests override these with app.dependency_overrides to inject an in-memory
gateway and fake collaborators.
"""

from functools import lru_cache

from .services.collaborators import Collaborators, default_collaborators
from .services.persistence import PersistenceGateway


@lru_cache
def get_gateway() -> PersistenceGateway:
    return PersistenceGateway()


@lru_cache
def get_collaborators() -> Collaborators:
    return default_collaborators()
