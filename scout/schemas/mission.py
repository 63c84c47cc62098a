"""schemas/mission.py — request bodies for the mission endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .profile import Profile


class MissionCreate(BaseModel):
    user_id: str | None = None
    profile: Profile


class DecisionRequest(BaseModel):
    action: Literal["accept", "reject"]
    reasons: list[str] = Field(default_factory=list, max_length=20)


class MoveRequest(BaseModel):
    index: int = Field(..., ge=0)
    direction: Literal["up", "down"]
