"""Mission Orchestrator — sequences the four phases of one mission.

discovery -> scoring -> people -> ranking. A phase opens only once its
predecessor reached SUMMARY, and it starts from the predecessor's persisted
handoff: Scoring from the discovered universe plus validation learning,
People only from companies accepted in Scoring, Ranking only from contacts
accepted in People. Every controller is rebuilt from its snapshot, so an
orchestrator can be thrown away and reloaded at any point.

The orchestrator never retries a failed phase on its own.
"""

import logging

from ..config import Settings, get_settings
from ..context import MissionContext
from ..exceptions import PhaseOrderError
from ..models import PHASE_ORDER
from ..schemas.profile import Profile
from .collaborators import Collaborators
from .persistence import PersistenceGateway
from .phases import PHASES, PhaseController, PhaseState

log = logging.getLogger("scout.orchestrator")


class MissionOrchestrator:
    def __init__(self, ctx: MissionContext, mission: dict):
        self.ctx = ctx
        self.mission = mission

    # ── Construction ─────────────────────────────────────────────────

    @classmethod
    async def create(
        cls,
        gateway: PersistenceGateway,
        collaborators: Collaborators,
        profile: Profile,
        user_id: str | None = None,
        cfg: Settings | None = None,
    ) -> "MissionOrchestrator":
        mission = await gateway.create_mission(profile.model_dump(), user_id)
        return cls(cls._context(mission, gateway, collaborators, cfg), mission)

    @classmethod
    async def load(
        cls,
        gateway: PersistenceGateway,
        collaborators: Collaborators,
        mission_id: str,
        cfg: Settings | None = None,
    ) -> "MissionOrchestrator":
        mission = await gateway.load_mission(mission_id)
        return cls(cls._context(mission, gateway, collaborators, cfg), mission)

    @staticmethod
    def _context(mission, gateway, collaborators, cfg) -> MissionContext:
        return MissionContext(
            mission_id=mission["id"],
            user_id=mission.get("user_id"),
            profile=Profile.model_validate(mission["profile"]),
            settings=cfg or get_settings(),
            gateway=gateway,
            collaborators=collaborators,
        )

    @property
    def mission_id(self) -> str:
        return self.ctx.mission_id

    # ── Phases ───────────────────────────────────────────────────────

    @staticmethod
    def _check_phase(phase_id: str) -> None:
        if phase_id not in PHASES:
            raise PhaseOrderError(f"Unknown phase {phase_id!r}; expected one of {', '.join(PHASE_ORDER)}")

    async def _restore(self, phase_id: str, upstream: dict | None = None) -> PhaseController | None:
        snap = await self.ctx.gateway.load_phase_snapshot(self.mission_id, phase_id)
        if not snap or not snap.get("state"):
            return None
        controller = PHASES[phase_id](self.ctx, upstream)
        await controller.resume(snap)
        return controller

    async def _upstream(self, phase_id: str) -> dict:
        idx = PHASE_ORDER.index(phase_id)
        if idx == 0:
            return {}
        previous = PHASE_ORDER[idx - 1]
        controller = await self._restore(previous)
        if controller is None or controller.state != PhaseState.SUMMARY:
            raise PhaseOrderError(f"{phase_id} cannot start before {previous} is complete")
        return controller.handoff()

    async def open_phase(self, phase_id: str) -> PhaseController:
        """Load-or-start a phase in sequence."""
        self._check_phase(phase_id)
        if self.mission["status"] == "abandoned":
            raise PhaseOrderError(f"Mission {self.mission_id} was abandoned")

        upstream = await self._upstream(phase_id)
        controller = PHASES[phase_id](self.ctx, upstream)
        await controller.load_or_start()

        if PHASE_ORDER.index(phase_id) > PHASE_ORDER.index(self.mission["current_phase"]):
            self.mission["current_phase"] = phase_id
            await self.ctx.gateway.update_mission(self.mission_id, current_phase=phase_id)
            log.info(f"Mission {self.mission_id} advanced to {phase_id}")
        return controller

    async def phase(self, phase_id: str) -> PhaseController:
        """An already started phase, rebuilt from its snapshot."""
        self._check_phase(phase_id)
        if self.mission["status"] == "abandoned":
            raise PhaseOrderError(f"Mission {self.mission_id} was abandoned")
        upstream = await self._upstream(phase_id)
        controller = await self._restore(phase_id, upstream)
        if controller is None:
            raise PhaseOrderError(f"{phase_id} has not been started")
        return controller

    async def after_action(self, controller: PhaseController) -> None:
        """Close the mission once the final phase reaches SUMMARY."""
        if controller.phase_id == PHASE_ORDER[-1] and controller.is_complete:
            if self.mission["status"] != "complete":
                self.mission["status"] = "complete"
                await self.ctx.gateway.update_mission(self.mission_id, status="complete")
                log.info(f"Mission {self.mission_id} complete ({len(controller.output)} contacts)")

    async def abandon(self) -> None:
        """Stop the mission. Snapshots stay as they are."""
        self.mission["status"] = "abandoned"
        await self.ctx.gateway.update_mission(self.mission_id, status="abandoned")
        log.info(f"Mission {self.mission_id} abandoned")

    # ── State view ───────────────────────────────────────────────────

    async def state(self) -> dict:
        phases = {}
        final = None
        for phase_id in PHASE_ORDER:
            controller = await self._restore(phase_id)
            if controller is None:
                phases[phase_id] = {"phase": phase_id, "state": "pending"}
                continue
            phases[phase_id] = controller.view()
            if phase_id == PHASE_ORDER[-1] and controller.is_complete:
                final = controller.output
        return {
            "mission": dict(self.mission),
            "phases": phases,
            "final_contacts": final,
        }
