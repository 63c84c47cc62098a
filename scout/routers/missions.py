"""
missions.py — Mission Pipeline Router

Drives one mission through discovery -> scoring -> people -> ranking.

Business Rules:
- Every request rebuilds the orchestrator from persisted state
- A phase opens only after its predecessor reached SUMMARY (409 otherwise)
- decide/undo answer with the phase view so the UI never guesses the cursor
- Ranking is reviewed by moving contacts, not by accept/reject

Called by: main.py (router mount)
Depends on: services/mission_orchestrator.py, dependencies.py
"""

from fastapi import APIRouter, Depends

from ..dependencies import get_collaborators, get_gateway
from ..exceptions import PhaseOrderError
from ..schemas.mission import DecisionRequest, MissionCreate, MoveRequest
from ..services.collaborators import Collaborators
from ..services.mission_orchestrator import MissionOrchestrator
from ..services.persistence import PersistenceGateway
from ..services.phases import RankingPhase

router = APIRouter(prefix="/api/missions", tags=["missions"])


async def _orchestrator(
    mission_id: str,
    gateway: PersistenceGateway = Depends(get_gateway),
    collaborators: Collaborators = Depends(get_collaborators),
) -> MissionOrchestrator:
    return await MissionOrchestrator.load(gateway, collaborators, mission_id)


def _phase_payload(orch: MissionOrchestrator, controller) -> dict:
    return {"mission_id": orch.mission_id, **controller.view()}


# ── Missions ─────────────────────────────────────────────────────────────


@router.post("", status_code=201)
async def create_mission(
    body: MissionCreate,
    gateway: PersistenceGateway = Depends(get_gateway),
    collaborators: Collaborators = Depends(get_collaborators),
):
    orch = await MissionOrchestrator.create(gateway, collaborators, body.profile, body.user_id)
    return await orch.state()


@router.get("/{mission_id}")
async def get_mission(orch: MissionOrchestrator = Depends(_orchestrator)):
    return await orch.state()


@router.post("/{mission_id}/abandon")
async def abandon_mission(orch: MissionOrchestrator = Depends(_orchestrator)):
    await orch.abandon()
    return await orch.state()


# ── Phase lifecycle ──────────────────────────────────────────────────────


@router.post("/{mission_id}/phases/{phase_id}/start")
async def start_phase(phase_id: str, orch: MissionOrchestrator = Depends(_orchestrator)):
    controller = await orch.open_phase(phase_id)
    return _phase_payload(orch, controller)


@router.post("/{mission_id}/phases/{phase_id}/retry")
async def retry_phase(phase_id: str, orch: MissionOrchestrator = Depends(_orchestrator)):
    controller = await orch.phase(phase_id)
    await controller.retry()
    return _phase_payload(orch, controller)


@router.post("/{mission_id}/phases/{phase_id}/review")
async def begin_review(phase_id: str, orch: MissionOrchestrator = Depends(_orchestrator)):
    controller = await orch.phase(phase_id)
    await controller.begin_review()
    await orch.after_action(controller)
    return _phase_payload(orch, controller)


@router.post("/{mission_id}/phases/{phase_id}/decisions")
async def decide(
    phase_id: str,
    body: DecisionRequest,
    orch: MissionOrchestrator = Depends(_orchestrator),
):
    controller = await orch.phase(phase_id)
    await controller.decide(body.action, body.reasons)
    return _phase_payload(orch, controller)


@router.post("/{mission_id}/phases/{phase_id}/undo")
async def undo(phase_id: str, orch: MissionOrchestrator = Depends(_orchestrator)):
    controller = await orch.phase(phase_id)
    await controller.undo()
    return _phase_payload(orch, controller)


# ── Ranking reorder ──────────────────────────────────────────────────────


async def _ranking(orch: MissionOrchestrator) -> RankingPhase:
    controller = await orch.phase("ranking")
    if not isinstance(controller, RankingPhase):
        raise PhaseOrderError("ranking phase unavailable")
    return controller


@router.post("/{mission_id}/phases/ranking/move")
async def move_contact(body: MoveRequest, orch: MissionOrchestrator = Depends(_orchestrator)):
    controller = await _ranking(orch)
    await controller.move(body.index, body.direction)
    return _phase_payload(orch, controller)


@router.post("/{mission_id}/phases/ranking/complete")
async def complete_ranking(orch: MissionOrchestrator = Depends(_orchestrator)):
    controller = await _ranking(orch)
    await controller.complete()
    await orch.after_action(controller)
    return await orch.state()
