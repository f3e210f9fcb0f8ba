"""
Operator API routes for tournament settlement.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from fairway.api.auth_dependencies import (
    get_settings,
    get_settlement_gateway,
    require_admin_token,
)
from fairway.database.repositories import SettlementGateway
from fairway.models.schemas import (
    StuckTournamentResponse,
    SweepSummary,
    TransitionResponse,
)
from fairway.services.settings_service import SettlementSettings
from fairway.services.settlement_service import SettlementService
from fairway.services.tournament_lifecycle import TournamentLifecycleManager
from fairway.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin_token)])


@router.get("/api/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


@admin_router.post("/settlement/run", response_model=SweepSummary)
async def run_settlement(
    gateway: SettlementGateway = Depends(get_settlement_gateway),
    settings: SettlementSettings = Depends(get_settings),
):
    """Run one settlement sweep now and return its summary."""
    logger.info("Settlement sweep triggered via admin API")
    service = SettlementService(gateway, settings)
    return await service.run_sweep()


@admin_router.get("/settlement/stuck", response_model=List[StuckTournamentResponse])
async def list_stuck_tournaments(
    gateway: SettlementGateway = Depends(get_settlement_gateway),
    settings: SettlementSettings = Depends(get_settings),
):
    """Tournaments left in processing longer than the stuck threshold."""
    lifecycle = TournamentLifecycleManager(gateway)
    stuck = await lifecycle.find_stuck_tournaments(utcnow(), settings.stuck_after_minutes)
    return [StuckTournamentResponse(**t.model_dump()) for t in stuck]


async def _transition(
    gateway: SettlementGateway, tournament_id: str, changed: bool
) -> TransitionResponse:
    tournament = await gateway.tournaments.get(tournament_id)
    if tournament is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tournament not found")
    if not changed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Tournament is {tournament.status.value}, not processing",
        )
    return TransitionResponse(tournament_id=tournament_id, status=tournament.status, changed=True)


@admin_router.post("/tournaments/{tournament_id}/requeue", response_model=TransitionResponse)
async def requeue_tournament(
    tournament_id: str,
    gateway: SettlementGateway = Depends(get_settlement_gateway),
):
    """Move a stuck tournament back to active so the next sweep retries it."""
    changed = await TournamentLifecycleManager(gateway).requeue(tournament_id)
    return await _transition(gateway, tournament_id, changed)


@admin_router.post("/tournaments/{tournament_id}/finish", response_model=TransitionResponse)
async def finish_tournament(
    tournament_id: str,
    gateway: SettlementGateway = Depends(get_settlement_gateway),
):
    """Mark a stuck tournament finished without retrying it."""
    changed = await TournamentLifecycleManager(gateway).force_finish(tournament_id)
    return await _transition(gateway, tournament_id, changed)


router.include_router(admin_router)
