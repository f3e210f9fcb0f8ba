"""
Tournament claim and lifecycle management.

Lifecycle: active -> processing -> finished. Claiming is a compare-and-swap
on the status column, so when two sweeps overlap exactly one of them wins a
given tournament. A tournament that fails mid-settlement stays in processing
until an operator requeues or finishes it.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fairway.database.models import TournamentStatus
from fairway.database.repositories import SettlementGateway
from fairway.models.schemas import TournamentRecord
from fairway.services.audit_log import AuditLog
from fairway.utils.constants import STUCK_AFTER_MINUTES

logger = logging.getLogger(__name__)


class TournamentLifecycleManager:
    """Discovers due tournaments and moves them through their lifecycle."""

    def __init__(self, gateway: SettlementGateway, audit: Optional[AuditLog] = None):
        self.gateway = gateway
        self.audit = audit or AuditLog()

    async def find_finished_tournaments(self, now: datetime) -> List[TournamentRecord]:
        """
        Tournaments whose end time has passed and that are still active.

        A storage error is logged and yields an empty list, so a broken
        discovery query never crashes the sweep.
        """
        try:
            tournaments = await self.gateway.tournaments.find_due(now)
        except Exception as e:
            logger.error(f"Error fetching finished tournaments: {e}", exc_info=True)
            return []

        logger.info(f"Found {len(tournaments)} finished tournament(s) to process")
        return tournaments

    async def claim(self, tournament: TournamentRecord) -> bool:
        """
        Try to take ownership of a tournament's settlement (active -> processing).

        Returns:
            True if this caller now owns the tournament, False if another run
            already claimed it or it is no longer active
        """
        claimed = await self.gateway.tournaments.compare_and_set_status(
            tournament.id, TournamentStatus.ACTIVE, TournamentStatus.PROCESSING
        )
        if not claimed:
            self.audit.record(
                tournament.id, tournament.name, "Already processing or finished, skipping"
            )
            return False

        self.audit.record(
            tournament.id,
            tournament.name,
            "Tournament locked for processing",
            {"status": TournamentStatus.PROCESSING.value},
        )
        return True

    async def mark_finished(self, tournament: TournamentRecord) -> None:
        """Unconditionally mark a claimed tournament as finished."""
        try:
            await self.gateway.tournaments.set_status(tournament.id, TournamentStatus.FINISHED)
        except Exception as e:
            self.audit.record(
                tournament.id,
                tournament.name,
                "Error marking as finished",
                {"error": str(e)},
                logging.ERROR,
            )
            raise
        self.audit.record(tournament.id, tournament.name, "Tournament marked as finished")

    async def find_stuck_tournaments(
        self, now: datetime, stuck_after_minutes: int = STUCK_AFTER_MINUTES
    ) -> List[TournamentRecord]:
        """Tournaments left in processing for longer than stuck_after_minutes."""
        cutoff = now - timedelta(minutes=stuck_after_minutes)
        return await self.gateway.tournaments.find_stuck(cutoff)

    async def requeue(self, tournament_id: str) -> bool:
        """
        Hand a stuck tournament back to the next sweep (processing -> active).

        Payouts already made are protected by their ledger idempotency keys,
        so the retry only pays positions that were not paid before.
        """
        changed = await self.gateway.tournaments.compare_and_set_status(
            tournament_id, TournamentStatus.PROCESSING, TournamentStatus.ACTIVE
        )
        if changed:
            logger.warning(f"Tournament {tournament_id} requeued for settlement")
        else:
            logger.info(f"Tournament {tournament_id} is not processing, nothing to requeue")
        return changed

    async def force_finish(self, tournament_id: str) -> bool:
        """Close a stuck tournament without retrying it (processing -> finished)."""
        changed = await self.gateway.tournaments.compare_and_set_status(
            tournament_id, TournamentStatus.PROCESSING, TournamentStatus.FINISHED
        )
        if changed:
            logger.warning(f"Tournament {tournament_id} force-finished by operator")
        else:
            logger.info(f"Tournament {tournament_id} is not processing, nothing to finish")
        return changed
