"""
Settlement orchestrator.

Runs one settlement sweep: report stuck tournaments, discover tournaments
whose end time has passed, then for each one (sequentially) claim it, rank
every league, store team positions, pay rewards and mark it finished.

Failures are isolated at every level:
- a failing reward position does not stop the other positions,
- a failing league does not stop the other leagues of the tournament,
- a failing tournament stays in processing and the sweep moves on.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from fairway.database.repositories import SettlementGateway
from fairway.models.schemas import (
    LeagueOutcome,
    LeagueRecord,
    OutcomeStatus,
    SweepSummary,
    TeamScore,
    TournamentOutcome,
    TournamentRecord,
)
from fairway.services.audit_log import AuditLog
from fairway.services.leaderboard_service import calculate_leaderboard
from fairway.services.reward_service import RewardDistributor
from fairway.services.settings_service import SettlementSettings
from fairway.services.tournament_lifecycle import TournamentLifecycleManager
from fairway.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class SettlementService:
    """Settles finished tournaments against an injected persistence gateway."""

    def __init__(
        self,
        gateway: SettlementGateway,
        settings: Optional[SettlementSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.gateway = gateway
        self.settings = settings or SettlementSettings()
        self._clock = clock
        self.last_audit: Optional[AuditLog] = None

    async def run_sweep(self) -> SweepSummary:
        """
        Settle every tournament that is due.

        Returns:
            SweepSummary with per-tournament outcomes and counts
        """
        audit = AuditLog()
        self.last_audit = audit
        lifecycle = TournamentLifecycleManager(self.gateway, audit)
        distributor = RewardDistributor(
            self.gateway, audit, self.settings.platform_fee_percentage
        )
        now = self._clock()
        logger.info(f"Starting finished tournament processing job at {now.isoformat()}")

        summary = SweepSummary()
        summary.stuck = await self._report_stuck(lifecycle, now)

        tournaments = await lifecycle.find_finished_tournaments(now)
        summary.tournaments_found = len(tournaments)
        if not tournaments:
            logger.info("No finished tournaments to process")

        for tournament in tournaments:
            outcome = await self.process_tournament(tournament, lifecycle, distributor, audit)
            summary.tournaments.append(outcome)
            if outcome.status == OutcomeStatus.SETTLED:
                summary.succeeded += 1
            elif outcome.status == OutcomeStatus.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1

        summary.action_counts = audit.action_counts()
        logger.info(
            f"Processing complete: found={summary.tournaments_found} "
            f"succeeded={summary.succeeded} failed={summary.failed} "
            f"skipped={summary.skipped} stuck={summary.stuck} "
            f"audit_actions={len(audit.entries)}"
        )
        return summary

    async def _report_stuck(self, lifecycle: TournamentLifecycleManager, now: datetime) -> int:
        """Warn about tournaments stuck in processing. Never changes state."""
        try:
            stuck = await lifecycle.find_stuck_tournaments(now, self.settings.stuck_after_minutes)
        except Exception as e:
            logger.error(f"Error checking for stuck tournaments: {e}", exc_info=True)
            return 0

        for tournament in stuck:
            lifecycle.audit.record(
                tournament.id,
                tournament.name,
                "Tournament stuck in processing",
                {"updated_at": tournament.updated_at, "finishes_at": tournament.finishes_at},
                logging.WARNING,
            )
        return len(stuck)

    async def process_tournament(
        self,
        tournament: TournamentRecord,
        lifecycle: TournamentLifecycleManager,
        distributor: RewardDistributor,
        audit: AuditLog,
    ) -> TournamentOutcome:
        """Claim and settle one tournament."""
        audit.record(
            tournament.id,
            tournament.name,
            "Processing tournament",
            {"finishes_at": tournament.finishes_at},
        )

        try:
            claimed = await lifecycle.claim(tournament)
        except Exception as e:
            logger.error(f"Error claiming tournament {tournament.id}: {e}", exc_info=True)
            audit.record(
                tournament.id, tournament.name, "Error claiming tournament",
                {"error": str(e)}, logging.ERROR,
            )
            return TournamentOutcome(
                tournament_id=tournament.id,
                tournament_name=tournament.name,
                status=OutcomeStatus.FAILED,
                reason=f"claim failed: {e}",
            )

        if not claimed:
            return TournamentOutcome(
                tournament_id=tournament.id,
                tournament_name=tournament.name,
                status=OutcomeStatus.SKIPPED,
                reason="already processing or finished",
            )

        league_outcomes: List[LeagueOutcome] = []
        try:
            leagues = await self.gateway.leagues.list_by_tournament(tournament.id)
            if not leagues:
                audit.record(tournament.id, tournament.name, "No leagues found")
            else:
                audit.record(
                    tournament.id, tournament.name, "Leagues found", {"count": len(leagues)}
                )

            for league in leagues:
                league_outcomes.append(
                    await self.process_league(tournament, league, distributor, audit)
                )

            await lifecycle.mark_finished(tournament)
        except Exception as e:
            logger.error(f"Error processing tournament {tournament.id}: {e}", exc_info=True)
            audit.record(
                tournament.id, tournament.name, "Error processing tournament",
                {"error": str(e)}, logging.ERROR,
            )
            logger.warning(
                f"Tournament {tournament.name} remains in 'processing' state due to error. "
                f"Manual intervention required."
            )
            return TournamentOutcome(
                tournament_id=tournament.id,
                tournament_name=tournament.name,
                status=OutcomeStatus.FAILED,
                reason=str(e),
                leagues=league_outcomes,
            )

        audit.record(
            tournament.id,
            tournament.name,
            "Tournament processing complete",
            {"leagues_processed": len(league_outcomes)},
        )
        return TournamentOutcome(
            tournament_id=tournament.id,
            tournament_name=tournament.name,
            status=OutcomeStatus.SETTLED,
            leagues=league_outcomes,
        )

    async def process_league(
        self,
        tournament: TournamentRecord,
        league: LeagueRecord,
        distributor: RewardDistributor,
        audit: AuditLog,
    ) -> LeagueOutcome:
        """Rank, position and pay one league. Never raises."""
        audit.record(
            tournament.id,
            tournament.name,
            "Processing league",
            {"league_id": league.id, "league_name": league.name},
        )

        try:
            audit.record(
                tournament.id, tournament.name, "Calculating leaderboard", {"league_id": league.id}
            )
            leaderboard = await calculate_leaderboard(self.gateway, league)
            if not leaderboard:
                audit.record(
                    tournament.id, tournament.name, "Empty leaderboard, skipping",
                    {"league_id": league.id},
                )
                return LeagueOutcome(
                    league_id=league.id, status=OutcomeStatus.SKIPPED, reason="no teams"
                )

            for team_score in leaderboard:
                audit.record(
                    tournament.id,
                    tournament.name,
                    "Team score calculated",
                    {
                        "team_id": team_score.team_id,
                        "total_score": team_score.total_score,
                        "player_count": team_score.players_counted,
                    },
                )
            audit.record(
                tournament.id,
                tournament.name,
                "Leaderboard calculated",
                {"league_id": league.id, "team_count": len(leaderboard)},
            )

            await self._update_team_positions(tournament, leaderboard, audit)
            distribution = await distributor.distribute(tournament, league, leaderboard)
        except Exception as e:
            logger.error(
                f"Error processing league {league.id} of tournament {tournament.id}: {e}",
                exc_info=True,
            )
            audit.record(
                tournament.id, tournament.name, "Error processing league",
                {"league_id": league.id, "error": str(e)}, logging.ERROR,
            )
            return LeagueOutcome(league_id=league.id, status=OutcomeStatus.FAILED, reason=str(e))

        audit.record(
            tournament.id,
            tournament.name,
            "League processing complete",
            {"league_id": league.id, "teams_processed": len(leaderboard)},
        )
        return LeagueOutcome(
            league_id=league.id,
            status=OutcomeStatus.SETTLED,
            teams=len(leaderboard),
            distribution=distribution,
        )

    async def _update_team_positions(
        self,
        tournament: TournamentRecord,
        leaderboard: List[TeamScore],
        audit: AuditLog,
    ) -> None:
        """
        Store every team's rank. The writes are independent and run
        concurrently; all of them finish before the first error is raised.
        """
        results = await asyncio.gather(
            *(
                self.gateway.teams.update_position(team_score.team_id, team_score.rank)
                for team_score in leaderboard
            ),
            return_exceptions=True,
        )

        errors = []
        for team_score, result in zip(leaderboard, results):
            if isinstance(result, BaseException):
                errors.append(result)
                audit.record(
                    tournament.id, tournament.name, "Error updating team position",
                    {"team_id": team_score.team_id, "error": str(result)}, logging.ERROR,
                )
            else:
                audit.record(
                    tournament.id,
                    tournament.name,
                    "Team position updated",
                    {
                        "team_id": team_score.team_id,
                        "position": team_score.rank,
                        "score": team_score.total_score,
                    },
                )
        if errors:
            raise errors[0]
