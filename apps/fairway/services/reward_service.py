"""
Reward distribution for a settled league.

Computes the pot, maps each reward tier to the team holding that rank and
applies each payout as one atomic ledger operation. A failure in one tier is
logged and the remaining tiers are still paid.
"""

import logging
from typing import List

from pydantic import TypeAdapter, ValidationError

from fairway.database.repositories import DuplicatePayoutError, SettlementGateway
from fairway.models.schemas import (
    DistributionOutcome,
    LeagueRecord,
    OutcomeStatus,
    PayoutOutcome,
    PrizeAward,
    RewardSplit,
    TeamScore,
    TournamentRecord,
)
from fairway.services import pot_calculations
from fairway.services.audit_log import AuditLog
from fairway.utils.constants import PLATFORM_FEE_PERCENTAGE

logger = logging.getLogger(__name__)

_reward_schedule = TypeAdapter(List[RewardSplit])


class SettlementError(Exception):
    """Base class for settlement data-integrity faults."""


class InvalidEntryFeeError(SettlementError):
    """League entry fee is missing, zero or negative."""


class InvalidRewardScheduleError(SettlementError):
    """League reward schedule is not a list of well-formed tiers."""


class RewardPercentageError(SettlementError):
    """League reward percentages are negative or add up to more than 100%."""


def prize_idempotency_key(tournament_id: str, league_id: str, position: int) -> str:
    """Ledger key that makes a payout for one tournament/league/position unique."""
    return f"prize:{tournament_id}:{league_id}:{position}"


class RewardDistributor:
    """Pays out a league's pot according to its reward schedule."""

    def __init__(
        self,
        gateway: SettlementGateway,
        audit: AuditLog,
        platform_fee_percentage: float = PLATFORM_FEE_PERCENTAGE,
    ):
        self.gateway = gateway
        self.audit = audit
        self.platform_fee_percentage = platform_fee_percentage

    def _log(self, tournament: TournamentRecord, action: str, details=None, level=logging.INFO):
        self.audit.record(tournament.id, tournament.name, action, details, level)

    def resolve_rewards(self, tournament: TournamentRecord, league: LeagueRecord) -> List[RewardSplit]:
        """
        Validate the league and return the reward schedule to apply.

        Raises:
            InvalidEntryFeeError: entry fee is not positive
            InvalidRewardScheduleError: a reward tier is malformed
            RewardPercentageError: percentages are negative or exceed 100%
        """
        if not league.entry_fee or league.entry_fee <= 0:
            self._log(
                tournament,
                "Invalid entry fee",
                {"league_id": league.id, "entry_fee": league.entry_fee},
                logging.ERROR,
            )
            raise InvalidEntryFeeError(
                f"League {league.id} has invalid entry fee: {league.entry_fee}"
            )

        try:
            custom_rewards = _reward_schedule.validate_python(league.rewards)
        except ValidationError as e:
            self._log(
                tournament,
                "Invalid reward schedule",
                {"league_id": league.id, "errors": e.error_count(), "error": str(e)},
                logging.ERROR,
            )
            raise InvalidRewardScheduleError(
                f"League {league.id} has a malformed reward schedule: {e.error_count()} error(s)"
            ) from e

        rewards = pot_calculations.get_reward_structure(custom_rewards)
        is_valid, total = pot_calculations.validate_reward_percentages(rewards)
        if not is_valid:
            self._log(
                tournament,
                "Invalid reward percentages",
                {"league_id": league.id, "total_percentage": float(total)},
                logging.ERROR,
            )
            raise RewardPercentageError(
                f"League {league.id} rewards are invalid: {float(total) * 100:.1f}% total"
            )
        return rewards

    async def distribute(
        self,
        tournament: TournamentRecord,
        league: LeagueRecord,
        leaderboard: List[TeamScore],
    ) -> DistributionOutcome:
        """
        Distribute the league's pot to the ranked teams.

        Args:
            tournament: Tournament being settled
            league: League being settled
            leaderboard: Ranked teams (non-empty)

        Returns:
            DistributionOutcome with per-position results and pot totals

        Raises:
            SettlementError: the league's configuration makes payout impossible
        """
        self._log(
            tournament,
            "Starting reward assignment",
            {"league_id": league.id, "total_teams": len(leaderboard)},
        )
        rewards = self.resolve_rewards(tournament, league)

        total_pot = pot_calculations.calculate_total_pot(
            league.entry_fee, len(leaderboard), self.platform_fee_percentage
        )
        self._log(
            tournament,
            "Prize pool calculated",
            {
                "league_id": league.id,
                "entry_fee": league.entry_fee,
                "team_count": len(leaderboard),
                "platform_fee_percentage": self.platform_fee_percentage,
                "platform_fee": pot_calculations.calculate_platform_fee(
                    league.entry_fee, len(leaderboard), self.platform_fee_percentage
                ),
                "total_pot": total_pot,
            },
        )

        # One query for every owner on the board
        owner_ids = list(dict.fromkeys(team.owner_id for team in leaderboard))
        users = await self.gateway.users.get_by_ids(owner_ids)
        users_by_id = {user.id: user for user in users}
        teams_by_rank = {team.rank: team for team in leaderboard}

        outcome = DistributionOutcome(league_id=league.id, total_pot=total_pot)
        for reward in rewards:
            payout = await self._assign_position(
                tournament, league, reward, total_pot, teams_by_rank, users_by_id
            )
            outcome.payouts.append(payout)
            if payout.status == OutcomeStatus.APPLIED:
                outcome.total_awarded += payout.amount

        outcome.platform_fee = outcome.total_pot - outcome.total_awarded
        self._log(
            tournament,
            "All rewards assigned",
            {
                "league_id": league.id,
                "total_pot": outcome.total_pot,
                "total_awarded": outcome.total_awarded,
                "platform_fee": outcome.platform_fee,
            },
        )
        return outcome

    async def _assign_position(
        self,
        tournament: TournamentRecord,
        league: LeagueRecord,
        reward: RewardSplit,
        total_pot: int,
        teams_by_rank,
        users_by_id,
    ) -> PayoutOutcome:
        """Pay one reward tier. Never raises; failures come back as FAILED outcomes."""
        team = teams_by_rank.get(reward.position)
        if team is None:
            self._log(tournament, "No team at position", {"position": reward.position})
            return PayoutOutcome(
                position=reward.position,
                status=OutcomeStatus.SKIPPED,
                reason="no team at position",
            )

        amount = pot_calculations.calculate_reward_amount(total_pot, reward.percentage)
        if amount <= 0:
            self._log(
                tournament,
                "Reward amount is zero",
                {"position": reward.position, "percentage": reward.percentage},
            )
            return PayoutOutcome(
                position=reward.position,
                status=OutcomeStatus.SKIPPED,
                team_id=team.team_id,
                reason="reward amount is zero",
            )

        user = users_by_id.get(team.owner_id)
        if user is None:
            self._log(
                tournament,
                "User not found",
                {"user_id": team.owner_id, "team_id": team.team_id, "position": reward.position},
                logging.WARNING,
            )
            return PayoutOutcome(
                position=reward.position,
                status=OutcomeStatus.SKIPPED,
                user_id=team.owner_id,
                team_id=team.team_id,
                reason="user not found",
            )

        award = PrizeAward(
            user_id=user.id,
            amount=amount,
            name=f"Prize - {league.name} ({tournament.name})",
            idempotency_key=prize_idempotency_key(tournament.id, league.id, reward.position),
            metadata={
                "tournament_id": tournament.id,
                "tournament_name": tournament.name,
                "league_id": league.id,
                "league_name": league.name,
                "team_id": team.team_id,
                "position": reward.position,
                "total_pot": total_pot,
                "percentage": reward.percentage,
            },
        )

        try:
            transaction_id = await self.gateway.ledger.record_prize(award)
        except DuplicatePayoutError:
            self._log(
                tournament,
                "Reward already paid",
                {"position": reward.position, "user_id": user.id, "idempotency_key": award.idempotency_key},
                logging.WARNING,
            )
            return PayoutOutcome(
                position=reward.position,
                status=OutcomeStatus.SKIPPED,
                amount=amount,
                user_id=user.id,
                team_id=team.team_id,
                reason="already paid",
            )
        except Exception as e:
            logger.error(
                f"Failed to assign reward for position {reward.position} "
                f"(league {league.id}, user {user.id}, amount {amount}): {e}",
                exc_info=True,
            )
            self._log(
                tournament,
                "Reward assignment failed",
                {
                    "league_id": league.id,
                    "position": reward.position,
                    "user_id": user.id,
                    "team_id": team.team_id,
                    "amount": amount,
                    "error": str(e),
                },
                logging.ERROR,
            )
            return PayoutOutcome(
                position=reward.position,
                status=OutcomeStatus.FAILED,
                amount=amount,
                user_id=user.id,
                team_id=team.team_id,
                reason=str(e),
            )

        # A user can hold more than one paid position
        new_balance = user.current_balance + amount
        users_by_id[user.id] = user.model_copy(update={"current_balance": new_balance})
        self._log(
            tournament,
            "Reward assigned",
            {
                "user_id": user.id,
                "position": reward.position,
                "amount": amount,
                "percentage": reward.percentage,
                "transaction_id": transaction_id,
                "new_balance": new_balance,
            },
        )
        return PayoutOutcome(
            position=reward.position,
            status=OutcomeStatus.APPLIED,
            amount=amount,
            user_id=user.id,
            team_id=team.team_id,
            transaction_id=transaction_id,
        )
