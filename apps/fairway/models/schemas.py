"""
Pydantic models shared by the settlement engine, the repositories and the admin API.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator

from fairway.database.models import TournamentStatus


# ============================================================================
# Records read from storage
# ============================================================================


class RewardSplit(BaseModel):
    """One tier of a league's reward schedule."""

    position: int = Field(ge=1)
    percentage: float
    type: str = "cash"
    product_id: str = ""


class TournamentRecord(BaseModel):
    """Tournament as seen by settlement."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    external_id: str = ""
    starts_at: Optional[datetime] = None
    finishes_at: datetime
    players: List[str] = Field(default_factory=list)
    status: TournamentStatus = TournamentStatus.ACTIVE
    updated_at: Optional[datetime] = None


class LeagueRecord(BaseModel):
    """League as seen by settlement. Read-only."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    tournament_id: str
    entry_fee: Optional[int] = None
    # Raw reward schedule as stored; parsed and validated when the league is settled
    rewards: Any = Field(default_factory=list)
    owner_id: Optional[str] = None

    @field_validator("rewards", mode="before")
    @classmethod
    def _none_rewards_to_empty(cls, value):
        return value or []


class TeamRecord(BaseModel):
    """Team entered in a league."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    league_id: str
    owner_id: str
    name: Optional[str] = None
    player_ids: List[str] = Field(default_factory=list)
    position: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator("player_ids", mode="before")
    @classmethod
    def _none_player_ids_to_empty(cls, value):
        return value or []


class PlayerRecord(BaseModel):
    """Player score snapshot. Read-only."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    current_score: Optional[int] = None
    missed_cut: bool = False


class UserRecord(BaseModel):
    """User balance snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str = ""
    current_balance: int = 0


class PrizeAward(BaseModel):
    """A single payout to apply atomically: balance increment plus ledger row."""

    user_id: str
    amount: int = Field(gt=0)
    name: str
    idempotency_key: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Settlement outcomes
# ============================================================================


class OutcomeStatus(str, Enum):
    """Tag for settlement outcomes at every level."""

    APPLIED = "applied"
    SETTLED = "settled"
    SKIPPED = "skipped"
    FAILED = "failed"


class TeamScore(BaseModel):
    """One leaderboard row."""

    team_id: str
    owner_id: str
    total_score: int
    rank: int = 0
    players_counted: int = 0


class PayoutOutcome(BaseModel):
    """Result of one reward position."""

    position: int
    status: OutcomeStatus
    amount: int = 0
    user_id: Optional[str] = None
    team_id: Optional[str] = None
    transaction_id: Optional[str] = None
    reason: Optional[str] = None


class DistributionOutcome(BaseModel):
    """Result of distributing one league's pot."""

    league_id: str
    total_pot: int
    total_awarded: int = 0
    platform_fee: int = 0
    payouts: List[PayoutOutcome] = Field(default_factory=list)


class LeagueOutcome(BaseModel):
    """Result of settling one league."""

    league_id: str
    status: OutcomeStatus
    reason: Optional[str] = None
    teams: int = 0
    distribution: Optional[DistributionOutcome] = None


class TournamentOutcome(BaseModel):
    """Result of settling one tournament."""

    tournament_id: str
    tournament_name: str
    status: OutcomeStatus
    reason: Optional[str] = None
    leagues: List[LeagueOutcome] = Field(default_factory=list)


class SweepSummary(BaseModel):
    """Run-level summary of a settlement sweep."""

    tournaments_found: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    stuck: int = 0
    tournaments: List[TournamentOutcome] = Field(default_factory=list)
    action_counts: Dict[str, int] = Field(default_factory=dict)


class StuckTournamentResponse(BaseModel):
    """Tournament left in processing longer than the stuck threshold."""

    id: str
    name: str
    status: TournamentStatus
    finishes_at: datetime
    updated_at: Optional[datetime] = None


class TransitionResponse(BaseModel):
    """Result of a manual lifecycle transition."""

    tournament_id: str
    status: TournamentStatus
    changed: bool
