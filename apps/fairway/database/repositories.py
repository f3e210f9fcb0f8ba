"""
Persistence gateway for the settlement engine.

One narrow repository per entity, exposing only what settlement needs.
The Protocol classes describe the contract; the Sql* classes implement it
with async SQLAlchemy. Every operation opens its own session from the
session factory, so independent writes can run concurrently and each
write commits on its own.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Protocol

from sqlalchemy import select, update, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fairway.database.models import (
    League,
    PaymentStatus,
    Player,
    Team,
    Tournament,
    TournamentStatus,
    Transaction,
    TransactionType,
    User,
)
from fairway.models.schemas import (
    LeagueRecord,
    PlayerRecord,
    PrizeAward,
    TeamRecord,
    TournamentRecord,
    UserRecord,
)
from fairway.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class PayoutError(Exception):
    """A prize could not be applied; nothing was written."""


class DuplicatePayoutError(PayoutError):
    """A prize with the same idempotency key is already in the ledger."""


# ============================================================================
# Contracts
# ============================================================================


class TournamentRepository(Protocol):
    async def find_due(self, now: datetime) -> List[TournamentRecord]: ...

    async def compare_and_set_status(
        self, tournament_id: str, expected: TournamentStatus, new: TournamentStatus
    ) -> bool: ...

    async def set_status(self, tournament_id: str, status: TournamentStatus) -> None: ...

    async def find_stuck(self, cutoff: datetime) -> List[TournamentRecord]: ...

    async def get(self, tournament_id: str) -> Optional[TournamentRecord]: ...


class LeagueRepository(Protocol):
    async def list_by_tournament(self, tournament_id: str) -> List[LeagueRecord]: ...


class TeamRepository(Protocol):
    async def list_by_league(self, league_id: str) -> List[TeamRecord]: ...

    async def update_position(self, team_id: str, position: int) -> None: ...


class PlayerRepository(Protocol):
    async def get_by_ids(self, player_ids: Iterable[str]) -> List[PlayerRecord]: ...


class UserRepository(Protocol):
    async def get_by_ids(self, user_ids: Iterable[str]) -> List[UserRecord]: ...


class LedgerRepository(Protocol):
    async def record_prize(self, award: PrizeAward) -> str:
        """Increment the user's balance and append the ledger row atomically.

        Returns the new transaction id. Raises DuplicatePayoutError when the
        idempotency key was already used, PayoutError when the user is missing.
        """
        ...


class SettlementGateway:
    """Bundle of repositories handed to the settlement engine."""

    def __init__(
        self,
        tournaments: TournamentRepository,
        leagues: LeagueRepository,
        teams: TeamRepository,
        players: PlayerRepository,
        users: UserRepository,
        ledger: LedgerRepository,
    ):
        self.tournaments = tournaments
        self.leagues = leagues
        self.teams = teams
        self.players = players
        self.users = users
        self.ledger = ledger

    @classmethod
    def from_session_factory(
        cls, session_factory: async_sessionmaker[AsyncSession]
    ) -> "SettlementGateway":
        """Build the SQLAlchemy-backed gateway."""
        return cls(
            tournaments=SqlTournamentRepository(session_factory),
            leagues=SqlLeagueRepository(session_factory),
            teams=SqlTeamRepository(session_factory),
            players=SqlPlayerRepository(session_factory),
            users=SqlUserRepository(session_factory),
            ledger=SqlLedgerRepository(session_factory),
        )


# ============================================================================
# SQLAlchemy implementation
# ============================================================================


class _SqlRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory


class SqlTournamentRepository(_SqlRepository):

    async def find_due(self, now: datetime) -> List[TournamentRecord]:
        """Active tournaments whose scheduled end has passed."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Tournament)
                .where(
                    and_(
                        Tournament.finishes_at <= now,
                        Tournament.status == TournamentStatus.ACTIVE,
                    )
                )
                .order_by(Tournament.finishes_at.asc(), Tournament.id.asc())
            )
            return [TournamentRecord.model_validate(t) for t in result.scalars().all()]

    async def compare_and_set_status(
        self, tournament_id: str, expected: TournamentStatus, new: TournamentStatus
    ) -> bool:
        """
        Conditional status transition in a single UPDATE.

        Returns:
            True if this call performed the transition, False if the tournament
            was not in the expected status (or does not exist)
        """
        async with self._session_factory() as session:
            result = await session.execute(
                update(Tournament)
                .where(and_(Tournament.id == tournament_id, Tournament.status == expected))
                .values(status=new, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def set_status(self, tournament_id: str, status: TournamentStatus) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Tournament)
                .where(Tournament.id == tournament_id)
                .values(status=status, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def find_stuck(self, cutoff: datetime) -> List[TournamentRecord]:
        """Tournaments still processing whose last status write is older than cutoff."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Tournament)
                .where(
                    and_(
                        Tournament.status == TournamentStatus.PROCESSING,
                        Tournament.updated_at <= cutoff,
                    )
                )
                .order_by(Tournament.updated_at.asc(), Tournament.id.asc())
            )
            return [TournamentRecord.model_validate(t) for t in result.scalars().all()]

    async def get(self, tournament_id: str) -> Optional[TournamentRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Tournament).where(Tournament.id == tournament_id)
            )
            tournament = result.scalar_one_or_none()
            return TournamentRecord.model_validate(tournament) if tournament else None


class SqlLeagueRepository(_SqlRepository):

    async def list_by_tournament(self, tournament_id: str) -> List[LeagueRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(League)
                .where(League.tournament_id == tournament_id)
                .order_by(League.created_at.asc(), League.id.asc())
            )
            return [LeagueRecord.model_validate(league) for league in result.scalars().all()]


class SqlTeamRepository(_SqlRepository):

    async def list_by_league(self, league_id: str) -> List[TeamRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Team)
                .where(Team.league_id == league_id)
                .order_by(Team.created_at.asc(), Team.id.asc())
            )
            return [TeamRecord.model_validate(team) for team in result.scalars().all()]

    async def update_position(self, team_id: str, position: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Team)
                .where(Team.id == team_id)
                .values(position=position, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()


class SqlPlayerRepository(_SqlRepository):

    async def get_by_ids(self, player_ids: Iterable[str]) -> List[PlayerRecord]:
        ids = list(player_ids)
        if not ids:
            return []
        async with self._session_factory() as session:
            result = await session.execute(select(Player).where(Player.id.in_(ids)))
            return [PlayerRecord.model_validate(p) for p in result.scalars().all()]


class SqlUserRepository(_SqlRepository):

    async def get_by_ids(self, user_ids: Iterable[str]) -> List[UserRecord]:
        ids = list(user_ids)
        if not ids:
            return []
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.id.in_(ids)))
            return [UserRecord.model_validate(u) for u in result.scalars().all()]


class SqlLedgerRepository(_SqlRepository):

    async def record_prize(self, award: PrizeAward) -> str:
        """
        Increment the balance and append the prize ledger row in one transaction.

        The balance is incremented server-side (current_balance + :amount),
        never read-modify-written. The user row is updated first, so a missing
        user raises PayoutError before the ledger insert is attempted.
        """
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    now = utcnow()
                    result = await session.execute(
                        update(User)
                        .where(User.id == award.user_id)
                        .values(
                            current_balance=User.current_balance + award.amount,
                            updated_at=now,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise PayoutError(f"User {award.user_id} not found")

                    ledger_row = Transaction(
                        name=award.name,
                        value=award.amount,
                        type=TransactionType.PRIZE.value,
                        user_id=award.user_id,
                        payment_status=PaymentStatus.COMPLETED.value,
                        idempotency_key=award.idempotency_key,
                        metadata_=award.metadata,
                        created_at=now,
                        updated_at=now,
                    )
                    session.add(ledger_row)
                    await session.flush()
                    transaction_id = ledger_row.id
            except IntegrityError as e:
                if await self._idempotency_key_exists(award.idempotency_key):
                    raise DuplicatePayoutError(
                        f"Prize {award.idempotency_key} already recorded"
                    ) from e
                raise

        return transaction_id

    async def _idempotency_key_exists(self, idempotency_key: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Transaction.id).where(Transaction.idempotency_key == idempotency_key)
            )
            return result.scalar_one_or_none() is not None
