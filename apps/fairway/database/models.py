"""
SQLAlchemy ORM models for the fantasy golf settlement system.
"""

import enum
import uuid
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fairway.database.db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_id() -> str:
    """Generate an opaque text primary key."""
    return uuid.uuid4().hex


class TournamentStatus(str, enum.Enum):
    """Tournament lifecycle status enum."""

    ACTIVE = "active"
    PROCESSING = "processing"
    FINISHED = "finished"
    CANCELLED = "cancelled"


class TransactionType(str, enum.Enum):
    """Ledger transaction type enum."""

    PRIZE = "prize"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    ENTRY_FEE = "entry_fee"


class PaymentStatus(str, enum.Enum):
    """Ledger payment status enum."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    """Platform user holding a cash balance."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_id)
    email = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    current_balance = Column(Integer, nullable=False, default=0)  # Smallest currency unit
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    teams = relationship("Team", back_populates="owner")
    transactions = relationship("Transaction", back_populates="user")

    __table_args__ = (Index("idx_users_email", "email"),)


class Tournament(Base):
    """A golf tournament that leagues are played against."""

    __tablename__ = "tournaments"

    id = Column(String, primary_key=True, default=generate_id)
    external_id = Column(String, nullable=False)  # Reference id from the sports data provider
    name = Column(String, nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    finishes_at = Column(DateTime(timezone=True), nullable=False)
    players = Column(JSONType, nullable=False, default=list)  # List of player ids
    status = Column(
        Enum(
            TournamentStatus,
            name="tournament_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=TournamentStatus.ACTIVE,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    leagues = relationship("League", back_populates="tournament")

    __table_args__ = (
        Index("idx_tournaments_status_finishes_at", "status", "finishes_at"),
    )


class League(Base):
    """A paid league played against a single tournament."""

    __tablename__ = "leagues"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    tournament_id = Column(String, ForeignKey("tournaments.id"), nullable=False)
    owner_id = Column(String, ForeignKey("users.id"), nullable=True)
    entry_fee = Column(Integer, nullable=False)  # Smallest currency unit
    rewards = Column(JSONType, nullable=False, default=list)  # List of reward splits
    max_participants = Column(Integer, default=100)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    tournament = relationship("Tournament", back_populates="leagues")
    teams = relationship("Team", back_populates="league")

    __table_args__ = (Index("idx_leagues_tournament_id", "tournament_id"),)


class Player(Base):
    """A tournament entrant with a live score."""

    __tablename__ = "players"

    id = Column(String, primary_key=True, default=generate_id)
    tournament_id = Column(String, ForeignKey("tournaments.id"), nullable=True)
    profile_id = Column(String, nullable=True)
    current_score = Column(Integer, nullable=True, default=0)  # Lower is better
    missed_cut = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_players_tournament_id", "tournament_id"),)


class Team(Base):
    """A user's team of players inside a league."""

    __tablename__ = "teams"

    id = Column(String, primary_key=True, default=generate_id)
    league_id = Column(String, ForeignKey("leagues.id"), nullable=False)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False)
    name = Column(String, nullable=True)
    player_ids = Column(JSONType, nullable=False, default=list)  # Ordered list of player ids
    position = Column(Integer, nullable=True)  # Final rank, written by settlement
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    league = relationship("League", back_populates="teams")
    owner = relationship("User", back_populates="teams")

    __table_args__ = (
        Index("idx_teams_league_id", "league_id"),
        Index("idx_teams_owner_id", "owner_id"),
    )


class Transaction(Base):
    """Append-only ledger row for a monetary movement."""

    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    value = Column(Integer, nullable=False)
    type = Column(String, nullable=False)  # TransactionType value
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    idempotency_key = Column(String, nullable=True, unique=True)  # Prevents duplicate payouts
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="transactions")

    __table_args__ = (
        Index("idx_transactions_user_id", "user_id"),
        Index("idx_transactions_type", "type"),
    )
