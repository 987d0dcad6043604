"""
SQLAlchemy ORM models for the Sunday football league.
"""

import enum
import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    Index,
    JSON,
)
from futbol.database.db import Base
from futbol.utils.datetime_utils import utcnow


class GameStatus(str, enum.Enum):
    """Game lifecycle status."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VoteType(str, enum.Enum):
    """Day vote type."""

    YES = "yes"
    NO = "no"


class AdminNotificationType(str, enum.Enum):
    """Admin notification type."""

    MATCH_READY = "match_ready"
    VOTING_REMINDER = "voting_reminder"


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class User(Base):
    """League player, mirrored from the identity provider."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)  # Identity provider user id
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    nickname = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_whitelisted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Game(Base):
    """A Sunday game. At most one per date."""

    __tablename__ = "games"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    date = Column(Date, nullable=False, unique=True)
    status = Column(
        Enum(GameStatus, values_callable=_enum_values, name="gamestatus"),
        default=GameStatus.SCHEDULED,
        nullable=False,
    )
    # JSON columns are always reassigned, never mutated in place
    participants = Column(JSON, nullable=False, default=list)
    waitlist = Column(JSON, nullable=False, default=list)
    teams = Column(JSON, nullable=True)  # {"team1": [...], "team2": [...]}
    result = Column(JSON, nullable=True)  # {"team1_score", "team2_score", "notes", "mvp"}
    reservation_info = Column(JSON, nullable=True)
    custom_time = Column(String(5), nullable=True)  # HH:MM
    admin_notification_sent = Column(Boolean, default=False, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_games_status", "status"),
    )


class DayVote(Base):
    """A user's yes/no vote for a single Sunday."""

    __tablename__ = "day_votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    day = Column(Integer, nullable=False)
    vote_type = Column(
        Enum(VoteType, values_callable=_enum_values, name="votetype"), nullable=False
    )
    # Python-side default keeps sub-second precision for FIFO ordering
    voted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", "day", name="uq_day_votes_user_date"),
        Index("idx_day_votes_date", "year", "month", "day"),
    )


class MonthlyAvailability(Base):
    """Aggregated view of the Sundays a user said yes to in a month."""

    __tablename__ = "monthly_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    available_sundays = Column(JSON, nullable=False, default=list)
    cannot_play_any_day = Column(Boolean, default=False, nullable=False)
    has_voted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_monthly_availability_user_month"),
    )


class ReminderStatus(Base):
    """Per-user, per-month voting reminder bookkeeping."""

    __tablename__ = "reminder_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    last_reminder_sent = Column(DateTime(timezone=True), nullable=True)
    reminder_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_reminder_status_user_month"),
    )


class MvpVote(Base):
    """Anonymous MVP vote. Only the target is stored."""

    __tablename__ = "mvp_votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    voted_for_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_mvp_votes_game", "game_id"),
    )


class MvpVoteStatus(Base):
    """Records that a voter has voted for a game, without the choice."""

    __tablename__ = "mvp_vote_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    voter_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    has_voted = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("game_id", "voter_id", name="uq_mvp_vote_status_game_voter"),
    )


class AdminNotification(Base):
    """Notifications shown on the admin dashboard."""

    __tablename__ = "admin_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(
        Enum(AdminNotificationType, values_callable=_enum_values, name="adminnotificationtype"),
        nullable=False,
    )
    game_id = Column(String, ForeignKey("games.id", ondelete="CASCADE"), nullable=True)
    month = Column(Integer, nullable=True)
    year = Column(Integer, nullable=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    action_required = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_admin_notifications_unread", "is_read", "created_at"),
    )


class Setting(Base):
    """Application configuration."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
