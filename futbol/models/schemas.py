"""
Pydantic models for API request/response validation.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """User as returned by the API."""

    id: str
    email: str
    name: str
    nickname: Optional[str] = None
    image_url: Optional[str] = None
    is_admin: bool = False
    is_whitelisted: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class NicknameUpdate(BaseModel):
    nickname: Optional[str] = None


class AdminFlagUpdate(BaseModel):
    is_admin: bool


class WhitelistFlagUpdate(BaseModel):
    is_whitelisted: bool


class BulkUserItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    name: Optional[str] = None
    nickname: Optional[str] = None
    image_url: Optional[str] = None
    is_admin: Optional[bool] = None
    is_whitelisted: Optional[bool] = None


class BulkUsersRequest(BaseModel):
    users: List[BulkUserItem]


# ---------------------------------------------------------------------------
# Votes and availability
# ---------------------------------------------------------------------------

class DayVoteRequest(BaseModel):
    """
    Vote for one Sunday.

    Only year and month are required at the schema level so that a vote for a
    closed month is reported as such even when the rest of the payload is off.
    """

    year: int
    month: int
    day: Optional[int] = None
    vote_type: Optional[str] = None


class DayUnvoteRequest(BaseModel):
    year: int
    month: int
    day: Optional[int] = None


class AvailabilityRequest(BaseModel):
    """
    Whole-month availability. The day list is checked by the service, after
    the closed-month rule, like DayVoteRequest.
    """

    month: int
    year: int
    available_sundays: Any = None
    cannot_play_any_day: Any = False


class UnvoteRequest(BaseModel):
    month: int
    year: int
    unavailable_sundays: Any = None


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

class ReservationInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    location: str
    time: Optional[str] = None
    cost: Optional[float] = None
    reserved_by: Optional[str] = None
    maps_link: Optional[str] = None
    payment_alias: Optional[str] = None


class Teams(BaseModel):
    team1: List[str] = Field(default_factory=list)
    team2: List[str] = Field(default_factory=list)


class GameResponse(BaseModel):
    id: str
    date: str
    status: str
    participants: List[str]
    waitlist: List[str]
    teams: Optional[Dict] = None
    result: Optional[Dict] = None
    reservation_info: Optional[Dict] = None
    custom_time: Optional[str] = None
    admin_notification_sent: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class GameCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_date: date = Field(alias="date")
    participants: List[str] = Field(default_factory=list)
    waitlist: List[str] = Field(default_factory=list)
    custom_time: Optional[str] = None


class GameUpdate(BaseModel):
    """Partial admin update. Only fields present in the request are applied."""

    status: Optional[str] = None
    participants: Optional[List[str]] = None
    waitlist: Optional[List[str]] = None
    teams: Optional[Teams] = None
    reservation_info: Optional[ReservationInfo] = None
    custom_time: Optional[str] = None


class ConfirmGameRequest(BaseModel):
    custom_time: Optional[str] = None
    reservation_info: Optional[ReservationInfo] = None


class ResultRequest(BaseModel):
    team1_score: int = Field(ge=0)
    team2_score: int = Field(ge=0)
    notes: Optional[str] = None


class WaitlistAddRequest(BaseModel):
    user_id: str


class ParticipantRemoveRequest(BaseModel):
    """Remove a participant; user_id_to_add optionally names the replacement."""

    user_id_to_remove: str
    user_id_to_add: Optional[str] = None


# ---------------------------------------------------------------------------
# MVP
# ---------------------------------------------------------------------------

class MvpVoteRequest(BaseModel):
    game_id: str
    voted_for_id: str


class MvpFinalizeRequest(BaseModel):
    game_id: str


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class ActiveMonthRequest(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)


class AdminNotificationAction(BaseModel):
    """
    Action on an admin notification.

    mark_read only needs notification_id; confirm_match also needs game_id and
    the reservation details.
    """

    action: str
    notification_id: Optional[int] = None
    game_id: Optional[str] = None
    custom_time: Optional[str] = None
    reservation_info: Optional[ReservationInfo] = None

    @model_validator(mode="after")
    def validate_action(self):
        if self.action == "mark_read" and self.notification_id is None:
            raise ValueError("notification_id is required")
        if self.action == "confirm_match" and not self.game_id:
            raise ValueError("game_id is required")
        if self.action not in ("mark_read", "confirm_match", "create_voting_reminder"):
            raise ValueError(f"Unknown action: {self.action}")
        return self


class MatchConfirmationRequest(BaseModel):
    selected_participants: Optional[List[str]] = None


class MvpReminderRequest(BaseModel):
    game_id: Optional[str] = None


class EmailTestRequest(BaseModel):
    email: str
