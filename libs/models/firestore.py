"""Pydantic models for Firestore collections.

These models define the structure of the documents stored in Firestore
and are used for data validation and serialization. Documents are stored
with camelCase field names; the models expose snake_case attributes.
"""
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from libs.common.dates import to_calendar_value, to_datetime

SubscriptionStatus = Literal["pending", "active", "rejected", "stopped"]
ConversationStatus = Literal["active", "closed"]
SenderType = Literal["coach", "player"]
AccountStatus = Literal["active", "pending_activation", "rejected"]
TaskStatus = Literal["pending", "completed", "cancelled"]
SubmissionStatus = Literal["not_submitted", "submitted", "approved", "rejected"]
AiRole = Literal["user", "assistant"]

DEFAULT_TIME_SLOT = {"start": "09:00", "end": "17:00"}


def _timestamp_to_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    parsed = to_datetime(value)
    return parsed.isoformat() if parsed else None


def _calendar_to_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    parsed = to_calendar_value(value)
    return parsed.isoformat() if parsed else None


# Native Firestore timestamps from older writers are normalised to ISO strings.
Timestamp = Annotated[str | None, BeforeValidator(_timestamp_to_str)]
CalendarDate = Annotated[str | None, BeforeValidator(_calendar_to_str)]


class FirestoreDocument(BaseModel):
    """Base for collection documents; ``id`` is the document id, never stored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str | None = Field(None, description="Firestore document id.")

    @classmethod
    def from_snapshot(cls, snapshot):
        """Build the model from a document snapshot."""
        return cls.model_validate({**(snapshot.to_dict() or {}), "id": snapshot.id})

    def to_document(self) -> dict[str, Any]:
        """Serialize to the camelCase dict written to Firestore."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"}, exclude_none=True)


class Subscription(FirestoreDocument):
    """A coach-player engagement window."""
    player_id: str = Field(..., description="Subscribed player's id.")
    coach_id: str = Field(..., description="Coach's id.")
    status: SubscriptionStatus = Field(..., description="Lifecycle status.")
    start_date: CalendarDate = Field(None, description="First day of the window.")
    end_date: CalendarDate = Field(None, description="Last day of the window (inclusive).")
    created_at: Timestamp = None
    updated_at: Timestamp = None


class SubscriptionView(Subscription):
    """Subscription joined with player and coach display data."""
    player_name: str = "Unknown"
    player_email: str = ""
    coach_name: str = "Unknown"
    coach_email: str = ""


class LastMessage(BaseModel):
    """Denormalized summary of a conversation's latest message."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    text: str
    sender_id: str
    sender_type: SenderType
    created_at: Timestamp = None


class Conversation(FirestoreDocument):
    """A coach-player chat thread."""
    coach_id: str
    player_id: str
    status: ConversationStatus = "active"
    created_at: Timestamp = None
    updated_at: Timestamp = None
    last_message: LastMessage | None = None
    closed_at: Timestamp = None


class ConversationView(Conversation):
    """Conversation joined with the counterpart's display data."""
    player_name: str | None = None
    player_email: str | None = None
    coach_name: str | None = None
    coach_email: str | None = None


class Message(FirestoreDocument):
    """A chat message; immutable apart from ``read``."""
    sender_id: str
    sender_type: SenderType
    text: str
    media_url: str | None = None
    created_at: Timestamp = None
    read: bool = False


class Rating(FirestoreDocument):
    """A player's rating of a coach."""
    coach_id: str
    player_id: str
    player_name: str = "Anonymous"
    rating: int = Field(..., ge=1, le=5)
    review: str = ""
    created_at: Timestamp = None
    updated_at: Timestamp = None


class TimeSlot(BaseModel):
    start: str
    end: str


class Player(FirestoreDocument):
    """A player account profile, keyed by identity uid."""
    uid: str | None = None
    email: str | None = None
    name: str | None = None
    date_of_birth: str | None = None
    status: AccountStatus = "pending_activation"
    created_at: Timestamp = None
    updated_at: Timestamp = None
    last_login: Timestamp = None


class Coach(FirestoreDocument):
    """A coach account profile, keyed by identity uid.

    Older documents store weekly availability as ``availability`` instead of
    ``availableHours``; both decode into ``available_hours``.
    """
    uid: str | None = None
    email: str | None = None
    name: str | None = None
    date_of_birth: str | None = None
    profession: str | None = None
    price_per_session: float | None = None
    available_days: list[str] = Field(default_factory=list)
    available_hours: dict[str, list[TimeSlot]] = Field(default_factory=dict)
    time_slots: list[TimeSlot] = Field(default_factory=list)
    status: AccountStatus = "pending_activation"
    average_rating: float = 0
    total_reviews: int = 0
    cv_url: str | None = None
    profile_picture_url: str | None = None
    passport_picture_url: str | None = None
    created_at: Timestamp = None
    updated_at: Timestamp = None
    last_login: Timestamp = None

    @model_validator(mode="before")
    @classmethod
    def normalize_availability(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if not data.get("availableHours") and isinstance(data.get("availability"), dict):
            data = {**data, "availableHours": data["availability"]}
        hours = data.get("availableHours")
        if isinstance(hours, dict):
            data = {
                **data,
                "availableHours": {day: slots for day, slots in hours.items() if isinstance(slots, list)},
            }
        if data.get("timeSlots") is not None and not isinstance(data["timeSlots"], list):
            data = {**data, "timeSlots": []}
        return data

    def calendar_time_slots(self) -> list[dict[str, str]]:
        """Canonical availability window list used by the calendar."""
        if self.time_slots:
            return [slot.model_dump() for slot in self.time_slots]
        slots = [slot.model_dump() for day_slots in self.available_hours.values() for slot in day_slots]
        return slots or [dict(DEFAULT_TIME_SLOT)]


class TaskSubmission(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    text_response: str | None = None
    media_urls: list[str] | None = None
    submitted_at: Timestamp = None
    status: SubmissionStatus = "not_submitted"


class Task(FirestoreDocument):
    """Work a coach assigns to a player within an active subscription."""
    coach_id: str
    player_id: str
    subscription_id: str
    title: str
    description: str = ""
    status: TaskStatus = "pending"
    start_date: CalendarDate = None
    due_date: CalendarDate = None
    submission: TaskSubmission | None = None
    completed_at: Timestamp = None
    created_at: Timestamp = None
    updated_at: Timestamp = None


class TaskView(Task):
    player_name: str = "Unknown"
    coach_name: str = "Unknown"


class AiChatMessage(FirestoreDocument):
    """One turn of a player's conversation with the AI assistant."""
    role: AiRole
    text: str
    created_at: Timestamp = None
