"""Pydantic models for the coaching back office API.

Request bodies use the camelCase field names the admin console and the apps
send; snake_case names are accepted as well. Update models are dumped with
``exclude_unset`` so only the fields a client sent are written.
"""

from __future__ import annotations

import time
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from libs.common.dates import to_calendar_value
from libs.models.firestore import (
    AccountStatus,
    AiChatMessage,
    SenderType,
    SubscriptionStatus,
    TaskStatus,
    TaskSubmission,
    TimeSlot,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_patch(self) -> dict[str, Any]:
        """camelCase dict of the fields the client sent with a value; nulls are dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True)


def _require_calendar_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if to_calendar_value(value) is None:
        raise ValueError("Must be an ISO-8601 date (YYYY-MM-DD) or datetime")
    return value


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("Must not be empty")
    return value


DateString = Annotated[str, AfterValidator(_require_calendar_date)]
NonBlankText = Annotated[str, AfterValidator(_require_text)]


# Subscription Models
class CreateSubscriptionRequest(CamelModel):
    """Request model for creating a subscription."""
    player_id: str = Field(..., min_length=1, description="Subscribed player's id")
    coach_id: str = Field(..., min_length=1, description="Coach's id")
    status: SubscriptionStatus = Field("pending", description="Initial lifecycle status")
    start_date: DateString = Field(..., description="First day of the window", examples=["2024-01-01"])
    end_date: DateString = Field(..., description="Last day of the window (inclusive)", examples=["2024-01-31"])


class UpdateSubscriptionRequest(CamelModel):
    """Request model for a partial subscription update."""
    player_id: Optional[str] = None
    coach_id: Optional[str] = None
    status: Optional[SubscriptionStatus] = None
    start_date: Optional[DateString] = None
    end_date: Optional[DateString] = None


class ExpireCheckResponse(CamelModel):
    """Response model for a manual expiry sweep."""
    success: bool = True
    message: str = Field(description="Human-readable summary")
    expired_count: int = Field(ge=0, description="Subscriptions moved to stopped")


# Chat Models
class CreateConversationRequest(CamelModel):
    coach_id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)
    status: Literal["active", "closed"] = "active"


class ConversationPairRequest(CamelModel):
    """Identifies a conversation by its coach and player."""
    coach_id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)


class SendMessageRequest(CamelModel):
    """Request model for posting a chat message."""
    sender_id: str = Field(..., min_length=1, description="Id of the sending coach or player")
    sender_type: SenderType = Field(..., description="Which side of the conversation sent it")
    text: NonBlankText = Field(..., max_length=4000, description="Message body")
    media_url: Optional[str] = Field(None, description="Optional attachment URL")


class MarkReadRequest(CamelModel):
    user_id: str = Field(..., min_length=1, description="Reader's id")
    user_type: SenderType = Field(..., description="Reader's side; messages from the other side are marked")


class SendAiMessageRequest(CamelModel):
    """Request model for a player's prompt to the AI assistant."""
    player_id: str = Field(..., min_length=1)
    message: NonBlankText = Field(..., max_length=4000, description="Prompt text")


class StoreAiResponseRequest(CamelModel):
    player_id: str = Field(..., min_length=1)
    response: str = Field(..., description="Assistant reply produced by the app")


class AiChatResponse(CamelModel):
    """Response model for ``POST /chat/ai``."""
    success: bool = True
    message: str = "Message sent successfully"
    response: Optional[AiChatMessage] = Field(
        None, description="Assistant turn, present when the server generated the reply"
    )


# Rating Models
class CreateRatingRequest(CamelModel):
    coach_id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5, description="Score from 1 to 5")
    review: Optional[str] = Field(None, max_length=2000)
    player_name: Optional[str] = Field(None, description="Name shown with the review")


class UpdateRatingRequest(CamelModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    review: Optional[str] = Field(None, max_length=2000)


# Player Models
class CreatePlayerRequest(CamelModel):
    """Request model for creating a player account."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, description="Minimum 6 characters")
    date_of_birth: str = Field(..., description="ISO date of birth", examples=["2008-05-14"])
    status: Optional[AccountStatus] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        """Validate that the name is not empty or just whitespace."""
        if not v.strip():
            raise ValueError("Name must not be empty")
        return v.strip()


class UpdatePlayerRequest(CamelModel):
    name: Optional[str] = None
    date_of_birth: Optional[str] = None
    status: Optional[AccountStatus] = None


# Coach Models
class CreateCoachRequest(CamelModel):
    """Request model for creating a coach account."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    date_of_birth: str
    profession: str = Field(..., min_length=1)
    price_per_session: float = Field(..., ge=1, le=100)
    available_days: list[str] = Field(default_factory=list)
    available_hours: dict[str, list[TimeSlot]] = Field(..., description="Day name to time slots")
    status: Optional[AccountStatus] = None


class UpdateCoachRequest(CamelModel):
    name: Optional[str] = None
    date_of_birth: Optional[str] = None
    profession: Optional[str] = None
    price_per_session: Optional[float] = Field(None, ge=1, le=100)
    available_days: Optional[list[str]] = None
    available_hours: Optional[dict[str, list[TimeSlot]]] = None
    status: Optional[AccountStatus] = None


class CoachFilterOptions(CamelModel):
    professions: list[str]
    price_range: dict[str, float]
    days: list[str]


# Task Models
class CreateTaskRequest(CamelModel):
    """Request model for assigning a task under a subscription."""
    coach_id: str = Field(..., min_length=1)
    player_id: str = Field(..., min_length=1)
    subscription_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    status: TaskStatus = "pending"
    start_date: DateString
    due_date: DateString
    submission: Optional[TaskSubmission] = None


class UpdateTaskRequest(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    start_date: Optional[DateString] = None
    due_date: Optional[DateString] = None
    submission: Optional[TaskSubmission] = None

class HealthResponse(BaseModel):
    """Response model for health check endpoints.

    Attributes:
        status: Health status (healthy/unhealthy/ready/not_ready)
        service: Service name
        version: Service version
        timestamp: Unix timestamp
        details: Optional additional details
    """

    status: Literal["healthy", "unhealthy", "ready", "not_ready"] = Field(
        description="Health status",
        examples=["healthy"],
    )
    service: str = Field(description="Service name", examples=["api"])
    version: str = Field(description="Service version", examples=["1.0.0"])
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix timestamp",
    )
    details: dict[str, str] | None = Field(
        default=None,
        description="Optional additional details",
        examples=[{"firestore": "configured", "expiry_sweep": "scheduled"}],
    )


class ErrorResponse(BaseModel):
    """Standard error response model.

    Attributes:
        error: Error code
        message: Human-readable error message
        details: Optional error details
        request_id: Request identifier for tracking
    """

    error: str = Field(description="Error code", examples=["NOT_FOUND"])
    message: str = Field(description="Human-readable error message", examples=["Subscription not found"])
    details: dict[str, Any] | None = Field(default=None, description="Optional error details")
    request_id: str | None = Field(
        default=None,
        description="Request identifier for tracking",
        examples=["req_1234567890"],
    )
