"""
Data models for the itinerary planner flow.

Backend payloads use camelCase / Mongo-style keys (`_id`, `cityName`, ...);
the models accept them through aliases and dump them back with
`by_alias=True` when echoing objects to the backend.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Sentinel question id carrying the chosen city in the answer set
CITY_SELECTION_ID = "initial-city-selection"


class QuestionType(str, Enum):
    """Question input types. `common` questions are shared across cities and carry options."""
    SPECIFIC = "specific"
    TEXT = "text"
    COMMON = "common"
    OPTIONS = "options"
    NUMBER = "number"
    DATE = "date"


class QuestionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Sender(str, Enum):
    BOT = "bot"
    USER = "user"


class MessageType(str, Enum):
    """How a transcript entry should be rendered"""
    TEXT = "text"
    OPTIONS = "options"
    NUMBER = "number"
    DATE = "date"
    ITINERARY = "itinerary"
    GUIDE_LIST = "guideList"


class ErrorKind(str, Enum):
    """Closed classification of backend failures, decided once by the HTTP client"""
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class City(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id", description="Backend city id")
    city_name: str = Field(..., alias="cityName", description="Display name")
    order: int = Field(default=0, description="Display order")


class Question(BaseModel):
    """
    A questionnaire step for one city (or for every city when `city` is null).

    `type` and `options` hold exactly what the backend sent, and unknown
    backend fields are kept, so the objects can be posted back to the
    travel-plan endpoint unchanged. `kind` and `choices` are the
    interpreted views used for prompting and validation.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")
    question_text: str = Field(..., alias="questionText")
    city: Optional[Any] = Field(default=None, alias="cityId", description="Owning city, null for all cities")
    status: str = Field(default=QuestionStatus.ACTIVE.value)
    order: int = 0
    type: Optional[str] = Field(default=None, description="Raw backend type")
    options: Optional[List[str]] = None

    @property
    def kind(self) -> QuestionType:
        # unknown or missing types are answered as free text
        try:
            return QuestionType(self.type)
        except ValueError:
            return QuestionType.TEXT

    @property
    def choices(self) -> List[str]:
        return list(self.options or [])

    @property
    def is_active(self) -> bool:
        return (self.status or "").lower() == QuestionStatus.ACTIVE.value

    @property
    def is_choice(self) -> bool:
        """Choice questions only validate against options when they actually declare some."""
        return self.kind in (QuestionType.COMMON, QuestionType.OPTIONS) and bool(self.choices)

    def to_payload(self) -> dict:
        # only the keys the backend sent, extras included
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)


class Answer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(..., alias="questionId")
    response: str


class Guide(BaseModel):
    """Read-only projection of a guide profile"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    user_id: Optional[str] = Field(default=None, alias="userId")
    name: Optional[str] = None
    bio: str = ""
    languages: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    service_locations: List[str] = Field(default_factory=list, alias="serviceLocations")
    active: bool = False

    @field_validator("bio", mode="before")
    @classmethod
    def none_bio(cls, v: Any) -> Any:
        return v or ""


class TravelPlan(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_id: str = Field(..., alias="planId", description="Durable retrieval token for the plan")
    itinerary: str


class ChatMessage(BaseModel):
    """One transcript entry. Entries are never edited once appended."""
    model_config = ConfigDict(frozen=True)

    sender: Sender
    text: str
    type: MessageType = MessageType.TEXT
    options: List[str] = Field(default_factory=list)
    is_error: bool = False
    guides: List[Guide] = Field(default_factory=list)
