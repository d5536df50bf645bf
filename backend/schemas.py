from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Conversation Schemas
class SpeakerRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    ASSISTANT_ANNOTATION = "assistant_annotation"


class Turn(BaseModel):
    model_config = ConfigDict(frozen=True)

    speaker_role: SpeakerRole
    author_label: str
    text: str
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def user(cls, author_label: str, text: str) -> "Turn":
        return cls(speaker_role=SpeakerRole.USER, author_label=author_label, text=text)

    @classmethod
    def assistant(cls, author_label: str, text: str) -> "Turn":
        return cls(speaker_role=SpeakerRole.ASSISTANT, author_label=author_label, text=text)

    @classmethod
    def annotation(cls, author_label: str, text: str) -> "Turn":
        return cls(speaker_role=SpeakerRole.ASSISTANT_ANNOTATION, author_label=author_label, text=text)


class ConversationWindow(BaseModel):
    conversation_id: str
    turns: list[Turn] = Field(default_factory=list)
    load_warning: Optional[str] = None


# Filter Schemas
class FilterEntry(BaseModel):
    scope_id: Optional[str] = None
    term: str


class FilterAddResult(str, Enum):
    ADDED = "added"
    ALREADY_PRESENT = "already_present"


class FilterRemoveResult(str, Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"


# Orchestration Schemas
class TurnOutcome(str, Enum):
    DELIVERED = "delivered"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


class TurnResult(BaseModel):
    outcome: TurnOutcome
    text: str
    augmented: bool = False
    search_query: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)


# Gateway Schemas
class Attachment(BaseModel):
    filename: Optional[str] = None
    content_type: Optional[str] = None
    data_base64: str


class IncomingMessage(BaseModel):
    author_id: str
    author_name: str
    author_is_bot: bool = False
    channel_id: str
    is_direct: bool = False
    guild_id: Optional[str] = None
    content: str = ""
    mentions_bot: bool = False
    bot_user_id: Optional[str] = None
    attachments: list[Attachment] = Field(default_factory=list)


class ReplyResponse(BaseModel):
    conversation_id: Optional[str] = None
    replied: bool = False
    messages: list[str] = Field(default_factory=list)
    outcome: Optional[TurnOutcome] = None


class TurnRequest(BaseModel):
    author_name: str
    content: str
    scope_id: Optional[str] = None


class WindowResponse(BaseModel):
    conversation_id: str
    size: int
    turns: list[Turn]


class FilterRequest(BaseModel):
    user_id: str
    scope_id: Optional[str] = None
    guild_owner_id: Optional[str] = None
    term: Optional[str] = None


class FilterResponse(BaseModel):
    result: str
    message: str
    terms: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    query: str
    result: str
