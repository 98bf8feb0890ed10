"""Request bodies accepted by the HTTP API."""

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from modern.store.models import TASK_PENDING, TASK_STATUSES


class ChatTurnRequest(BaseModel):
    content: str = Field(min_length=1, description="The user's message")
    system_prompt: str | None = Field(
        default=None, description="Replaces the composed system prompt for this turn"
    )

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            msg = "content must not be blank"
            raise ValueError(msg)
        return v


class ConversationCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class ConversationUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=200)


def _check_status(v: str | None) -> str | None:
    if v is not None and v not in TASK_STATUSES:
        msg = f"status must be one of {', '.join(sorted(TASK_STATUSES))}"
        raise ValueError(msg)
    return v


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    status: str = TASK_PENDING
    conversation_id: str | None = None

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str | None) -> str | None:
        return _check_status(v)


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    status: str | None = None
    conversation_id: str | None = None

    @field_validator("title", "status")
    @classmethod
    def not_null(cls, v: str | None, info: ValidationInfo) -> str:
        # Defaults are not validated, so this only fires for an explicit null.
        if v is None:
            msg = f"{info.field_name} must not be null"
            raise ValueError(msg)
        return v

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str | None) -> str | None:
        return _check_status(v)


class KnowledgeCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    category: str = ""
    content: str = ""
    tags: list[str] = Field(default_factory=list)


class SettingsUpdate(BaseModel):
    assistant_name: str | None = Field(default=None, min_length=1, max_length=50)
    system_instructions: str | None = Field(default=None, min_length=10, max_length=2000)


class EmailSend(BaseModel):
    to: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)
    cc: str | None = None
    bcc: str | None = None


class EventCreate(BaseModel):
    summary: str = Field(min_length=1)
    start: str = Field(min_length=1, description="ISO 8601 start time")
    end: str = Field(min_length=1, description="ISO 8601 end time")
    description: str | None = None
    location: str | None = None
    attendees: list[str] | None = None


class EventUpdate(BaseModel):
    summary: str | None = Field(default=None, min_length=1)
    start: str | None = Field(default=None, min_length=1)
    end: str | None = Field(default=None, min_length=1)
    description: str | None = None
    location: str | None = None
    attendees: list[str] | None = None

    @field_validator("summary", "start", "end")
    @classmethod
    def not_null(cls, v: str | None, info: ValidationInfo) -> str:
        if v is None:
            msg = f"{info.field_name} must not be null"
            raise ValueError(msg)
        return v
