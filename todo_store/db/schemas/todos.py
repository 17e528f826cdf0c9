import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from todo_store.db.models import TITLE_MAX_LENGTH


def _reject_nul(value):
    # PostgreSQL text columns cannot store NUL
    if value is not None and "\x00" in value:
        raise ValueError("title must not contain NUL characters")
    return value


class TodoCreate(BaseModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)

    @field_validator("title")
    @classmethod
    def title_without_nul(cls, value):
        return _reject_nul(value)


class TodoUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    completed: bool | None = None

    @field_validator("title")
    @classmethod
    def title_without_nul(cls, value):
        return _reject_nul(value)


class Todo(BaseModel):
    id: uuid.UUID
    title: str
    completed: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True, frozen=True)
