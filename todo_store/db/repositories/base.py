"""
Shared contract and helpers for todo repositories.

Both the database-backed and the in-memory repository validate input with
the same pydantic payloads, coerce identifiers the same way and advance
``updated_at`` with the same rule, so callers can swap one for the other.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from todo_store.db import schemas
from todo_store.db.models import now_utc
from todo_store.errors import NotFound, ValidationError

PayloadT = TypeVar("PayloadT", bound=BaseModel)

_TIMESTAMP_STEP = timedelta(microseconds=1)


class TodoRepositoryProtocol(Protocol):
    def create(self, title: str) -> schemas.Todo: ...

    def get(self, todo_id) -> schemas.Todo: ...

    def list(self) -> List[schemas.Todo]: ...

    def update(
        self,
        todo_id,
        payload: Optional[schemas.TodoUpdate] = None,
        *,
        title: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> schemas.Todo: ...

    def delete(self, todo_id) -> None: ...


def validate_payload(schema: Type[PayloadT], **data) -> PayloadT:
    """Instantiate ``schema`` and translate pydantic failures into ValidationError."""
    try:
        return schema(**data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(f"{field}: {first['msg']}" if field else first["msg"], field=field) from exc


def build_update(
    payload: Optional[schemas.TodoUpdate],
    title: Optional[str],
    completed: Optional[bool],
) -> dict:
    """Return only the fields the caller actually provided.

    Changes come either as a ``TodoUpdate`` payload or as keywords, never both.
    """
    if payload is not None and (title is not None or completed is not None):
        raise ValidationError("pass a TodoUpdate payload or title/completed keywords, not both")
    if payload is None:
        provided = {k: v for k, v in (("title", title), ("completed", completed)) if v is not None}
        payload = validate_payload(schemas.TodoUpdate, **provided)
    return payload.model_dump(exclude_unset=True, exclude_none=True)


def coerce_id(todo_id) -> uuid.UUID:
    """Normalize ``todo_id``; anything that is not a UUID can never exist."""
    if isinstance(todo_id, uuid.UUID):
        return todo_id
    if isinstance(todo_id, str):
        try:
            return uuid.UUID(todo_id)
        except ValueError:
            raise NotFound(todo_id) from None
    raise NotFound(todo_id)


def next_updated_at(previous: Optional[datetime]) -> datetime:
    """Current UTC time, but never earlier than one microsecond after ``previous``."""
    now = now_utc()
    if previous is None:
        return now
    return max(now, previous + _TIMESTAMP_STEP)
