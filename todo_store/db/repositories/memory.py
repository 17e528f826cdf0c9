"""
In-memory todo repository.

Same contract as ``TodoRepository`` without a database: useful for unit
tests of code that consumes a repository.
"""
from __future__ import annotations

import threading
import uuid
from typing import Dict, List, Optional

from todo_store.db import schemas
from todo_store.db.models import now_utc
from todo_store.db.repositories.base import build_update, coerce_id, next_updated_at, validate_payload
from todo_store.errors import NotFound


class InMemoryTodoRepository:
    def __init__(self):
        self._store: Dict[uuid.UUID, schemas.Todo] = {}
        self._lock = threading.Lock()

    def create(self, title: str) -> schemas.Todo:
        payload = validate_payload(schemas.TodoCreate, title=title)
        now = now_utc()
        todo = schemas.Todo(
            id=uuid.uuid4(),
            title=payload.title,
            completed=False,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._store[todo.id] = todo
        return todo

    def get(self, todo_id) -> schemas.Todo:
        key = coerce_id(todo_id)
        with self._lock:
            todo = self._store.get(key)
        if todo is None:
            raise NotFound(todo_id)
        return todo

    def list(self) -> List[schemas.Todo]:
        with self._lock:
            todos = list(self._store.values())
        return sorted(todos, key=lambda t: (t.created_at, t.id))

    def update(
        self,
        todo_id,
        payload: Optional[schemas.TodoUpdate] = None,
        *,
        title: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> schemas.Todo:
        changes = build_update(payload, title, completed)
        key = coerce_id(todo_id)
        with self._lock:
            current = self._store.get(key)
            if current is None:
                raise NotFound(todo_id)
            changes["updated_at"] = next_updated_at(current.updated_at)
            updated = current.model_copy(update=changes)
            self._store[key] = updated
        return updated

    def delete(self, todo_id) -> None:
        key = coerce_id(todo_id)
        with self._lock:
            if self._store.pop(key, None) is None:
                raise NotFound(todo_id)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
