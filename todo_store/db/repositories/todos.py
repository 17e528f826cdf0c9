"""
Todo repository backed by the relational database.

Each operation leases one connection from the pool and runs in a single
transaction. Results are frozen ``schemas.Todo`` snapshots, detached from
the ORM session.
"""
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from todo_store.db import models, schemas
from todo_store.db.pool import ConnectionPool
from todo_store.db.repositories.base import build_update, coerce_id, next_updated_at, validate_payload
from todo_store.errors import NotFound

logger = logging.getLogger(__name__)


class TodoRepository:
    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    def create(self, title: str) -> schemas.Todo:
        payload = validate_payload(schemas.TodoCreate, title=title)
        now = models.now_utc()
        with self.pool.session() as db:
            db_todo = models.Todo(
                id=uuid.uuid4(),
                title=payload.title,
                completed=False,
                created_at=now,
                updated_at=now,
            )
            db.add(db_todo)
            db.flush()
            todo = schemas.Todo.model_validate(db_todo)
        logger.debug("todo_created id=%s", todo.id)
        return todo

    def get(self, todo_id) -> schemas.Todo:
        key = coerce_id(todo_id)
        with self.pool.session() as db:
            db_todo = db.get(models.Todo, key)
            if db_todo is None:
                raise NotFound(todo_id)
            return schemas.Todo.model_validate(db_todo)

    def list(self) -> List[schemas.Todo]:
        """All todos, oldest first; ties on ``created_at`` are ordered by id."""
        with self.pool.session() as db:
            rows = (
                db.query(models.Todo)
                .order_by(models.Todo.created_at.asc(), models.Todo.id.asc())
                .all()
            )
            return [schemas.Todo.model_validate(row) for row in rows]

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
        with self.pool.session() as db:
            # Row lock serializes concurrent updates of the same id
            db_todo = (
                db.query(models.Todo)
                .filter(models.Todo.id == key)
                .with_for_update()
                .first()
            )
            if db_todo is None:
                raise NotFound(todo_id)
            for field, value in changes.items():
                setattr(db_todo, field, value)
            db_todo.updated_at = next_updated_at(db_todo.updated_at)
            db.flush()
            todo = schemas.Todo.model_validate(db_todo)
        logger.debug("todo_updated id=%s fields=%s", todo.id, sorted(changes))
        return todo

    def delete(self, todo_id) -> None:
        key = coerce_id(todo_id)
        with self.pool.session() as db:
            deleted = (
                db.query(models.Todo)
                .filter(models.Todo.id == key)
                .delete(synchronize_session=False)
            )
            if deleted == 0:
                raise NotFound(todo_id)
        logger.debug("todo_deleted id=%s", key)
