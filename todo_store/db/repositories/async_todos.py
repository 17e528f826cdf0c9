"""
Asyncio facade over a blocking todo repository.

Each call runs in a worker thread so waiting for a pooled connection or for
query I/O never stalls the event loop. If the awaiting task is cancelled the
worker still completes its scoped lease: the connection goes back to the
pool and an unfinished transaction is rolled back.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

from todo_store.db import schemas
from todo_store.db.repositories.base import TodoRepositoryProtocol


class AsyncTodoRepository:
    def __init__(self, repository: TodoRepositoryProtocol):
        self.repository = repository

    async def create(self, title: str) -> schemas.Todo:
        return await asyncio.to_thread(self.repository.create, title)

    async def get(self, todo_id) -> schemas.Todo:
        return await asyncio.to_thread(self.repository.get, todo_id)

    async def list(self) -> List[schemas.Todo]:
        return await asyncio.to_thread(self.repository.list)

    async def update(
        self,
        todo_id,
        payload: Optional[schemas.TodoUpdate] = None,
        *,
        title: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> schemas.Todo:
        return await asyncio.to_thread(
            self.repository.update, todo_id, payload, title=title, completed=completed
        )

    async def delete(self, todo_id) -> None:
        await asyncio.to_thread(self.repository.delete, todo_id)
