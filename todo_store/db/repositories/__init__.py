"""
Todo repositories: database-backed, in-memory, and an asyncio facade.
"""

from .async_todos import AsyncTodoRepository
from .base import TodoRepositoryProtocol
from .memory import InMemoryTodoRepository
from .todos import TodoRepository

__all__ = [
    "AsyncTodoRepository",
    "InMemoryTodoRepository",
    "TodoRepository",
    "TodoRepositoryProtocol",
]
