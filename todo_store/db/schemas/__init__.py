"""
Pydantic payloads and read models for the todo store.
"""

from .todos import Todo, TodoCreate, TodoUpdate

__all__ = [
    "Todo",
    "TodoCreate",
    "TodoUpdate",
]
