import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, Index, String, Uuid, false

from ..types import UTCDateTime
from .base import Base, now_utc

TITLE_MAX_LENGTH = 100


class Todo(Base):
    __tablename__ = 'todos'
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    completed = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=False, default=now_utc)

    __table_args__ = (
        CheckConstraint('length(title) > 0', name='ck_todos_title_not_empty'),
        Index('idx_todos_created_at', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<Todo id={self.id} title={self.title!r} completed={self.completed}>"
