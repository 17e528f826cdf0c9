"""add todos created_at index

Revision ID: 0002
Revises: 0001
Create Date: 2025-10-01 09:05:00.000000

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_index('idx_todos_created_at', 'todos', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_todos_created_at', table_name='todos')
