"""Create users, categories and posts tables on a shard

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the per-shard tables."""

    # Reference data, replicated to every shard (ids intentionally non-unique)
    op.create_table(
        'users',
        sa.Column('row_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])

    op.create_table(
        'categories',
        sa.Column('row_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_index('ix_categories_id', 'categories', ['id'])

    # Sharded data, placed by category
    op.create_table(
        'posts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('category_id', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_posts_category_id_created_at', 'posts', ['category_id', 'created_at'])


def downgrade() -> None:
    """Drop the per-shard tables."""
    op.drop_index('ix_posts_category_id_created_at', table_name='posts')
    op.drop_table('posts')
    op.drop_index('ix_categories_id', table_name='categories')
    op.drop_table('categories')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
