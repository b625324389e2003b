"""create entries table

Revision ID: 0001a1b2c3d4
Revises:
Create Date: 2026-10-16
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001a1b2c3d4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('content_type', sa.String(length=128), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_entries_content_type'), 'entries', ['content_type'])
    op.create_index('ix_entries_content_type_id', 'entries', ['content_type', 'id'])


def downgrade() -> None:
    op.drop_index('ix_entries_content_type_id', table_name='entries')
    op.drop_index(op.f('ix_entries_content_type'), table_name='entries')
    op.drop_table('entries')
