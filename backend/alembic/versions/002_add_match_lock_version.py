"""add match lock_version for optimistic concurrency

Revision ID: 002_match_lock_version
Revises: 001_initial
Create Date: 2026-10-05 14:12:40.118204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002_match_lock_version'
down_revision = '001_initial'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column('match', sa.Column('lock_version', sa.Integer(), nullable=False, server_default='0'))


def downgrade() -> None:
    op.drop_column('match', 'lock_version')
