"""create_registry_tables

Revision ID: 5e1f0c2a9b3d
Revises:
Create Date: 2026-10-18 09:12:44.208311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5e1f0c2a9b3d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema - Create next-gen upgrades and classic builds tables."""
    op.create_table(
        'upgrades',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('issue_number', sa.Integer(), nullable=False),
        sa.Column('pull_request_number', sa.Integer(), nullable=False),
        sa.Column('issue_title', sa.String(500), nullable=False, server_default=''),
        sa.Column('issue_url', sa.String(2000), nullable=False, server_default=''),
        sa.Column('release_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revision', sa.Integer(), nullable=False),
        sa.Column('released', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id')
    )
    # Revision allocation depends on this constraint
    op.create_index('idx_upgrade_revision', 'upgrades', ['revision'], unique=True)
    op.create_index('idx_upgrade_pull_request', 'upgrades', ['pull_request_number'])
    op.create_index('idx_upgrade_release_date', 'upgrades', ['release_date'])

    op.create_table(
        'builds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('author', sa.String(200)),
        sa.Column('title', sa.String(500)),
        sa.Column('bug_id', sa.Integer()),
        sa.Column('pass', sa.Boolean(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finish_time', sa.DateTime(timezone=True)),
        sa.Column('num_diffs', sa.Integer()),
        sa.Column('revision_number', sa.Integer()),
        sa.Column('jenkins_id', sa.Integer()),
        sa.Column('pull_request_id', sa.Integer()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_build_revision', 'builds', ['revision_number'], unique=True)
    op.create_index('idx_build_pull_request', 'builds', ['pull_request_id'])


def downgrade() -> None:
    """Downgrade schema - Drop registry tables."""
    op.drop_index('idx_build_pull_request', table_name='builds')
    op.drop_index('idx_build_revision', table_name='builds')
    op.drop_table('builds')

    op.drop_index('idx_upgrade_release_date', table_name='upgrades')
    op.drop_index('idx_upgrade_pull_request', table_name='upgrades')
    op.drop_index('idx_upgrade_revision', table_name='upgrades')
    op.drop_table('upgrades')
