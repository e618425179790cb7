"""Create lock table

Revision ID: 001_locks
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_locks'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create locks table"""
    op.create_table(
        'locks',
        sa.Column('resource_name', sa.String(255), primary_key=True),
        sa.Column('holder_id', sa.String(255), nullable=False),
        sa.Column('acquired_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )

    # Serve list-by-holder and active-lease scans
    op.create_index('ix_locks_holder_id', 'locks', ['holder_id'])
    op.create_index('ix_locks_expires_at', 'locks', ['expires_at'])


def downgrade() -> None:
    """Drop locks table"""
    op.drop_index('ix_locks_expires_at', table_name='locks')
    op.drop_index('ix_locks_holder_id', table_name='locks')
    op.drop_table('locks')
