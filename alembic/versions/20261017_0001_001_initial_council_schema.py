"""Initial schema - users, councils, council messages and memories

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

Baseline for the tables that init_db.py creates with create_all.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('subscription_tier', sa.String(20), nullable=False, server_default='FREE'),
        sa.Column('role', sa.String(20), nullable=False, server_default='user', index=True),
        sa.Column('is_active', sa.Boolean, default=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Councils table (four agent slots, soft-deleted via status)
    op.create_table(
        'councils',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), index=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('agent1_id', sa.String(64), nullable=False),
        sa.Column('agent2_id', sa.String(64), nullable=False),
        sa.Column('agent3_id', sa.String(64), nullable=False),
        sa.Column('agent4_id', sa.String(64), nullable=False),
        sa.Column('agent1_custom', sa.Text, nullable=True),
        sa.Column('agent2_custom', sa.Text, nullable=True),
        sa.Column('agent3_custom', sa.Text, nullable=True),
        sa.Column('agent4_custom', sa.Text, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE', index=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_councils_user_status', 'councils', ['user_id', 'status'])

    # Council transcript (append-only)
    op.create_table(
        'council_messages',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('council_id', sa.String(36), sa.ForeignKey('councils.id'), index=True, nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('agent_id', sa.String(64), nullable=True),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('tokens_used', sa.Integer, nullable=True),
        sa.Column('cost', sa.Float, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), index=True),
    )
    op.create_index(
        'ix_council_messages_council_created', 'council_messages', ['council_id', 'created_at']
    )

    # Memories table
    op.create_table(
        'memories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), index=True, nullable=False),
        sa.Column('council_id', sa.String(36), sa.ForeignKey('councils.id'), nullable=True),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('embedding_json', sa.Text, nullable=False),
        sa.Column('tags_json', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), index=True),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_memories_user_created', 'memories', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_memories_user_created', table_name='memories')
    op.drop_table('memories')
    op.drop_index('ix_council_messages_council_created', table_name='council_messages')
    op.drop_table('council_messages')
    op.drop_index('ix_councils_user_status', table_name='councils')
    op.drop_table('councils')
    op.drop_table('users')
