"""create_profiles_and_generation_logs

Revision ID: 3c1f9a27b8d4
Revises:
Create Date: 2026-02-03 11:08:17.204611

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f9a27b8d4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create profiles and generation_logs tables (skips tables that already exist)."""
    from sqlalchemy import inspect

    bind = op.get_bind()
    inspector = inspect(bind)
    tables = inspector.get_table_names()

    if 'profiles' not in tables:
        op.create_table(
            'profiles',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('is_pro', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('subscription_status', sa.String(), nullable=False, server_default='none'),
            sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
            sa.Column('plan_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('stripe_subscription_id', sa.String(), nullable=True),
            sa.Column('generations_used', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('resume_hash', sa.String(), nullable=True),
            sa.Column('resume_summary', sa.Text(), nullable=True),
            sa.Column('resume_updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_profiles_email'), 'profiles', ['email'], unique=False)
        op.create_index(op.f('ix_profiles_stripe_customer_id'), 'profiles', ['stripe_customer_id'], unique=False)
        op.create_index(op.f('ix_profiles_stripe_subscription_id'), 'profiles', ['stripe_subscription_id'], unique=False)

    if 'generation_logs' not in tables:
        op.create_table(
            'generation_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_email', sa.String(), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
            sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('generations_at_request', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_generation_logs_id'), 'generation_logs', ['id'], unique=False)
        op.create_index(op.f('ix_generation_logs_user_id'), 'generation_logs', ['user_id'], unique=False)


def downgrade() -> None:
    """Drop generation_logs and profiles tables."""
    op.drop_index(op.f('ix_generation_logs_user_id'), table_name='generation_logs')
    op.drop_index(op.f('ix_generation_logs_id'), table_name='generation_logs')
    op.drop_table('generation_logs')
    op.drop_index(op.f('ix_profiles_stripe_subscription_id'), table_name='profiles')
    op.drop_index(op.f('ix_profiles_stripe_customer_id'), table_name='profiles')
    op.drop_index(op.f('ix_profiles_email'), table_name='profiles')
    op.drop_table('profiles')
