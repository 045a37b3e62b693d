"""Create users, partner_hierarchy and deals tables

Revision ID: 20261019_000001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # parent_partner_id has no foreign key: dangling links are reported, not prevented
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('partner_id', sa.String(20), nullable=True),
        sa.Column('referral_code', sa.String(20), nullable=True),
        sa.Column('parent_partner_id', sa.String(36), nullable=True),
        sa.Column('telegram_id', sa.BigInteger(), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('partner_id'),
        sa.UniqueConstraint('telegram_id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=True)
    op.create_index('ix_users_parent_partner_id', 'users', ['parent_partner_id'])

    op.create_table(
        'partner_hierarchy',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('child_id', sa.String(36), nullable=False),
        sa.Column('parent_id', sa.String(36), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('child_id', 'level', name='uq_partner_hierarchy_child_level'),
        sa.CheckConstraint('level >= 1', name='check_partner_hierarchy_level_positive'),
    )
    op.create_index('ix_partner_hierarchy_child_id', 'partner_hierarchy', ['child_id'])
    op.create_index('ix_partner_hierarchy_parent_level', 'partner_hierarchy', ['parent_id', 'level'])

    op.create_table(
        'deals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('business_name', sa.String(255), nullable=False),
        sa.Column('deal_stage', sa.String(50), nullable=False, server_default='lead'),
        sa.Column('status', sa.String(30), nullable=False, server_default='submitted'),
        sa.Column('referrer_id', sa.String(36), nullable=False),
        sa.Column('parent_referrer_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deals_status', 'deals', ['status'])
    op.create_index('ix_deals_referrer_id', 'deals', ['referrer_id'])
    op.create_index('ix_deals_parent_referrer_id', 'deals', ['parent_referrer_id'])


def downgrade() -> None:
    op.drop_index('ix_deals_parent_referrer_id', 'deals')
    op.drop_index('ix_deals_referrer_id', 'deals')
    op.drop_index('ix_deals_status', 'deals')
    op.drop_table('deals')

    op.drop_index('ix_partner_hierarchy_parent_level', 'partner_hierarchy')
    op.drop_index('ix_partner_hierarchy_child_id', 'partner_hierarchy')
    op.drop_table('partner_hierarchy')

    op.drop_index('ix_users_parent_partner_id', 'users')
    op.drop_index('ix_users_referral_code', 'users')
    op.drop_index('ix_users_email', 'users')
    op.drop_table('users')
