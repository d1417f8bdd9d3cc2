"""create org, org_member, org_subscription and org_invitation tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'org',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
    )

    # One row per (org, user); the primary key doubles as the membership
    # uniqueness constraint.
    op.create_table(
        'org_member',
        sa.Column('org_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column(
            'can_edit',
            sa.Boolean,
            nullable=False,
            server_default=sa.text('true'),
        ),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        sa.ForeignKeyConstraint(
            ['org_id'],
            ['org.id'],
            name='org_member_org_fkey',
            ondelete='CASCADE',
        ),
    )
    op.create_index('ix_org_member_user_id', 'org_member', ['user_id'])

    op.create_table(
        'org_subscription',
        sa.Column('org_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column(
            'seats_editor', sa.Integer, nullable=False, server_default=sa.text('0')
        ),
        sa.Column(
            'seats_viewer', sa.Integer, nullable=False, server_default=sa.text('0')
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        sa.ForeignKeyConstraint(
            ['org_id'],
            ['org.id'],
            name='org_subscription_org_fkey',
            ondelete='CASCADE',
        ),
    )

    op.create_table(
        'org_invitation',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('inviter_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_by_user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['org_id'],
            ['org.id'],
            name='org_invitation_org_fkey',
            ondelete='CASCADE',
        ),
    )
    op.create_index('ix_org_invitation_org_id', 'org_invitation', ['org_id'])
    op.create_index('ix_org_invitation_email', 'org_invitation', ['email'])
    # At most one pending invitation per (org, email)
    op.create_index(
        'uq_org_invitation_pending_org_email',
        'org_invitation',
        ['org_id', 'email'],
        unique=True,
        postgresql_where=sa.text('accepted_at IS NULL'),
    )


def downgrade() -> None:
    op.drop_index('uq_org_invitation_pending_org_email', table_name='org_invitation')
    op.drop_index('ix_org_invitation_email', table_name='org_invitation')
    op.drop_index('ix_org_invitation_org_id', table_name='org_invitation')
    op.drop_table('org_invitation')

    op.drop_table('org_subscription')

    op.drop_index('ix_org_member_user_id', table_name='org_member')
    op.drop_table('org_member')

    op.drop_table('org')
