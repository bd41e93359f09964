"""Create registrations, raffle counter and issued raffle number tables

Revision ID: 5c1e0a7d2b41
Revises:
Create Date: 2026-10-17 10:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e0a7d2b41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'registrations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('ticket_count', sa.Integer(), nullable=False),
        sa.Column('payment_screenshot_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('raffle_numbers', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending','verified','rejected')",
            name='registrations_status_enum_check',
        ),
        sa.CheckConstraint(
            'ticket_count >= 1 AND ticket_count <= 10',
            name='registrations_ticket_count_range_check',
        ),
        sa.PrimaryKeyConstraint('id', name='registrations_pkey'),
    )
    op.create_index(
        'registrations_status_created_at_idx',
        'registrations',
        ['status', 'created_at'],
    )
    op.create_table(
        'raffle_counters',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('high_water_mark', sa.Integer(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'high_water_mark >= 0 AND high_water_mark <= capacity',
            name='raffle_counters_high_water_mark_range_check',
        ),
        sa.PrimaryKeyConstraint('id', name='raffle_counters_pkey'),
    )
    op.create_table(
        'issued_raffle_numbers',
        sa.Column('number', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('registration_id', sa.String(length=36), nullable=True),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'number >= 1', name='issued_raffle_numbers_number_positive_check'
        ),
        sa.ForeignKeyConstraint(
            ['registration_id'],
            ['registrations.id'],
            name='issued_raffle_numbers_registration_id_fkey',
            ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('number', name='issued_raffle_numbers_pkey'),
    )
    op.create_index(
        'ix_issued_raffle_numbers_registration_id',
        'issued_raffle_numbers',
        ['registration_id'],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(
        'ix_issued_raffle_numbers_registration_id',
        table_name='issued_raffle_numbers',
    )
    op.drop_table('issued_raffle_numbers')
    op.drop_table('raffle_counters')
    op.drop_index('registrations_status_created_at_idx', table_name='registrations')
    op.drop_table('registrations')
