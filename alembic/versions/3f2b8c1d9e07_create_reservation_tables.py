"""create reservation tables

Revision ID: 3f2b8c1d9e07
Revises:
Create Date: 2026-10-16 10:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2b8c1d9e07'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


reservation_status = sa.Enum(
    'AWAITING_CHECKIN', 'CHECKED_IN', 'NO_SHOW', 'CANCELLED', name='reservationstatus'
)
reservation_type = sa.Enum(
    'PARTICULAR', 'ANIVERSARIO', 'CONFRATERNIZACAO', 'EMPRESA', name='reservationtype'
)
block_mode = sa.Enum('PERIOD', name='blockmode')
block_period = sa.Enum('AFTERNOON', 'NIGHT', 'ALL_DAY', name='blockperiod')
guest_role = sa.Enum('GUEST', 'HOST', name='guestrole')


def upgrade() -> None:
    op.create_table(
        'units',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('slug', sa.String(length=140), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_units_slug', 'units', ['slug'], unique=True)

    op.create_table(
        'areas',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('unit_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('capacity_afternoon', sa.Integer(), nullable=True),
        sa.Column('capacity_night', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('photo_url', sa.String(length=500), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon_emoji', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('unit_id', 'name', name='uq_areas_unit_name'),
    )
    op.create_index('ix_areas_unit_id', 'areas', ['unit_id'])

    op.create_table(
        'reservations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('cpf', sa.String(length=14), nullable=True),
        sa.Column('email', sa.String(length=254), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('birthday_date', sa.DateTime(), nullable=True),
        sa.Column('people', sa.Integer(), nullable=False),
        sa.Column('kids', sa.Integer(), nullable=False),
        sa.Column('reservation_date', sa.DateTime(), nullable=False),
        sa.Column('reservation_type', reservation_type, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('unit_id', sa.String(length=36), nullable=True),
        sa.Column('area_id', sa.String(length=36), nullable=True),
        sa.Column('unit_name', sa.String(length=120), nullable=True),
        sa.Column('area_name', sa.String(length=120), nullable=True),
        sa.Column('status', reservation_status, nullable=False),
        sa.Column('reservation_code', sa.String(length=6), nullable=False),
        sa.Column('qr_token', sa.String(length=64), nullable=False),
        sa.Column('qr_expires_at', sa.DateTime(), nullable=True),
        sa.Column('checked_in_at', sa.DateTime(), nullable=True),
        sa.Column('checked_in_by', sa.String(length=64), nullable=True),
        sa.Column('utm_source', sa.String(length=120), nullable=True),
        sa.Column('utm_medium', sa.String(length=120), nullable=True),
        sa.Column('utm_campaign', sa.String(length=120), nullable=True),
        sa.Column('utm_content', sa.String(length=120), nullable=True),
        sa.Column('utm_term', sa.String(length=120), nullable=True),
        sa.Column('url', sa.String(length=500), nullable=True),
        sa.Column('ref', sa.String(length=120), nullable=True),
        sa.Column('source', sa.String(length=60), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id']),
        sa.ForeignKeyConstraint(['area_id'], ['areas.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reservations_reservation_code', 'reservations', ['reservation_code'], unique=True)
    op.create_index('ix_reservations_qr_token', 'reservations', ['qr_token'], unique=True)
    op.create_index('ix_reservations_email', 'reservations', ['email'])
    op.create_index('ix_reservations_phone', 'reservations', ['phone'])
    op.create_index('ix_reservations_status', 'reservations', ['status'])
    op.create_index('ix_reservations_unit_id', 'reservations', ['unit_id'])
    op.create_index('ix_reservations_reservation_date', 'reservations', ['reservation_date'])
    op.create_index(
        'ix_reservations_area_date_status', 'reservations', ['area_id', 'reservation_date', 'status']
    )

    op.create_table(
        'reservation_blocks',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('unit_id', sa.String(length=36), nullable=False),
        sa.Column('area_id', sa.String(length=36), nullable=True),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('mode', block_mode, nullable=False),
        sa.Column('period', block_period, nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id']),
        sa.ForeignKeyConstraint(['area_id'], ['areas.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reservation_blocks_unit_date', 'reservation_blocks', ['unit_id', 'date'])

    op.create_table(
        'guests',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('reservation_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('role', guest_role, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reservation_id', 'email', name='uq_guests_reservation_email'),
    )
    op.create_index('ix_guests_reservation_id', 'guests', ['reservation_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('entity', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=True),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('user_role', sa.String(length=16), nullable=True),
        sa.Column('old_data', sa.JSON(), nullable=True),
        sa.Column('new_data', sa.JSON(), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=300), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_created_at', table_name='audit_logs')
    op.drop_index('ix_audit_logs_entity', table_name='audit_logs')
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('ix_guests_reservation_id', table_name='guests')
    op.drop_table('guests')

    op.drop_index('ix_reservation_blocks_unit_date', table_name='reservation_blocks')
    op.drop_table('reservation_blocks')

    op.drop_index('ix_reservations_area_date_status', table_name='reservations')
    op.drop_index('ix_reservations_reservation_date', table_name='reservations')
    op.drop_index('ix_reservations_unit_id', table_name='reservations')
    op.drop_index('ix_reservations_status', table_name='reservations')
    op.drop_index('ix_reservations_phone', table_name='reservations')
    op.drop_index('ix_reservations_email', table_name='reservations')
    op.drop_index('ix_reservations_qr_token', table_name='reservations')
    op.drop_index('ix_reservations_reservation_code', table_name='reservations')
    op.drop_table('reservations')

    op.drop_index('ix_areas_unit_id', table_name='areas')
    op.drop_table('areas')

    op.drop_index('ix_units_slug', table_name='units')
    op.drop_table('units')

    bind = op.get_bind()
    for enum in (guest_role, block_period, block_mode, reservation_type, reservation_status):
        enum.drop(bind, checkfirst=True)
