"""initial schema: users and hub records

Revision ID: 0001
Revises:
Create Date: 2026-10-19 10:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('password_hash', sa.String(length=200), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('user_metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'hub_records',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('hub_location', sa.String(length=255), nullable=False),
        sa.Column('recorder_name', sa.String(length=255), nullable=False),
        sa.Column('entry_date', sa.String(length=255), nullable=False),
        sa.Column('entity_name', sa.String(length=255), nullable=False),
        sa.Column('entity_phone', sa.Text(), nullable=False),
        sa.Column('entity_email', sa.Text(), nullable=False),
        sa.Column('entity_address', sa.Text(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_category', sa.String(length=32), nullable=False),
        sa.Column('batch_sku', sa.String(length=255), nullable=False),
        sa.Column('serial_number', sa.String(length=255), nullable=False),
        sa.Column('specifications', sa.Text(), nullable=False),
        sa.Column('accessories_notes', sa.Text(), nullable=False),
        sa.Column('record_description', sa.Text(), nullable=False),
        sa.Column('product_photo', sa.Text(), nullable=True),
        sa.Column('verification_date', sa.String(length=255), nullable=False),
        sa.Column('verification_staff', sa.String(length=255), nullable=False),
        sa.Column('quality_check', sa.Text(), nullable=False),
        sa.Column('materials_notes', sa.Text(), nullable=False),
        sa.Column('action_taken', sa.Text(), nullable=False),
        sa.Column('verification_confirmation', sa.JSON(), nullable=False),
        sa.Column('processing_fee', sa.Float(), nullable=False),
        sa.Column('additional_cost', sa.Float(), nullable=False),
        sa.Column('total_value', sa.Float(), nullable=False),
        sa.Column('amount_paid', sa.Float(), nullable=False),
        sa.Column('balance', sa.Float(), nullable=False),
        sa.Column('transaction_completed', sa.Boolean(), nullable=False),
        sa.Column('is_dispatched', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('log_timeline', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_hub_records_user_id', 'hub_records', ['user_id'])
    op.create_index('ix_hub_records_entity_name', 'hub_records', ['entity_name'])
    op.create_index('ix_hub_records_serial_number', 'hub_records', ['serial_number'])
    op.create_index('ix_hub_records_status', 'hub_records', ['status'])
    op.create_index('ix_hub_records_created_at', 'hub_records', ['created_at'])
    op.create_index('ix_hub_records_user_status', 'hub_records', ['user_id', 'status'])
    op.create_index('ix_hub_records_status_created', 'hub_records', ['status', 'created_at'])


def downgrade():
    op.drop_index('ix_hub_records_status_created', table_name='hub_records')
    op.drop_index('ix_hub_records_user_status', table_name='hub_records')
    op.drop_index('ix_hub_records_created_at', table_name='hub_records')
    op.drop_index('ix_hub_records_status', table_name='hub_records')
    op.drop_index('ix_hub_records_serial_number', table_name='hub_records')
    op.drop_index('ix_hub_records_entity_name', table_name='hub_records')
    op.drop_index('ix_hub_records_user_id', table_name='hub_records')
    op.drop_table('hub_records')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
