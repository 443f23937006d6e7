"""destruction tasks

Revision ID: x2b3c4d5e6f7
Revises: w1a2b3c4d5e6
Create Date: 2026-10-18 12:00:00.000000

On-site destruction work:
- destruction_tasks: customer requests (pending -> scheduled -> in_progress -> completed | cancelled)
- destruction_records: check-in/check-out of each visit
- destruction_certificates: proof of destruction (draft -> issued -> revoked)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'x2b3c4d5e6f7'
down_revision = 'w1a2b3c4d5e6'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'destruction_tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('task_number', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('contact_phone', sa.String(length=32), nullable=False),
        sa.Column('contact_address', sa.String(length=255), nullable=False),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('service_type', sa.String(length=64), nullable=False),
        sa.Column('item_description', sa.Text(), nullable=True),
        sa.Column('estimated_weight', sa.Float(), nullable=True),
        sa.Column('special_requirements', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_destruction_tasks_task_number', 'destruction_tasks', ['task_number'], unique=True)
    op.create_index('ix_destruction_tasks_status', 'destruction_tasks', ['status'])
    op.create_index('ix_destruction_tasks_user_created', 'destruction_tasks', ['user_id', 'created_at'])

    op.create_table(
        'destruction_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('check_in_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('check_out_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_weight', sa.Float(), nullable=True),
        sa.Column('item_count', sa.Integer(), nullable=True),
        sa.Column('item_details', sa.Text(), nullable=True),
        sa.Column('witness_name', sa.String(length=128), nullable=True),
        sa.Column('witness_signature', sa.Text(), nullable=True),
        sa.Column('staff_id', sa.Integer(), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recorded_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['task_id'], ['destruction_tasks.id'], ondelete='CASCADE'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_destruction_records_task_id', 'destruction_records', ['task_id'])

    op.create_table(
        'destruction_certificates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=False),
        sa.Column('certificate_number', sa.String(length=32), nullable=False),
        sa.Column('destruction_method', sa.String(length=64), nullable=False),
        sa.Column('destruction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('operator_name', sa.String(length=128), nullable=False),
        sa.Column('supervisor_name', sa.String(length=128), nullable=True),
        sa.Column('file_url', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['task_id'], ['destruction_tasks.id'], ondelete='CASCADE'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_destruction_certificates_certificate_number', 'destruction_certificates',
                    ['certificate_number'], unique=True)
    op.create_index('ix_destruction_certificates_task_id', 'destruction_certificates', ['task_id'])
    op.create_index('ix_destruction_certificates_status', 'destruction_certificates', ['status'])


def downgrade():
    op.drop_table('destruction_certificates')
    op.drop_table('destruction_records')
    op.drop_table('destruction_tasks')
