"""initial contest schema

Revision ID: 0001
Revises: 
Create Date: 2025-11-20 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_faculty', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('asu_id', sa.String(length=64), nullable=True),
        sa.Column('discipline', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email')
    )
    op.create_table(
        'admins',
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('email')
    )
    op.create_table(
        'otps',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('otp_hash', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_otps_email_used', 'otps', ['email', 'used'])
    op.create_table(
        'designs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('submitter_id', sa.String(length=36), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('artwork_name', sa.String(length=255), nullable=True),
        sa.Column('student_name', sa.String(length=255), nullable=True),
        sa.Column('major', sa.String(length=255), nullable=True),
        sa.Column('year_level', sa.String(length=32), nullable=True),
        sa.Column('asurite', sa.String(length=64), nullable=True),
        sa.Column('modality', sa.String(length=32), nullable=False),
        sa.Column('storage_path', sa.String(length=512), nullable=False),
        sa.Column('is_flagged', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['submitter_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_designs_submitter_id', 'designs', ['submitter_id'])
    op.create_index('ix_designs_modality', 'designs', ['modality'])
    op.create_table(
        'votes',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('voter_id', sa.String(length=36), nullable=False),
        sa.Column('design_id', sa.String(length=36), nullable=False),
        sa.Column('modality', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['voter_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['design_id'], ['designs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('voter_id', 'design_id', name='uq_votes_voter_design')
    )
    op.create_index('ix_votes_voter_id', 'votes', ['voter_id'])
    op.create_index('ix_votes_design_id', 'votes', ['design_id'])
    op.create_table(
        'rsvps',
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('will_attend', sa.String(length=3), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id')
    )
    op.create_table(
        'settings',
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )
    op.create_table(
        'contact_messages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('sender_name', sa.String(length=255), nullable=False),
        sa.Column('sender_email', sa.String(length=255), nullable=False),
        sa.Column('topic', sa.String(length=255), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('subject', sa.String(length=64), nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('contact_messages')
    op.drop_table('settings')
    op.drop_table('rsvps')
    op.drop_index('ix_votes_design_id', table_name='votes')
    op.drop_index('ix_votes_voter_id', table_name='votes')
    op.drop_table('votes')
    op.drop_index('ix_designs_modality', table_name='designs')
    op.drop_index('ix_designs_submitter_id', table_name='designs')
    op.drop_table('designs')
    op.drop_index('ix_otps_email_used', table_name='otps')
    op.drop_table('otps')
    op.drop_table('admins')
    op.drop_table('users')
