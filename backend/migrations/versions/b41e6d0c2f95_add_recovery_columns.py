"""add password recovery columns to users

Revision ID: b41e6d0c2f95
Revises: 7f3b2c1d9a40
Create Date: 2026-10-19 00:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = 'b41e6d0c2f95'
down_revision = '7f3b2c1d9a40'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.add_column(sa.Column('recovery_token', sa.String(length=255), nullable=True))
        batch_op.add_column(sa.Column('recovery_sent_at', sa.DateTime(timezone=True), nullable=True))
        batch_op.create_index('ix_users_recovery_token', ['recovery_token'], unique=False)


def downgrade():
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_index('ix_users_recovery_token')
        batch_op.drop_column('recovery_sent_at')
        batch_op.drop_column('recovery_token')
