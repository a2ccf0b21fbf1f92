"""create crash_account

Revision ID: 5c2e8a91d0f3
Revises: 
Create Date: 2026-10-02 10:12:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e8a91d0f3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'crash_account' in set(insp.get_table_names()):
        return

    op.create_table(
        'crash_account',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('balance', sa.Numeric(precision=10, scale=2), nullable=False, server_default='1000.00'),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('crash_account') as batch_op:
        batch_op.create_index(batch_op.f('ix_crash_account_username'), ['username'], unique=True)


def downgrade():
    with op.batch_alter_table('crash_account') as batch_op:
        batch_op.drop_index(batch_op.f('ix_crash_account_username'))
    op.drop_table('crash_account')
