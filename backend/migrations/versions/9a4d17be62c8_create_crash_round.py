"""create crash_round for published fairness proofs

Revision ID: 9a4d17be62c8
Revises: 5c2e8a91d0f3
Create Date: 2026-10-05 16:40:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9a4d17be62c8'
down_revision = '5c2e8a91d0f3'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'crash_round' in set(insp.get_table_names()):
        return

    op.create_table(
        'crash_round',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('round_index', sa.Integer(), nullable=False),
        sa.Column('server_seed', sa.String(length=64), nullable=False),
        sa.Column('seed_digest', sa.String(length=64), nullable=False),
        sa.Column('tier', sa.String(length=8), nullable=False),
        sa.Column('scaling_factor', sa.Float(), nullable=False),
        sa.Column('risk_score', sa.Float(), nullable=False),
        sa.Column('bet_count', sa.Integer(), nullable=False),
        sa.Column('crash_point', sa.Float(), nullable=False),
        sa.Column('max_payout', sa.Float(), nullable=False),
        sa.Column('profit', sa.Float(), nullable=False),
        sa.Column('crashed_at', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('crash_round') as batch_op:
        batch_op.create_index(batch_op.f('ix_crash_round_round_index'), ['round_index'], unique=False)
        batch_op.create_index(batch_op.f('ix_crash_round_seed_digest'), ['seed_digest'], unique=False)


def downgrade():
    with op.batch_alter_table('crash_round') as batch_op:
        batch_op.drop_index(batch_op.f('ix_crash_round_seed_digest'))
        batch_op.drop_index(batch_op.f('ix_crash_round_round_index'))
    op.drop_table('crash_round')
