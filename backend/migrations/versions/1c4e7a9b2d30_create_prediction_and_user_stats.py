"""create prediction and user_stats tables

Revision ID: 1c4e7a9b2d30
Revises:
Create Date: 2025-10-02 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1c4e7a9b2d30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'prediction' not in existing_tables:
        op.create_table(
            'prediction',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('fid', sa.Integer(), nullable=False),
            sa.Column('coin_id', sa.String(length=20), nullable=False),
            sa.Column('challenge_type', sa.String(length=10), nullable=False),
            sa.Column('direction', sa.String(length=10), nullable=False),
            sa.Column('start_price', sa.Float(), nullable=False),
            sa.Column('predicted_price', sa.Float(), nullable=True),
            sa.Column('end_price', sa.Float(), nullable=True),
            sa.Column('timestamp', sa.BigInteger(), nullable=False),
            sa.Column('expires_at', sa.BigInteger(), nullable=False),
            sa.Column('round_id', sa.String(length=50), nullable=False),
            sa.Column('round_start_time', sa.BigInteger(), nullable=True),
            sa.Column('round_end_time', sa.BigInteger(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
            sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('accuracy', sa.Float(), nullable=False, server_default='0'),
            sa.Column('streak_multiplier', sa.Float(), nullable=False, server_default='1'),
            sa.Column('streak_bonus', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('settled_at', sa.BigInteger(), nullable=True),
            sa.UniqueConstraint('fid', 'coin_id', 'challenge_type', 'round_id', name='uq_prediction_user_round'),
        )
        op.create_index('ix_prediction_fid', 'prediction', ['fid'])
        op.create_index('ix_prediction_expires_at', 'prediction', ['expires_at'])
        op.create_index('ix_prediction_status', 'prediction', ['status'])

    if 'user_stats' not in existing_tables:
        op.create_table(
            'user_stats',
            sa.Column('fid', sa.Integer(), primary_key=True, autoincrement=False),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('display_name', sa.String(length=128), nullable=False),
            sa.Column('pfp_url', sa.Text(), nullable=True),
            sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('quick_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('big_score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_predictions', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('quick_predictions', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('big_predictions', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('won_predictions', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('lost_predictions', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('pending_predictions', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('win_rate', sa.Float(), nullable=False, server_default='0'),
            sa.Column('average_accuracy', sa.Float(), nullable=False, server_default='0'),
            sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('rank', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_prediction_at', sa.BigInteger(), nullable=True),
            sa.Column('last_daily_reward_at', sa.BigInteger(), nullable=True),
            sa.Column('daily_streak_days', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('badges', sa.Text(), nullable=True),
            sa.Column('updated_at', sa.BigInteger(), nullable=False),
        )


def downgrade():
    op.drop_table('user_stats')
    op.drop_index('ix_prediction_status', table_name='prediction')
    op.drop_index('ix_prediction_expires_at', table_name='prediction')
    op.drop_index('ix_prediction_fid', table_name='prediction')
    op.drop_table('prediction')
