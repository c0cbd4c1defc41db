"""Create competition score and criteria mapping tables

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2025-02-03 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '7c1e4a9b2d30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('competition_event_scores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=False),
        sa.Column('event_type', sa.String(length=120), nullable=False),
        sa.Column('competition_id', sa.String(length=64), nullable=False),
        sa.Column('competition_name', sa.String(length=200), nullable=True),
        sa.Column('competition_date', sa.Date(), nullable=True),
        sa.Column('score_sheet', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_competition_event_scores_school_id', 'competition_event_scores', ['school_id'], unique=False)
    op.create_index('ix_competition_event_scores_event_type', 'competition_event_scores', ['event_type'], unique=False)
    op.create_index('ix_competition_event_scores_competition_id', 'competition_event_scores', ['competition_id'], unique=False)
    op.create_index('ix_competition_event_scores_competition_date', 'competition_event_scores', ['competition_date'], unique=False)
    op.create_index('idx_event_scores_school_event', 'competition_event_scores', ['school_id', 'event_type'], unique=False)

    op.create_table('criteria_mappings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=120), nullable=False),
        sa.Column('display_name', sa.String(length=200), nullable=False),
        sa.Column('original_criteria', sa.JSON(), nullable=False),
        sa.Column('school_id', sa.String(length=64), nullable=True),
        sa.Column('is_global', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_criteria_mappings_event_type', 'criteria_mappings', ['event_type'], unique=False)
    op.create_index('ix_criteria_mappings_school_id', 'criteria_mappings', ['school_id'], unique=False)
    op.create_index('idx_criteria_mappings_school_event', 'criteria_mappings', ['school_id', 'event_type'], unique=False)


def downgrade():
    op.drop_index('idx_criteria_mappings_school_event', table_name='criteria_mappings')
    op.drop_index('ix_criteria_mappings_school_id', table_name='criteria_mappings')
    op.drop_index('ix_criteria_mappings_event_type', table_name='criteria_mappings')
    op.drop_table('criteria_mappings')

    op.drop_index('idx_event_scores_school_event', table_name='competition_event_scores')
    op.drop_index('ix_competition_event_scores_competition_date', table_name='competition_event_scores')
    op.drop_index('ix_competition_event_scores_competition_id', table_name='competition_event_scores')
    op.drop_index('ix_competition_event_scores_event_type', table_name='competition_event_scores')
    op.drop_index('ix_competition_event_scores_school_id', table_name='competition_event_scores')
    op.drop_table('competition_event_scores')
