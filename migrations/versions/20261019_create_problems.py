"""create problems history table

Revision ID: 20261019_create_problems
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_create_problems'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'problems',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column(
            'kind',
            sa.Enum('photo', 'calculator', name='problem_kind'),
            nullable=False,
        ),
        sa.Column('problem_text', sa.Text, nullable=False),
        sa.Column('topic', sa.String(128)),
        sa.Column('difficulty', sa.String(16)),
        sa.Column('solution', sa.JSON, nullable=False),
        sa.Column('image_url', sa.Text),
        sa.Column('is_favorite', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_problems_user_id', 'problems', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_problems_user_id', table_name='problems')
    op.drop_table('problems')
    sa.Enum(name='problem_kind').drop(op.get_bind(), checkfirst=True)
