"""Create recipes table

Revision ID: c4f1a2b3d5e6
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = 'c4f1a2b3d5e6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'recipes',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('prep_time', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cook_time', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('servings', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('difficulty', sa.String(length=16), nullable=False, server_default='medium'),
        sa.Column('spicy_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ingredients', sa.JSON(), nullable=False),
        sa.Column('instructions', sa.JSON(), nullable=False),
        sa.Column('tips', sa.JSON(), nullable=False),
        sa.Column('substitutions', sa.JSON(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_recipes_user_id', 'recipes', ['user_id'])
    op.create_index('ix_recipes_category', 'recipes', ['category'])
    op.create_index('ix_recipes_created_at', 'recipes', ['created_at'])
    op.create_index('ix_recipes_user_created', 'recipes', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_recipes_user_created', table_name='recipes')
    op.drop_index('ix_recipes_created_at', table_name='recipes')
    op.drop_index('ix_recipes_category', table_name='recipes')
    op.drop_index('ix_recipes_user_id', table_name='recipes')
    op.drop_table('recipes')
