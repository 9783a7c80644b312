"""create card_set table

Revision ID: 5b7d2e91c4a0
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7d2e91c4a0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'card_set' in insp.get_table_names():
        return
    op.create_table(
        'card_set',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('image_paths', sa.Text(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('card_set') as batch_op:
        batch_op.create_index(batch_op.f('ix_card_set_name'), ['name'], unique=True)


def downgrade():
    with op.batch_alter_table('card_set') as batch_op:
        batch_op.drop_index(batch_op.f('ix_card_set_name'))
    op.drop_table('card_set')
