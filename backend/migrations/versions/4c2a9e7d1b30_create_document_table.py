"""create document table for users and scores collections

Revision ID: 4c2a9e7d1b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2a9e7d1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'document' in insp.get_table_names():
        return
    op.create_table(
        'document',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('collection', sa.String(length=64), nullable=False),
        sa.Column('key', sa.String(length=320), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.UniqueConstraint('collection', 'key', name='uq_document_collection_key'),
    )
    op.create_index('ix_document_collection', 'document', ['collection'])


def downgrade():
    op.drop_index('ix_document_collection', table_name='document')
    op.drop_table('document')
