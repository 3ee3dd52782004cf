"""document sequences

Revision ID: 20261018_doc_sequences
Revises: 20261017_initial
Create Date: 2026-10-18 00:00:00.000000

Adds document_sequences: one counter row per daily number series
(ORD yymmdd, PUR yymmdd), bumped atomically when a number is drawn.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_doc_sequences'
down_revision = '20261017_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('sequence_key', sa.String(length=64), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sequence_key', name='uq_document_sequences_key'),
    )


def downgrade():
    op.drop_table('document_sequences')
