"""create_paywall_tables

Revision ID: 7c1f4a9d2b10
Revises:
Create Date: 2026-10-18 10:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7c1f4a9d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('content_listings',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('content_type', sa.Enum('FILE', 'TEXT', 'LINK', name='contenttype'), nullable=False),
        sa.Column('content_path', sa.String(), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=True),
        sa.Column('mimetype', sa.String(length=100), nullable=True),
        sa.Column('price_amount', sa.Numeric(precision=12, scale=6), nullable=False),
        sa.Column('price_currency', sa.String(length=64), nullable=False),
        sa.Column('recipient_address', sa.String(length=64), nullable=False),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_content_listings_recipient_address', 'content_listings', ['recipient_address'])
    op.create_index('ix_content_listings_expires_at', 'content_listings', ['expires_at'])

    op.create_table('payment_records',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('content_id', sa.UUID(), nullable=False),
        sa.Column('payer_address', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=6), nullable=False),
        sa.Column('transaction_signature', sa.String(length=128), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'COMPLETED', 'FAILED', name='paymentstatus'), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['content_id'], ['content_listings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_signature')
    )
    op.create_index('ix_payment_records_content_id', 'payment_records', ['content_id'])


def downgrade() -> None:
    op.drop_index('ix_payment_records_content_id', table_name='payment_records')
    op.drop_table('payment_records')
    op.drop_index('ix_content_listings_expires_at', table_name='content_listings')
    op.drop_index('ix_content_listings_recipient_address', table_name='content_listings')
    op.drop_table('content_listings')
    sa.Enum(name='paymentstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='contenttype').drop(op.get_bind(), checkfirst=True)
