"""Add offer_campaigns table.

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '2b3c4d5e6f7a'
down_revision = '1a2b3c4d5e6f'
branch_labels = None
depends_on = None


def upgrade():
    """Create offer_campaigns for one-off offers and the offer cooldown."""
    op.create_table(
        'offer_campaigns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('target_filter', sa.String(50), nullable=True),
        sa.Column('customer_ids', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='sending'),
        sa.Column('sent_count', sa.Integer(), nullable=True, server_default=sa.text('0')),
        sa.Column('failed_count', sa.Integer(), nullable=True, server_default=sa.text('0')),
        sa.Column('results', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
    )
    op.create_index('ix_offer_campaigns_business_id', 'offer_campaigns', ['business_id'])
    op.create_index('ix_offer_campaigns_business_created', 'offer_campaigns', ['business_id', 'created_at'])


def downgrade():
    """Drop offer_campaigns."""
    op.drop_index('ix_offer_campaigns_business_created', table_name='offer_campaigns')
    op.drop_index('ix_offer_campaigns_business_id', table_name='offer_campaigns')
    op.drop_table('offer_campaigns')
