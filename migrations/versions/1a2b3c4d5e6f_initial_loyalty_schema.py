"""Initial LoyalLink schema: businesses, customers, visits, rewards, notification logs.

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the loyalty program tables."""
    op.create_table(
        'businesses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('website', sa.String(255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.String(500), nullable=True),
        sa.Column('visit_goal', sa.Integer(), nullable=False, server_default=sa.text('5')),
        sa.Column('reward_title', sa.String(255), nullable=True),
        sa.Column('reward_description', sa.Text(), nullable=True),
        sa.Column('welcome_message', sa.Text(), nullable=True),
        sa.Column('reward_setup_completed', sa.Boolean(), nullable=True),
        sa.Column('setup_completed_at', sa.DateTime(), nullable=True),
        sa.Column('notification_email', sa.Boolean(), nullable=True),
        sa.Column('notification_whatsapp', sa.Boolean(), nullable=True),
        sa.Column('inactive_customer_message', sa.Text(), nullable=True),
        sa.Column('inactive_days_threshold', sa.Integer(), nullable=True),
        sa.Column('subscription_plan', sa.String(50), nullable=True),
        sa.Column('subscription_status', sa.String(20), nullable=True),
        sa.Column('subscription_expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.CheckConstraint('visit_goal >= 1', name='ck_businesses_visit_goal_positive'),
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('visits', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('points', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('last_visit', sa.DateTime(), nullable=True),
        sa.Column('qr_data', sa.String(255), nullable=True),
        sa.Column('qr_code_url', sa.String(500), nullable=True),
        sa.Column('last_outreach_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.UniqueConstraint('business_id', 'phone', name='uq_business_customer_phone'),
    )
    op.create_index('ix_customers_business_id', 'customers', ['business_id'])
    op.create_index('ix_customers_qr_data', 'customers', ['qr_data'])

    op.create_table(
        'visits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('visit_date', sa.DateTime(), nullable=False),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
    )
    op.create_index('ix_visits_business_id', 'visits', ['business_id'])
    op.create_index('ix_visits_customer_id', 'visits', ['customer_id'])

    op.create_table(
        'rewards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('claim_token', sa.String(6), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('reward_title', sa.String(255), nullable=True),
        sa.Column('points_used', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('claimed_at', sa.DateTime(), nullable=True),
        sa.Column('redeemed_at', sa.DateTime(), nullable=True),
        sa.Column('reminder_sent_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.UniqueConstraint('business_id', 'claim_token', name='uq_business_claim_token'),
    )
    op.create_index('ix_rewards_business_id', 'rewards', ['business_id'])
    op.create_index('ix_rewards_customer_id', 'rewards', ['customer_id'])
    op.create_index('ix_rewards_business_status', 'rewards', ['business_id', 'status'])

    # At most one pending reward per customer per business
    op.create_index(
        'uq_rewards_pending_customer',
        'rewards',
        ['business_id', 'customer_id'],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'notification_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('recipient', sa.String(255), nullable=False),
        sa.Column('recipient_name', sa.String(255), nullable=True),
        sa.Column('subject', sa.String(500), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('template', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
    )
    op.create_index('ix_notification_logs_business_id', 'notification_logs', ['business_id'])
    op.create_index('ix_notification_logs_customer_id', 'notification_logs', ['customer_id'])
    op.create_index('ix_notification_logs_status', 'notification_logs', ['status', 'created_at'])


def downgrade():
    """Drop the loyalty program tables."""
    op.drop_index('ix_notification_logs_status', table_name='notification_logs')
    op.drop_index('ix_notification_logs_customer_id', table_name='notification_logs')
    op.drop_index('ix_notification_logs_business_id', table_name='notification_logs')
    op.drop_table('notification_logs')

    op.drop_index('uq_rewards_pending_customer', table_name='rewards')
    op.drop_index('ix_rewards_business_status', table_name='rewards')
    op.drop_index('ix_rewards_customer_id', table_name='rewards')
    op.drop_index('ix_rewards_business_id', table_name='rewards')
    op.drop_table('rewards')

    op.drop_index('ix_visits_customer_id', table_name='visits')
    op.drop_index('ix_visits_business_id', table_name='visits')
    op.drop_table('visits')

    op.drop_index('ix_customers_qr_data', table_name='customers')
    op.drop_index('ix_customers_business_id', table_name='customers')
    op.drop_table('customers')

    op.drop_table('businesses')
