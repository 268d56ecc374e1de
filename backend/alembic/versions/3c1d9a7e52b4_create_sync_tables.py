"""create org settings and source fact tables

Revision ID: 3c1d9a7e52b4
Revises:
Create Date: 2026-10-19 09:12:04.318226

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1d9a7e52b4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('org_settings',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('org_id', sa.Integer(), nullable=False),
    sa.Column('key', sa.String(), nullable=False),
    sa.Column('value', sa.Text(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('org_id', 'key', name='uix_org_setting')
    )
    op.create_index(op.f('ix_org_settings_org_id'), 'org_settings', ['org_id'], unique=False)

    op.create_table('amazon_sales_traffic',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('org_id', sa.Integer(), nullable=False),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('child_asin', sa.String(), nullable=False),
    sa.Column('parent_asin', sa.String(), nullable=True),
    sa.Column('units_ordered', sa.Integer(), nullable=True),
    sa.Column('units_ordered_b2b', sa.Integer(), nullable=True),
    sa.Column('ordered_product_sales', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('ordered_product_sales_b2b', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('total_order_items', sa.Integer(), nullable=True),
    sa.Column('total_order_items_b2b', sa.Integer(), nullable=True),
    sa.Column('browser_sessions', sa.Integer(), nullable=True),
    sa.Column('mobile_sessions', sa.Integer(), nullable=True),
    sa.Column('sessions', sa.Integer(), nullable=True),
    sa.Column('browser_page_views', sa.Integer(), nullable=True),
    sa.Column('mobile_page_views', sa.Integer(), nullable=True),
    sa.Column('page_views', sa.Integer(), nullable=True),
    sa.Column('session_percentage', sa.Float(), nullable=True),
    sa.Column('page_views_percentage', sa.Float(), nullable=True),
    sa.Column('buy_box_percentage', sa.Float(), nullable=True),
    sa.Column('unit_session_percentage', sa.Float(), nullable=True),
    sa.Column('unit_session_percentage_b2b', sa.Float(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('org_id', 'date', 'child_asin', name='uix_amazon_sales_traffic')
    )
    op.create_index(op.f('ix_amazon_sales_traffic_org_id'), 'amazon_sales_traffic', ['org_id'], unique=False)
    op.create_index(op.f('ix_amazon_sales_traffic_date'), 'amazon_sales_traffic', ['date'], unique=False)

    op.create_table('amazon_financial_events',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('org_id', sa.Integer(), nullable=False),
    sa.Column('transaction_id', sa.String(), nullable=False),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('posted_at', sa.DateTime(), nullable=True),
    sa.Column('transaction_type', sa.String(), nullable=True),
    sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('total_currency', sa.String(length=3), nullable=True),
    sa.Column('related_identifiers', sa.JSON(), nullable=True),
    sa.Column('items', sa.JSON(), nullable=True),
    sa.Column('breakdowns', sa.JSON(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_amazon_financial_events_org_id'), 'amazon_financial_events', ['org_id'], unique=False)
    op.create_index(op.f('ix_amazon_financial_events_transaction_id'), 'amazon_financial_events', ['transaction_id'], unique=True)
    op.create_index(op.f('ix_amazon_financial_events_date'), 'amazon_financial_events', ['date'], unique=False)

    op.create_table('facebook_ads',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('org_id', sa.Integer(), nullable=False),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('campaign_name', sa.String(), nullable=False),
    sa.Column('adset_name', sa.String(), nullable=False),
    sa.Column('ad_name', sa.String(), nullable=False),
    sa.Column('campaign_id', sa.String(), nullable=True),
    sa.Column('utm_campaign', sa.String(), nullable=True),
    sa.Column('spend', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('impressions', sa.Integer(), nullable=True),
    sa.Column('reach', sa.Integer(), nullable=True),
    sa.Column('frequency', sa.Float(), nullable=True),
    sa.Column('clicks', sa.Integer(), nullable=True),
    sa.Column('cpc', sa.Float(), nullable=True),
    sa.Column('cpm', sa.Float(), nullable=True),
    sa.Column('ctr', sa.Float(), nullable=True),
    sa.Column('purchases', sa.Integer(), nullable=True),
    sa.Column('cost_per_purchase', sa.Float(), nullable=True),
    sa.Column('purchase_value', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('roas', sa.Float(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('org_id', 'date', 'campaign_name', 'adset_name', 'ad_name', name='uix_facebook_ad')
    )
    op.create_index(op.f('ix_facebook_ads_org_id'), 'facebook_ads', ['org_id'], unique=False)
    op.create_index(op.f('ix_facebook_ads_date'), 'facebook_ads', ['date'], unique=False)

    op.create_table('posthog_analytics',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('org_id', sa.Integer(), nullable=False),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('unique_visitors', sa.Integer(), nullable=True),
    sa.Column('total_sessions', sa.Integer(), nullable=True),
    sa.Column('pageviews', sa.Integer(), nullable=True),
    sa.Column('bounce_rate', sa.Float(), nullable=True),
    sa.Column('avg_session_duration', sa.Integer(), nullable=True),
    sa.Column('mobile_sessions', sa.Integer(), nullable=True),
    sa.Column('desktop_sessions', sa.Integer(), nullable=True),
    sa.Column('top_country', sa.String(), nullable=True),
    sa.Column('direct_sessions', sa.Integer(), nullable=True),
    sa.Column('organic_sessions', sa.Integer(), nullable=True),
    sa.Column('paid_sessions', sa.Integer(), nullable=True),
    sa.Column('social_sessions', sa.Integer(), nullable=True),
    sa.Column('product_views', sa.Integer(), nullable=True),
    sa.Column('add_to_cart', sa.Integer(), nullable=True),
    sa.Column('checkout_started', sa.Integer(), nullable=True),
    sa.Column('purchases', sa.Integer(), nullable=True),
    sa.Column('conversion_rate', sa.Float(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('org_id', 'date', name='uix_posthog_analytics')
    )
    op.create_index(op.f('ix_posthog_analytics_org_id'), 'posthog_analytics', ['org_id'], unique=False)
    op.create_index(op.f('ix_posthog_analytics_date'), 'posthog_analytics', ['date'], unique=False)

    op.create_table('amazon_sp_ads',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('org_id', sa.Integer(), nullable=False),
    sa.Column('date', sa.Date(), nullable=False),
    sa.Column('campaign_id', sa.String(), nullable=False),
    sa.Column('campaign_name', sa.String(), nullable=True),
    sa.Column('campaign_status', sa.String(), nullable=True),
    sa.Column('campaign_budget_amount', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('campaign_budget_type', sa.String(), nullable=True),
    sa.Column('campaign_budget_currency_code', sa.String(length=3), nullable=True),
    sa.Column('campaign_bidding_strategy', sa.String(), nullable=True),
    sa.Column('impressions', sa.Integer(), nullable=True),
    sa.Column('clicks', sa.Integer(), nullable=True),
    sa.Column('cost', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('spend', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('cost_per_click', sa.Float(), nullable=True),
    sa.Column('click_through_rate', sa.Float(), nullable=True),
    sa.Column('top_of_search_impression_share', sa.Float(), nullable=True),
    sa.Column('sales_1d', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('sales_7d', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('sales_14d', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('sales_30d', sa.Numeric(precision=12, scale=2), nullable=True),
    sa.Column('purchases_1d', sa.Integer(), nullable=True),
    sa.Column('purchases_7d', sa.Integer(), nullable=True),
    sa.Column('purchases_14d', sa.Integer(), nullable=True),
    sa.Column('purchases_30d', sa.Integer(), nullable=True),
    sa.Column('units_sold_clicks_1d', sa.Integer(), nullable=True),
    sa.Column('units_sold_clicks_7d', sa.Integer(), nullable=True),
    sa.Column('units_sold_clicks_14d', sa.Integer(), nullable=True),
    sa.Column('units_sold_clicks_30d', sa.Integer(), nullable=True),
    sa.Column('acos_clicks_14d', sa.Float(), nullable=True),
    sa.Column('roas_clicks_14d', sa.Float(), nullable=True),
    sa.Column('add_to_list', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('org_id', 'date', 'campaign_id', name='uix_amazon_sp_ad')
    )
    op.create_index(op.f('ix_amazon_sp_ads_org_id'), 'amazon_sp_ads', ['org_id'], unique=False)
    op.create_index(op.f('ix_amazon_sp_ads_date'), 'amazon_sp_ads', ['date'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_amazon_sp_ads_date'), table_name='amazon_sp_ads')
    op.drop_index(op.f('ix_amazon_sp_ads_org_id'), table_name='amazon_sp_ads')
    op.drop_table('amazon_sp_ads')
    op.drop_index(op.f('ix_posthog_analytics_date'), table_name='posthog_analytics')
    op.drop_index(op.f('ix_posthog_analytics_org_id'), table_name='posthog_analytics')
    op.drop_table('posthog_analytics')
    op.drop_index(op.f('ix_facebook_ads_date'), table_name='facebook_ads')
    op.drop_index(op.f('ix_facebook_ads_org_id'), table_name='facebook_ads')
    op.drop_table('facebook_ads')
    op.drop_index(op.f('ix_amazon_financial_events_date'), table_name='amazon_financial_events')
    op.drop_index(op.f('ix_amazon_financial_events_transaction_id'), table_name='amazon_financial_events')
    op.drop_index(op.f('ix_amazon_financial_events_org_id'), table_name='amazon_financial_events')
    op.drop_table('amazon_financial_events')
    op.drop_index(op.f('ix_amazon_sales_traffic_date'), table_name='amazon_sales_traffic')
    op.drop_index(op.f('ix_amazon_sales_traffic_org_id'), table_name='amazon_sales_traffic')
    op.drop_table('amazon_sales_traffic')
    op.drop_index(op.f('ix_org_settings_org_id'), table_name='org_settings')
    op.drop_table('org_settings')
