"""initial marketplace schema

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-18 14:20:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


STR = sqlmodel.sql.sqltypes.AutoString

user_role = sa.Enum('BUYER', 'SELLER', 'ADMIN', name='userrole')
user_status = sa.Enum('PENDING', 'ACTIVE', 'SUSPENDED',
                      'REJECTED', name='userstatus')
order_status = sa.Enum('PENDING', 'CONFIRMED', 'PROCESSING', 'SHIPPED',
                       'DELIVERED', 'CANCELLED', name='orderstatus')
rfq_status = sa.Enum('OPEN', 'QUOTED', 'CLOSED', 'EXPIRED', name='rfqstatus')
certification_status = sa.Enum(
    'PENDING', 'VERIFIED', 'REJECTED', name='certificationstatus')
notification_type = sa.Enum('ORDER_STATUS', 'RFQ_RECEIVED', 'QUOTE_RECEIVED',
                            'CERTIFICATION_UPDATE', 'GENERAL', name='notificationtype')
audit_action = sa.Enum('CREATE', 'UPDATE', 'DELETE', 'VERIFY',
                       'STATUS_CHANGE', 'BROADCAST', name='auditaction')


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        'user',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', STR(), nullable=False),
        sa.Column('hashed_password', STR(), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('status', user_status, nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)
    op.create_index('ix_user_role', 'user', ['role'])
    op.create_index('ix_user_status', 'user', ['status'])

    op.create_table(
        'category',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', STR(), nullable=False),
        sa.Column('description', STR(), nullable=True),
        sa.Column('parent_id', sa.Uuid(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['parent_id'], ['category.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_category_name', 'category', ['name'])

    op.create_table(
        'buyerprofile',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('first_name', STR(), nullable=False),
        sa.Column('last_name', STR(), nullable=False),
        sa.Column('company', STR(), nullable=True),
        sa.Column('phone', STR(), nullable=True),
        sa.Column('address', STR(), nullable=True),
        sa.Column('city', STR(), nullable=True),
        sa.Column('state', STR(), nullable=True),
        sa.Column('zip_code', STR(), nullable=True),
        sa.Column('country', STR(), nullable=True),
        sa.Column('company_type', STR(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_buyerprofile_user_id', 'buyerprofile',
                    ['user_id'], unique=True)

    op.create_table(
        'sellerprofile',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('company_name', STR(), nullable=False),
        sa.Column('contact_person', STR(), nullable=False),
        sa.Column('phone', STR(), nullable=True),
        sa.Column('address', STR(), nullable=True),
        sa.Column('city', STR(), nullable=True),
        sa.Column('state', STR(), nullable=True),
        sa.Column('zip_code', STR(), nullable=True),
        sa.Column('country', STR(), nullable=True),
        sa.Column('description', STR(), nullable=True),
        sa.Column('website', STR(), nullable=True),
        sa.Column('established_year', sa.Integer(), nullable=True),
        sa.Column('employee_count', STR(), nullable=True),
        sa.Column('business_license', STR(), nullable=True),
        sa.Column('tax_id', STR(), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('verification_notes', STR(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sellerprofile_user_id', 'sellerprofile',
                    ['user_id'], unique=True)
    op.create_index('ix_sellerprofile_company_name',
                    'sellerprofile', ['company_name'])

    op.create_table(
        'sellercategorylink',
        *timestamps(),
        sa.Column('seller_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['seller_id'], ['sellerprofile.id']),
        sa.ForeignKeyConstraint(['category_id'], ['category.id']),
        sa.PrimaryKeyConstraint('seller_id', 'category_id'),
    )

    op.create_table(
        'product',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('name', STR(), nullable=False),
        sa.Column('description', STR(), nullable=False),
        sa.Column('short_description', STR(), nullable=True),
        sa.Column('sku', STR(), nullable=False),
        sa.Column('retail_price', sa.Float(), nullable=False),
        sa.Column('wholesale_price', sa.Float(), nullable=True),
        sa.Column('min_order_quantity', sa.Integer(), nullable=False),
        sa.Column('unit', STR(), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('storage_info', STR(), nullable=True),
        sa.Column('shelf_life', STR(), nullable=True),
        sa.Column('origin', STR(), nullable=True),
        sa.Column('harvest_date', sa.Date(), nullable=True),
        sa.Column('is_organic', sa.Boolean(), nullable=False),
        sa.Column('is_fair_trade', sa.Boolean(), nullable=False),
        sa.Column('is_gmo_free', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['seller_id'], ['sellerprofile.id']),
        sa.ForeignKeyConstraint(['category_id'], ['category.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_product_seller_id', 'product', ['seller_id'])
    op.create_index('ix_product_category_id', 'product', ['category_id'])
    op.create_index('ix_product_name', 'product', ['name'])
    op.create_index('ix_product_sku', 'product', ['sku'], unique=True)
    op.create_index('ix_product_is_active', 'product', ['is_active'])

    op.create_table(
        'cartitem',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.ForeignKeyConstraint(['product_id'], ['product.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'product_id',
                            name='uq_cartitem_user_product'),
    )
    op.create_index('ix_cartitem_user_id', 'cartitem', ['user_id'])

    op.create_table(
        'order',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', STR(), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('subtotal', sa.Float(), nullable=False),
        sa.Column('tax', sa.Float(), nullable=False),
        sa.Column('shipping', sa.Float(), nullable=False),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('billing_address', sa.JSON(), nullable=True),
        sa.Column('payment_method', STR(), nullable=True),
        sa.Column('payment_status', STR(), nullable=False),
        sa.Column('notes', STR(), nullable=True),
        sa.ForeignKeyConstraint(['buyer_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_order_number', 'order',
                    ['order_number'], unique=True)
    op.create_index('ix_order_buyer_id', 'order', ['buyer_id'])
    op.create_index('ix_order_status', 'order', ['status'])

    op.create_table(
        'orderitem',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Float(), nullable=False),
        sa.Column('total_price', sa.Float(), nullable=False),
        sa.Column('is_wholesale', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['order.id']),
        sa.ForeignKeyConstraint(['product_id'], ['product.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orderitem_order_id', 'orderitem', ['order_id'])
    op.create_index('ix_orderitem_product_id', 'orderitem', ['product_id'])

    op.create_table(
        'rfq',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('rfq_number', STR(), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=True),
        sa.Column('title', STR(), nullable=False),
        sa.Column('description', STR(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit', STR(), nullable=False),
        sa.Column('budget', sa.Float(), nullable=True),
        sa.Column('location', STR(), nullable=True),
        sa.Column('delivery_date', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('requirements', sa.JSON(), nullable=True),
        sa.Column('status', rfq_status, nullable=False),
        sa.ForeignKeyConstraint(['buyer_id'], ['user.id']),
        sa.ForeignKeyConstraint(['category_id'], ['category.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_rfq_rfq_number', 'rfq', ['rfq_number'], unique=True)
    op.create_index('ix_rfq_buyer_id', 'rfq', ['buyer_id'])
    op.create_index('ix_rfq_category_id', 'rfq', ['category_id'])
    op.create_index('ix_rfq_expires_at', 'rfq', ['expires_at'])
    op.create_index('ix_rfq_status', 'rfq', ['status'])

    op.create_table(
        'quote',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('rfq_id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.Uuid(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit', STR(), nullable=False),
        sa.Column('delivery_time', STR(), nullable=True),
        sa.Column('terms', STR(), nullable=True),
        sa.Column('notes', STR(), nullable=True),
        sa.Column('is_selected', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['rfq_id'], ['rfq.id']),
        sa.ForeignKeyConstraint(['seller_id'], ['sellerprofile.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('rfq_id', 'seller_id', name='uq_quote_rfq_seller'),
    )
    op.create_index('ix_quote_rfq_id', 'quote', ['rfq_id'])
    op.create_index('ix_quote_seller_id', 'quote', ['seller_id'])

    op.create_table(
        'certification',
        *timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('name', STR(), nullable=False),
        sa.Column('description', STR(), nullable=True),
        sa.Column('issuer', STR(), nullable=False),
        sa.Column('issue_date', sa.Date(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('document_url', STR(), nullable=False),
        sa.Column('status', certification_status, nullable=False),
        sa.Column('verified_by', sa.Uuid(), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('notes', STR(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.ForeignKeyConstraint(['verified_by'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_certification_user_id', 'certification', ['user_id'])
    op.create_index('ix_certification_status', 'certification', ['status'])

    op.create_table(
        'productcertificationlink',
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('certification_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['product.id']),
        sa.ForeignKeyConstraint(['certification_id'], ['certification.id']),
        sa.PrimaryKeyConstraint('product_id', 'certification_id'),
    )

    op.create_table(
        'notification',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('title', STR(), nullable=False),
        sa.Column('message', STR(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notification_user_id', 'notification', ['user_id'])
    op.create_index('ix_notification_is_read', 'notification', ['is_read'])
    op.create_index('ix_notification_created_at',
                    'notification', ['created_at'])

    op.create_table(
        'auditlog',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(), nullable=False),
        sa.Column('entity_type', STR(), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=True),
        sa.Column('action', audit_action, nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['actor_user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_auditlog_actor_user_id',
                    'auditlog', ['actor_user_id'])


def downgrade():
    for table in (
        'auditlog', 'notification', 'productcertificationlink', 'certification',
        'quote', 'rfq', 'orderitem', 'order', 'cartitem', 'product',
        'sellercategorylink', 'sellerprofile', 'buyerprofile', 'category', 'user',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        # Enum types outlive their tables on PostgreSQL
        for enum in (audit_action, notification_type, certification_status,
                     rfq_status, order_status, user_status, user_role):
            enum.drop(bind, checkfirst=True)
