"""Create the stores, analytics and user image tables.

Revision ID: 001
Revises: (none)
Create Date: 2025-10-02
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # --- shopify_sessions ---
    op.create_table(
        "shopify_sessions",
        sa.Column("shop", sa.String(255), primary_key=True),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("storefront_token", sa.Text(), nullable=True),
        sa.Column("scope", sa.Text(), server_default="", nullable=False),
        sa.Column("is_online", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("custom_domain", sa.String(255), nullable=True),
        *_timestamps(),
    )

    # --- stores ---
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("shop_domain", sa.String(255), nullable=False, unique=True),
        sa.Column("shop_name", sa.String(255), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("plan_id", sa.String(50), server_default="free", nullable=False),
        sa.Column("plan_name", sa.String(100), server_default="Free", nullable=False),
        sa.Column("plan_limits", JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("plan_usage", JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "installed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # --- try_on_events ---
    op.create_table(
        "try_on_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "store_id",
            sa.Integer(),
            sa.ForeignKey("stores.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("shop_domain", sa.String(255), nullable=False),
        sa.Column("product_id", sa.String(255), nullable=True),
        sa.Column("product_name", sa.Text(), nullable=True),
        sa.Column("product_url", sa.Text(), nullable=True),
        sa.Column("product_image_url", sa.Text(), nullable=True),
        sa.Column("customer_id", sa.String(255), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("shopify_customer_id", sa.String(255), nullable=True),
        sa.Column("event_type", sa.String(50), server_default="try_on", nullable=False),
        sa.Column("metadata", JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_try_on_events_shop_created", "try_on_events", ["shop_domain", "created_at"]
    )

    # --- orders ---
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "store_id",
            sa.Integer(),
            sa.ForeignKey("stores.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("shop_domain", sa.String(255), nullable=False),
        sa.Column("shopify_order_id", sa.String(255), nullable=False),
        sa.Column("order_name", sa.String(100), nullable=True),
        sa.Column("order_number", sa.String(100), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("shopify_customer_id", sa.String(255), nullable=True),
        sa.Column("total_price", sa.Float(), nullable=True),
        sa.Column("currency_code", sa.String(10), nullable=True),
        sa.Column("line_items", JSONB(), nullable=True),
        sa.Column("order_status", sa.String(50), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("shop_domain", "shopify_order_id", name="uq_orders_shop_order"),
    )
    op.create_index("idx_orders_shop_created", "orders", ["shop_domain", "created_at"])

    # --- order_conversions ---
    op.create_table(
        "order_conversions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "store_id",
            sa.Integer(),
            sa.ForeignKey("stores.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("shop_domain", sa.String(255), nullable=False),
        sa.Column(
            "try_on_event_id",
            sa.Integer(),
            sa.ForeignKey("try_on_events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.String(255), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("shopify_customer_id", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("try_on_event_id", "order_id", name="uq_conversions_event_order"),
    )

    # --- user_images ---
    op.create_table(
        "user_images",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("shopify_customer_id", sa.String(255), nullable=True),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("image_type", sa.String(50), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("blob_filename", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "image_type", name="uq_user_images_user_type"),
        sa.CheckConstraint(
            "image_type IN ('fullBody', 'halfBody')", name="ck_user_images_image_type"
        ),
    )
    op.create_index("idx_user_images_user_id", "user_images", ["user_id"])
    op.create_index(
        "idx_user_images_shopify_customer_id", "user_images", ["shopify_customer_id"]
    )


def downgrade() -> None:
    op.drop_table("user_images")
    op.drop_table("order_conversions")
    op.drop_table("orders")
    op.drop_table("try_on_events")
    op.drop_table("stores")
    op.drop_table("shopify_sessions")
