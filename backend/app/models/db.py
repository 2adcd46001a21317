"""SQLAlchemy ORM models for Closelook.

These describe the schema the Alembic migration creates. Runtime queries go
through asyncpg directly (see app.utils.db) and rely on the unique
constraints below for upsert-on-conflict semantics.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class ShopifySessionRow(Base):
    __tablename__ = "shopify_sessions"

    shop: Mapped[str] = mapped_column(String(255), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    storefront_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    scope: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_online: Mapped[bool] = mapped_column(Boolean, default=False)
    expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    custom_domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Store(Base):
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_domain: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    shop_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    plan_id: Mapped[str] = mapped_column(String(50), nullable=False, default="free")
    plan_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Free")
    plan_limits: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    plan_usage: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    installed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    try_on_events: Mapped[list["TryOnEvent"]] = relationship(
        back_populates="store", cascade="all, delete"
    )
    orders: Mapped[list["OrderRow"]] = relationship(back_populates="store", cascade="all, delete")


class TryOnEvent(Base):
    __tablename__ = "try_on_events"
    __table_args__ = (Index("idx_try_on_events_shop_created", "shop_domain", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    shop_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    product_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shopify_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, default="try_on")
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    store: Mapped["Store"] = relationship(back_populates="try_on_events")


class OrderRow(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("shop_domain", "shopify_order_id", name="uq_orders_shop_order"),
        Index("idx_orders_shop_created", "shop_domain", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    shop_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    shopify_order_id: Mapped[str] = mapped_column(String(255), nullable=False)
    order_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    order_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shopify_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    currency_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    line_items: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    order_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    store: Mapped["Store"] = relationship(back_populates="orders")


class OrderConversion(Base):
    __tablename__ = "order_conversions"
    __table_args__ = (
        UniqueConstraint("try_on_event_id", "order_id", name="uq_conversions_event_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"), nullable=False
    )
    shop_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    try_on_event_id: Mapped[int] = mapped_column(
        ForeignKey("try_on_events.id", ondelete="CASCADE"), nullable=False
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shopify_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class UserImageRow(Base):
    __tablename__ = "user_images"
    __table_args__ = (
        UniqueConstraint("user_id", "image_type", name="uq_user_images_user_type"),
        CheckConstraint(
            "image_type IN ('fullBody', 'halfBody')", name="ck_user_images_image_type"
        ),
        Index("idx_user_images_user_id", "user_id"),
        Index("idx_user_images_shopify_customer_id", "shopify_customer_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    shopify_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    image_type: Mapped[str] = mapped_column(String(50), nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    blob_filename: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
