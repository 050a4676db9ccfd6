from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.db import Base


class TenantStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class StoreStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Platform(str, enum.Enum):
    SHOPIFY = "SHOPIFY"
    NETSUITE = "NETSUITE"
    CUSTOM = "CUSTOM"
    MAGENTO = "MAGENTO"
    OTHER = "OTHER"


class OrderStatus(str, enum.Enum):
    CREATED = "CREATED"
    CANCELLED = "CANCELLED"
    CLOSED = "CLOSED"


class FinancialStatus(str, enum.Enum):
    UNKNOWN = "UNKNOWN"
    PENDING = "PENDING"
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    VOIDED = "VOIDED"


class FulfillmentOverallStatus(str, enum.Enum):
    UNFULFILLED = "UNFULFILLED"
    PARTIAL = "PARTIAL"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


class FulfillmentStatus(str, enum.Enum):
    CREATED = "CREATED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"


class TrackingStatus(str, enum.Enum):
    LABEL_CREATED = "LABEL_CREATED"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    EXCEPTION = "EXCEPTION"
    UNKNOWN = "UNKNOWN"


def _one_of(column: str, values: type[enum.Enum], name: str) -> CheckConstraint:
    allowed = ", ".join(f"'{member.value}'" for member in values)
    return CheckConstraint(f"{column} IN ({allowed})", name=name)


class Tenant(Base):
    __tablename__ = "tenant"
    __table_args__ = (_one_of("status", TenantStatus, "tenant_status"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=TenantStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Store(Base):
    __tablename__ = "store"
    __table_args__ = (
        UniqueConstraint("tenant_id", "store_code", name="uk_store_code_per_tenant"),
        _one_of("platform", Platform, "store_platform"),
        _one_of("status", StoreStatus, "store_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tenant.id"), nullable=False)
    store_code: Mapped[str] = mapped_column(String(100), nullable=False)
    store_name: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[str] = mapped_column(Text, nullable=False, default=Platform.OTHER.value)
    timezone: Mapped[str | None] = mapped_column(String(64))
    currency: Mapped[str | None] = mapped_column(String(3))
    status: Mapped[str] = mapped_column(Text, nullable=False, default=StoreStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "store_id", "external_order_id", name="uk_order_external"),
        Index("idx_orders_tenant_updated", "tenant_id", "order_updated_at"),
        Index("idx_orders_store_updated", "store_id", "order_updated_at"),
        Index("idx_orders_tenant_number", "tenant_id", "external_order_number"),
        _one_of("order_status", OrderStatus, "order_status"),
        _one_of("financial_status", FinancialStatus, "order_financial_status"),
        _one_of("fulfillment_status", FulfillmentOverallStatus, "order_fulfillment_status"),
        CheckConstraint("order_total_amount >= 0", name="order_total_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tenant.id"), nullable=False)
    store_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("store.id"), nullable=False)
    external_order_id: Mapped[str] = mapped_column(String(128), nullable=False)
    external_order_number: Mapped[str | None] = mapped_column(String(128))
    order_status: Mapped[str] = mapped_column(Text, nullable=False, default=OrderStatus.CREATED.value)
    financial_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=FinancialStatus.UNKNOWN.value
    )
    fulfillment_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=FulfillmentOverallStatus.UNKNOWN.value
    )
    customer_email: Mapped[str | None] = mapped_column(String(320))
    order_total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    currency: Mapped[str | None] = mapped_column(String(3))
    order_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    order_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ingested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    fulfillments: Mapped[list[Fulfillment]] = relationship(
        back_populates="order", cascade="all, delete-orphan"
    )

    @validates("ingested_at")
    def _validate_ingested_at(self, key, value):
        if self.ingested_at is not None and value != self.ingested_at:
            raise ValueError("ingested_at is immutable once set")
        return value


class Fulfillment(Base):
    __tablename__ = "fulfillments"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "order_id", "external_fulfillment_id", name="uk_fulfillment_external"
        ),
        Index("idx_fulfillments_tenant_order", "tenant_id", "order_id"),
        Index("idx_fulfillments_tenant_updated", "tenant_id", "updated_at"),
        _one_of("fulfillment_status", FulfillmentStatus, "fulfillment_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tenant.id"), nullable=False)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("orders.id"), nullable=False)
    external_fulfillment_id: Mapped[str] = mapped_column(String(128), nullable=False)
    fulfillment_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=FulfillmentStatus.UNKNOWN.value
    )
    carrier: Mapped[str | None] = mapped_column(String(64))
    service_level: Mapped[str | None] = mapped_column(String(64))
    ship_from_location: Mapped[str | None] = mapped_column(String(255))
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    order: Mapped[Order] = relationship(back_populates="fulfillments")
    tracking: Mapped[list[Tracking]] = relationship(
        back_populates="fulfillment", cascade="all, delete-orphan"
    )


class Tracking(Base):
    __tablename__ = "tracking"
    __table_args__ = (
        UniqueConstraint("tenant_id", "tracking_number", name="uk_tracking_number"),
        Index("idx_tracking_tenant_fulfillment", "tenant_id", "fulfillment_id"),
        Index("idx_tracking_tenant_status", "tenant_id", "tracking_status"),
        _one_of("tracking_status", TrackingStatus, "tracking_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tenant.id"), nullable=False)
    fulfillment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("fulfillments.id"), nullable=False
    )
    tracking_number: Mapped[str] = mapped_column(String(128), nullable=False)
    tracking_url: Mapped[str | None] = mapped_column(String(1024))
    carrier: Mapped[str | None] = mapped_column(String(64))
    tracking_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=TrackingStatus.UNKNOWN.value
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    fulfillment: Mapped[Fulfillment] = relationship(back_populates="tracking")
