from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from app.models import (
    FinancialStatus,
    FulfillmentOverallStatus,
    FulfillmentStatus,
    OrderStatus,
    Platform,
    StoreStatus,
    TenantStatus,
    TrackingStatus,
)

CURRENCY_PATTERN = r"^[A-Z]{3}$"


def _camel_config(example: dict) -> ConfigDict:
    return ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": example},
    )


def _reject_blank(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError("must not be blank")
    return value


NonBlankStr = Annotated[str, AfterValidator(_reject_blank)]


class TenantCreate(BaseModel):
    model_config = _camel_config({"name": "Acme Retail", "status": "ACTIVE"})
    name: NonBlankStr = Field(max_length=255)
    status: TenantStatus = TenantStatus.ACTIVE


class StoreCreate(BaseModel):
    model_config = _camel_config(
        {
            "tenantId": "7d3b2a56-0f6e-4c1e-9a53-0b9f3f0c8e11",
            "storeCode": "acme-us",
            "storeName": "Acme US",
            "platform": "SHOPIFY",
            "timezone": "America/New_York",
            "currency": "USD",
        }
    )
    tenant_id: UUID
    store_code: NonBlankStr = Field(max_length=100)
    store_name: NonBlankStr = Field(max_length=255)
    platform: Platform = Platform.OTHER
    timezone: Optional[str] = Field(default=None, max_length=64)
    currency: Optional[str] = Field(default=None, pattern=CURRENCY_PATTERN)
    status: StoreStatus = StoreStatus.ACTIVE


class OrderCreate(BaseModel):
    model_config = _camel_config(
        {
            "orgId": "7d3b2a56-0f6e-4c1e-9a53-0b9f3f0c8e11",
            "websiteId": "2f9c1d7e-5b1a-4f0e-8d7c-3a6b9e2f1c44",
            "externalOrderId": "5551234567890",
            "externalOrderNumber": "#1001",
            "status": "CREATED",
            "financialStatus": "PAID",
            "fulfillmentStatus": "UNFULFILLED",
            "customerEmail": "jane@example.com",
            "orderTotal": 129.99,
            "currency": "USD",
            "orderCreatedAt": "2026-01-15T10:00:00Z",
            "orderUpdatedAt": "2026-01-15T10:05:00Z",
        }
    )
    org_id: UUID
    website_id: UUID
    external_order_id: NonBlankStr = Field(max_length=128)
    external_order_number: Optional[str] = Field(default=None, max_length=128)
    status: Optional[OrderStatus] = None
    financial_status: Optional[FinancialStatus] = None
    fulfillment_status: Optional[FulfillmentOverallStatus] = None
    customer_email: Optional[EmailStr] = None
    order_total: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(default=None, pattern=CURRENCY_PATTERN)
    order_created_at: Optional[datetime] = None
    order_updated_at: Optional[datetime] = None


class OrderPatch(BaseModel):
    model_config = _camel_config({"financialStatus": "REFUNDED", "orderTotal": 0})
    external_order_number: Optional[str] = Field(default=None, max_length=128)
    status: Optional[OrderStatus] = None
    financial_status: Optional[FinancialStatus] = None
    fulfillment_status: Optional[FulfillmentOverallStatus] = None
    customer_email: Optional[EmailStr] = None
    order_total: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(default=None, pattern=CURRENCY_PATTERN)
    order_created_at: Optional[datetime] = None
    order_updated_at: Optional[datetime] = None


class FulfillmentCreate(BaseModel):
    model_config = _camel_config(
        {
            "externalFulfillmentId": "4400112233",
            "status": "SHIPPED",
            "carrier": "UPS",
            "serviceLevel": "GROUND",
            "shippedAt": "2026-01-16T09:00:00Z",
        }
    )
    external_fulfillment_id: NonBlankStr = Field(max_length=128)
    status: Optional[FulfillmentStatus] = None
    carrier: Optional[str] = Field(default=None, max_length=64)
    service_level: Optional[str] = Field(default=None, max_length=64)
    ship_from_location: Optional[str] = Field(default=None, max_length=255)
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class FulfillmentPatch(BaseModel):
    model_config = _camel_config({"status": "DELIVERED", "deliveredAt": "2026-01-18T14:30:00Z"})
    status: Optional[FulfillmentStatus] = None
    carrier: Optional[str] = Field(default=None, max_length=64)
    service_level: Optional[str] = Field(default=None, max_length=64)
    ship_from_location: Optional[str] = Field(default=None, max_length=255)
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class TrackingCreate(BaseModel):
    model_config = _camel_config(
        {
            "trackingNumber": "1Z999AA10123456784",
            "trackingUrl": "https://www.ups.com/track?tracknum=1Z999AA10123456784",
            "carrier": "UPS",
            "status": "IN_TRANSIT",
            "isPrimary": True,
        }
    )
    tracking_number: NonBlankStr = Field(max_length=128)
    tracking_url: Optional[str] = Field(default=None, max_length=1024)
    carrier: Optional[str] = Field(default=None, max_length=64)
    status: Optional[TrackingStatus] = None
    is_primary: Optional[bool] = None
    last_event_at: Optional[datetime] = None


class TrackingPatch(BaseModel):
    model_config = _camel_config({"status": "DELIVERED"})
    tracking_url: Optional[str] = Field(default=None, max_length=1024)
    carrier: Optional[str] = Field(default=None, max_length=64)
    status: Optional[TrackingStatus] = None
    is_primary: Optional[bool] = None
    last_event_at: Optional[datetime] = None
