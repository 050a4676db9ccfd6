"""
Domain services for tenants, stores, orders, fulfillments and tracking.

Every operation takes an open ``Session`` and commits at most once. Lookups by
id raise ``NotFoundError``; a child addressed through a parent it does not
belong to raises ``InvalidRelationshipError``; a uniqueness violation raised
by the database on commit is rolled back and re-raised as ``ConflictError``.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import repositories
from app.errors import ConflictError, InvalidRelationshipError, NotFoundError
from app.models import (
    FinancialStatus,
    Fulfillment,
    FulfillmentOverallStatus,
    FulfillmentStatus,
    Order,
    OrderStatus,
    Store,
    Tenant,
    Tracking,
    TrackingStatus,
)
from app.pagination import Page, PageRequest, paginate
from app.schemas import (
    FulfillmentCreate,
    FulfillmentPatch,
    OrderCreate,
    OrderPatch,
    StoreCreate,
    TenantCreate,
    TrackingCreate,
    TrackingPatch,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _value(member) -> Optional[str]:
    return member.value if member is not None else None


def _commit(db: Session, conflict_message: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Uniqueness violation on commit: %s", exc.orig)
        raise ConflictError(conflict_message) from exc


def _map_page(page: Page, mapper: Callable[[Any], dict]) -> Page:
    return Page(
        items=[mapper(row) for row in page.items],
        page=page.page,
        size=page.size,
        total_elements=page.total_elements,
    )


def ensure_belongs_to(
    actual_parent_id: UUID, expected_parent_id: UUID, child: str, parent: str
) -> None:
    """Raise ``InvalidRelationshipError`` unless the child's parent id matches."""
    if actual_parent_id != expected_parent_id:
        logger.warning(
            "%s parent mismatch: expected %s %s, found %s",
            child,
            parent,
            expected_parent_id,
            actual_parent_id,
        )
        raise InvalidRelationshipError(f"{child} does not belong to the specified {parent}")


# Tenants


def tenant_out(tenant: Tenant) -> dict:
    return {
        "id": str(tenant.id),
        "name": tenant.name,
        "status": tenant.status,
        "createdAt": _iso(tenant.created_at),
        "updatedAt": _iso(tenant.updated_at),
    }


def create_tenant(db: Session, payload: TenantCreate) -> dict:
    logger.info("Creating tenant %s", payload.name)
    if repositories.tenant_name_exists(db, payload.name):
        raise ConflictError(f"Tenant already exists with name: {payload.name}")
    tenant = Tenant(name=payload.name, status=payload.status.value)
    db.add(tenant)
    _commit(db, f"Tenant already exists with name: {payload.name}")
    db.refresh(tenant)
    return tenant_out(tenant)


def get_tenant(db: Session, tenant_id: UUID) -> dict:
    tenant = repositories.get_tenant(db, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant", tenant_id)
    return tenant_out(tenant)


def search_tenants(
    db: Session, status: Optional[str], name: Optional[str], page_request: PageRequest
) -> Page:
    query = repositories.tenant_search_query(db, status=status, name=name)
    return _map_page(paginate(query, page_request, Tenant.created_at), tenant_out)


# Stores


def store_out(store: Store) -> dict:
    return {
        "id": str(store.id),
        "tenantId": str(store.tenant_id),
        "storeCode": store.store_code,
        "storeName": store.store_name,
        "platform": store.platform,
        "timezone": store.timezone,
        "currency": store.currency,
        "status": store.status,
        "createdAt": _iso(store.created_at),
        "updatedAt": _iso(store.updated_at),
    }


def create_store(db: Session, payload: StoreCreate) -> dict:
    logger.info("Creating store %s for tenant %s", payload.store_code, payload.tenant_id)
    if repositories.get_tenant(db, payload.tenant_id) is None:
        raise NotFoundError("Tenant", payload.tenant_id)
    conflict = f"Store already exists with code: {payload.store_code}"
    if repositories.store_code_exists(db, payload.tenant_id, payload.store_code):
        raise ConflictError(conflict)
    store = Store(
        tenant_id=payload.tenant_id,
        store_code=payload.store_code,
        store_name=payload.store_name,
        platform=payload.platform.value,
        timezone=payload.timezone,
        currency=payload.currency,
        status=payload.status.value,
    )
    db.add(store)
    _commit(db, conflict)
    db.refresh(store)
    return store_out(store)


def get_store(db: Session, store_id: UUID) -> dict:
    store = repositories.get_store(db, store_id)
    if store is None:
        raise NotFoundError("Store", store_id)
    return store_out(store)


def search_stores(
    db: Session,
    tenant_id: Optional[UUID],
    code: Optional[str],
    status: Optional[str],
    platform: Optional[str],
    page_request: PageRequest,
) -> Page:
    query = repositories.store_search_query(
        db, tenant_id=tenant_id, code=code, status=status, platform=platform
    )
    return _map_page(paginate(query, page_request, Store.created_at), store_out)


# Orders


def order_out(order: Order) -> dict:
    return {
        "id": str(order.id),
        "orgId": str(order.tenant_id),
        "websiteId": str(order.store_id),
        "externalOrderId": order.external_order_id,
        "externalOrderNumber": order.external_order_number,
        "status": order.order_status,
        "financialStatus": order.financial_status,
        "fulfillmentStatus": order.fulfillment_status,
        "customerEmail": order.customer_email,
        "orderTotal": float(order.order_total_amount or 0),
        "currency": order.currency,
        "orderCreatedAt": _iso(order.order_created_at),
        "orderUpdatedAt": _iso(order.order_updated_at),
        "ingestedAt": _iso(order.ingested_at),
        "createdAt": _iso(order.created_at),
        "updatedAt": _iso(order.updated_at),
    }


def _replace_order_fields(
    order: Order, payload: OrderCreate, timestamp_default: Optional[datetime] = None
) -> None:
    order.external_order_number = payload.external_order_number
    order.order_status = (payload.status or OrderStatus.CREATED).value
    order.financial_status = (payload.financial_status or FinancialStatus.UNKNOWN).value
    order.fulfillment_status = (
        payload.fulfillment_status or FulfillmentOverallStatus.UNKNOWN
    ).value
    order.customer_email = payload.customer_email
    order.order_total_amount = payload.order_total if payload.order_total is not None else ZERO
    order.currency = payload.currency
    order.order_created_at = payload.order_created_at or timestamp_default
    order.order_updated_at = payload.order_updated_at or timestamp_default


def _patch_order_fields(order: Order, payload: OrderPatch) -> None:
    if payload.external_order_number is not None:
        order.external_order_number = payload.external_order_number
    if payload.status is not None:
        order.order_status = payload.status.value
    if payload.financial_status is not None:
        order.financial_status = payload.financial_status.value
    if payload.fulfillment_status is not None:
        order.fulfillment_status = payload.fulfillment_status.value
    if payload.customer_email is not None:
        order.customer_email = payload.customer_email
    if payload.order_total is not None:
        order.order_total_amount = payload.order_total
    if payload.currency is not None:
        order.currency = payload.currency
    if payload.order_created_at is not None:
        order.order_created_at = payload.order_created_at
    if payload.order_updated_at is not None:
        order.order_updated_at = payload.order_updated_at


def _load_order(db: Session, order_id: UUID) -> Order:
    order = repositories.get_order(db, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def create_or_upsert_order(db: Session, payload: OrderCreate) -> dict:
    """
    Create an order, or update the one already stored under the same
    (tenant, store, external order id).

    Fields follow full-replace semantics on both paths: absent statuses reset
    to their defaults, an absent total becomes zero and absent order
    timestamps default to now. ``ingested_at`` is only set on first creation.
    """
    logger.info("Creating/upserting order with external ID: %s", payload.external_order_id)
    if repositories.get_tenant(db, payload.org_id) is None:
        raise NotFoundError("Tenant", payload.org_id)
    store = repositories.get_store(db, payload.website_id)
    if store is None:
        raise NotFoundError("Store", payload.website_id)
    ensure_belongs_to(store.tenant_id, payload.org_id, "Store", "organization")

    order = repositories.find_order_by_external_id(
        db, payload.org_id, payload.website_id, payload.external_order_id
    )
    now = _now()
    if order is None:
        order = Order(
            tenant_id=payload.org_id,
            store_id=payload.website_id,
            external_order_id=payload.external_order_id,
            ingested_at=now,
        )
        db.add(order)
    else:
        logger.info("Order %s already ingested, updating in place", order.id)

    _replace_order_fields(order, payload, timestamp_default=now)
    _commit(db, f"Order already exists with external ID: {payload.external_order_id}")
    db.refresh(order)
    logger.info("Successfully saved order with ID: %s", order.id)
    return order_out(order)


def get_order(db: Session, order_id: UUID) -> dict:
    logger.debug("Fetching order with ID: %s", order_id)
    return order_out(_load_order(db, order_id))


def search_orders(
    db: Session,
    tenant_id: Optional[UUID],
    store_id: Optional[UUID],
    status: Optional[OrderStatus],
    financial_status: Optional[FinancialStatus],
    fulfillment_status: Optional[FulfillmentOverallStatus],
    updated_from: Optional[datetime],
    updated_to: Optional[datetime],
    page_request: PageRequest,
) -> Page:
    logger.debug("Searching orders for org: %s, store: %s", tenant_id, store_id)
    query = repositories.order_search_query(
        db,
        tenant_id=tenant_id,
        store_id=store_id,
        status=_value(status),
        financial_status=_value(financial_status),
        fulfillment_status=_value(fulfillment_status),
        updated_from=updated_from,
        updated_to=updated_to,
    )
    return _map_page(paginate(query, page_request, Order.created_at), order_out)


def search_orders_by_external_identity(
    db: Session,
    tenant_id: UUID,
    store_id: Optional[UUID],
    external_order_id: Optional[str],
    external_order_number: Optional[str],
    page_request: PageRequest,
) -> Page:
    logger.debug("Searching orders by external IDs for org: %s", tenant_id)
    query = repositories.order_external_query(
        db,
        tenant_id=tenant_id,
        store_id=store_id,
        external_order_id=external_order_id,
        external_order_number=external_order_number,
    )
    return _map_page(paginate(query, page_request, Order.created_at), order_out)


def update_order(db: Session, order_id: UUID, payload: OrderCreate) -> dict:
    logger.info("Updating order with ID: %s", order_id)
    order = _load_order(db, order_id)
    _replace_order_fields(order, payload)
    _commit(db, f"Order update conflicts with an existing order: {order_id}")
    db.refresh(order)
    return order_out(order)


def patch_order(db: Session, order_id: UUID, payload: OrderPatch) -> dict:
    logger.info("Patching order with ID: %s", order_id)
    order = _load_order(db, order_id)
    _patch_order_fields(order, payload)
    _commit(db, f"Order update conflicts with an existing order: {order_id}")
    db.refresh(order)
    return order_out(order)


def delete_order(db: Session, order_id: UUID) -> None:
    logger.info("Deleting order with ID: %s", order_id)
    order = _load_order(db, order_id)
    db.delete(order)
    db.commit()
    logger.info("Successfully deleted order with ID: %s", order_id)


# Fulfillments


def fulfillment_out(fulfillment: Fulfillment) -> dict:
    return {
        "id": str(fulfillment.id),
        "orderId": str(fulfillment.order_id),
        "orgId": str(fulfillment.tenant_id),
        "externalFulfillmentId": fulfillment.external_fulfillment_id,
        "status": fulfillment.fulfillment_status,
        "carrier": fulfillment.carrier,
        "serviceLevel": fulfillment.service_level,
        "shipFromLocation": fulfillment.ship_from_location,
        "shippedAt": _iso(fulfillment.shipped_at),
        "deliveredAt": _iso(fulfillment.delivered_at),
        "createdAt": _iso(fulfillment.created_at),
        "updatedAt": _iso(fulfillment.updated_at),
    }


def _load_fulfillment(db: Session, order_id: UUID, fulfillment_id: UUID) -> Fulfillment:
    fulfillment = repositories.get_fulfillment(db, fulfillment_id)
    if fulfillment is None:
        raise NotFoundError("Fulfillment", fulfillment_id)
    ensure_belongs_to(fulfillment.order_id, order_id, "Fulfillment", "order")
    return fulfillment


def create_fulfillment(db: Session, order_id: UUID, payload: FulfillmentCreate) -> dict:
    logger.info("Creating fulfillment for order ID: %s", order_id)
    order = _load_order(db, order_id)

    conflict = f"Fulfillment already exists with external ID: {payload.external_fulfillment_id}"
    if repositories.fulfillment_external_id_exists(
        db, order.tenant_id, order.id, payload.external_fulfillment_id
    ):
        logger.warning(conflict)
        raise ConflictError(conflict)

    fulfillment = Fulfillment(
        tenant_id=order.tenant_id,
        order_id=order.id,
        external_fulfillment_id=payload.external_fulfillment_id,
        fulfillment_status=(payload.status or FulfillmentStatus.UNKNOWN).value,
        carrier=payload.carrier,
        service_level=payload.service_level,
        ship_from_location=payload.ship_from_location,
        shipped_at=payload.shipped_at,
        delivered_at=payload.delivered_at,
    )
    db.add(fulfillment)
    _commit(db, conflict)
    db.refresh(fulfillment)
    logger.info("Successfully created fulfillment with ID: %s", fulfillment.id)
    return fulfillment_out(fulfillment)


def get_fulfillment(db: Session, order_id: UUID, fulfillment_id: UUID) -> dict:
    logger.debug("Fetching fulfillment with ID: %s", fulfillment_id)
    return fulfillment_out(_load_fulfillment(db, order_id, fulfillment_id))


def list_fulfillments(
    db: Session,
    order_id: UUID,
    status: Optional[FulfillmentStatus],
    carrier: Optional[str],
    updated_from: Optional[datetime],
    updated_to: Optional[datetime],
    page_request: PageRequest,
) -> Page:
    logger.debug("Listing fulfillments for order: %s", order_id)
    if not repositories.order_exists(db, order_id):
        raise NotFoundError("Order", order_id)
    query = repositories.fulfillment_search_query(
        db,
        order_id,
        status=_value(status),
        carrier=carrier,
        updated_from=updated_from,
        updated_to=updated_to,
    )
    return _map_page(paginate(query, page_request, Fulfillment.created_at), fulfillment_out)


def search_fulfillments_by_external_id(
    db: Session, order_id: UUID, external_fulfillment_id: str, page_request: PageRequest
) -> Page:
    # no order existence check here, unlike list_fulfillments
    logger.debug("Searching fulfillments by external ID: %s", external_fulfillment_id)
    query = repositories.fulfillment_external_query(db, order_id, external_fulfillment_id)
    return _map_page(paginate(query, page_request, Fulfillment.created_at), fulfillment_out)


def update_fulfillment(
    db: Session, order_id: UUID, fulfillment_id: UUID, payload: FulfillmentCreate
) -> dict:
    logger.info("Updating fulfillment with ID: %s", fulfillment_id)
    fulfillment = _load_fulfillment(db, order_id, fulfillment_id)
    fulfillment.fulfillment_status = (payload.status or FulfillmentStatus.UNKNOWN).value
    fulfillment.carrier = payload.carrier
    fulfillment.service_level = payload.service_level
    fulfillment.ship_from_location = payload.ship_from_location
    fulfillment.shipped_at = payload.shipped_at
    fulfillment.delivered_at = payload.delivered_at
    _commit(db, f"Fulfillment update conflicts with an existing fulfillment: {fulfillment_id}")
    db.refresh(fulfillment)
    return fulfillment_out(fulfillment)


def patch_fulfillment(
    db: Session, order_id: UUID, fulfillment_id: UUID, payload: FulfillmentPatch
) -> dict:
    logger.info("Patching fulfillment with ID: %s", fulfillment_id)
    fulfillment = _load_fulfillment(db, order_id, fulfillment_id)
    if payload.status is not None:
        fulfillment.fulfillment_status = payload.status.value
    if payload.carrier is not None:
        fulfillment.carrier = payload.carrier
    if payload.service_level is not None:
        fulfillment.service_level = payload.service_level
    if payload.ship_from_location is not None:
        fulfillment.ship_from_location = payload.ship_from_location
    if payload.shipped_at is not None:
        fulfillment.shipped_at = payload.shipped_at
    if payload.delivered_at is not None:
        fulfillment.delivered_at = payload.delivered_at
    _commit(db, f"Fulfillment update conflicts with an existing fulfillment: {fulfillment_id}")
    db.refresh(fulfillment)
    return fulfillment_out(fulfillment)


def delete_fulfillment(db: Session, order_id: UUID, fulfillment_id: UUID) -> None:
    logger.info("Deleting fulfillment with ID: %s", fulfillment_id)
    fulfillment = _load_fulfillment(db, order_id, fulfillment_id)
    db.delete(fulfillment)
    db.commit()
    logger.info("Successfully deleted fulfillment with ID: %s", fulfillment_id)


# Tracking


def tracking_out(tracking: Tracking) -> dict:
    return {
        "id": str(tracking.id),
        "fulfillmentId": str(tracking.fulfillment_id),
        "orgId": str(tracking.tenant_id),
        "trackingNumber": tracking.tracking_number,
        "trackingUrl": tracking.tracking_url,
        "carrier": tracking.carrier,
        "status": tracking.tracking_status,
        "isPrimary": tracking.is_primary,
        "lastEventAt": _iso(tracking.last_event_at),
        "createdAt": _iso(tracking.created_at),
        "updatedAt": _iso(tracking.updated_at),
    }


def _load_tracking(
    db: Session, order_id: UUID, fulfillment_id: UUID, tracking_id: UUID
) -> Tracking:
    _load_fulfillment(db, order_id, fulfillment_id)
    tracking = repositories.get_tracking(db, tracking_id)
    if tracking is None:
        raise NotFoundError("Tracking", tracking_id)
    ensure_belongs_to(tracking.fulfillment_id, fulfillment_id, "Tracking", "fulfillment")
    return tracking


def create_tracking(
    db: Session, order_id: UUID, fulfillment_id: UUID, payload: TrackingCreate
) -> dict:
    logger.info("Creating tracking for fulfillment ID: %s", fulfillment_id)
    fulfillment = _load_fulfillment(db, order_id, fulfillment_id)

    conflict = f"Tracking already exists with number: {payload.tracking_number}"
    if repositories.tracking_number_exists(db, fulfillment.tenant_id, payload.tracking_number):
        logger.warning(conflict)
        raise ConflictError(conflict)

    tracking = Tracking(
        tenant_id=fulfillment.tenant_id,
        fulfillment_id=fulfillment.id,
        tracking_number=payload.tracking_number,
        tracking_url=payload.tracking_url,
        carrier=payload.carrier,
        tracking_status=(payload.status or TrackingStatus.UNKNOWN).value,
        is_primary=bool(payload.is_primary),
        last_event_at=payload.last_event_at,
    )
    db.add(tracking)
    _commit(db, conflict)
    db.refresh(tracking)
    logger.info("Successfully created tracking with ID: %s", tracking.id)
    return tracking_out(tracking)


def get_tracking(db: Session, order_id: UUID, fulfillment_id: UUID, tracking_id: UUID) -> dict:
    logger.debug("Fetching tracking with ID: %s", tracking_id)
    return tracking_out(_load_tracking(db, order_id, fulfillment_id, tracking_id))


def list_tracking(
    db: Session,
    order_id: UUID,
    fulfillment_id: UUID,
    status: Optional[TrackingStatus],
    carrier: Optional[str],
    tracking_number: Optional[str],
    updated_from: Optional[datetime],
    updated_to: Optional[datetime],
    page_request: PageRequest,
) -> Page:
    logger.debug("Listing tracking for fulfillment: %s", fulfillment_id)
    _load_fulfillment(db, order_id, fulfillment_id)
    query = repositories.tracking_search_query(
        db,
        fulfillment_id,
        status=_value(status),
        carrier=carrier,
        tracking_number=tracking_number,
        updated_from=updated_from,
        updated_to=updated_to,
    )
    return _map_page(paginate(query, page_request, Tracking.created_at), tracking_out)


def update_tracking(
    db: Session, order_id: UUID, fulfillment_id: UUID, tracking_id: UUID, payload: TrackingCreate
) -> dict:
    logger.info("Updating tracking with ID: %s", tracking_id)
    tracking = _load_tracking(db, order_id, fulfillment_id, tracking_id)
    conflict = f"Tracking already exists with number: {payload.tracking_number}"
    if payload.tracking_number != tracking.tracking_number and repositories.tracking_number_exists(
        db, tracking.tenant_id, payload.tracking_number
    ):
        logger.warning(conflict)
        raise ConflictError(conflict)
    tracking.tracking_number = payload.tracking_number
    tracking.tracking_url = payload.tracking_url
    tracking.carrier = payload.carrier
    tracking.tracking_status = (payload.status or TrackingStatus.UNKNOWN).value
    tracking.is_primary = bool(payload.is_primary)
    tracking.last_event_at = payload.last_event_at
    _commit(db, conflict)
    db.refresh(tracking)
    return tracking_out(tracking)


def patch_tracking(
    db: Session, order_id: UUID, fulfillment_id: UUID, tracking_id: UUID, payload: TrackingPatch
) -> dict:
    logger.info("Patching tracking with ID: %s", tracking_id)
    tracking = _load_tracking(db, order_id, fulfillment_id, tracking_id)
    if payload.tracking_url is not None:
        tracking.tracking_url = payload.tracking_url
    if payload.carrier is not None:
        tracking.carrier = payload.carrier
    if payload.status is not None:
        tracking.tracking_status = payload.status.value
    if payload.is_primary is not None:
        tracking.is_primary = payload.is_primary
    if payload.last_event_at is not None:
        tracking.last_event_at = payload.last_event_at
    _commit(db, f"Tracking update conflicts with an existing record: {tracking_id}")
    db.refresh(tracking)
    return tracking_out(tracking)


def delete_tracking(db: Session, order_id: UUID, fulfillment_id: UUID, tracking_id: UUID) -> None:
    logger.info("Deleting tracking with ID: %s", tracking_id)
    tracking = _load_tracking(db, order_id, fulfillment_id, tracking_id)
    db.delete(tracking)
    db.commit()
