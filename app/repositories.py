from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Query, Session

from app.models import Fulfillment, Order, Store, Tenant, Tracking


def get_tenant(db: Session, tenant_id: UUID) -> Optional[Tenant]:
    return db.get(Tenant, tenant_id)


def get_store(db: Session, store_id: UUID) -> Optional[Store]:
    return db.get(Store, store_id)


def get_order(db: Session, order_id: UUID) -> Optional[Order]:
    return db.get(Order, order_id)


def get_fulfillment(db: Session, fulfillment_id: UUID) -> Optional[Fulfillment]:
    return db.get(Fulfillment, fulfillment_id)


def get_tracking(db: Session, tracking_id: UUID) -> Optional[Tracking]:
    return db.get(Tracking, tracking_id)


def order_exists(db: Session, order_id: UUID) -> bool:
    return db.query(Order.id).filter(Order.id == order_id).first() is not None


def tenant_name_exists(db: Session, name: str) -> bool:
    return db.query(Tenant.id).filter(Tenant.name == name).first() is not None


def store_code_exists(db: Session, tenant_id: UUID, store_code: str) -> bool:
    return (
        db.query(Store.id)
        .filter(Store.tenant_id == tenant_id, Store.store_code == store_code)
        .first()
        is not None
    )


def fulfillment_external_id_exists(
    db: Session, tenant_id: UUID, order_id: UUID, external_fulfillment_id: str
) -> bool:
    return (
        db.query(Fulfillment.id)
        .filter(
            Fulfillment.tenant_id == tenant_id,
            Fulfillment.order_id == order_id,
            Fulfillment.external_fulfillment_id == external_fulfillment_id,
        )
        .first()
        is not None
    )


def tracking_number_exists(db: Session, tenant_id: UUID, tracking_number: str) -> bool:
    return (
        db.query(Tracking.id)
        .filter(Tracking.tenant_id == tenant_id, Tracking.tracking_number == tracking_number)
        .first()
        is not None
    )


def find_order_by_external_id(
    db: Session, tenant_id: UUID, store_id: UUID, external_order_id: str
) -> Optional[Order]:
    return (
        db.query(Order)
        .filter(
            Order.tenant_id == tenant_id,
            Order.store_id == store_id,
            Order.external_order_id == external_order_id,
        )
        .first()
    )


def tenant_search_query(
    db: Session, status: Optional[str] = None, name: Optional[str] = None
) -> Query:
    query = db.query(Tenant)
    if status is not None:
        query = query.filter(Tenant.status == status)
    if name is not None:
        query = query.filter(Tenant.name.ilike(f"%{name}%"))
    return query


def store_search_query(
    db: Session,
    tenant_id: Optional[UUID] = None,
    code: Optional[str] = None,
    status: Optional[str] = None,
    platform: Optional[str] = None,
) -> Query:
    query = db.query(Store)
    if tenant_id is not None:
        query = query.filter(Store.tenant_id == tenant_id)
    if code is not None:
        query = query.filter(Store.store_code.like(f"%{code}%"))
    if status is not None:
        query = query.filter(Store.status == status)
    if platform is not None:
        query = query.filter(Store.platform == platform)
    return query


def order_search_query(
    db: Session,
    tenant_id: Optional[UUID] = None,
    store_id: Optional[UUID] = None,
    status: Optional[str] = None,
    financial_status: Optional[str] = None,
    fulfillment_status: Optional[str] = None,
    updated_from: Optional[datetime] = None,
    updated_to: Optional[datetime] = None,
) -> Query:
    query = db.query(Order)
    if tenant_id is not None:
        query = query.filter(Order.tenant_id == tenant_id)
    if store_id is not None:
        query = query.filter(Order.store_id == store_id)
    if status is not None:
        query = query.filter(Order.order_status == status)
    if financial_status is not None:
        query = query.filter(Order.financial_status == financial_status)
    if fulfillment_status is not None:
        query = query.filter(Order.fulfillment_status == fulfillment_status)
    if updated_from is not None:
        query = query.filter(Order.order_updated_at >= updated_from)
    if updated_to is not None:
        query = query.filter(Order.order_updated_at <= updated_to)
    return query


def order_external_query(
    db: Session,
    tenant_id: UUID,
    store_id: Optional[UUID] = None,
    external_order_id: Optional[str] = None,
    external_order_number: Optional[str] = None,
) -> Query:
    query = db.query(Order).filter(Order.tenant_id == tenant_id)
    if store_id is not None:
        query = query.filter(Order.store_id == store_id)
    if external_order_id is not None:
        query = query.filter(Order.external_order_id == external_order_id)
    if external_order_number is not None:
        query = query.filter(Order.external_order_number == external_order_number)
    return query


def fulfillment_search_query(
    db: Session,
    order_id: UUID,
    status: Optional[str] = None,
    carrier: Optional[str] = None,
    updated_from: Optional[datetime] = None,
    updated_to: Optional[datetime] = None,
) -> Query:
    query = db.query(Fulfillment).filter(Fulfillment.order_id == order_id)
    if status is not None:
        query = query.filter(Fulfillment.fulfillment_status == status)
    if carrier is not None:
        query = query.filter(Fulfillment.carrier == carrier)
    if updated_from is not None:
        query = query.filter(Fulfillment.updated_at >= updated_from)
    if updated_to is not None:
        query = query.filter(Fulfillment.updated_at <= updated_to)
    return query


def fulfillment_external_query(
    db: Session, order_id: UUID, external_fulfillment_id: str
) -> Query:
    return db.query(Fulfillment).filter(
        Fulfillment.order_id == order_id,
        Fulfillment.external_fulfillment_id == external_fulfillment_id,
    )


def tracking_search_query(
    db: Session,
    fulfillment_id: UUID,
    status: Optional[str] = None,
    carrier: Optional[str] = None,
    tracking_number: Optional[str] = None,
    updated_from: Optional[datetime] = None,
    updated_to: Optional[datetime] = None,
) -> Query:
    query = db.query(Tracking).filter(Tracking.fulfillment_id == fulfillment_id)
    if status is not None:
        query = query.filter(Tracking.tracking_status == status)
    if carrier is not None:
        query = query.filter(Tracking.carrier == carrier)
    if tracking_number is not None:
        query = query.filter(Tracking.tracking_number == tracking_number)
    if updated_from is not None:
        query = query.filter(Tracking.updated_at >= updated_from)
    if updated_to is not None:
        query = query.filter(Tracking.updated_at <= updated_to)
    return query
