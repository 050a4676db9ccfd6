from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Optional
from uuid import UUID, uuid4

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import services
from app.config import settings
from app.db import SessionLocal
from app.errors import OrderHubError
from app.logging_config import configure_logging
from app.models import (
    FinancialStatus,
    Fulfillment,
    FulfillmentOverallStatus,
    FulfillmentStatus,
    Order,
    OrderStatus,
    Platform,
    Store,
    StoreStatus,
    Tenant,
    TenantStatus,
    Tracking,
    TrackingStatus,
)
from app.pagination import Page, PageRequest, page_meta, parse_sort
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

configure_logging(settings.log_level, settings.sql_echo)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.app_version)

ORDER_SORT_FIELDS = {
    "orderUpdatedAt": Order.order_updated_at,
    "orderCreatedAt": Order.order_created_at,
    "ingestedAt": Order.ingested_at,
    "createdAt": Order.created_at,
    "updatedAt": Order.updated_at,
    "orderTotal": Order.order_total_amount,
    "externalOrderId": Order.external_order_id,
    "externalOrderNumber": Order.external_order_number,
    "status": Order.order_status,
}
FULFILLMENT_SORT_FIELDS = {
    "updatedAt": Fulfillment.updated_at,
    "createdAt": Fulfillment.created_at,
    "shippedAt": Fulfillment.shipped_at,
    "deliveredAt": Fulfillment.delivered_at,
    "externalFulfillmentId": Fulfillment.external_fulfillment_id,
    "status": Fulfillment.fulfillment_status,
    "carrier": Fulfillment.carrier,
}
TRACKING_SORT_FIELDS = {
    "updatedAt": Tracking.updated_at,
    "createdAt": Tracking.created_at,
    "lastEventAt": Tracking.last_event_at,
    "trackingNumber": Tracking.tracking_number,
    "status": Tracking.tracking_status,
}
TENANT_SORT_FIELDS = {
    "createdAt": Tenant.created_at,
    "updatedAt": Tenant.updated_at,
    "name": Tenant.name,
}
STORE_SORT_FIELDS = {
    "createdAt": Store.created_at,
    "updatedAt": Store.updated_at,
    "storeCode": Store.store_code,
    "storeName": Store.store_name,
}


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _meta(request_id: Optional[str] = None, warnings: Optional[list[str]] = None) -> dict:
    return {
        "request_id": request_id or f"req_{uuid4().hex}",
        "warnings": warnings or [],
    }


def _list_meta(page: Page) -> dict:
    meta = _meta()
    meta["page"] = page_meta(page)
    return meta


def _page_request(page: int, size: int, sort: Optional[str] = None, allowed=None, default=None):
    parsed = parse_sort(sort, allowed, default) if allowed is not None else None
    return PageRequest(page=page, size=size, sort=parsed)


def _error_body(status_code: int, error: str, message: Any, path: str) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status_code,
        "error": error,
        "message": message,
        "path": path,
    }


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


@app.exception_handler(OrderHubError)
async def order_hub_error_handler(request: Request, exc: OrderHubError):
    if exc.status_code >= 500:
        logger.error("Request to %s failed: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.error, exc.message, request.url.path),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        details.append(f"{location}: {error['msg']}" if location else error["msg"])
    logger.info("Validation failed for %s %s: %s", request.method, request.url.path, details)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(400, "Bad Request", "; ".join(details), request.url.path),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(
            _error_body(exc.status_code, _reason(exc.status_code), exc.detail, request.url.path)
        ),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception for %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            500, "Internal Server Error", "An unexpected error occurred", request.url.path
        ),
    )


@app.get("/health", tags=["Health"])
def health_check() -> dict:
    return {
        "status": "UP",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "application": settings.app_name,
        "version": settings.app_version,
    }


@app.post("/tenants", tags=["Tenants"], status_code=status.HTTP_201_CREATED)
def create_tenant(payload: TenantCreate, db: Session = Depends(get_db)) -> dict:
    return {"data": services.create_tenant(db, payload), "meta": _meta()}


@app.get("/tenants/{tenant_id}", tags=["Tenants"])
def get_tenant(tenant_id: UUID, db: Session = Depends(get_db)) -> dict:
    return {"data": services.get_tenant(db, tenant_id), "meta": _meta()}


@app.get("/tenants", tags=["Tenants"])
def list_tenants(
    tenant_status: Optional[TenantStatus] = Query(default=None, alias="status"),
    name: Optional[str] = Query(default=None),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    sort: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    page_request = _page_request(page, size, sort, TENANT_SORT_FIELDS, "createdAt,desc")
    result = services.search_tenants(
        db, tenant_status.value if tenant_status else None, name, page_request
    )
    return {"data": result.items, "meta": _list_meta(result)}


@app.post("/stores", tags=["Stores"], status_code=status.HTTP_201_CREATED)
def create_store(payload: StoreCreate, db: Session = Depends(get_db)) -> dict:
    return {"data": services.create_store(db, payload), "meta": _meta()}


@app.get("/stores/{store_id}", tags=["Stores"])
def get_store(store_id: UUID, db: Session = Depends(get_db)) -> dict:
    return {"data": services.get_store(db, store_id), "meta": _meta()}


@app.get("/stores", tags=["Stores"])
def list_stores(
    tenant_id: Optional[UUID] = Query(default=None, alias="tenantId"),
    code: Optional[str] = Query(default=None),
    store_status: Optional[StoreStatus] = Query(default=None, alias="status"),
    platform: Optional[Platform] = Query(default=None),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    sort: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    page_request = _page_request(page, size, sort, STORE_SORT_FIELDS, "createdAt,desc")
    result = services.search_stores(
        db,
        tenant_id,
        code,
        store_status.value if store_status else None,
        platform.value if platform else None,
        page_request,
    )
    return {"data": result.items, "meta": _list_meta(result)}


@app.post("/orders", tags=["Orders"], status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)) -> dict:
    return {"data": services.create_or_upsert_order(db, payload), "meta": _meta()}


@app.get("/orders/search", tags=["Orders"])
def search_orders_by_external(
    org_id: UUID = Query(alias="orgId"),
    website_id: Optional[UUID] = Query(default=None, alias="websiteId"),
    external_order_id: Optional[str] = Query(default=None, alias="externalOrderId"),
    external_order_number: Optional[str] = Query(default=None, alias="externalOrderNumber"),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
) -> dict:
    result = services.search_orders_by_external_identity(
        db,
        org_id,
        website_id,
        external_order_id,
        external_order_number,
        _page_request(page, size),
    )
    return {"data": result.items, "meta": _list_meta(result)}


@app.get("/orders/{order_id}", tags=["Orders"])
def get_order(order_id: UUID, db: Session = Depends(get_db)) -> dict:
    return {"data": services.get_order(db, order_id), "meta": _meta()}


@app.get("/orders", tags=["Orders"])
def list_orders(
    org_id: Optional[UUID] = Query(default=None, alias="orgId"),
    website_id: Optional[UUID] = Query(default=None, alias="websiteId"),
    order_status: Optional[OrderStatus] = Query(default=None, alias="status"),
    financial_status: Optional[FinancialStatus] = Query(default=None, alias="financialStatus"),
    fulfillment_status: Optional[FulfillmentOverallStatus] = Query(
        default=None, alias="fulfillmentStatus"
    ),
    updated_from: Optional[datetime] = Query(default=None, alias="from"),
    updated_to: Optional[datetime] = Query(default=None, alias="to"),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    sort: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    page_request = _page_request(page, size, sort, ORDER_SORT_FIELDS, "orderUpdatedAt,desc")
    result = services.search_orders(
        db,
        org_id,
        website_id,
        order_status,
        financial_status,
        fulfillment_status,
        updated_from,
        updated_to,
        page_request,
    )
    return {"data": result.items, "meta": _list_meta(result)}


@app.put("/orders/{order_id}", tags=["Orders"])
def update_order(order_id: UUID, payload: OrderCreate, db: Session = Depends(get_db)) -> dict:
    return {"data": services.update_order(db, order_id, payload), "meta": _meta()}


@app.patch("/orders/{order_id}", tags=["Orders"])
def patch_order(order_id: UUID, payload: OrderPatch, db: Session = Depends(get_db)) -> dict:
    return {"data": services.patch_order(db, order_id, payload), "meta": _meta()}


@app.delete("/orders/{order_id}", tags=["Orders"], status_code=status.HTTP_204_NO_CONTENT)
def delete_order(order_id: UUID, db: Session = Depends(get_db)) -> Response:
    services.delete_order(db, order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post(
    "/orders/{order_id}/fulfillments",
    tags=["Fulfillments"],
    status_code=status.HTTP_201_CREATED,
)
def create_fulfillment(
    order_id: UUID, payload: FulfillmentCreate, db: Session = Depends(get_db)
) -> dict:
    return {"data": services.create_fulfillment(db, order_id, payload), "meta": _meta()}


@app.get("/orders/{order_id}/fulfillments/search", tags=["Fulfillments"])
def search_fulfillments_by_external(
    order_id: UUID,
    external_fulfillment_id: str = Query(alias="externalFulfillmentId"),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
) -> dict:
    result = services.search_fulfillments_by_external_id(
        db, order_id, external_fulfillment_id, _page_request(page, size)
    )
    return {"data": result.items, "meta": _list_meta(result)}


@app.get("/orders/{order_id}/fulfillments/{fulfillment_id}", tags=["Fulfillments"])
def get_fulfillment(order_id: UUID, fulfillment_id: UUID, db: Session = Depends(get_db)) -> dict:
    return {"data": services.get_fulfillment(db, order_id, fulfillment_id), "meta": _meta()}


@app.get("/orders/{order_id}/fulfillments", tags=["Fulfillments"])
def list_fulfillments(
    order_id: UUID,
    fulfillment_status: Optional[FulfillmentStatus] = Query(default=None, alias="status"),
    carrier: Optional[str] = Query(default=None),
    updated_from: Optional[datetime] = Query(default=None, alias="from"),
    updated_to: Optional[datetime] = Query(default=None, alias="to"),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    sort: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    page_request = _page_request(page, size, sort, FULFILLMENT_SORT_FIELDS, "updatedAt,desc")
    result = services.list_fulfillments(
        db, order_id, fulfillment_status, carrier, updated_from, updated_to, page_request
    )
    return {"data": result.items, "meta": _list_meta(result)}


@app.put("/orders/{order_id}/fulfillments/{fulfillment_id}", tags=["Fulfillments"])
def update_fulfillment(
    order_id: UUID,
    fulfillment_id: UUID,
    payload: FulfillmentCreate,
    db: Session = Depends(get_db),
) -> dict:
    return {
        "data": services.update_fulfillment(db, order_id, fulfillment_id, payload),
        "meta": _meta(),
    }


@app.patch("/orders/{order_id}/fulfillments/{fulfillment_id}", tags=["Fulfillments"])
def patch_fulfillment(
    order_id: UUID,
    fulfillment_id: UUID,
    payload: FulfillmentPatch,
    db: Session = Depends(get_db),
) -> dict:
    return {
        "data": services.patch_fulfillment(db, order_id, fulfillment_id, payload),
        "meta": _meta(),
    }


@app.delete(
    "/orders/{order_id}/fulfillments/{fulfillment_id}",
    tags=["Fulfillments"],
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_fulfillment(
    order_id: UUID, fulfillment_id: UUID, db: Session = Depends(get_db)
) -> Response:
    services.delete_fulfillment(db, order_id, fulfillment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post(
    "/orders/{order_id}/fulfillments/{fulfillment_id}/tracking",
    tags=["Tracking"],
    status_code=status.HTTP_201_CREATED,
)
def create_tracking(
    order_id: UUID,
    fulfillment_id: UUID,
    payload: TrackingCreate,
    db: Session = Depends(get_db),
) -> dict:
    return {
        "data": services.create_tracking(db, order_id, fulfillment_id, payload),
        "meta": _meta(),
    }


@app.get("/orders/{order_id}/fulfillments/{fulfillment_id}/tracking", tags=["Tracking"])
def list_tracking(
    order_id: UUID,
    fulfillment_id: UUID,
    tracking_status: Optional[TrackingStatus] = Query(default=None, alias="status"),
    carrier: Optional[str] = Query(default=None),
    tracking_number: Optional[str] = Query(default=None, alias="trackingNumber"),
    updated_from: Optional[datetime] = Query(default=None, alias="from"),
    updated_to: Optional[datetime] = Query(default=None, alias="to"),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    sort: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> dict:
    page_request = _page_request(page, size, sort, TRACKING_SORT_FIELDS, "updatedAt,desc")
    result = services.list_tracking(
        db,
        order_id,
        fulfillment_id,
        tracking_status,
        carrier,
        tracking_number,
        updated_from,
        updated_to,
        page_request,
    )
    return {"data": result.items, "meta": _list_meta(result)}


@app.get(
    "/orders/{order_id}/fulfillments/{fulfillment_id}/tracking/{tracking_id}",
    tags=["Tracking"],
)
def get_tracking(
    order_id: UUID, fulfillment_id: UUID, tracking_id: UUID, db: Session = Depends(get_db)
) -> dict:
    return {
        "data": services.get_tracking(db, order_id, fulfillment_id, tracking_id),
        "meta": _meta(),
    }


@app.put(
    "/orders/{order_id}/fulfillments/{fulfillment_id}/tracking/{tracking_id}",
    tags=["Tracking"],
)
def update_tracking(
    order_id: UUID,
    fulfillment_id: UUID,
    tracking_id: UUID,
    payload: TrackingCreate,
    db: Session = Depends(get_db),
) -> dict:
    return {
        "data": services.update_tracking(db, order_id, fulfillment_id, tracking_id, payload),
        "meta": _meta(),
    }


@app.patch(
    "/orders/{order_id}/fulfillments/{fulfillment_id}/tracking/{tracking_id}",
    tags=["Tracking"],
)
def patch_tracking(
    order_id: UUID,
    fulfillment_id: UUID,
    tracking_id: UUID,
    payload: TrackingPatch,
    db: Session = Depends(get_db),
) -> dict:
    return {
        "data": services.patch_tracking(db, order_id, fulfillment_id, tracking_id, payload),
        "meta": _meta(),
    }


@app.delete(
    "/orders/{order_id}/fulfillments/{fulfillment_id}/tracking/{tracking_id}",
    tags=["Tracking"],
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_tracking(
    order_id: UUID, fulfillment_id: UUID, tracking_id: UUID, db: Session = Depends(get_db)
) -> Response:
    services.delete_tracking(db, order_id, fulfillment_id, tracking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
