from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.models import Order, Store, Tenant


def test_ingested_at_cannot_be_reassigned() -> None:
    first = datetime(2026, 1, 1, tzinfo=timezone.utc)
    order = Order(external_order_id="EXT-1", ingested_at=first)

    order.ingested_at = first
    with pytest.raises(ValueError):
        order.ingested_at = first + timedelta(days=1)
    assert order.ingested_at == first


def test_insert_assigns_id_and_audit_timestamps(session_factory) -> None:
    with session_factory() as db:
        tenant = Tenant(name="Acme")
        db.add(tenant)
        db.commit()
        db.refresh(tenant)

        assert tenant.id is not None
        assert tenant.status == "ACTIVE"
        assert tenant.created_at == tenant.updated_at

        created = tenant.created_at
        tenant.name = "Acme Retail"
        db.commit()
        db.refresh(tenant)
        assert tenant.created_at == created
        assert tenant.updated_at >= created


def test_status_check_constraint(session_factory) -> None:
    with session_factory() as db:
        db.add(Tenant(name="Acme", status="SUSPENDED"))
        with pytest.raises(IntegrityError):
            db.commit()


def test_store_code_unique_per_tenant(session_factory) -> None:
    with session_factory() as db:
        tenant = Tenant(name="Acme")
        db.add(tenant)
        db.commit()

        db.add(Store(tenant_id=tenant.id, store_code="acme-us", store_name="US"))
        db.commit()
        db.add(Store(tenant_id=tenant.id, store_code="acme-us", store_name="US again"))
        with pytest.raises(IntegrityError):
            db.commit()
