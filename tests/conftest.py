import os

os.environ["ORDER_STORE_BACKEND"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient

from storefront.main import app
from storefront.api.deps import get_order_store
from storefront.api.order_service import OrderLifecycleService
from storefront.core.permissions import get_current_user
from storefront.models.order import OrderLineIn
from storefront.stores.memory import MemoryOrderStore


def header_user(request: Request) -> dict:
    """Identity taken from test headers instead of a bearer token"""
    user_id = request.headers.get("X-User")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return {
        "id": user_id,
        "email": f"{user_id}@example.com",
        "role": request.headers.get("X-Role", "customer"),
    }


def as_user(user_id: str, role: str = "customer") -> dict:
    return {"X-User": user_id, "X-Role": role}


def line(product_id="p1", price=50, qty=1, **extra) -> OrderLineIn:
    return OrderLineIn(product_id=product_id, name=extra.pop("name", "Rice"), price=price, qty=qty, **extra)


@pytest.fixture
def store():
    return MemoryOrderStore()


@pytest.fixture
def service(store):
    return OrderLifecycleService(store)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_order_store] = lambda: store
    app.dependency_overrides[get_current_user] = header_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
