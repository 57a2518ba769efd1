import os

# Pas de Redis pendant les tests: le lifespan désactive fastapi-limiter
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import copy
import pytest
from datetime import date, datetime, timezone
from typing import Generator, Dict, Any, List, Optional
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from catering.asgi import app as fastapi_app
from catering.errors import GatewayError, PersistenceError
from catering.payments.midtrans_client import compute_signature
from catering.utils.ids import IdGenerator
from catering.utils.security import require_user

SERVER_KEY = "SB-Mid-server-test-key"
ORDER_DATE = date(2024, 3, 4)
DELIVERY_DATE = date(2024, 3, 5)

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def parent() -> Dict[str, Any]:
    return {
        "id": "parent-1",
        "email": "parent1@example.com",
        "metadata": {"full_name": "Ibu Sari", "phone": "0811111111"},
        "token": "fake-token",
    }

# Simuler un parent authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app, parent):
    app.dependency_overrides[require_user] = lambda: parent
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

# Aucun accès réseau à Supabase pendant les tests
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    monkeypatch.setattr("catering.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("catering.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    monkeypatch.setattr("catering.infra.supabase_client.get_webhook_supabase", lambda: MagicMock())
    monkeypatch.setattr("catering.infra.supabase_client.get_user_supabase", lambda token: MagicMock())

@pytest.fixture
def server_key(monkeypatch) -> str:
    monkeypatch.setattr("catering.payments.midtrans_client.MIDTRANS_SERVER_KEY", SERVER_KEY)
    return SERVER_KEY

@pytest.fixture
def ids() -> IdGenerator:
    """Horloge et suffixe déterministes: ORDER-1700000000000-000000001, ...002, ..."""
    counter = {"n": 0}

    def _suffix():
        counter["n"] += 1
        return f"{counter['n']:09d}"

    return IdGenerator(clock=lambda: 1700000000000, suffix=_suffix)

@pytest.fixture
def notification(server_key):
    """Fabrique une notification Midtrans signée avec la clé de test."""
    def _make(order_id: str, transaction_status: str = "settlement", *, gross_amount: str = "30000.00",
              status_code: str = "200", transaction_id: str = "trx-1", **extra) -> Dict[str, Any]:
        body = {
            "order_id": order_id,
            "status_code": status_code,
            "gross_amount": gross_amount,
            "transaction_status": transaction_status,
            "transaction_id": transaction_id,
            "signature_key": compute_signature(order_id, status_code, gross_amount, SERVER_KEY),
        }
        body.update(extra)
        return body
    return _make


class FakeStore:
    """Store en mémoire (orders, order_line_items, children) branché à la place des repositories."""

    def __init__(self):
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.line_items: List[Dict[str, Any]] = []
        self.children: Dict[str, Dict[str, Any]] = {}
        self.menu_names: Dict[str, str] = {}
        self.fail: set = set()
        self.writes: List[tuple] = []
        self._seq = 0

    def add_child(self, child_id: str, user_id: str, name: str, class_name: Optional[str] = None) -> Dict[str, Any]:
        self.children[child_id] = {"id": child_id, "user_id": user_id, "name": name, "class_name": class_name}
        return self.children[child_id]

    def _check(self, op: str) -> None:
        if op in self.fail:
            raise PersistenceError(f"{op} failed", code=f"{op}_failed")

    # orders.repository
    def insert_order(self, row, *, user_token=None):
        self._check("insert_order")
        self._seq += 1
        order_id = f"order-{self._seq}"
        stamp = datetime(2024, 3, 4, 8, 0, self._seq, tzinfo=timezone.utc).isoformat()
        stored = {
            "midtrans_order_id": None,
            "midtrans_transaction_id": None,
            "snap_token": None,
            **row,
            "id": order_id,
            "created_at": stamp,
            "updated_at": stamp,
        }
        self.orders[order_id] = stored
        self.writes.append(("insert_order", order_id, dict(row)))
        return copy.deepcopy(stored)

    def insert_line_items(self, rows, *, user_token=None):
        self._check("insert_line_items")
        created = []
        for row in rows:
            self._seq += 1
            created.append({**row, "id": f"line-{self._seq}"})
        self.line_items.extend(created)
        self.writes.append(("insert_line_items", rows[0]["order_id"] if rows else None, len(rows)))
        return copy.deepcopy(created)

    def delete_order(self, order_id, *, user_token=None):
        self._check("delete_order")
        self.orders.pop(order_id, None)
        self.writes.append(("delete_order", order_id, None))

    def get_order(self, order_id, *, user_token=None):
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    def get_order_by_correlation_id(self, correlation_id):
        for order in self.orders.values():
            if order.get("midtrans_order_id") == correlation_id:
                return copy.deepcopy(order)
        return None

    def update_order(self, order_id, fields, *, user_token=None):
        self._check("update_order")
        if order_id not in self.orders:
            return {}
        self.orders[order_id].update(fields)
        self.writes.append(("update_order", order_id, dict(fields)))
        return copy.deepcopy(self.orders[order_id])

    def list_line_items(self, order_id, *, user_token=None):
        return [
            {**copy.deepcopy(r), "menu_items": {"name": self.menu_names.get(r["menu_item_id"])}}
            for r in self.line_items
            if r["order_id"] == order_id
        ]

    def list_user_orders(self, user_id, *, user_token=None, limit=50):
        orders = [o for o in self.orders.values() if o.get("user_id") == user_id]
        orders.sort(key=lambda o: o["created_at"], reverse=True)
        return [{**copy.deepcopy(o), "order_line_items": self.list_line_items(o["id"])} for o in orders[:limit]]

    # children.repository
    def list_children(self, user_id, *, user_token=None):
        kids = [c for c in self.children.values() if c["user_id"] == user_id]
        return [{"id": c["id"], "name": c["name"], "class_name": c["class_name"]} for c in sorted(kids, key=lambda c: c["name"])]

    def get_child_for_user(self, child_id, user_id, *, user_token=None):
        child = self.children.get(child_id)
        if not child or child["user_id"] != user_id:
            return None
        return {"id": child["id"], "name": child["name"], "class_name": child["class_name"]}

    def order_writes(self, order_id: str) -> List[tuple]:
        return [w for w in self.writes if w[1] == order_id]


@pytest.fixture
def store(monkeypatch, parent) -> FakeStore:
    fake = FakeStore()
    fake.add_child("child-budi", parent["id"], "Budi", "3A")
    fake.add_child("child-ani", parent["id"], "Ani", "1B")
    fake.add_child("child-other", "parent-2", "Dewi", "2C")
    fake.menu_names["menu-nasi"] = "Nasi Goreng"

    for name in (
        "insert_order",
        "insert_line_items",
        "delete_order",
        "get_order",
        "get_order_by_correlation_id",
        "update_order",
        "list_line_items",
        "list_user_orders",
    ):
        monkeypatch.setattr(f"catering.orders.repository.{name}", getattr(fake, name))
    monkeypatch.setattr("catering.children.repository.list_children", fake.list_children)
    monkeypatch.setattr("catering.children.repository.get_child_for_user", fake.get_child_for_user)
    # Les dates de livraison sont validées par rapport à une date d'école fixe
    monkeypatch.setattr("catering.orders.service.school_today", lambda: ORDER_DATE)
    return fake


class FakeGateway:
    """Remplace midtrans_client.create_transaction: enregistre les payloads, peut échouer."""

    def __init__(self):
        self.payloads: List[Dict[str, Any]] = []
        self.fail_with: Optional[Exception] = None

    def create_transaction(self, payload, *, server_key=None):
        self.payloads.append(payload)
        if self.fail_with is not None:
            raise self.fail_with
        n = len(self.payloads)
        return {"token": f"snap-token-{n}", "redirect_url": f"https://app.sandbox.midtrans.com/snap/v2/vtweb/snap-token-{n}"}

    def fail(self, message: str = "Le paiement n'a pas pu être créé (Midtrans injoignable)") -> None:
        self.fail_with = GatewayError(message)


@pytest.fixture
def gateway(monkeypatch) -> FakeGateway:
    fake = FakeGateway()
    monkeypatch.setattr("catering.payments.midtrans_client.create_transaction", fake.create_transaction)
    return fake
