import warnings
from datetime import date

import pytest

from catering.errors import CompensationFailedWarning, OrderNotFoundError, PersistenceError, ValidationError
from catering.orders import service as orders_service
from catering.orders.models import CartEntry

DELIVERY = date(2024, 3, 5)


def _entry(menu="menu-nasi", price=15000, qty=2, child_id=None, delivery=DELIVERY):
    return CartEntry(menu_item_id=menu, name="Nasi Goreng", unit_price=price, quantity=qty, delivery_date=delivery, child_id=child_id)

def _create(ids, **kw):
    params = dict(user_id="parent-1", entries=[_entry()], child_id="child-budi", notes="", user_token="fake-token", ids=ids)
    params.update(kw)
    return orders_service.create_order(**params)

def test_create_order_header_and_line_items(store, ids):
    order = _create(ids, entries=[_entry(qty=2), _entry(menu="menu-soto", price=12000, qty=1)])
    assert order["total_amount"] == 42000
    assert (order["status"], order["payment_status"]) == ("pending", "pending")
    assert order["order_number"] == "ORDER-1700000000000-000000001"
    assert (order["child_name"], order["child_class"]) == ("Budi", "3A")
    assert order["notes"] is None

    rows = [r for r in store.line_items if r["order_id"] == order["id"]]
    assert len(rows) == 2
    # Invariant: total de l'en-tête = somme des lignes
    assert sum(r["total_price"] for r in rows) == order["total_amount"]
    assert all(r["order_date"] == "2024-03-04" and r["delivery_date"] == "2024-03-05" for r in rows)
    assert all(r["child_name"] == "Budi" for r in rows)

def test_create_order_header_written_before_line_items(store, ids):
    order = _create(ids)
    ops = [w[0] for w in store.order_writes(order["id"])]
    assert ops == ["insert_order", "insert_line_items"]

def test_create_order_keeps_notes(store, ids):
    order = _create(ids, notes="  sans piment  ")
    assert order["notes"] == "sans piment"

def test_empty_cart_rejected_without_store_access(store, ids):
    with pytest.raises(ValidationError) as exc:
        _create(ids, entries=[])
    assert exc.value.code == "empty_cart"
    assert store.writes == []

@pytest.mark.parametrize("child_id", [None, "", "   "])
def test_missing_child_rejected(store, ids, child_id):
    with pytest.raises(ValidationError) as exc:
        _create(ids, child_id=child_id)
    assert exc.value.code == "no_child"
    assert store.writes == []

def test_foreign_child_rejected(store, ids):
    with pytest.raises(ValidationError) as exc:
        _create(ids, child_id="child-other")
    assert exc.value.code == "child_not_owned"
    assert store.orders == {}

def test_foreign_child_on_entry_rejected(store, ids):
    with pytest.raises(ValidationError) as exc:
        _create(ids, entries=[_entry(child_id="child-other")])
    assert exc.value.code == "child_not_owned"
    assert store.orders == {}

def test_past_delivery_date_rejected(store, ids):
    with pytest.raises(ValidationError) as exc:
        _create(ids, entries=[_entry(delivery=date(2024, 3, 1))])
    assert exc.value.code == "delivery_date_in_past"
    assert store.writes == []

def test_same_day_delivery_allowed(store, ids):
    order = _create(ids, entries=[_entry(delivery=date(2024, 3, 4))])
    assert order["id"] in store.orders

def test_entries_for_several_children_snapshot_each_child(store, ids):
    order = _create(ids, entries=[_entry(child_id="child-ani", qty=1), _entry(qty=1)])
    rows = [r for r in store.line_items if r["order_id"] == order["id"]]
    assert {(r["child_id"], r["child_name"], r["child_class"]) for r in rows} == {
        ("child-ani", "Ani", "1B"),
        ("child-budi", "Budi", "3A"),
    }
    assert order["child_name"] == "Budi"

def test_zero_price_item_allowed(store, ids):
    order = _create(ids, entries=[_entry(price=0, qty=3)])
    assert order["total_amount"] == 0

def test_line_item_failure_compensates_header(store, ids):
    store.fail.add("insert_line_items")
    with pytest.raises(PersistenceError) as exc:
        _create(ids)
    assert exc.value.code == "insert_line_items_failed"
    assert store.orders == {}
    assert [w[0] for w in store.writes] == ["insert_order", "delete_order"]

def test_compensation_failure_emits_warning_and_keeps_original_error(store, ids):
    store.fail.update({"insert_line_items", "delete_order"})
    with pytest.warns(CompensationFailedWarning):
        with pytest.raises(PersistenceError) as exc:
            _create(ids)
    assert exc.value.code == "insert_line_items_failed"
    # En-tête orphelin restant, signalé
    assert len(store.orders) == 1

def test_header_failure_writes_nothing(store, ids):
    store.fail.add("insert_order")
    with pytest.raises(PersistenceError):
        _create(ids)
    assert store.line_items == []

def test_get_user_order_hides_foreign_orders(store, ids):
    order = _create(ids)
    assert orders_service.get_user_order(order["id"], "parent-1")["id"] == order["id"]
    with pytest.raises(OrderNotFoundError):
        orders_service.get_user_order(order["id"], "parent-2")
    with pytest.raises(OrderNotFoundError):
        orders_service.get_user_order("missing", "parent-1")

def test_list_orders_newest_first_with_line_items(store, ids):
    first = _create(ids)
    second = _create(ids)
    orders = orders_service.list_orders("parent-1")
    assert [o["id"] for o in orders] == [second["id"], first["id"]]
    assert all(o["order_line_items"] for o in orders)

def test_school_today_uses_school_timezone(monkeypatch):
    monkeypatch.setattr("catering.orders.service.SCHOOL_TIMEZONE", "UTC")
    assert isinstance(orders_service.school_today(), date)

def test_compensation_delete_without_row_is_reported(store, ids, monkeypatch):
    # Suppression « réussie » mais aucune ligne retournée (RLS): l'en-tête reste
    def _rls_hidden_delete(order_id, *, user_token=None):
        raise PersistenceError("Suppression de la commande impossible", code="order_delete_no_row")

    monkeypatch.setattr("catering.orders.repository.delete_order", _rls_hidden_delete)
    store.fail.add("insert_line_items")
    with pytest.warns(CompensationFailedWarning):
        with pytest.raises(PersistenceError) as exc:
            _create(ids)
    assert exc.value.code == "insert_line_items_failed"
    assert len(store.orders) == 1

def test_compensation_warning_promoted_to_error_keeps_original_error(store, ids):
    store.fail.update({"insert_line_items", "delete_order"})
    with warnings.catch_warnings():
        warnings.simplefilter("error", CompensationFailedWarning)
        with pytest.raises(PersistenceError) as exc:
            _create(ids)
    assert exc.value.code == "insert_line_items_failed"
