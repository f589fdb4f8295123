import pytest

import cart
from conftest import API, auth_header
from errors import ConflictError, NotFoundError, ValidationError

USER = "64b000000000000000000001"


def test_get_or_create_is_idempotent(db):
    first = cart.get_or_create_cart(db, USER)
    second = cart.get_or_create_cart(db, USER)
    assert first["_id"] == second["_id"]
    assert first["items"] == []
    assert db["cart"].count_documents({"user_id": USER}) == 1


def test_add_same_product_accumulates(db, make_product):
    pid = make_product()
    cart.add_item(db, USER, pid, 2)
    result = cart.add_item(db, USER, pid, 3)
    assert result["items"] == [{"product_id": pid, "quantity": 5}]


def test_add_distinct_products_appends(db, make_product):
    p1, p2 = make_product(name="A"), make_product(name="B")
    cart.add_item(db, USER, p1, 1)
    result = cart.add_item(db, USER, p2, 3)
    assert [(it["product_id"], it["quantity"]) for it in result["items"]] == [(p1, 1), (p2, 3)]


def test_add_unknown_product(db):
    with pytest.raises(NotFoundError):
        cart.add_item(db, USER, "0" * 24, 1)


def test_add_requires_positive_quantity(db, make_product):
    with pytest.raises(ValidationError):
        cart.add_item(db, USER, make_product(), 0)


def test_remove_item(db, make_product):
    p1, p2 = make_product(name="A"), make_product(name="B")
    cart.add_item(db, USER, p1, 1)
    cart.add_item(db, USER, p2, 1)
    result = cart.remove_item(db, USER, p1)
    assert [it["product_id"] for it in result["items"]] == [p2]
    # absent line is a no-op
    result = cart.remove_item(db, USER, p1)
    assert [it["product_id"] for it in result["items"]] == [p2]


def test_remove_without_cart(db):
    with pytest.raises(NotFoundError):
        cart.remove_item(db, USER, "0" * 24)


def test_update_quantity_overwrites(db, make_product):
    pid = make_product()
    cart.add_item(db, USER, pid, 4)
    result = cart.update_quantity(db, USER, pid, 1)
    assert result["items"] == [{"product_id": pid, "quantity": 1}]


def test_update_quantity_zero_drops_line(db, make_product):
    pid = make_product()
    cart.add_item(db, USER, pid, 4)
    result = cart.update_quantity(db, USER, pid, 0)
    assert result["items"] == []


def test_update_missing_line(db, make_product):
    cart.get_or_create_cart(db, USER)
    with pytest.raises(NotFoundError) as exc:
        cart.update_quantity(db, USER, make_product(), 1)
    assert exc.value.message == "Item not found in cart"


def test_update_without_cart(db, make_product):
    with pytest.raises(NotFoundError) as exc:
        cart.update_quantity(db, USER, make_product(), 1)
    assert exc.value.message == "Cart not found"


def test_stale_write_is_rejected(db, make_product):
    p1, p2 = make_product(name="A"), make_product(name="B")
    stale = cart.get_or_create_cart(db, USER)
    cart.add_item(db, USER, p1, 1)
    with pytest.raises(ConflictError):
        cart.save_items(db, stale, [{"product_id": p2, "quantity": 1}])
    assert [it["product_id"] for it in cart.find_cart(db, USER)["items"]] == [p1]


def test_cart_endpoints(client, make_user, make_product):
    user = make_user()
    headers = auth_header(user["token"])
    pid = make_product(price=7.5)

    res = client.get(f"{API}/cart", headers=headers)
    assert res.status_code == 200
    assert res.json()["items"] == []
    assert res.json()["userId"] == user["user_id"]

    res = client.post(f"{API}/cart/add", json={"productId": pid, "quantity": 2}, headers=headers)
    assert res.status_code == 200
    line = res.json()["items"][0]
    assert line["productId"] == pid
    assert line["quantity"] == 2
    assert line["product"]["price"] == 7.5

    res = client.put(f"{API}/cart/update/{pid}", json={"quantity": 5}, headers=headers)
    assert res.json()["items"][0]["quantity"] == 5

    res = client.delete(f"{API}/cart/remove/{pid}", headers=headers)
    assert res.json()["items"] == []


def test_cart_requires_auth(client):
    assert client.get(f"{API}/cart").status_code == 401


def test_cart_add_rejects_zero_quantity(client, make_user, make_product):
    user = make_user()
    res = client.post(f"{API}/cart/add", json={"productId": make_product(), "quantity": 0},
                      headers=auth_header(user["token"]))
    assert res.status_code == 400


def test_cart_update_unknown_line(client, make_user, make_product):
    user = make_user()
    headers = auth_header(user["token"])
    client.get(f"{API}/cart", headers=headers)
    res = client.put(f"{API}/cart/update/{make_product()}", json={"quantity": 1}, headers=headers)
    assert res.status_code == 404
    assert res.json() == {"message": "Item not found in cart"}
