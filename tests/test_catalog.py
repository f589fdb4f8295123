import pytest

import catalog
from conftest import API, auth_header
from errors import NotFoundError, ValidationError


@pytest.fixture
def products(make_product):
    return {
        "phone": make_product(name="Phone X", brand="Apple", category="Electronics", price=500.0),
        "tv": make_product(name="Big TV", brand="Sony", category="Electronics", price=900.0,
                           description="Huge screen"),
        "fridge": make_product(name="Cool Fridge", brand="LG", category="Appliances", price=1200.0),
        "case": make_product(name="Phone case", brand="Apple", category="Accessories", price=20.0),
    }


def test_list_products_paginates(db, products):
    page = catalog.list_products(db, page=1, limit=3)
    assert page["total_products"] == 4
    assert page["total_pages"] == 2
    assert page["current_page"] == 1
    assert len(page["products"]) == 3
    assert len(catalog.list_products(db, page=2, limit=3)["products"]) == 1


def test_list_products_filters(db, products):
    page = catalog.list_products(db, brands=["Apple", "LG"])
    assert {p["brand"] for p in page["products"]} == {"Apple", "LG"}
    assert page["total_products"] == 3

    page = catalog.list_products(db, categories=["Electronics"], brands=["Apple"])
    assert [p["name"] for p in page["products"]] == ["Phone X"]

    page = catalog.list_products(db, brands=["LG"], brand="Sony")
    assert [p["name"] for p in page["products"]] == ["Big TV"]


def test_brands_and_categories(db, products):
    assert catalog.list_brands(db) == ["Apple", "LG", "Sony"]
    assert catalog.list_categories(db) == ["Accessories", "Appliances", "Electronics"]


def test_search_products(db, products):
    assert {p["name"] for p in catalog.search_products(db, query="phone")} == {"Phone X", "Phone case"}
    assert [p["name"] for p in catalog.search_products(db, query="huge")] == ["Big TV"]
    assert {p["name"] for p in catalog.search_products(db, min_price=100, max_price=1000)} == {"Phone X", "Big TV"}
    assert [p["name"] for p in catalog.search_products(db, query="phone", category="Accessories")] == ["Phone case"]
    assert catalog.search_products(db, query="(") == []


def test_get_product(db, products):
    assert catalog.get_product(db, products["tv"])["name"] == "Big TV"
    with pytest.raises(NotFoundError):
        catalog.get_product(db, "0" * 24)
    with pytest.raises(ValidationError):
        catalog.get_product(db, "not-an-id")


def test_update_and_delete_product(db, products):
    updated = catalog.update_product(db, products["tv"], {"price": 850.0})
    assert updated["price"] == 850.0
    with pytest.raises(ValidationError):
        catalog.update_product(db, products["tv"], {})
    catalog.delete_product(db, products["tv"])
    with pytest.raises(NotFoundError):
        catalog.delete_product(db, products["tv"])


def test_products_endpoint(client, products):
    res = client.get(f"{API}/products", params={"brands": "Apple,Sony", "page": 1})
    assert res.status_code == 200
    body = res.json()
    assert body["totalProducts"] == 3
    assert body["currentPage"] == 1
    assert body["totalPages"] == 1
    assert all("inStock" in p for p in body["products"])


def test_search_endpoint(client, products):
    res = client.get(f"{API}/products/search", params={"minPrice": 1000})
    assert res.status_code == 200
    assert [p["name"] for p in res.json()] == ["Cool Fridge"]


def test_details_endpoint(client, products):
    res = client.get(f"{API}/products/details/{products['phone']}")
    assert res.status_code == 200
    assert res.json()["id"] == products["phone"]
    assert client.get(f"{API}/products/details/{'0' * 24}").status_code == 404
    res = client.get(f"{API}/products/details/bogus")
    assert res.status_code == 400
    assert res.json() == {"message": "Invalid product id"}


def test_brands_endpoint(client, products):
    assert client.get(f"{API}/products/brands").json() == ["Apple", "LG", "Sony"]
    assert client.get(f"{API}/products/categories").json() == ["Accessories", "Appliances", "Electronics"]


def test_catalog_mutation_requires_admin(client, make_user):
    user = make_user()
    payload = {"name": "New", "description": "d", "price": 1.5, "brand": "B", "category": "C", "image": "i"}
    assert client.post(f"{API}/products", json=payload).status_code == 401
    assert client.post(f"{API}/products", json=payload, headers=auth_header(user["token"])).status_code == 403


def test_admin_manages_catalog(client, admin):
    headers = auth_header(admin["token"])
    payload = {"name": "New", "description": "d", "price": 1.5, "brand": "B", "category": "C",
               "image": "i", "inStock": False}
    res = client.post(f"{API}/products", json=payload, headers=headers)
    assert res.status_code == 201
    product = res.json()
    assert product["inStock"] is False

    res = client.put(f"{API}/products/{product['id']}", json={"price": 2.5}, headers=headers)
    assert res.status_code == 200
    assert res.json()["price"] == 2.5
    assert res.json()["name"] == "New"

    res = client.delete(f"{API}/products/{product['id']}", headers=headers)
    assert res.status_code == 200
    assert res.json() == {"message": "Product deleted successfully"}
    assert client.get(f"{API}/products/details/{product['id']}").status_code == 404


def test_negative_price_rejected(client, admin):
    payload = {"name": "New", "description": "d", "price": -1, "brand": "B", "category": "C", "image": "i"}
    res = client.post(f"{API}/products", json=payload, headers=auth_header(admin["token"]))
    assert res.status_code == 400
