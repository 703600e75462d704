"""Catalog endpoints: public browsing and the admin CRUD surface."""
from datetime import datetime, timedelta

from storefront.db import main_session
from storefront.models import AuditLog, Deal


def product_body(catalog, **overrides):
    body = {
        "name": "Hoodie", "slug": "hoodie", "sku": "HOOD-1", "price": 49.5, "quantity": 7,
        "category_id": catalog.category_id, "brand_id": catalog.brand_id, "tags": ["warm", "cotton"],
        "specifications": {"Material": "Fleece"},
    }
    body.update(overrides)
    return body


def test_public_products_hide_inactive_and_cost(client, catalog):
    res = client.get("/api/v1/products")
    body = res.get_json()
    assert res.status_code == 200
    assert body["success"] is True
    names = {p["name"] for p in body["data"]}
    assert names == {"Tee", "Mug"}
    assert all("cost_price" not in p for p in body["data"])
    assert body["pagination"] == {"page": 1, "limit": 12, "total": 2, "pages": 1}


def test_public_products_search_and_sort(client, catalog):
    res = client.get("/api/v1/products?search=cotton")
    assert [p["slug"] for p in res.get_json()["data"]] == ["tee"]

    res = client.get("/api/v1/products?sort_by=price&sort_order=asc")
    assert [p["slug"] for p in res.get_json()["data"]] == ["mug", "tee"]


def test_product_detail_by_slug_and_id(client, catalog):
    by_slug = client.get("/api/v1/products/tee").get_json()["data"]
    assert by_slug["stock_status"] == "in"
    assert by_slug["effective_price"] == 25.0
    assert by_slug["deal"] is None
    assert [r["slug"] for r in by_slug["related"]] == ["mug"]

    by_id = client.get(f"/api/v1/products/{catalog.mug}").get_json()["data"]
    assert by_id["slug"] == "mug"
    assert by_id["stock_status"] == "low"


def test_inactive_product_is_not_found(client, catalog):
    res = client.get("/api/v1/products/cap")
    assert res.status_code == 404
    assert res.get_json() == {"success": False, "error": "Product not found"}
    assert client.get(f"/api/v1/products/{catalog.cap}").status_code == 404


def test_active_deal_lowers_effective_price(client, catalog):
    now = datetime.utcnow()
    with main_session() as db:
        db.add(Deal(product_id=catalog.tee, title="Tee week", discount=20,
                    start_date=now - timedelta(days=1), end_date=now + timedelta(days=1)))
        db.commit()
    data = client.get("/api/v1/products/tee").get_json()["data"]
    assert data["effective_price"] == 20.0
    assert data["deal"]["discount"] == 20
    assert client.get("/api/v1/deals/active").get_json()["data"][0]["deal_price"] == 20.0


def test_categories_carry_product_counts(client, catalog):
    data = client.get("/api/v1/categories").get_json()["data"]
    assert data[0]["slug"] == "apparel"
    assert data[0]["product_count"] == 3


def test_admin_api_requires_login_and_role(client, customer_client, users):
    res = client.get("/api/v1/admin/brands")
    assert res.status_code == 401
    assert res.get_json()["error"] == "Authentication required"

    res = customer_client.get("/api/v1/admin/brands")
    assert res.status_code == 403
    assert res.get_json()["error"] == "Access denied"


def test_admin_creates_and_updates_product(admin_client, catalog):
    res = admin_client.post("/api/v1/admin/products", json=product_body(catalog))
    assert res.status_code == 201
    product = res.get_json()["data"]
    assert product["price"] == 49.5
    assert product["quantity"] == 7
    assert product["brand"] == "Acme"

    res = admin_client.put(f"/api/v1/admin/products/{product['id']}",
                           json=product_body(catalog, price=45, quantity=3, is_active=False))
    updated = res.get_json()["data"]
    assert updated["price"] == 45.0
    assert updated["quantity"] == 3
    assert updated["is_active"] is False

    listed = admin_client.get("/api/v1/admin/products?is_active=false").get_json()["data"]
    assert {p["slug"] for p in listed} == {"hoodie", "cap"}


def test_duplicate_sku_is_a_conflict(admin_client, catalog):
    res = admin_client.post("/api/v1/admin/products", json=product_body(catalog, sku="TEE-1"))
    assert res.status_code == 409
    assert res.get_json()["error"] == "Product with this SKU already exists"


def test_invalid_product_reports_fields(admin_client, catalog):
    res = admin_client.post("/api/v1/admin/products", json={"name": "", "price": -1})
    body = res.get_json()
    assert res.status_code == 400
    assert body["error"] == "Validation failed"
    fields = {d["field"] for d in body["details"]}
    assert {"name", "price", "slug", "sku", "category_id"} <= fields


def test_brand_with_products_cannot_be_deleted(admin_client, catalog):
    res = admin_client.delete(f"/api/v1/admin/brands/{catalog.brand_id}")
    assert res.status_code == 400
    assert "Cannot delete brand with 1 products" in res.get_json()["error"]

    created = admin_client.post("/api/v1/admin/brands", json={"name": "Solo", "slug": "solo"}).get_json()["data"]
    assert admin_client.delete(f"/api/v1/admin/brands/{created['id']}").status_code == 200
    assert admin_client.get(f"/api/v1/admin/brands/{created['id']}").status_code == 404


def test_brand_website_must_be_a_url(admin_client, users):
    res = admin_client.post("/api/v1/admin/brands", json={"name": "Bad", "slug": "bad", "website": "nope"})
    assert res.status_code == 400
    assert res.get_json()["details"][0]["field"] == "website"


def test_category_cannot_be_its_own_parent(admin_client, catalog):
    res = admin_client.put(f"/api/v1/admin/categories/{catalog.category_id}",
                           json={"name": "Apparel", "slug": "apparel", "parent_id": catalog.category_id})
    assert res.status_code == 400
    assert res.get_json()["error"] == "A category cannot be its own parent"


def test_attribute_values_and_product_links(admin_client, catalog):
    attr = admin_client.post("/api/v1/admin/attributes", json={
        "name": "Color", "slug": "color", "type": "COLOR", "values": ["Red", "Blue"],
    }).get_json()["data"]
    assert [v["value"] for v in attr["values"]] == ["Red", "Blue"]

    admin_client.post("/api/v1/admin/products", json=product_body(catalog, attribute_ids=[attr["id"]]))
    res = admin_client.delete(f"/api/v1/admin/attributes/{attr['id']}")
    assert res.status_code == 400
    assert res.get_json()["error"].startswith("Cannot delete attribute with associated products")


def test_inventory_update_and_low_stock_filter(admin_client, catalog):
    low = admin_client.get("/api/v1/admin/inventory?status=low").get_json()["data"]
    assert [i["product"]["slug"] for i in low] == ["mug"]

    item_id = low[0]["id"]
    res = admin_client.put(f"/api/v1/admin/inventory/{item_id}", json={"quantity": 40})
    assert res.get_json()["data"]["stock_status"] == "in"
    assert admin_client.get("/api/v1/admin/inventory?status=low").get_json()["data"] == []


def test_mutations_are_audited(admin_client, users, catalog):
    admin_client.post("/api/v1/admin/brands", json={"name": "Audited", "slug": "audited"})
    trail = admin_client.get("/api/v1/admin/audit-trail?table=brands").get_json()["data"]
    assert trail[0]["action"] == "INSERT"
    assert trail[0]["user_id"] == users["admin"]
    assert trail[0]["new_values"]["slug"] == "audited"

    with main_session() as db:
        assert db.query(AuditLog).filter_by(table_name="brands").count() == 1


def test_content_admin_is_limited_to_content_roles(app, login_as):
    assert login_as("orders@example.com").get("/api/v1/admin/content").status_code == 403

    content_client = login_as("content@example.com")
    res = content_client.post("/api/v1/admin/content", json={
        "type": "HERO_BANNER", "title": "Summer", "content": {"subheading": "Hot deals"},
    })
    assert res.status_code == 201
    assert app.test_client().get("/api/v1/content?type=HERO_BANNER").get_json()["data"][0]["title"] == "Summer"


def test_category_with_products_cannot_be_deleted(admin_client, catalog):
    res = admin_client.delete(f"/api/v1/admin/categories/{catalog.category_id}")
    assert res.status_code == 400
    assert res.get_json()["error"].startswith("Cannot delete category with 3 products")


def test_category_parent_must_exist(admin_client, users):
    res = admin_client.post("/api/v1/admin/categories", json={"name": "Orphan", "slug": "orphan", "parent_id": 999})
    assert res.status_code == 404
    assert res.get_json()["error"] == "Parent category not found"


def test_inventory_in_and_out_filters(admin_client, catalog):
    in_stock = admin_client.get("/api/v1/admin/inventory?status=in").get_json()["data"]
    assert [i["product"]["slug"] for i in in_stock] == ["cap", "tee"]
    assert admin_client.get("/api/v1/admin/inventory?status=out").get_json()["data"] == []

    tee = next(i for i in in_stock if i["product"]["slug"] == "tee")
    admin_client.put(f"/api/v1/admin/inventory/{tee['id']}", json={"quantity": 0})
    out = admin_client.get("/api/v1/admin/inventory?status=out").get_json()["data"]
    assert [i["product"]["slug"] for i in out] == ["tee"]


def test_oversized_price_is_a_validation_error(admin_client, catalog):
    res = admin_client.post("/api/v1/admin/products", json=product_body(catalog, price=1e20))
    assert res.status_code == 400
    assert res.get_json()["details"][0]["field"] == "price"

    res = admin_client.post("/api/v1/admin/products", data='{"name": "Hoodie", "slug": "hoodie", "sku": "H-1", '
                            f'"category_id": {catalog.category_id}, "price": 1e999}}',
                            content_type="application/json")
    assert res.status_code == 400
