"""Back-office HTML screens."""
from storefront.db import main_session
from storefront.models import Brand, InventoryItem, Order, Product, Quote


def test_anonymous_users_are_sent_to_login(client):
    res = client.get("/admin/")
    assert res.status_code == 302
    assert "/login" in res.headers["Location"]


def test_customers_get_access_denied(customer_client):
    res = customer_client.get("/admin/")
    assert res.status_code == 403


def test_dashboard_counts(admin_client, catalog):
    res = admin_client.get("/admin/")
    assert res.status_code == 200
    assert b"Low stock" in res.data
    assert b"Pending quotes" in res.data


def test_resource_list_and_search(admin_client, catalog):
    res = admin_client.get("/admin/brands")
    assert res.status_code == 200
    assert b"Acme" in res.data
    assert b"Acme" not in admin_client.get("/admin/brands?q=zzz").data
    assert admin_client.get("/admin/nothing").status_code == 404


def test_roles_limit_resources(login_as):
    content = login_as("content@example.com")
    assert content.get("/admin/content").status_code == 200
    assert content.get("/admin/users").status_code == 403
    assert login_as("orders@example.com").get("/admin/content").status_code == 403


def test_create_brand_through_the_form(admin_client, users):
    assert admin_client.get("/admin/brands/new").status_code == 200
    res = admin_client.post("/admin/brands/new", data={"name": "Globex", "slug": "globex", "is_active": "on"})
    assert res.status_code == 302
    with main_session() as db:
        brand = db.query(Brand).filter_by(slug="globex").one()
        assert brand.is_active is True


def test_invalid_form_is_redisplayed(admin_client, users):
    res = admin_client.post("/admin/brands/new", data={"name": "No slug"})
    assert res.status_code == 400
    assert b"Validation failed" in res.data
    assert b"No slug" in res.data


def test_edit_product_form(admin_client, catalog):
    res = admin_client.get(f"/admin/products/{catalog.tee}/edit")
    assert res.status_code == 200
    assert b"TEE-1" in res.data

    res = admin_client.post(f"/admin/products/{catalog.tee}/edit", data={
        "name": "Tee", "slug": "tee", "sku": "TEE-1", "price": "30", "quantity": "50",
        "category_id": str(catalog.category_id), "specifications": "{not json", "is_active": "on",
    })
    assert res.status_code == 400
    assert b"Specifications must be valid JSON" in res.data


def test_bulk_delete_reports_partial_failure(admin_client, catalog):
    with main_session() as db:
        empty = Brand(name="Empty", slug="empty")
        db.add(empty)
        db.commit()
        empty_id = empty.id

    res = admin_client.post("/admin/brands/bulk", data={"action": "delete", "ids": [catalog.brand_id, empty_id]},
                            follow_redirects=True)
    assert b"1 deleted, 1 failed." in res.data
    with main_session() as db:
        assert db.get(Brand, empty_id) is None
        assert db.get(Brand, catalog.brand_id) is not None


def test_bulk_deactivate_and_export(admin_client, catalog):
    admin_client.post("/admin/products/bulk", data={"action": "deactivate", "ids": [catalog.tee, catalog.mug]})
    with main_session() as db:
        assert db.get(Product, catalog.tee).is_active is False

    res = admin_client.post("/admin/products/bulk", data={"action": "export", "ids": [catalog.mug]})
    assert res.mimetype == "text/csv"
    assert "Mug" in res.get_data(as_text=True)
    assert "Tee" not in res.get_data(as_text=True)


def test_export_all_users(admin_client, users):
    res = admin_client.get("/admin/users/export")
    assert res.status_code == 200
    assert "users_export_" in res.headers["Content-Disposition"]
    assert "bob@example.com" in res.get_data(as_text=True)


def test_inventory_page_updates_stock(admin_client, catalog):
    assert b"Mug" in admin_client.get("/admin/inventory?status=low").data
    with main_session() as db:
        item_id = db.query(InventoryItem).filter_by(product_id=catalog.mug).one().id

    res = admin_client.post(f"/admin/inventory/{item_id}", data={"quantity": "40", "low_stock_threshold": ""})
    assert res.status_code == 302
    with main_session() as db:
        item = db.get(InventoryItem, item_id)
        assert item.quantity == 40
        assert item.low_stock_threshold == 5


def test_quote_detail_update_and_convert(admin_client, client, catalog):
    client.post("/api/v1/quotes", json={"email": "buyer@example.com", "name": "Buyer", "phone": "5550001111",
                                        "items": [{"product_id": catalog.tee, "quantity": 10}]})
    with main_session() as db:
        quote = db.query(Quote).one()
        quote_id, number = quote.id, quote.quote_number

    page = admin_client.get(f"/admin/quotes/{quote_id}")
    assert page.status_code == 200
    assert number.encode() in page.data

    admin_client.post(f"/admin/quotes/{quote_id}", data={"status": "ACCEPTED", "quoted_amount": "199.99",
                                                         "admin_notes": ""})
    res = admin_client.post(f"/admin/quotes/{quote_id}/convert", data={
        "shipping_address": "1 Main Street, Springfield", "payment_method": "COD",
    })
    assert res.status_code == 302
    with main_session() as db:
        order = db.query(Order).one()
        assert order.total_cents == 19999
        assert db.get(Quote, quote_id).converted_order_id == order.id


def test_generator_page_is_for_staff(customer_client, admin_client, users):
    assert admin_client.get("/admin/products/generate").status_code == 200
    assert customer_client.get("/admin/products/generate").status_code == 403
