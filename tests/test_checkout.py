"""Storefront pages: cart and the three-step checkout."""
from storefront.db import main_session
from storefront.models import Order, Product

from conftest import ADDRESS


def fill_checkout(client, payment_method="COD", **shipping):
    res = client.post("/checkout/shipping", data=dict(ADDRESS, shipping_method="standard", **shipping))
    assert res.status_code == 302
    res = client.post("/checkout/payment", data={"payment_method": payment_method})
    assert res.status_code == 302
    return res


def test_storefront_lists_active_products(client, catalog):
    res = client.get("/")
    assert res.status_code == 200
    assert b"Tee" in res.data
    assert b"Cap" not in res.data

    assert client.get("/products/tee").status_code == 200
    assert client.get("/products/cap").status_code == 404


def test_cart_add_and_update(client, catalog):
    res = client.post("/cart/add", data={"product_id": catalog.tee, "quantity": 2})
    assert res.status_code == 302
    with client.session_transaction() as sess:
        assert sess["cart_v1"] == {str(catalog.tee): 2}

    page = client.get("/cart")
    assert b"Tee" in page.data
    assert b"$50.00" in page.data

    client.post("/cart/update", data={f"qty_{catalog.tee}": "0"})
    with client.session_transaction() as sess:
        assert sess["cart_v1"] == {}


def test_cart_refuses_more_than_stock(client, catalog):
    res = client.post("/cart/add", data={"product_id": catalog.mug, "quantity": 3})
    assert res.status_code == 302
    assert res.headers["Location"].endswith("/products/mug")
    with client.session_transaction() as sess:
        assert "cart_v1" not in sess

    assert client.post("/cart/add", data={"product_id": catalog.cap}).status_code == 404


def test_checkout_with_empty_cart_goes_home(customer_client):
    res = customer_client.get("/checkout")
    assert res.status_code == 302
    assert res.headers["Location"].endswith("/")


def test_later_steps_need_earlier_ones(customer_client, catalog):
    customer_client.post("/cart/add", data={"product_id": catalog.tee})
    page = customer_client.get("/checkout?step=review")
    assert page.status_code == 200
    assert b'name="first_name"' in page.data
    assert b"Standard Shipping" in page.data


def test_invalid_address_keeps_a_draft(customer_client, catalog):
    customer_client.post("/cart/add", data={"product_id": catalog.tee})
    res = customer_client.post("/checkout/shipping", data=dict(ADDRESS, email="broken", shipping_method="standard"))
    assert res.headers["Location"].endswith("step=shipping")
    with customer_client.session_transaction() as sess:
        state = sess["checkout_v1"]
        assert "shipping" not in state
        assert state["shipping_draft"]["address"]["first_name"] == "Ada"


def test_cash_on_delivery_checkout(customer_client, catalog):
    customer_client.post("/cart/add", data={"product_id": catalog.tee, "quantity": 2})
    fill_checkout(customer_client)

    review = customer_client.get("/checkout?step=review")
    assert b"Place order" in review.data
    assert b"$63.99" in review.data

    res = customer_client.post("/checkout/place")
    assert res.status_code == 200
    assert b"Thank you!" in res.data

    with main_session() as db:
        order = db.query(Order).one()
        assert order.payment_method == "COD"
        assert order.total_cents == 6399
        assert order.order_number.encode() in res.data
    with customer_client.session_transaction() as sess:
        assert "cart_v1" not in sess
        assert "checkout_v1" not in sess


def test_card_checkout_redirects_to_stripe(customer_client, catalog, fake_stripe):
    customer_client.post("/cart/add", data={"product_id": catalog.tee})
    fill_checkout(customer_client, payment_method="CARD")

    res = customer_client.post("/checkout/place")
    assert res.status_code == 303
    assert res.headers["Location"] == "https://checkout.stripe.test/cs_test_1"

    fake_stripe.payment_status = "paid"
    with main_session() as db:
        order_id = db.query(Order).one().id
    page = customer_client.get(f"/payment/success?order_id={order_id}&session_id=cs_test_1")
    assert page.status_code == 200
    with main_session() as db:
        assert db.get(Order, order_id).payment_status == "PAID"


def test_card_checkout_without_provider_keeps_the_order(customer_client, catalog):
    customer_client.post("/cart/add", data={"product_id": catalog.tee})
    fill_checkout(customer_client, payment_method="CARD")

    res = customer_client.post("/checkout/place")
    assert res.status_code == 302
    with main_session() as db:
        order = db.query(Order).one()
        assert res.headers["Location"].endswith(f"/orders/{order.id}")
        assert order.payment_status == "PENDING"


def test_bad_coupon_stays_on_payment_step(customer_client, catalog):
    customer_client.post("/cart/add", data={"product_id": catalog.tee})
    customer_client.post("/checkout/shipping", data=dict(ADDRESS, shipping_method="standard"))
    res = customer_client.post("/checkout/payment", data={"payment_method": "COD", "coupon_code": "nope"})
    assert res.headers["Location"].endswith("step=payment")


def test_order_page_is_private(customer_client, other_client, catalog, place_order):
    order = place_order(customer_client, (catalog.tee, 1))
    assert customer_client.get(f"/orders/{order['id']}").status_code == 200
    assert other_client.get(f"/orders/{order['id']}").status_code == 404


def test_products_taken_off_sale_are_left_out_of_the_order(customer_client, catalog):
    customer_client.post("/cart/add", data={"product_id": catalog.tee})
    customer_client.post("/cart/add", data={"product_id": catalog.mug})
    fill_checkout(customer_client)
    with main_session() as db:
        db.get(Product, catalog.mug).is_active = False
        db.commit()

    res = customer_client.post("/checkout/place")
    assert res.status_code == 200
    with main_session() as db:
        assert [i.product_name for i in db.query(Order).one().items] == ["Tee"]


def test_cart_with_only_withdrawn_products_is_empty(customer_client, catalog):
    customer_client.post("/cart/add", data={"product_id": catalog.mug})
    fill_checkout(customer_client)
    with main_session() as db:
        db.get(Product, catalog.mug).is_active = False
        db.commit()

    res = customer_client.post("/checkout/place")
    assert res.status_code == 302
    assert res.headers["Location"].endswith("/")
    with customer_client.session_transaction() as sess:
        assert sess["cart_v1"] == {}
    with main_session() as db:
        assert db.query(Order).count() == 0


def test_cancel_from_the_order_page(customer_client, catalog, place_order):
    order = place_order(customer_client, (catalog.tee, 1))
    assert b"Cancel order" in customer_client.get(f"/orders/{order['id']}").data

    res = customer_client.post(f"/orders/{order['id']}/cancel")
    assert res.status_code == 302
    with main_session() as db:
        assert db.get(Order, order["id"]).status == "CANCELLED"
    assert b"Cancel order" not in customer_client.get(f"/orders/{order['id']}").data
