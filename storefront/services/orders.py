from collections import OrderedDict

import stripe
from sqlalchemy import select, func

from storefront import config
from storefront.errors import ApiError, NotFound
from storefront.helpers import make_number, matches, paginate, to_cents
from storefront.models import Order, OrderItem, OrderNote, Product, ShippingMethod, Transaction
from storefront.notify import log, notify
from storefront.pricing import order_totals, quote_shipping
from storefront.services.catalog import effective_price_cents
from storefront.services.marketing import validate_coupon

stripe.api_key = config.STRIPE_SECRET_KEY

# ---------- Shipping methods ----------
def _shipping_fields(data):
    d = data.model_dump(exclude={"cost", "min_order", "max_order"})
    d["cost_cents"] = to_cents(data.cost)
    d["min_order_cents"] = to_cents(data.min_order)
    d["max_order_cents"] = to_cents(data.max_order)
    return d


def list_shipping_methods(db, is_active=None, q=None):
    stmt = select(ShippingMethod).order_by(ShippingMethod.sort_order, ShippingMethod.id)
    if is_active is not None:
        stmt = stmt.where(ShippingMethod.is_active.is_(is_active))
    return [m for m in db.execute(stmt).scalars().all() if matches(q, m.name, m.description, m.type)]


def get_shipping_method(db, method_id):
    method = db.get(ShippingMethod, method_id)
    if not method:
        raise NotFound("Shipping method not found")
    return method


def create_shipping_method(db, data, user_id=None):
    method = ShippingMethod(**_shipping_fields(data))
    db.add(method); db.flush()
    return method


def update_shipping_method(db, method_id, data, user_id=None):
    method = get_shipping_method(db, method_id)
    for k, v in _shipping_fields(data).items():
        setattr(method, k, v)
    db.flush()
    return method


def delete_shipping_method(db, method_id, user_id=None):
    db.delete(get_shipping_method(db, method_id))
    db.flush()

# ---------- Orders ----------
def _merge_lines(lines):
    merged = OrderedDict()
    for line in lines:
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return merged


def create_order(db, user_id, data):
    """Price ``data.items`` from the catalog and persist a PENDING order."""
    items, subtotal = [], 0
    for product_id, qty in _merge_lines(data.items).items():
        product = db.get(Product, product_id)
        if not product or not product.is_active:
            raise NotFound(f"Product {product_id} not found")
        inv = product.inventory
        if inv and inv.track_quantity:
            if inv.available < qty:
                raise ApiError(f"Insufficient stock for {product.name}")
            inv.quantity -= qty
        unit = effective_price_cents(db, product)
        subtotal += unit * qty
        items.append(OrderItem(product_id=product.id, product_name=product.name, product_sku=product.sku,
                               quantity=qty, unit_price_cents=unit, total_cents=unit * qty))

    discount, coupon = 0, None
    if data.coupon_code:
        coupon, discount = validate_coupon(db, data.coupon_code, subtotal)
        if coupon.per_user_limit and user_id:
            used = db.scalar(select(func.count(Order.id)).where(Order.user_id == user_id,
                                                                Order.coupon_code == coupon.code))
            if used >= coupon.per_user_limit:
                raise ApiError("You have already used this coupon the maximum number of times")
        coupon.usage_count += 1

    addr = data.shipping_address
    shipping = quote_shipping(db, data.shipping_method, subtotal - discount, addr.city)
    totals = order_totals(subtotal, discount, shipping["cost_cents"])

    order = Order(
        order_number=make_number("ORD"), user_id=user_id, email=addr.email,
        name=f"{addr.first_name} {addr.last_name}", phone=addr.phone,
        status="PENDING", payment_status="PENDING", payment_method=data.payment_method,
        currency=config.CURRENCY.upper(), coupon_code=coupon.code if coupon else None,
        shipping_method=shipping["name"], notes=data.notes,
        shipping_address=addr.model_dump(),
        billing_address=(data.billing_address or addr).model_dump(),
        items=items, **totals,
    )
    db.add(order); db.flush()
    log.info(f"Order {order.order_number} created for user {user_id} total={order.total_cents}")
    return order


def list_orders(db, user_id=None, status=None, page=1, limit=10):
    stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    if status:
        stmt = stmt.where(Order.status == status.upper())
    return paginate(db, stmt, page, limit)


def get_order(db, order_id, user_id=None, admin=False):
    order = db.get(Order, order_id)
    if not order or (not admin and order.user_id != user_id):
        raise NotFound("Order not found")
    return order


def list_notes(db, order, include_internal=False):
    return [n for n in order.order_notes if include_internal or not n.is_internal]


def add_note(db, order, user_id, data, admin=False):
    note = OrderNote(order_id=order.id, user_id=user_id, note=data.note,
                     is_internal=bool(data.is_internal and admin))
    db.add(note); db.flush()
    return note


def cancel_order(db, order, user_id=None):
    """Cancel a PENDING order, put its stock back and fail a pending payment."""
    if order.status != "PENDING":
        raise ApiError("Order cannot be cancelled at this stage")
    for item in order.items:
        inv = item.product.inventory if item.product else None
        if inv and inv.track_quantity:
            inv.quantity += item.quantity
    order.status = "CANCELLED"
    if order.payment_status == "PENDING":
        order.payment_status = "FAILED"
    db.flush()
    log.info(f"Order {order.order_number} cancelled by user {user_id}")
    return order

# ---------- Payments (Stripe Checkout) ----------
def create_payment(db, order):
    """Open a Stripe Checkout session for ``order`` and record it as a PENDING transaction."""
    if order.payment_method != "CARD":
        raise ApiError("This order is not paid by card")
    if order.status == "CANCELLED":
        raise ApiError("Order is cancelled")
    if order.payment_status == "PAID":
        raise ApiError("Order is already paid")
    if not config.STRIPE_SECRET_KEY:
        raise ApiError("Payment provider not configured", status=503)
    try:
        cs = stripe.checkout.Session.create(
            mode="payment",
            customer_email=order.email,
            line_items=[{
                "quantity": 1,
                "price_data": {
                    "currency": order.currency.lower(),
                    "unit_amount": order.total_cents,
                    "product_data": {"name": f"Order {order.order_number}"},
                },
            }],
            success_url=f"{config.PUBLIC_BASE_URL}/payment/success?order_id={order.id}&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{config.PUBLIC_BASE_URL}/orders/{order.id}",
            metadata={"order_id": str(order.id), "user_id": str(order.user_id)},
        )
    except Exception as e:
        log.exception("Stripe checkout create failed")
        notify(f"Stripe checkout failed for order {order.order_number}: {e}")
        raise ApiError("Payment init failed. Try again.", status=502)

    txn = Transaction(order_id=order.id, transaction_id=cs.id, provider="stripe", payment_method="CARD",
                      amount_cents=order.total_cents, status="PENDING", checkout_url=cs.url)
    db.add(txn); db.flush()
    return txn


def mark_paid(order, txn=None):
    order.payment_status = "PAID"
    if order.status == "PENDING":
        order.status = "CONFIRMED"
    if txn is not None:
        txn.status = "SUCCESS"


def refresh_payment(db, txn):
    """Ask Stripe about a PENDING transaction and record the outcome."""
    if txn.status != "PENDING" or not config.STRIPE_SECRET_KEY:
        return txn
    try:
        cs = stripe.checkout.Session.retrieve(txn.transaction_id)
    except Exception as e:
        log.warning(f"Stripe status lookup failed for {txn.transaction_id}: {e}")
        return txn
    payment_status = getattr(cs, "payment_status", None)
    session_status = getattr(cs, "status", None)
    txn.gateway_response = {"status": session_status, "payment_status": payment_status}
    if payment_status == "paid":
        mark_paid(txn.order, txn)
    elif session_status == "expired":
        txn.status = "FAILED"
        txn.order.payment_status = "FAILED"
    db.flush()
    return txn


def get_transaction(db, transaction_id, user_id=None, admin=False):
    txn = db.execute(select(Transaction).where(Transaction.transaction_id == transaction_id)).scalar_one_or_none()
    if not txn or (not admin and txn.order.user_id != user_id):
        raise NotFound("Transaction not found")
    return txn


def latest_transaction(order):
    return order.transactions[0] if order.transactions else None


def handle_checkout_completed(db, session):
    order_id = int(session["metadata"]["order_id"])
    order = db.get(Order, order_id)
    if not order:
        log.warning(f"Stripe webhook for unknown order {order_id}")
        return None
    txn = db.execute(select(Transaction).where(Transaction.transaction_id == session["id"])).scalar_one_or_none()
    mark_paid(order, txn)
    db.flush()
    notify(f"Order #{order.order_number} paid by user {order.user_id}")
    return order

