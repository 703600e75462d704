import math

from flask import Blueprint, request
from flask_login import login_required, login_user, logout_user

from storefront.api import arg_bool, ok, parse
from storefront.auth import LoginUser, current_user_id, is_admin, roles_required
from storefront.db import main_session
from storefront.errors import ApiError, NotFound, Unauthorized
from storefront.helpers import from_cents, page_args, to_cents
from storefront.pricing import shipping_options
from storefront.schemas import (
    MAX_AMOUNT, ClaimIn, ClaimUpdate, CouponCheck, LoginIn, OrderCancel, OrderIn, OrderNoteIn, QuoteConvert,
    QuoteIn, QuoteUpdate, RegisterIn, ReturnIn, ReturnUpdate, WarrantyIn,
)
from storefront.services import aftersales, catalog, marketing, orders, users

store_api = Blueprint("store_api", __name__, url_prefix="/api/v1")

AFTERSALES_ROLES = ("SUPER_ADMIN", "ORDER_MANAGER")
aftersales_admin = roles_required(*AFTERSALES_ROLES)


def _owner_scope():
    """None for after-sales staff (see everything), else the caller's user id."""
    if is_admin(*AFTERSALES_ROLES):
        return None
    uid = current_user_id()
    if uid is None:
        raise Unauthorized("Authentication required")
    return uid

# ---------- Auth ----------
@store_api.post("/auth/login")
def auth_login():
    data = parse(LoginIn)
    with main_session() as db:
        user = users.authenticate(db, data.email, data.password)
        login_user(LoginUser(user))
        return ok(user.to_dict(), message="Login successful")

@store_api.post("/auth/register")
def auth_register():
    data = parse(RegisterIn)
    with main_session() as db:
        user = users.register(db, data)
        db.commit()
        login_user(LoginUser(user))
        return ok(user.to_dict(), 201, message="Account created successfully")

@store_api.post("/auth/logout")
@login_required
def auth_logout():
    logout_user()
    return ok(message="Logged out")

@store_api.get("/auth/me")
@login_required
def auth_me():
    with main_session() as db:
        return ok(users.get_user(db, current_user_id()).to_dict())

# ---------- Catalog ----------
@store_api.get("/products")
def products_list():
    page, limit = page_args(12)
    with main_session() as db:
        rows, pagination = catalog.list_products(
            db, q=request.args.get("search") or request.args.get("q"),
            category_slug=request.args.get("category"), brand_id=request.args.get("brand_id", type=int),
            active=True, featured=arg_bool("featured"),
            sort_by=request.args.get("sort_by", "created_at"), sort_order=request.args.get("sort_order", "desc"),
            page=page, limit=limit,
        )
        data = []
        for p in rows:
            d = p.to_dict()
            d.pop("cost_price", None)
            d["effective_price"] = from_cents(catalog.effective_price_cents(db, p))
            data.append(d)
        return ok(data, pagination=pagination)

@store_api.get("/products/<ref>")
def products_get(ref):
    with main_session() as db:
        if ref.isdigit():
            product = catalog.get_product(db, int(ref))
            if not product.is_active:
                raise NotFound("Product not found")
        else:
            product = catalog.get_product_by_slug(db, ref)
        deal = catalog.active_deal(db, product.id)
        d = product.to_dict()
        d.pop("cost_price", None)
        d.update(
            effective_price=from_cents(catalog.effective_price_cents(db, product)),
            deal=deal.to_dict() if deal else None,
            stock_status=product.inventory.stock_status if product.inventory else "out",
            related=[p.summary() for p in catalog.related_products(db, product)],
        )
        return ok(d)

@store_api.get("/categories")
def categories_list():
    with main_session() as db:
        return ok([c.to_dict(count) for c, count in catalog.list_categories(db, active_only=True)])

@store_api.get("/content")
def content_list():
    with main_session() as db:
        rows = marketing.list_content(db, block_type=request.args.get("type"), active_only=True)
        return ok([b.to_dict() for b in rows])

@store_api.get("/deals/active")
def deals_active():
    with main_session() as db:
        return ok([d.to_dict() for d in marketing.active_deals(db)])

@store_api.post("/coupons/validate")
def coupons_validate():
    data = parse(CouponCheck)
    with main_session() as db:
        coupon, discount = marketing.validate_coupon(db, data.code, to_cents(data.order_value))
        return ok({"coupon": coupon.to_dict(), "discount": from_cents(discount)}, message="Coupon applied")

@store_api.get("/shipping-methods")
def shipping_methods():
    subtotal = request.args.get("subtotal", type=float, default=0)
    if not math.isfinite(subtotal) or not 0 <= subtotal <= MAX_AMOUNT:
        raise ApiError("subtotal must be a non-negative amount")
    subtotal = to_cents(subtotal)
    with main_session() as db:
        options = shipping_options(db, subtotal, request.args.get("city"))
    data = []
    for o in options:
        data.append({"key": o["key"], "name": o["name"], "description": o["description"],
                     "cost": from_cents(o["cost_cents"])})
    return ok(data)

# ---------- Orders ----------
@store_api.get("/orders")
@login_required
def orders_list():
    page, limit = page_args(10)
    with main_session() as db:
        rows, pagination = orders.list_orders(db, current_user_id(), request.args.get("status"), page, limit)
        return ok([o.to_dict(with_items=False) for o in rows], pagination=pagination)

@store_api.post("/orders")
@login_required
def orders_create():
    data = parse(OrderIn)
    with main_session() as db:
        order = orders.create_order(db, current_user_id(), data)
        db.commit()
        return ok(order.to_dict(), 201, message="Order placed successfully")

@store_api.get("/orders/<int:order_id>")
@login_required
def orders_get(order_id):
    with main_session() as db:
        return ok(orders.get_order(db, order_id, current_user_id(), is_admin()).to_dict())

@store_api.put("/orders/<int:order_id>")
@login_required
def orders_update(order_id):
    parse(OrderCancel)
    with main_session() as db:
        order = orders.get_order(db, order_id, current_user_id())
        orders.cancel_order(db, order, current_user_id())
        db.commit()
        return ok(order.to_dict(), message="Order cancelled successfully")

@store_api.get("/orders/<int:order_id>/notes")
@login_required
def order_notes(order_id):
    admin = is_admin()
    with main_session() as db:
        order = orders.get_order(db, order_id, current_user_id(), admin)
        return ok([n.to_dict() for n in orders.list_notes(db, order, include_internal=admin)])

@store_api.post("/orders/<int:order_id>/notes")
@login_required
def order_notes_add(order_id):
    data = parse(OrderNoteIn)
    admin = is_admin()
    with main_session() as db:
        order = orders.get_order(db, order_id, current_user_id(), admin)
        note = orders.add_note(db, order, current_user_id(), data, admin)
        db.commit()
        return ok(note.to_dict(), 201, message="Note added")

# ---------- Payments ----------
@store_api.post("/payments/create")
@login_required
def payments_create():
    body = request.get_json(silent=True) or {}
    order_id = body.get("order_id")
    if not isinstance(order_id, int):
        raise ApiError("order_id is required")
    with main_session() as db:
        order = orders.get_order(db, order_id, current_user_id())
        txn = orders.create_payment(db, order)
        db.commit()
        return ok({"transaction_id": txn.transaction_id, "redirect_url": txn.checkout_url,
                   "amount": from_cents(txn.amount_cents)}, 201)

@store_api.get("/payments/status")
@login_required
def payments_status():
    transaction_id = request.args.get("transaction_id")
    if not transaction_id:
        raise ApiError("transaction_id is required")
    with main_session() as db:
        txn = orders.get_transaction(db, transaction_id, current_user_id())
        orders.refresh_payment(db, txn)
        db.commit()
        order = txn.order
        return ok({"transaction": txn.to_dict(), "order_id": order.id, "order_number": order.order_number,
                   "order_status": order.status, "payment_status": order.payment_status})

# ---------- Quotes ----------
@store_api.get("/quotes")
def quotes_list():
    scope = _owner_scope()
    page, limit = page_args(10)
    with main_session() as db:
        rows, pagination = aftersales.list_quotes(db, scope, request.args.get("status"), request.args.get("q"),
                                                  page, limit)
        return ok([q.to_dict() for q in rows], pagination=pagination)

@store_api.post("/quotes")
def quotes_create():
    data = parse(QuoteIn)
    with main_session() as db:
        quote = aftersales.create_quote(db, current_user_id(), data)
        db.commit()
        return ok(quote.to_dict(), 201, message="Quote request submitted successfully")

@store_api.get("/quotes/<int:quote_id>")
def quotes_get(quote_id):
    scope = _owner_scope()
    with main_session() as db:
        return ok(aftersales.get_quote(db, quote_id, scope, admin=scope is None).to_dict())

@store_api.put("/quotes/<int:quote_id>")
@aftersales_admin
def quotes_update(quote_id):
    data = parse(QuoteUpdate)
    with main_session() as db:
        quote = aftersales.update_quote(db, quote_id, data)
        db.commit()
        return ok(quote.to_dict(), message="Quote updated successfully")

@store_api.post("/quotes/<int:quote_id>/convert")
@aftersales_admin
def quotes_convert(quote_id):
    data = parse(QuoteConvert)
    with main_session() as db:
        order, quote = aftersales.convert_quote(db, quote_id, data)
        db.commit()
        return ok({"order": order.to_dict(), "quote": quote.to_dict()}, 201,
                  message="Quote converted to order successfully")

# ---------- Returns ----------
@store_api.get("/returns")
@login_required
def returns_list():
    scope = _owner_scope()
    page, limit = page_args(10)
    with main_session() as db:
        rows, pagination = aftersales.list_returns(db, scope, request.args.get("status"), request.args.get("q"),
                                                   page, limit)
        return ok([r.to_dict() for r in rows], pagination=pagination)

@store_api.post("/returns")
@login_required
def returns_create():
    data = parse(ReturnIn)
    with main_session() as db:
        ret = aftersales.create_return(db, current_user_id(), data)
        db.commit()
        return ok(ret.to_dict(), 201, message="Return request submitted successfully")

@store_api.get("/returns/<int:return_id>")
@login_required
def returns_get(return_id):
    scope = _owner_scope()
    with main_session() as db:
        return ok(aftersales.get_return(db, return_id, scope, admin=scope is None).to_dict())

@store_api.put("/returns/<int:return_id>")
@aftersales_admin
def returns_update(return_id):
    data = parse(ReturnUpdate)
    with main_session() as db:
        ret = aftersales.update_return(db, return_id, data)
        db.commit()
        return ok(ret.to_dict(), message="Return request updated successfully")

@store_api.post("/returns/<int:return_id>/cancel")
@login_required
def returns_cancel(return_id):
    with main_session() as db:
        ret = aftersales.cancel_return(db, return_id, current_user_id())
        db.commit()
        return ok(ret.to_dict(), message="Return request cancelled")

# ---------- Warranties ----------
@store_api.get("/warranties")
@login_required
def warranties_list():
    scope = _owner_scope()
    page, limit = page_args(10)
    with main_session() as db:
        rows, pagination = aftersales.list_warranties(db, scope, request.args.get("status"),
                                                      request.args.get("q"), page, limit)
        return ok([w.to_dict() for w in rows], pagination=pagination)

@store_api.post("/warranties")
@login_required
def warranties_register():
    data = parse(WarrantyIn)
    with main_session() as db:
        warranty = aftersales.register_warranty(db, current_user_id(), data)
        db.commit()
        return ok(warranty.to_dict(), 201, message="Warranty registered successfully")

@store_api.get("/warranties/<int:warranty_id>")
@login_required
def warranties_get(warranty_id):
    scope = _owner_scope()
    with main_session() as db:
        return ok(aftersales.get_warranty(db, warranty_id, scope, admin=scope is None).to_dict())

@store_api.post("/warranties/claims")
@login_required
def warranty_claim():
    data = parse(ClaimIn)
    with main_session() as db:
        claim = aftersales.submit_claim(db, current_user_id(), data)
        db.commit()
        return ok(claim.to_dict(), 201, message="Warranty claim submitted successfully")

@store_api.put("/warranties/claims/<int:claim_id>")
@aftersales_admin
def warranty_claim_update(claim_id):
    data = parse(ClaimUpdate)
    with main_session() as db:
        claim = aftersales.update_claim(db, claim_id, data)
        db.commit()
        return ok(claim.to_dict(), message="Claim updated successfully")
