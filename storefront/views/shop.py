from flask import Blueprint, abort, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user
from pydantic import ValidationError
from sqlalchemy import select

from storefront.auth import LoginUser, current_user_id, is_admin
from storefront.db import main_session
from storefront.errors import ApiError, NotFound, validation_details
from storefront.helpers import is_safe_url, page_args
from storefront.models import Product, Transaction
from storefront.notify import log, notify
from storefront.pricing import order_totals, quote_shipping, shipping_options
from storefront.schemas import Address, OrderIn, OrderNoteIn, RegisterIn
from storefront.services import catalog, marketing, orders, users

bp = Blueprint("shop", __name__)

CHECKOUT_STEPS = ("shipping", "payment", "review")

# ---------- Session state ----------
def get_cart():
    return session.get("cart_v1", {})

def save_cart(cart: dict):
    session["cart_v1"] = cart

def get_checkout():
    return session.get("checkout_v1", {})

def save_checkout(state: dict):
    session["checkout_v1"] = state

def clear_checkout():
    session.pop("cart_v1", None)
    session.pop("checkout_v1", None)


def cart_lines(db, cart):
    """[(product, qty, unit_cents, line_cents)] for products still on sale, plus the subtotal."""
    lines, subtotal = [], 0
    ids = [int(k) for k in cart.keys()]
    if not ids:
        return lines, subtotal
    rows = db.execute(select(Product).where(Product.id.in_(ids), Product.is_active.is_(True))).scalars().all()
    for p in rows:
        q = cart.get(str(p.id), 0)
        if q <= 0:
            continue
        unit = catalog.effective_price_cents(db, p)
        lines.append((p, q, unit, unit * q))
        subtotal += unit * q
    return lines, subtotal


def _errors(e):
    if isinstance(e, ValidationError):
        return "Please check: " + ", ".join(d["field"].replace("_", " ") for d in validation_details(e))
    return e.message


def checkout_summary(db, cart, state):
    """Cart lines and totals for the review step; coupon or shipping problems become ApiError."""
    lines, subtotal = cart_lines(db, cart)
    ship = state.get("shipping") or {}
    pay = state.get("payment") or {}
    discount, coupon = 0, None
    if pay.get("coupon_code"):
        coupon, discount = marketing.validate_coupon(db, pay["coupon_code"], subtotal)
    option = quote_shipping(db, ship.get("shipping_method", "standard"), subtotal - discount,
                            (ship.get("address") or {}).get("city"))
    return {"lines": lines, "coupon": coupon, "shipping": option,
            **order_totals(subtotal, discount, option["cost_cents"])}

# ---------- Auth ----------
@bp.get("/login")
def login():
    return render_template("shop/login.html")

@bp.post("/login")
def login_post():
    with main_session() as db:
        try:
            u = users.authenticate(db, request.form.get("email", ""), request.form.get("password", ""))
        except ApiError as e:
            return render_template("shop/login.html", error=e.message), e.status
        login_user(LoginUser(u))
    next_url = request.args.get("next") or request.form.get("next")
    if next_url and is_safe_url(next_url):
        return redirect(next_url)
    return redirect(url_for("admin.dashboard") if u.is_admin else url_for("shop.index"))

@bp.get("/logout")
@login_required
def logout():
    logout_user()
    return redirect(url_for("shop.login"))

@bp.get("/register")
def register():
    return render_template("shop/register.html")

@bp.post("/register")
def register_post():
    try:
        data = RegisterIn.model_validate(request.form.to_dict())
        with main_session() as db:
            u = users.register(db, data)
            db.commit()
            login_user(LoginUser(u))
    except ValidationError as e:
        return render_template("shop/register.html", error=_errors(e)), 400
    except ApiError as e:
        return render_template("shop/register.html", error=e.message), e.status
    return redirect(url_for("shop.index"))

# ---------- Catalog ----------
@bp.get("/")
def index():
    page, limit = page_args(12)
    q, category = request.args.get("q", ""), request.args.get("category", "")
    with main_session() as db:
        products, pagination = catalog.list_products(db, q=q or None, category_slug=category or None, active=True,
                                                     sort_by=request.args.get("sort_by", "created_at"),
                                                     sort_order=request.args.get("sort_order", "desc"),
                                                     page=page, limit=limit)
        prices = {p.id: catalog.effective_price_cents(db, p) for p in products}
        categories = [c for c, _ in catalog.list_categories(db, active_only=True)]
        blocks = marketing.list_content(db, active_only=True)
        deals = marketing.active_deals(db)
        return render_template("shop/index.html", products=products, prices=prices, pagination=pagination,
                               categories=categories, blocks=blocks, deals=deals, q=q, category=category)

@bp.get("/products/<slug>")
def product(slug):
    with main_session() as db:
        try:
            p = catalog.get_product_by_slug(db, slug)
        except ApiError:
            abort(404)
        deal = catalog.active_deal(db, p.id)
        return render_template("shop/product.html", p=p, deal=deal, price=catalog.effective_price_cents(db, p),
                               related=catalog.related_products(db, p))

# ---------- Cart ----------
@bp.post("/cart/add")
def cart_add():
    product_id = request.form.get("product_id", type=int)
    qty = max(1, request.form.get("quantity", type=int, default=1))
    if not product_id:
        abort(400)
    with main_session() as db:
        p = db.get(Product, product_id)
        if not p or not p.is_active:
            abort(404)
        in_cart = get_cart().get(str(product_id), 0)
        inv = p.inventory
        if inv and inv.track_quantity and inv.available < in_cart + qty:
            flash(f"Only {max(inv.available, 0)} of {p.name} in stock.", "warning")
            return redirect(url_for("shop.product", slug=p.slug))
    cart = get_cart()
    cart[str(product_id)] = in_cart + qty
    save_cart(cart)
    flash("Added to cart.", "success")
    next_url = request.form.get("next") or url_for("shop.cart_view")
    return redirect(next_url if is_safe_url(next_url) else url_for("shop.cart_view"))

@bp.get("/cart")
def cart_view():
    with main_session() as db:
        lines, subtotal = cart_lines(db, get_cart())
        return render_template("shop/cart.html", items=lines, subtotal=subtotal)

@bp.post("/cart/update")
def cart_update():
    cart = {}
    for key, value in request.form.items():
        if key.startswith("qty_"):
            pid = key.split("_", 1)[1]
            try:
                q = max(0, int(value))
            except ValueError:
                q = 0
            if q > 0:
                cart[pid] = q
    save_cart(cart)
    flash("Cart updated.", "success")
    return redirect(url_for("shop.cart_view"))

# ---------- Checkout ----------
@bp.get("/checkout")
@login_required
def checkout_get():
    cart = get_cart()
    if not cart:
        flash("Cart is empty.", "warning")
        return redirect(url_for("shop.index"))
    state = get_checkout()
    step = request.args.get("step", "shipping")
    if step not in CHECKOUT_STEPS:
        step = "shipping"
    # a step is reachable only once the ones before it are filled in
    if step in ("payment", "review") and not state.get("shipping"):
        step = "shipping"
    if step == "review" and not state.get("payment"):
        step = "payment"

    with main_session() as db:
        lines, subtotal = cart_lines(db, cart)
        ctx = {"step": step, "steps": CHECKOUT_STEPS, "state": state, "lines": lines, "subtotal": subtotal}
        if step == "shipping":
            current = state.get("shipping_draft") or state.get("shipping") or {}
            city = (current.get("address") or {}).get("city")
            ctx["options"] = shipping_options(db, subtotal, city)
            ctx["address"] = current.get("address") or {"email": current_user.email}
            ctx["shipping_method"] = current.get("shipping_method", "standard")
        elif step == "review":
            try:
                ctx["summary"] = checkout_summary(db, cart, state)
            except ApiError as e:
                flash(e.message, "danger")
                return redirect(url_for("shop.checkout_get", step="payment"))
        return render_template("shop/checkout.html", **ctx)

@bp.post("/checkout/shipping")
@login_required
def checkout_shipping():
    form = request.form.to_dict()
    method = form.pop("shipping_method", "standard")
    try:
        address = Address.model_validate(form)
        with main_session() as db:
            _, subtotal = cart_lines(db, get_cart())
            quote_shipping(db, method, subtotal, address.city)
    except (ValidationError, ApiError) as e:
        flash(_errors(e), "danger")
        state = get_checkout()
        state["shipping_draft"] = {"address": form, "shipping_method": method}
        save_checkout(state)
        return redirect(url_for("shop.checkout_get", step="shipping"))
    state = get_checkout()
    state.pop("shipping_draft", None)
    state["shipping"] = {"address": address.model_dump(), "shipping_method": method}
    save_checkout(state)
    return redirect(url_for("shop.checkout_get", step="payment"))

@bp.post("/checkout/payment")
@login_required
def checkout_payment():
    method = request.form.get("payment_method", "CARD")
    if method not in ("CARD", "COD"):
        flash("Choose a payment method.", "danger")
        return redirect(url_for("shop.checkout_get", step="payment"))
    code = (request.form.get("coupon_code") or "").strip().upper() or None
    if code:
        with main_session() as db:
            _, subtotal = cart_lines(db, get_cart())
            try:
                marketing.validate_coupon(db, code, subtotal)
            except ApiError as e:
                flash(e.message, "danger")
                return redirect(url_for("shop.checkout_get", step="payment"))
    state = get_checkout()
    state["payment"] = {"payment_method": method, "coupon_code": code,
                        "notes": (request.form.get("notes") or "").strip() or None}
    save_checkout(state)
    return redirect(url_for("shop.checkout_get", step="review"))

@bp.post("/checkout/place")
@login_required
def checkout_place():
    cart, state = get_cart(), get_checkout()
    if not cart:
        flash("Cart is empty.", "warning")
        return redirect(url_for("shop.index"))
    if not state.get("shipping") or not state.get("payment"):
        return redirect(url_for("shop.checkout_get"))
    ship, pay = state["shipping"], state["payment"]
    with main_session() as db:
        items = [{"product_id": p.id, "quantity": q} for p, q, _, _ in cart_lines(db, cart)[0]]
    if len(items) != len(cart):
        # products taken off sale since they were added
        save_cart({str(i["product_id"]): i["quantity"] for i in items})
    if not items:
        flash("Cart is empty.", "warning")
        return redirect(url_for("shop.index"))
    try:
        data = OrderIn.model_validate({
            "items": items,
            "shipping_address": ship["address"],
            "shipping_method": ship["shipping_method"],
            "payment_method": pay["payment_method"],
            "coupon_code": pay.get("coupon_code"),
            "notes": pay.get("notes"),
        })
        with main_session() as db:
            order = orders.create_order(db, current_user_id(), data)
            db.commit()
            order_id, order_number, total = order.id, order.order_number, order.total_cents
            clear_checkout()
            notify(f"New order {order_number} ({total} cents) by user {current_user_id()}")
            if order.payment_method == "CARD":
                try:
                    txn = orders.create_payment(db, order)
                    db.commit()
                    return redirect(txn.checkout_url, code=303)
                except ApiError as e:
                    db.rollback()
                    flash(f"{e.message} Your order {order_number} is saved; you can pay from the order page.",
                          "danger")
                    return redirect(url_for("shop.order_detail", order_id=order_id))
    except (ValidationError, ApiError) as e:
        flash(_errors(e), "danger")
        return redirect(url_for("shop.checkout_get", step="review"))
    return render_template("shop/confirmation.html", order_id=order_id, order_number=order_number, total_cents=total)

# ---------- Orders & payments ----------
@bp.get("/orders/<int:order_id>")
@login_required
def order_detail(order_id):
    admin = is_admin()
    with main_session() as db:
        try:
            o = orders.get_order(db, order_id, current_user_id(), admin)
        except ApiError:
            abort(404)
        notes = orders.list_notes(db, o, include_internal=admin)
        return render_template("shop/order.html", o=o, notes=notes, txn=orders.latest_transaction(o))

@bp.post("/orders/<int:order_id>/notes")
@login_required
def order_note_add(order_id):
    admin = is_admin()
    try:
        data = OrderNoteIn.model_validate({"note": request.form.get("note", ""),
                                           "is_internal": bool(request.form.get("is_internal"))})
        with main_session() as db:
            o = orders.get_order(db, order_id, current_user_id(), admin)
            orders.add_note(db, o, current_user_id(), data, admin)
            db.commit()
        flash("Note added.", "success")
    except (ValidationError, ApiError) as e:
        flash(_errors(e), "danger")
    return redirect(url_for("shop.order_detail", order_id=order_id))

@bp.post("/orders/<int:order_id>/cancel")
@login_required
def order_cancel(order_id):
    with main_session() as db:
        try:
            o = orders.get_order(db, order_id, current_user_id())
            orders.cancel_order(db, o, current_user_id())
            db.commit()
            flash("Order cancelled.", "success")
        except NotFound:
            abort(404)
        except ApiError as e:
            flash(e.message, "danger")
    return redirect(url_for("shop.order_detail", order_id=order_id))

@bp.post("/orders/<int:order_id>/pay")
@login_required
def order_pay(order_id):
    with main_session() as db:
        try:
            o = orders.get_order(db, order_id, current_user_id())
            txn = orders.create_payment(db, o)
            db.commit()
        except ApiError as e:
            flash(e.message, "danger")
            return redirect(url_for("shop.order_detail", order_id=order_id))
        return redirect(txn.checkout_url, code=303)

@bp.get("/payment/success")
@login_required
def payment_success():
    order_id = request.args.get("order_id", type=int)
    session_id = request.args.get("session_id")
    if not order_id:
        return redirect(url_for("shop.index"))
    with main_session() as db:
        try:
            o = orders.get_order(db, order_id, current_user_id())
        except ApiError:
            abort(404)
        txn = None
        if session_id:
            txn = db.execute(select(Transaction).where(Transaction.transaction_id == session_id,
                                                       Transaction.order_id == o.id)).scalar_one_or_none()
        txn = txn or orders.latest_transaction(o)
        if txn:
            orders.refresh_payment(db, txn)
            db.commit()
        log.info(f"Payment return for order {o.order_number}: {o.payment_status}")
        return render_template("shop/payment_success.html", o=o, txn=txn)
