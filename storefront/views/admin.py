"""Back-office pages.

Most screens are the same list / search / form / delete / bulk pattern, so each
resource is described once in ``RESOURCES`` and served by the generic views.
Quotes, returns, warranties, inventory and the AI generator get their own pages.
"""
import json

from flask import Blueprint, Response, abort, flash, redirect, render_template, request, url_for
from flask_login import current_user
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from storefront.auth import admin_required, current_user_id
from storefront.db import main_session
from storefront.errors import ApiError, Forbidden, validation_details
from storefront.helpers import format_money
from storefront.models import (
    ADMIN_ROLES, ROLES, Order, Product, Quote, ReturnRequest, User,
)
from storefront.notify import log
from storefront.schemas import (
    AttributeIn, BrandIn, CategoryIn, ClaimUpdate, ContentBlockIn, CouponIn, DealIn, GenerateIn,
    InventoryUpdate, ProductIn, QuoteConvert, QuoteUpdate, ReturnUpdate, ShippingMethodIn, UserUpdate,
)
from storefront.services import aftersales, ai_generator, catalog, export, marketing, orders, users

bp = Blueprint("admin", __name__, url_prefix="/admin")

ORDER_STAFF = ("SUPER_ADMIN", "ORDER_MANAGER")
CONTENT_STAFF = ("SUPER_ADMIN", "CONTENT_MANAGER")


class FormField:
    def __init__(self, name, label, kind="text", options=None, default=None, help=None):
        self.name = name
        self.label = label
        self.kind = kind  # text|textarea|number|checkbox|select|multiselect|datetime|list|json
        self.options = options
        self.default = default
        self.help = help


class Resource:
    def __init__(self, name, label, columns, load, get=None, schema=None, fields=(), create=None, update=None,
                 delete=None, toggle=None, export_type=None, roles=ADMIN_ROLES, initial=None, detail=None):
        self.name = name
        self.label = label
        self.columns = columns
        self.load = load
        self.get = get
        self.schema = schema
        self.fields = list(fields)
        self.create = create
        self.update = update
        self.delete = delete
        self.toggle = toggle
        self.export_type = export_type
        self.roles = roles
        self.initial = initial or (lambda obj: obj.to_dict())
        self.detail = detail  # (endpoint, id argument) for resources with their own page

    def detail_url(self, obj_id):
        endpoint, arg = self.detail
        return url_for(endpoint, **{arg: obj_id})

    @property
    def bulk_actions(self):
        actions = []
        if self.delete:
            actions.append(("delete", "Delete"))
        if self.toggle:
            actions += [("activate", "Activate"), ("deactivate", "Deactivate")]
        if self.export_type:
            actions.append(("export", "Export CSV"))
        return actions


def _yes(flag):
    return "Yes" if flag else "No"


def _dt(value):
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


def _money_or_blank(cents):
    return format_money(cents) if cents is not None else ""


def _choices(values):
    return [(v, v.replace("_", " ").title()) for v in values]


def _category_options(db):
    return [(c.id, c.name) for c, _ in catalog.list_categories(db)]


def _brand_options(db):
    return [("", "No brand")] + [(b.id, b.name) for b, _ in catalog.list_brands(db)]


def _attribute_options(db):
    return [(a.id, a.name) for a in catalog.list_attributes(db)]


def _product_options(db):
    rows = db.execute(select(Product).order_by(Product.name)).scalars().all()
    return [(p.id, f"{p.name} ({p.sku})") for p in rows]


def _parent_options(db):
    return [("", "None")] + _category_options(db)


def _no_pagination(fn):
    return lambda db, q, page: (fn(db, q), None)


RESOURCES = {}


def resource(r):
    RESOURCES[r.name] = r
    return r


resource(Resource(
    "attributes", "Attributes",
    columns=[("Name", lambda a, _: a.name), ("Slug", lambda a, _: a.slug), ("Type", lambda a, _: a.type),
             ("Values", lambda a, _: ", ".join(v.value for v in a.values)),
             ("Products", lambda a, _: len(a.products)), ("Filterable", lambda a, _: _yes(a.is_filterable))],
    load=_no_pagination(lambda db, q: [(a, None) for a in catalog.list_attributes(db, q)]),
    get=catalog.get_attribute, schema=AttributeIn,
    fields=[FormField("name", "Name"), FormField("slug", "Slug"),
            FormField("type", "Type", "select", _choices(("TEXT", "COLOR", "IMAGE", "SELECT")), "TEXT"),
            FormField("values", "Values", "list", help="Comma separated"),
            FormField("is_visible", "Visible", "checkbox", default=True),
            FormField("is_filterable", "Filterable", "checkbox"),
            FormField("sort_order", "Sort order", "number", default=0)],
    create=catalog.create_attribute, update=catalog.update_attribute, delete=catalog.delete_attribute,
    initial=lambda a: dict(a.to_dict(), values=[v.value for v in a.values]),
))

resource(Resource(
    "brands", "Brands",
    columns=[("Name", lambda b, _: b.name), ("Slug", lambda b, _: b.slug), ("Website", lambda b, _: b.website or ""),
             ("Products", lambda b, count: count), ("Active", lambda b, _: _yes(b.is_active))],
    load=_no_pagination(lambda db, q: catalog.list_brands(db, q)),
    get=catalog.get_brand, schema=BrandIn,
    fields=[FormField("name", "Name"), FormField("slug", "Slug"), FormField("description", "Description", "textarea"),
            FormField("logo", "Logo URL"), FormField("website", "Website"),
            FormField("sort_order", "Sort order", "number", default=0),
            FormField("is_active", "Active", "checkbox", default=True)],
    create=catalog.create_brand, update=catalog.update_brand, delete=catalog.delete_brand,
))

resource(Resource(
    "categories", "Categories",
    columns=[("Name", lambda c, _: c.name), ("Slug", lambda c, _: c.slug),
             ("Parent", lambda c, _: c.parent.name if c.parent else ""), ("Products", lambda c, count: count),
             ("Active", lambda c, _: _yes(c.is_active))],
    load=_no_pagination(lambda db, q: catalog.list_categories(db, q)),
    get=catalog.get_category, schema=CategoryIn,
    fields=[FormField("name", "Name"), FormField("slug", "Slug"), FormField("description", "Description", "textarea"),
            FormField("image", "Image URL"), FormField("parent_id", "Parent", "select", _parent_options),
            FormField("sort_order", "Sort order", "number", default=0),
            FormField("is_active", "Active", "checkbox", default=True)],
    create=catalog.create_category, update=catalog.update_category, delete=catalog.delete_category,
))


def _load_products(db, q, page):
    rows, pagination = catalog.list_products(db, q=q, page=page, limit=20)
    return [(p, None) for p in rows], pagination


resource(Resource(
    "products", "Products",
    columns=[("Name", lambda p, _: p.name), ("SKU", lambda p, _: p.sku), ("Price", lambda p, _: format_money(p.price_cents)),
             ("Stock", lambda p, _: p.inventory.quantity if p.inventory else 0),
             ("Category", lambda p, _: p.category.name if p.category else ""),
             ("Active", lambda p, _: _yes(p.is_active)), ("Featured", lambda p, _: _yes(p.featured))],
    load=_load_products, get=catalog.get_product, schema=ProductIn,
    fields=[FormField("name", "Name"), FormField("slug", "Slug"), FormField("sku", "SKU"),
            FormField("short_desc", "Short description"), FormField("description", "Description", "textarea"),
            FormField("price", "Price", "number"), FormField("compare_price", "Compare-at price", "number"),
            FormField("cost_price", "Cost price", "number"), FormField("quantity", "Quantity", "number", default=0),
            FormField("category_id", "Category", "select", _category_options),
            FormField("brand_id", "Brand", "select", _brand_options),
            FormField("attribute_ids", "Attributes", "multiselect", _attribute_options),
            FormField("images", "Images", "list", help="Comma separated URLs or media file names"),
            FormField("tags", "Tags", "list", help="Comma separated"),
            FormField("specifications", "Specifications", "json", default={}),
            FormField("custom_fields", "Custom fields", "json", default={}),
            FormField("seo_title", "SEO title"), FormField("seo_desc", "SEO description"),
            FormField("is_active", "Active", "checkbox", default=True), FormField("featured", "Featured", "checkbox")],
    create=catalog.create_product, update=catalog.update_product, delete=catalog.delete_product,
    toggle=catalog.set_product_active, export_type="products",
))

resource(Resource(
    "content", "Content blocks",
    columns=[("Type", lambda b, _: marketing.CONTENT_TYPE_LABELS.get(b.type, b.type)),
             ("Title", lambda b, _: b.title or ""), ("Order", lambda b, _: b.sort_order),
             ("Active", lambda b, _: _yes(b.is_active)), ("Updated", lambda b, _: _dt(b.updated_at))],
    load=_no_pagination(lambda db, q: [(b, None) for b in marketing.list_content(db, q)]),
    get=marketing.get_content, schema=ContentBlockIn,
    fields=[FormField("type", "Type", "select", list(marketing.CONTENT_TYPE_LABELS.items())),
            FormField("title", "Title"), FormField("content", "Content", "json", default={}),
            FormField("sort_order", "Sort order", "number", default=0),
            FormField("is_active", "Active", "checkbox", default=True)],
    create=marketing.create_content, update=marketing.update_content, delete=marketing.delete_content,
    toggle=marketing.set_content_active, export_type="content", roles=CONTENT_STAFF,
))


def _load_coupons(db, q, page):
    rows, pagination = marketing.list_coupons(db, q, page, 20)
    return [(c, None) for c in rows], pagination


def _coupon_value(c):
    return f"{float(c.value):g}%" if c.type == "PERCENTAGE" else format_money(round(float(c.value) * 100))


resource(Resource(
    "coupons", "Coupons",
    columns=[("Code", lambda c, _: c.code), ("Type", lambda c, _: c.type), ("Value", lambda c, _: _coupon_value(c)),
             ("Used", lambda c, _: f"{c.usage_count}/{c.usage_limit or '∞'}"),
             ("Valid until", lambda c, _: _dt(c.valid_until)), ("Active", lambda c, _: _yes(c.is_active))],
    load=_load_coupons, get=marketing.get_coupon, schema=CouponIn,
    fields=[FormField("code", "Code"), FormField("description", "Description", "textarea"),
            FormField("type", "Type", "select", _choices(("PERCENTAGE", "FIXED")), "PERCENTAGE"),
            FormField("value", "Value", "number"), FormField("min_order_value", "Minimum order", "number"),
            FormField("max_discount", "Maximum discount", "number"),
            FormField("usage_limit", "Usage limit", "number"), FormField("per_user_limit", "Per-user limit", "number"),
            FormField("valid_from", "Valid from", "datetime"), FormField("valid_until", "Valid until", "datetime"),
            FormField("is_active", "Active", "checkbox", default=True)],
    create=marketing.create_coupon, update=marketing.update_coupon, delete=marketing.delete_coupon,
    export_type="coupons",
))


def _load_deals(db, q, page):
    rows, pagination = marketing.list_deals(db, request.args.get("status"), q, page, 20)
    return [(d, None) for d in rows], pagination


resource(Resource(
    "deals", "Flash deals",
    columns=[("Title", lambda d, _: d.title), ("Product", lambda d, _: d.product.name if d.product else ""),
             ("Discount", lambda d, _: f"{d.discount}%"),
             ("Deal price", lambda d, _: format_money(d.deal_price_cents()) if d.product else ""),
             ("Starts", lambda d, _: _dt(d.start_date)), ("Ends", lambda d, _: _dt(d.end_date)),
             ("Status", lambda d, _: d.status().title())],
    load=_load_deals, get=marketing.get_deal, schema=DealIn,
    fields=[FormField("product_id", "Product", "select", _product_options), FormField("title", "Title"),
            FormField("description", "Description", "textarea"),
            FormField("discount", "Discount (%)", "number"),
            FormField("start_date", "Starts", "datetime"), FormField("end_date", "Ends", "datetime"),
            FormField("is_active", "Active", "checkbox", default=True)],
    create=marketing.create_deal, update=marketing.update_deal, delete=marketing.delete_deal,
))

resource(Resource(
    "shipping", "Shipping methods",
    columns=[("Name", lambda m, _: m.name), ("Type", lambda m, _: m.type.replace("_", " ").title()),
             ("Cost", lambda m, _: format_money(m.cost_cents)),
             ("Order range", lambda m, _: f"{_money_or_blank(m.min_order_cents)} – {_money_or_blank(m.max_order_cents)}"),
             ("Cities", lambda m, _: ", ".join(m.cities or []) or "All"), ("Active", lambda m, _: _yes(m.is_active))],
    load=_no_pagination(lambda db, q: [(m, None) for m in orders.list_shipping_methods(db, q=q)]),
    get=orders.get_shipping_method, schema=ShippingMethodIn,
    fields=[FormField("name", "Name"), FormField("description", "Description", "textarea"),
            FormField("type", "Type", "select", _choices(("FLAT_RATE", "FREE_SHIPPING", "LOCAL_PICKUP", "EXPRESS")),
                      "FLAT_RATE"),
            FormField("cost", "Cost", "number", default=0), FormField("min_order", "Minimum order", "number"),
            FormField("max_order", "Maximum order", "number"),
            FormField("cities", "Cities", "list", help="Comma separated; empty for all"),
            FormField("sort_order", "Sort order", "number", default=0),
            FormField("is_active", "Active", "checkbox", default=True)],
    create=orders.create_shipping_method, update=orders.update_shipping_method, delete=orders.delete_shipping_method,
))

resource(Resource(
    "users", "Users",
    columns=[("Name", lambda u, _: u.name or ""), ("Email", lambda u, _: u.email),
             ("Role", lambda u, _: u.role.replace("_", " ").title()), ("Active", lambda u, _: _yes(u.is_active)),
             ("Joined", lambda u, _: _dt(u.created_at))],
    load=_no_pagination(lambda db, q: [(u, None) for u in users.list_users(db, q, request.args.get("role"))]),
    get=users.get_user, schema=UserUpdate,
    fields=[FormField("role", "Role", "select", _choices(ROLES)), FormField("is_active", "Active", "checkbox")],
    update=users.update_user, delete=users.delete_user, export_type="users", roles=("SUPER_ADMIN",),
))


def _load_quotes(db, q, page):
    rows, pagination = aftersales.list_quotes(db, None, request.args.get("status"), q, page, 20)
    return [(r, None) for r in rows], pagination


resource(Resource(
    "quotes", "Quotes",
    columns=[("Number", lambda r, _: r.quote_number), ("Customer", lambda r, _: r.name),
             ("Email", lambda r, _: r.email), ("Company", lambda r, _: r.company or ""),
             ("Items", lambda r, _: len(r.items or [])), ("Quoted", lambda r, _: _money_or_blank(r.quoted_amount_cents)),
             ("Status", lambda r, _: r.status.title()), ("Created", lambda r, _: _dt(r.created_at))],
    load=_load_quotes, roles=ORDER_STAFF, detail=("admin.quote_detail", "quote_id"),
))


def _load_returns(db, q, page):
    rows, pagination = aftersales.list_returns(db, None, request.args.get("status"), q, page, 20)
    return [(r, None) for r in rows], pagination


resource(Resource(
    "returns", "Returns",
    columns=[("Number", lambda r, _: r.return_number), ("Order", lambda r, _: r.order.order_number),
             ("Customer", lambda r, _: r.user.email), ("Reason", lambda r, _: r.reason.replace("_", " ").title()),
             ("Refund", lambda r, _: format_money(r.refund_cents)), ("Status", lambda r, _: r.status.title()),
             ("Created", lambda r, _: _dt(r.created_at))],
    load=_load_returns, roles=ORDER_STAFF, detail=("admin.return_detail", "return_id"),
))


def _load_warranties(db, q, page):
    rows, pagination = aftersales.list_warranties(db, None, request.args.get("status"), q, page, 20)
    return [(w, None) for w in rows], pagination


resource(Resource(
    "warranties", "Warranties",
    columns=[("Number", lambda w, _: w.warranty_number), ("Product", lambda w, _: w.product.name),
             ("Customer", lambda w, _: w.user.email), ("Period", lambda w, _: f"{w.warranty_period} months"),
             ("Expires", lambda w, _: _dt(w.expiry_date)), ("Claims", lambda w, _: len(w.claims)),
             ("Status", lambda w, _: w.status.title())],
    load=_load_warranties, roles=ORDER_STAFF, detail=("admin.warranty_detail", "warranty_id"),
))


def get_resource(name):
    r = RESOURCES.get(name)
    if not r:
        abort(404)
    if current_user.role not in r.roles:
        raise Forbidden("Access denied")
    return r


def read_form(fields):
    """Turn submitted form values into a payload dict for the resource schema."""
    data = {}
    for f in fields:
        if f.kind == "checkbox":
            data[f.name] = f.name in request.form
            continue
        if f.kind == "multiselect":
            data[f.name] = [int(v) for v in request.form.getlist(f.name) if v.isdigit()]
            continue
        raw = request.form.get(f.name, "").strip()
        if raw == "":
            # blank: let the schema default apply
            continue
        if f.kind == "list":
            data[f.name] = [v.strip() for v in raw.replace("\n", ",").split(",") if v.strip()]
        elif f.kind == "json":
            try:
                data[f.name] = json.loads(raw)
            except ValueError:
                raise ApiError(f"{f.label} must be valid JSON")
        else:
            data[f.name] = raw
    return data


def display_values(fields, source):
    values = {}
    for f in fields:
        v = source.get(f.name, f.default)
        if f.kind == "checkbox":
            values[f.name] = bool(v)
        elif f.kind == "multiselect":
            values[f.name] = [str(i) for i in ([v] if isinstance(v, (str, int)) else v or [])]
        elif f.kind == "list":
            values[f.name] = ", ".join(v) if isinstance(v, list) else (v or "")
        elif f.kind == "json":
            values[f.name] = json.dumps(v, indent=2) if isinstance(v, (dict, list)) else (v or "")
        elif f.kind == "datetime":
            values[f.name] = str(v)[:16] if v else ""
        else:
            values[f.name] = "" if v is None else str(v)
    return values


def form_source():
    """Submitted values, shaped like ``Resource.initial`` output, for re-rendering a failed form."""
    src = {}
    for k in request.form:
        vals = request.form.getlist(k)
        src[k] = vals if len(vals) > 1 else vals[0]
    return src


def error_message(e):
    if isinstance(e, ValidationError):
        parts = [f"{d['field'] or 'form'}: {d['message']}" for d in validation_details(e)]
        return "Validation failed. " + "; ".join(parts)
    return e.message


def render_form(r, db, values, obj=None, status=200):
    options = {}
    for f in r.fields:
        if f.kind in ("select", "multiselect"):
            options[f.name] = f.options(db) if callable(f.options) else f.options
    return render_template("admin/form.html", r=r, obj=obj, values=values, options=options,
                           resources=RESOURCES), status

# ---------- Dashboard ----------
@bp.get("/")
@admin_required
def dashboard():
    with main_session() as db:
        counts = {
            "Products": db.scalar(select(func.count(Product.id))),
            "Orders": db.scalar(select(func.count(Order.id))),
            "Customers": db.scalar(select(func.count(User.id)).where(User.role == "CUSTOMER")),
            "Low stock": len(catalog.list_inventory(db, status="low")),
            "Pending quotes": db.scalar(select(func.count(Quote.id)).where(Quote.status == "PENDING")),
            "Pending returns": db.scalar(select(func.count(ReturnRequest.id)).where(ReturnRequest.status == "PENDING")),
            "Active deals": len(marketing.active_deals(db)),
        }
        revenue = db.scalar(select(func.coalesce(func.sum(Order.total_cents), 0)).where(Order.payment_status == "PAID"))
        recent = db.execute(select(Order).order_by(Order.created_at.desc()).limit(10)).scalars().all()
        return render_template("admin/dashboard.html", counts=counts, revenue=revenue, recent=recent,
                               resources=RESOURCES)

# ---------- AI generator ----------
@bp.route("/products/generate", methods=["GET", "POST"])
@admin_required
def generate_product():
    with main_session() as db:
        categories, brands = _category_options(db), _brand_options(db)
        generated = None
        if request.method == "POST":
            try:
                if request.form.get("save"):
                    generated = json.loads(request.form.get("generated") or "{}")
                    generated["category_id"] = request.form.get("category_id", type=int) or generated.get("category_id")
                    product = ai_generator.save_generated(db, generated, current_user_id())
                    db.commit()
                    flash(f"Draft product '{product.name}' saved. Review it before activating.", "success")
                    return redirect(url_for("admin.edit", name="products", obj_id=product.id))
                data = GenerateIn.model_validate({
                    "product_name": request.form.get("product_name", ""),
                    "industry": request.form.get("industry") or "General",
                    "category_id": request.form.get("category_id", type=int),
                    "brand_id": request.form.get("brand_id", type=int),
                    "additional_info": request.form.get("additional_info") or None,
                })
                generated = ai_generator.generate(db, data)
                flash("Product details generated successfully!", "success")
            except (ApiError, ValidationError, ValueError) as e:
                msg = error_message(e) if isinstance(e, (ApiError, ValidationError)) else "Invalid generated data"
                flash(msg, "danger")
        return render_template("admin/generate.html", categories=categories, brands=brands, generated=generated,
                               generated_json=json.dumps(generated) if generated else "", resources=RESOURCES)

# ---------- Inventory ----------
@bp.get("/inventory")
@admin_required
def inventory():
    q, status = request.args.get("q", ""), request.args.get("status", "")
    with main_session() as db:
        rows = catalog.list_inventory(db, q, status)
        return render_template("admin/inventory.html", rows=rows, q=q, status=status, resources=RESOURCES)

@bp.post("/inventory/<int:inventory_id>")
@admin_required
def inventory_update(inventory_id):
    try:
        data = InventoryUpdate.model_validate({k: v for k, v in request.form.items() if v.strip() != ""})
        with main_session() as db:
            item = catalog.update_inventory(db, inventory_id, data, current_user_id())
            db.commit()
            flash(f"Stock for {item.product.name} updated.", "success")
    except (ApiError, ValidationError) as e:
        flash(error_message(e), "danger")
    return redirect(url_for("admin.inventory", q=request.args.get("q"), status=request.args.get("status")))

# ---------- Quotes ----------
@bp.route("/quotes/<int:quote_id>", methods=["GET", "POST"])
@admin_required
def quote_detail(quote_id):
    get_resource("quotes")
    with main_session() as db:
        if request.method == "POST":
            try:
                data = QuoteUpdate.model_validate({k: v for k, v in request.form.items() if v.strip() != ""})
                aftersales.update_quote(db, quote_id, data)
                db.commit()
                flash("Quote updated successfully.", "success")
                return redirect(url_for("admin.quote_detail", quote_id=quote_id))
            except (ApiError, ValidationError) as e:
                db.rollback()
                flash(error_message(e), "danger")
        quote = aftersales.get_quote(db, quote_id, admin=True)
        products = {p.id: p for p in db.execute(
            select(Product).where(Product.id.in_([i["product_id"] for i in quote.items or []]))
        ).scalars().all()}
        return render_template("admin/quote.html", quote=quote, products=products, resources=RESOURCES)

@bp.post("/quotes/<int:quote_id>/convert")
@admin_required
def quote_convert(quote_id):
    get_resource("quotes")
    try:
        data = QuoteConvert.model_validate(request.form.to_dict())
        with main_session() as db:
            order, _ = aftersales.convert_quote(db, quote_id, data)
            db.commit()
            flash(f"Quote converted to order {order.order_number}.", "success")
    except (ApiError, ValidationError) as e:
        flash(error_message(e), "danger")
    return redirect(url_for("admin.quote_detail", quote_id=quote_id))

# ---------- Returns ----------
@bp.route("/returns/<int:return_id>", methods=["GET", "POST"])
@admin_required
def return_detail(return_id):
    get_resource("returns")
    with main_session() as db:
        if request.method == "POST":
            try:
                data = ReturnUpdate.model_validate({k: v for k, v in request.form.items() if v.strip() != ""})
                aftersales.update_return(db, return_id, data)
                db.commit()
                flash("Return request updated.", "success")
                return redirect(url_for("admin.return_detail", return_id=return_id))
            except (ApiError, ValidationError) as e:
                db.rollback()
                flash(error_message(e), "danger")
        ret = aftersales.get_return(db, return_id, admin=True)
        items = {i.id: i for i in ret.order.items}
        return render_template("admin/return.html", ret=ret, items=items, resources=RESOURCES)

# ---------- Warranties ----------
@bp.get("/warranties/<int:warranty_id>")
@admin_required
def warranty_detail(warranty_id):
    get_resource("warranties")
    with main_session() as db:
        warranty = aftersales.get_warranty(db, warranty_id, admin=True)
        return render_template("admin/warranty.html", warranty=warranty, resources=RESOURCES)

@bp.post("/warranties/claims/<int:claim_id>")
@admin_required
def claim_update(claim_id):
    get_resource("warranties")
    with main_session() as db:
        try:
            data = ClaimUpdate.model_validate({k: v for k, v in request.form.items() if v.strip() != ""})
            claim = aftersales.update_claim(db, claim_id, data)
            db.commit()
            flash(f"Claim {claim.claim_number} updated.", "success")
            return redirect(url_for("admin.warranty_detail", warranty_id=claim.warranty_id))
        except (ApiError, ValidationError) as e:
            flash(error_message(e), "danger")
            claim = aftersales.get_claim(db, claim_id)
            return redirect(url_for("admin.warranty_detail", warranty_id=claim.warranty_id))

# ---------- Generic resource screens ----------
@bp.get("/<name>")
@admin_required
def index(name):
    r = get_resource(name)
    q = request.args.get("q", "")
    page = max(1, request.args.get("page", type=int, default=1) or 1)
    with main_session() as db:
        rows, pagination = r.load(db, q or None, page)
        table = [(obj.id, [fn(obj, extra) for _, fn in r.columns]) for obj, extra in rows]
        return render_template("admin/list.html", r=r, table=table, q=q, pagination=pagination,
                               resources=RESOURCES)

@bp.route("/<name>/new", methods=["GET", "POST"])
@admin_required
def new(name):
    r = get_resource(name)
    if not r.create:
        abort(404)
    with main_session() as db:
        if request.method == "GET":
            return render_form(r, db, display_values(r.fields, {}))
        try:
            data = r.schema.model_validate(read_form(r.fields))
            obj = r.create(db, data, current_user_id())
            db.commit()
            flash("Created successfully.", "success")
            log.info(f"admin {current_user.email} created {name} #{obj.id}")
            return redirect(url_for("admin.index", name=name))
        except (ApiError, ValidationError) as e:
            db.rollback()
            flash(error_message(e), "danger")
            return render_form(r, db, display_values(r.fields, form_source()), status=400)

@bp.route("/<name>/<int:obj_id>/edit", methods=["GET", "POST"])
@admin_required
def edit(name, obj_id):
    r = get_resource(name)
    if not r.update:
        abort(404)
    with main_session() as db:
        obj = r.get(db, obj_id)
        if request.method == "GET":
            return render_form(r, db, display_values(r.fields, r.initial(obj)), obj)
        try:
            data = r.schema.model_validate(read_form(r.fields))
            r.update(db, obj_id, data, current_user_id())
            db.commit()
            flash("Changes saved.", "success")
            return redirect(url_for("admin.index", name=name))
        except (ApiError, ValidationError) as e:
            db.rollback()
            flash(error_message(e), "danger")
            return render_form(r, db, display_values(r.fields, form_source()), obj, status=400)

@bp.post("/<name>/<int:obj_id>/delete")
@admin_required
def delete(name, obj_id):
    r = get_resource(name)
    if not r.delete:
        abort(404)
    try:
        with main_session() as db:
            r.delete(db, obj_id, current_user_id())
            db.commit()
        flash("Deleted successfully.", "success")
    except ApiError as e:
        flash(e.message, "danger")
    return redirect(url_for("admin.index", name=name, q=request.args.get("q")))

@bp.post("/<name>/bulk")
@admin_required
def bulk(name):
    """Apply one action to every selected id, one transaction per id."""
    r = get_resource(name)
    action = request.form.get("action")
    ids = [int(i) for i in request.form.getlist("ids") if i.isdigit()]
    if not ids:
        flash("Select at least one row.", "warning")
        return redirect(url_for("admin.index", name=name))

    if action == "export" and r.export_type:
        with main_session() as db:
            filename, body = export.export_csv(db, r.export_type, ids)
        return Response(body, mimetype="text/csv",
                        headers={"Content-Disposition": f'attachment; filename="{filename}"'})

    if action == "delete" and r.delete:
        def run(db, obj_id):
            r.delete(db, obj_id, current_user_id())
    elif action in ("activate", "deactivate") and r.toggle:
        def run(db, obj_id):
            r.toggle(db, obj_id, action == "activate", current_user_id())
    else:
        abort(400)

    done, failed = 0, 0
    for obj_id in ids:
        try:
            with main_session() as db:
                run(db, obj_id)
                db.commit()
            done += 1
        except (ApiError, SQLAlchemyError) as e:
            log.warning(f"bulk {action} on {name} #{obj_id} failed: {e}")
            failed += 1
    verb = {"delete": "deleted", "activate": "activated", "deactivate": "deactivated"}[action]
    if failed:
        flash(f"{done} {verb}, {failed} failed.", "warning" if done else "danger")
    else:
        flash(f"{done} {verb} successfully.", "success")
    return redirect(url_for("admin.index", name=name))

@bp.get("/<name>/export")
@admin_required
def export_all(name):
    r = get_resource(name)
    if not r.export_type:
        abort(404)
    with main_session() as db:
        filename, body = export.export_csv(db, r.export_type)
    return Response(body, mimetype="text/csv", headers={"Content-Disposition": f'attachment; filename="{filename}"'})
