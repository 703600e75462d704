import csv, io
from datetime import date

from sqlalchemy import select

from storefront.errors import ApiError
from storefront.helpers import from_cents, iso
from storefront.models import ContentBlock, Coupon, Order, Product, User
from storefront.services.marketing import CONTENT_TYPE_LABELS


def _yes_no(flag):
    return "Yes" if flag else "No"


def _products(rows):
    yield ["ID", "Name", "SKU", "Price", "Quantity", "Status", "Category", "Brand", "Created At"]
    for p in rows:
        yield [p.id, p.name, p.sku, from_cents(p.price_cents), p.inventory.quantity if p.inventory else 0,
               "Active" if p.is_active else "Inactive", p.category.name if p.category else "",
               p.brand.name if p.brand else "", iso(p.created_at)]


def _orders(rows):
    yield ["Order Number", "Customer Name", "Customer Email", "Total Amount", "Status",
           "Payment Status", "Payment Method", "Created At"]
    for o in rows:
        yield [o.order_number, o.name, o.email, from_cents(o.total_cents), o.status,
               o.payment_status, o.payment_method, iso(o.created_at)]


def _users(rows):
    yield ["Name", "Email", "Phone", "Role", "Active", "Total Orders", "Registered At"]
    for u in rows:
        yield [u.name or "", u.email, u.phone or "N/A", u.role, _yes_no(u.is_active), len(u.orders),
               iso(u.created_at)]


def _coupons(rows):
    yield ["Code", "Type", "Value", "Min Order", "Usage", "Usage Limit", "Valid From", "Valid Until", "Active"]
    for c in rows:
        yield [c.code, c.type, float(c.value), from_cents(c.min_order_cents) or "", c.usage_count,
               c.usage_limit or "", iso(c.valid_from), iso(c.valid_until), _yes_no(c.is_active)]


def _content(rows):
    yield ["Type", "Title", "Order", "Active", "Created", "Updated"]
    for b in rows:
        yield [CONTENT_TYPE_LABELS.get(b.type, b.type), b.title or "", b.sort_order, _yes_no(b.is_active),
               iso(b.created_at), iso(b.updated_at)]


EXPORTS = {
    "products": (Product, Product.created_at, _products),
    "orders": (Order, Order.created_at, _orders),
    "users": (User, User.created_at, _users),
    "coupons": (Coupon, Coupon.created_at, _coupons),
    "content": (ContentBlock, ContentBlock.sort_order, _content),
}


def export_csv(db, export_type, ids=None, today=None):
    """Render ``export_type`` rows (all, or only ``ids``) as CSV.

    Returns ``(filename, csv_text)``.
    """
    if export_type not in EXPORTS:
        raise ApiError("Invalid export type")
    model, order_col, writer_rows = EXPORTS[export_type]
    stmt = select(model)
    if ids:
        stmt = stmt.where(model.id.in_(ids))
    if export_type == "content":
        stmt = stmt.order_by(order_col, model.id)
    else:
        stmt = stmt.order_by(order_col.desc(), model.id.desc())
    rows = db.execute(stmt).scalars().all()

    buf = io.StringIO()
    w = csv.writer(buf)
    for row in writer_rows(rows):
        w.writerow(row)
    filename = f"{export_type}_export_{(today or date.today()).isoformat()}.csv"
    return filename, buf.getvalue()
