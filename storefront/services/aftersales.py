from calendar import monthrange
from datetime import datetime, timedelta

from sqlalchemy import select

from storefront import config
from storefront.errors import ApiError, NotFound
from storefront.helpers import make_number, matches, paginate, to_cents
from storefront.models import Order, Product, Quote, ReturnRequest, Warranty, WarrantyClaim
from storefront.notify import log


def add_months(dt, months):
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    day = min(dt.day, monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)

# ---------- Quotes ----------
def create_quote(db, user_id, data):
    product_ids = {line.product_id for line in data.items}
    found = db.execute(select(Product.id).where(Product.id.in_(product_ids))).scalars().all()
    if len(found) != len(product_ids):
        raise NotFound("One or more products not found")
    quote = Quote(
        quote_number=make_number("QTE"), user_id=user_id, email=data.email, name=data.name,
        phone=data.phone, company=data.company, message=data.message, status="PENDING",
        items=[line.model_dump() for line in data.items],
    )
    db.add(quote); db.flush()
    log.info(f"Quote {quote.quote_number} requested by {data.email}")
    return quote


def list_quotes(db, user_id=None, status=None, q=None, page=1, limit=10):
    stmt = select(Quote).order_by(Quote.created_at.desc(), Quote.id.desc())
    if user_id is not None:
        stmt = stmt.where(Quote.user_id == user_id)
    if status:
        stmt = stmt.where(Quote.status == status)
    rows, pagination = paginate(db, stmt, page, limit)
    return [r for r in rows if matches(q, r.quote_number, r.name, r.email, r.company)], pagination


def get_quote(db, quote_id, user_id=None, admin=False):
    quote = db.get(Quote, quote_id)
    if not quote:
        raise NotFound("Quote not found")
    if not admin and (quote.user_id is None or quote.user_id != user_id):
        raise NotFound("Quote not found")
    return quote


def update_quote(db, quote_id, data):
    quote = get_quote(db, quote_id, admin=True)
    if data.status:
        quote.status = data.status
    if data.quoted_amount is not None:
        quote.quoted_amount_cents = to_cents(data.quoted_amount)
    if data.valid_until is not None:
        quote.valid_until = data.valid_until
    if data.admin_notes is not None:
        quote.admin_notes = data.admin_notes
    db.flush()
    return quote


def convert_quote(db, quote_id, data):
    """Turn an ACCEPTED quote into an order for the quoted amount."""
    quote = get_quote(db, quote_id, admin=True)
    if quote.status != "ACCEPTED":
        raise ApiError("Quote must be accepted before converting")
    if quote.converted_order_id:
        raise ApiError("Quote already converted to order")
    if not quote.quoted_amount_cents:
        raise ApiError("Quote must have a quoted amount")
    amount = quote.quoted_amount_cents
    order = Order(
        order_number=make_number("ORD"), user_id=quote.user_id, email=quote.email, name=quote.name,
        phone=quote.phone, status="PENDING", payment_status="PENDING",
        payment_method=data.payment_method, currency=config.CURRENCY.upper(),
        subtotal_cents=amount, tax_cents=0, shipping_cents=0, discount_cents=0, total_cents=amount,
        shipping_address={"address": data.shipping_address}, notes=f"Converted from quote {quote.quote_number}",
    )
    db.add(order); db.flush()
    quote.converted_order_id = order.id
    db.flush()
    log.info(f"Quote {quote.quote_number} converted to order {order.order_number}")
    return order, quote

# ---------- Returns ----------
def create_return(db, user_id, data, now=None):
    now = now or datetime.utcnow()
    order = db.execute(select(Order).where(Order.id == data.order_id, Order.user_id == user_id)).scalar_one_or_none()
    if not order:
        raise NotFound("Order not found")
    if order.created_at < now - timedelta(days=config.RETURN_WINDOW_DAYS):
        raise ApiError(f"Return period has expired ({config.RETURN_WINDOW_DAYS} days)")

    by_id = {i.id: i for i in order.items}
    refund = 0
    for line in data.items:
        item = by_id.get(line.order_item_id)
        if not item:
            raise ApiError(f"Item {line.order_item_id} is not part of this order")
        if line.quantity > item.quantity:
            raise ApiError(f"Cannot return more than {item.quantity} of {item.product_name}")
        refund += item.total_cents * line.quantity / item.quantity

    ret = ReturnRequest(
        return_number=make_number("RET"), order_id=order.id, user_id=user_id, reason=data.reason,
        description=data.description, items=[line.model_dump() for line in data.items],
        images=data.images, refund_cents=round(refund), status="PENDING",
    )
    db.add(ret); db.flush()
    log.info(f"Return {ret.return_number} opened for order {order.order_number}")
    return ret


def list_returns(db, user_id=None, status=None, q=None, page=1, limit=10):
    stmt = select(ReturnRequest).order_by(ReturnRequest.created_at.desc(), ReturnRequest.id.desc())
    if user_id is not None:
        stmt = stmt.where(ReturnRequest.user_id == user_id)
    if status:
        stmt = stmt.where(ReturnRequest.status == status)
    rows, pagination = paginate(db, stmt, page, limit)
    rows = [r for r in rows if matches(q, r.return_number, r.order.order_number, r.user.email, r.reason)]
    return rows, pagination


def get_return(db, return_id, user_id=None, admin=False):
    ret = db.get(ReturnRequest, return_id)
    if not ret or (not admin and ret.user_id != user_id):
        raise NotFound("Return request not found")
    return ret


def update_return(db, return_id, data, now=None):
    now = now or datetime.utcnow()
    ret = get_return(db, return_id, admin=True)
    if data.status:
        ret.status = data.status
        if data.status == "APPROVED":
            ret.approved_at = now
        elif data.status == "REJECTED":
            ret.rejected_at = now
        elif data.status == "COMPLETED":
            ret.completed_at = now
            ret.order.status = "REFUNDED"
    if data.admin_notes is not None:
        ret.admin_notes = data.admin_notes
    if data.tracking_code:
        ret.tracking_code = data.tracking_code
    if data.refund_method:
        ret.refund_method = data.refund_method
    db.flush()
    return ret


def cancel_return(db, return_id, user_id):
    ret = get_return(db, return_id, user_id=user_id)
    if ret.status != "PENDING":
        raise ApiError("Can only cancel pending return requests")
    ret.status = "CANCELLED"
    db.flush()
    return ret

# ---------- Warranties ----------
def register_warranty(db, user_id, data):
    order = db.execute(select(Order).where(Order.id == data.order_id, Order.user_id == user_id)).scalar_one_or_none()
    if not order:
        raise NotFound("Order not found")
    if not any(i.product_id == data.product_id for i in order.items):
        raise ApiError("Product not found in order")
    exists = db.execute(select(Warranty.id).where(
        Warranty.order_id == data.order_id, Warranty.product_id == data.product_id, Warranty.user_id == user_id
    )).first()
    if exists:
        raise ApiError("Warranty already registered for this product")
    warranty = Warranty(
        warranty_number=make_number("WAR"), order_id=order.id, product_id=data.product_id, user_id=user_id,
        purchase_date=order.created_at, warranty_period=data.warranty_period,
        expiry_date=add_months(order.created_at, data.warranty_period), status="ACTIVE",
    )
    db.add(warranty); db.flush()
    return warranty


def list_warranties(db, user_id=None, status=None, q=None, page=1, limit=10):
    stmt = select(Warranty).order_by(Warranty.created_at.desc(), Warranty.id.desc())
    if user_id is not None:
        stmt = stmt.where(Warranty.user_id == user_id)
    if status:
        stmt = stmt.where(Warranty.status == status)
    rows, pagination = paginate(db, stmt, page, limit)
    rows = [w for w in rows if matches(q, w.warranty_number, w.product.name, w.user.email, w.order.order_number)]
    return rows, pagination


def get_warranty(db, warranty_id, user_id=None, admin=False):
    warranty = db.get(Warranty, warranty_id)
    if not warranty or (not admin and warranty.user_id != user_id):
        raise NotFound("Warranty not found")
    return warranty


def submit_claim(db, user_id, data, now=None):
    now = now or datetime.utcnow()
    warranty = db.execute(select(Warranty).where(
        Warranty.id == data.warranty_id, Warranty.user_id == user_id, Warranty.status == "ACTIVE"
    )).scalar_one_or_none()
    if not warranty:
        raise NotFound("Active warranty not found")
    if now > warranty.expiry_date:
        raise ApiError("Warranty has expired")
    claim = WarrantyClaim(claim_number=make_number("CLM"), warranty_id=warranty.id, issue=data.issue,
                          description=data.description, images=data.images, status="SUBMITTED")
    db.add(claim)
    warranty.status = "CLAIMED"
    db.flush()
    return claim


def get_claim(db, claim_id):
    claim = db.get(WarrantyClaim, claim_id)
    if not claim:
        raise NotFound("Claim not found")
    return claim


def update_claim(db, claim_id, data, now=None):
    claim = get_claim(db, claim_id)
    if data.status:
        claim.status = data.status
        if data.status == "COMPLETED":
            claim.resolved_at = now or datetime.utcnow()
    if data.resolution:
        claim.resolution = data.resolution
    if data.admin_notes is not None:
        claim.admin_notes = data.admin_notes
    db.flush()
    return claim
