from datetime import datetime
from decimal import Decimal

from sqlalchemy import select

from storefront.errors import ApiError, Conflict, NotFound
from storefront.helpers import format_money, matches, paginate, to_cents
from storefront.models import ContentBlock, Coupon, Deal, Product
from storefront.services.audit import log_audit

CONTENT_TYPE_LABELS = {
    "HERO_BANNER": "Hero Banner",
    "FEATURED_PRODUCTS": "Featured Products",
    "TESTIMONIALS": "Testimonials",
    "CATEGORIES": "Categories",
    "INFO_SECTION": "Info Section",
    "PROMOTION_BANNER": "Promotion Banner",
}

# ---------- Content blocks ----------
def list_content(db, q=None, block_type=None, active_only=False):
    stmt = select(ContentBlock).order_by(ContentBlock.sort_order, ContentBlock.id)
    if active_only:
        stmt = stmt.where(ContentBlock.is_active.is_(True))
    if block_type:
        stmt = stmt.where(ContentBlock.type == block_type)
    rows = db.execute(stmt).scalars().all()
    return [b for b in rows if matches(q, b.title, b.type, CONTENT_TYPE_LABELS.get(b.type))]


def get_content(db, block_id):
    block = db.get(ContentBlock, block_id)
    if not block:
        raise NotFound("Content block not found")
    return block


def create_content(db, data, user_id=None):
    block = ContentBlock(**data.model_dump())
    db.add(block); db.flush()
    return block


def update_content(db, block_id, data, user_id=None):
    block = get_content(db, block_id)
    for k, v in data.model_dump().items():
        setattr(block, k, v)
    db.flush()
    return block


def set_content_active(db, block_id, active, user_id=None):
    block = get_content(db, block_id)
    block.is_active = active
    db.flush()
    return block


def delete_content(db, block_id, user_id=None):
    db.delete(get_content(db, block_id))
    db.flush()

# ---------- Coupons ----------
def _coupon_fields(data):
    d = data.model_dump(exclude={"min_order_value", "max_discount"})
    d["value"] = Decimal(str(data.value))
    d["min_order_cents"] = to_cents(data.min_order_value)
    d["max_discount_cents"] = to_cents(data.max_discount)
    return d


def list_coupons(db, q=None, page=1, limit=20):
    rows, pagination = paginate(db, select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()), page, limit)
    return [c for c in rows if matches(q, c.code, c.description)], pagination


def get_coupon(db, coupon_id):
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise NotFound("Coupon not found")
    return coupon


def create_coupon(db, data, user_id=None):
    if db.execute(select(Coupon.id).where(Coupon.code == data.code)).first():
        raise Conflict("Coupon code already exists")
    coupon = Coupon(**_coupon_fields(data))
    db.add(coupon); db.flush()
    log_audit(db, user_id, "coupons", coupon.id, "INSERT", new_values=coupon.to_dict())
    return coupon


def update_coupon(db, coupon_id, data, user_id=None):
    coupon = get_coupon(db, coupon_id)
    if db.execute(select(Coupon.id).where(Coupon.code == data.code, Coupon.id != coupon.id)).first():
        raise Conflict("Coupon code already exists")
    old = coupon.to_dict()
    for k, v in _coupon_fields(data).items():
        setattr(coupon, k, v)
    db.flush()
    log_audit(db, user_id, "coupons", coupon.id, "UPDATE", old_values=old, new_values=coupon.to_dict())
    return coupon


def delete_coupon(db, coupon_id, user_id=None):
    coupon = get_coupon(db, coupon_id)
    old = coupon.to_dict()
    db.delete(coupon); db.flush()
    log_audit(db, user_id, "coupons", coupon_id, "DELETE", old_values=old)


def coupon_discount_cents(coupon, order_cents):
    if coupon.type == "PERCENTAGE":
        discount = round(order_cents * float(coupon.value) / 100)
        if coupon.max_discount_cents and discount > coupon.max_discount_cents:
            discount = coupon.max_discount_cents
    else:
        discount = to_cents(coupon.value)
    return min(discount, order_cents)


def validate_coupon(db, code, order_cents, now=None):
    """Look up ``code`` and return ``(coupon, discount_cents)`` or raise why it does not apply."""
    now = now or datetime.utcnow()
    coupon = db.execute(select(Coupon).where(Coupon.code == code.strip().upper())).scalar_one_or_none()
    if not coupon:
        raise NotFound("Invalid coupon code")
    if not coupon.is_active:
        raise ApiError("This coupon is no longer active")
    if now < coupon.valid_from or now > coupon.valid_until:
        raise ApiError("This coupon has expired or is not yet valid")
    if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
        raise ApiError("This coupon has reached its usage limit")
    if coupon.min_order_cents and order_cents < coupon.min_order_cents:
        raise ApiError(f"Minimum order value of {format_money(coupon.min_order_cents)} required")
    return coupon, coupon_discount_cents(coupon, order_cents)

# ---------- Deals ----------
def list_deals(db, status=None, q=None, page=1, limit=10, now=None):
    now = now or datetime.utcnow()
    stmt = select(Deal)
    if status == "active":
        stmt = stmt.where(Deal.start_date <= now, Deal.end_date >= now, Deal.is_active.is_(True))
    elif status == "upcoming":
        stmt = stmt.where(Deal.start_date > now, Deal.is_active.is_(True))
    elif status == "expired":
        stmt = stmt.where(Deal.end_date < now)
    rows, pagination = paginate(db, stmt.order_by(Deal.created_at.desc(), Deal.id.desc()), page, limit)
    return [d for d in rows if matches(q, d.title, d.product.name if d.product else None)], pagination


def active_deals(db, now=None):
    now = now or datetime.utcnow()
    return db.execute(
        select(Deal).join(Product, Deal.product_id == Product.id)
        .where(Deal.start_date <= now, Deal.end_date >= now, Deal.is_active.is_(True),
               Product.is_active.is_(True))
        .order_by(Deal.end_date)
    ).scalars().all()


def get_deal(db, deal_id):
    deal = db.get(Deal, deal_id)
    if not deal:
        raise NotFound("Deal not found")
    return deal


def _check_deal(db, data, deal_id=None):
    if not db.get(Product, data.product_id):
        raise NotFound("Product not found")
    if not data.is_active:
        return
    stmt = select(Deal.id).where(Deal.product_id == data.product_id, Deal.is_active.is_(True),
                                 Deal.start_date <= data.end_date, Deal.end_date >= data.start_date)
    if deal_id is not None:
        stmt = stmt.where(Deal.id != deal_id)
    if db.execute(stmt).first():
        raise ApiError("Product already has an active deal in this time period")


def create_deal(db, data, user_id=None):
    _check_deal(db, data)
    deal = Deal(**data.model_dump())
    db.add(deal); db.flush()
    return deal


def update_deal(db, deal_id, data, user_id=None):
    deal = get_deal(db, deal_id)
    _check_deal(db, data, deal.id)
    for k, v in data.model_dump().items():
        setattr(deal, k, v)
    db.flush()
    return deal


def delete_deal(db, deal_id, user_id=None):
    db.delete(get_deal(db, deal_id))
    db.flush()
