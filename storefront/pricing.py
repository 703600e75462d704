from sqlalchemy import select

from storefront import config
from storefront.errors import ApiError
from storefront.models import ShippingMethod

BUILTIN_SHIPPING = (
    ("standard", "Standard Shipping", "5-7 business days"),
    ("express", "Express Shipping", "2-3 business days"),
)


def _builtin_cost(key):
    return config.EXPRESS_SHIPPING_CENTS if key == "express" else config.STANDARD_SHIPPING_CENTS


def shipping_options(db, subtotal_cents, city=None):
    """Shipping choices for a cart of ``subtotal_cents``.

    Configured methods apply when the subtotal falls inside their order range
    and, for methods restricted to cities, when ``city`` is one of them. With
    no active method configured the built-in standard/express pair is offered.
    Orders at or above FREE_SHIPPING_THRESHOLD_CENTS ship free.
    """
    free = subtotal_cents >= config.FREE_SHIPPING_THRESHOLD_CENTS
    methods = db.execute(
        select(ShippingMethod).where(ShippingMethod.is_active.is_(True))
        .order_by(ShippingMethod.sort_order, ShippingMethod.id)
    ).scalars().all()

    if not methods:
        return [{"key": key, "name": name, "description": desc, "cost_cents": 0 if free else _builtin_cost(key)}
                for key, name, desc in BUILTIN_SHIPPING]

    options = []
    for m in methods:
        if m.min_order_cents is not None and subtotal_cents < m.min_order_cents:
            continue
        if m.max_order_cents is not None and subtotal_cents > m.max_order_cents:
            continue
        if m.cities and city and city.strip().lower() not in [c.lower() for c in m.cities]:
            continue
        cost = 0 if (free or m.type == "FREE_SHIPPING") else m.cost_cents
        options.append({"key": str(m.id), "name": m.name, "description": m.description, "cost_cents": cost})
    return options


def quote_shipping(db, key, subtotal_cents, city=None):
    for option in shipping_options(db, subtotal_cents, city):
        if option["key"] == str(key):
            return option
    raise ApiError("Selected shipping method is not available for this order")


def tax_cents(taxable_cents):
    return round(max(taxable_cents, 0) * config.TAX_RATE)


def order_totals(subtotal_cents, discount_cents=0, shipping_cents=0):
    discount_cents = min(discount_cents, subtotal_cents)
    tax = tax_cents(subtotal_cents - discount_cents)
    return {
        "subtotal_cents": subtotal_cents,
        "discount_cents": discount_cents,
        "shipping_cents": shipping_cents,
        "tax_cents": tax,
        "total_cents": subtotal_cents - discount_cents + shipping_cents + tax,
    }
