import math, re, secrets, string, time
from decimal import Decimal, ROUND_HALF_UP
from urllib.parse import urlparse, urljoin

from flask import request
from sqlalchemy import select, func

from storefront.config import CURRENCY, PAGE_SIZE

_ALNUM = string.ascii_uppercase + string.digits


def format_money(cents) -> str:
    cents = cents or 0
    return f"${cents/100:.2f}" if CURRENCY.upper()=="USD" else f"{cents/100:.2f} {CURRENCY}"


def to_cents(amount):
    if amount is None:
        return None
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents):
    return None if cents is None else round(cents / 100, 2)


def iso(dt):
    return dt.isoformat() if dt else None


def make_number(prefix: str) -> str:
    """ORD-1718000000000-K3J9X0QZ2 style reference numbers."""
    tail = "".join(secrets.choice(_ALNUM) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{tail}"


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug or "item"


def is_safe_url(target):
    ref_url = urlparse(request.host_url)
    test_url = urlparse(urljoin(request.host_url, target))
    return test_url.scheme in ("http", "https") and ref_url.netloc == test_url.netloc


def page_args(default_limit=None):
    page = max(1, request.args.get("page", type=int, default=1) or 1)
    limit = request.args.get("limit", type=int, default=default_limit or PAGE_SIZE) or PAGE_SIZE
    return page, max(1, min(limit, 200))


def paginate(db, stmt, page=1, limit=PAGE_SIZE):
    """Run ``stmt`` for one page; returns (rows, pagination dict)."""
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    rows = db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().unique().all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def matches(query, *values) -> bool:
    """Case-insensitive substring search over already-fetched rows."""
    if not query:
        return True
    q = query.strip().lower()
    return any(q in str(v).lower() for v in values if v is not None)
