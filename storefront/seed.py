"""Seed a fresh database with a super admin and a small demo catalog.

    python -m storefront.seed

Existing rows (matched by email / slug) are left alone, so it is safe to re-run.
"""
import os
from datetime import datetime, timedelta

from sqlalchemy import select

from storefront.auth import hash_password
from storefront.db import init_db, main_session
from storefront.models import Brand, Category, Product, ShippingMethod, User
from storefront.notify import log, setup_logging
from storefront.schemas import BrandIn, CategoryIn, ContentBlockIn, CouponIn, ProductIn, ShippingMethodIn
from storefront.services import catalog, marketing, orders

CATEGORIES = [
    dict(name="Apparel", slug="apparel", description="Shirts, caps and more"),
    dict(name="Home", slug="home", description="Things for the kitchen and living room"),
]

BRANDS = [
    dict(name="Acme", slug="acme", website="https://example.com"),
]

PRODUCTS = [
    dict(name="T-Shirt", slug="t-shirt", sku="TSH-001", short_desc="Soft cotton tee", price=19.99,
         compare_price=24.99, quantity=50, category="apparel", brand="acme", featured=True,
         images=["https://picsum.photos/seed/tee/600/600"], tags=["cotton", "basics"],
         specifications={"Material": "100% cotton", "Fit": "Regular"}),
    dict(name="Mug", slug="mug", sku="MUG-001", short_desc="Ceramic mug", price=12.99, quantity=8,
         category="home", images=["https://picsum.photos/seed/mug/600/600"], tags=["kitchen"],
         specifications={"Capacity": "350 ml"}),
    dict(name="Cap", slug="cap", sku="CAP-001", short_desc="Adjustable cap", price=15.99, quantity=25,
         category="apparel", brand="acme", images=["https://picsum.photos/seed/cap/600/600"]),
]


def seed_admin(db):
    email = os.getenv("ADMIN_EMAIL", "admin@example.com").lower()
    if db.execute(select(User).where(User.email == email)).scalar_one_or_none():
        return False
    db.add(User(email=email, name="Administrator", role="SUPER_ADMIN",
                password_hash=hash_password(os.getenv("ADMIN_PASSWORD", "changeme"))))
    return True


def seed_catalog(db, admin_id=None):
    cats, brands, created = {}, {}, 0
    for c in CATEGORIES:
        cat = db.execute(select(Category).where(Category.slug == c["slug"])).scalar_one_or_none()
        cats[c["slug"]] = cat or catalog.create_category(db, CategoryIn(**c), admin_id)
    for b in BRANDS:
        brand = db.execute(select(Brand).where(Brand.slug == b["slug"])).scalar_one_or_none()
        brands[b["slug"]] = brand or catalog.create_brand(db, BrandIn(**b), admin_id)
    for p in PRODUCTS:
        if db.execute(select(Product).where(Product.slug == p["slug"])).scalar_one_or_none():
            continue
        fields = dict(p)
        fields["category_id"] = cats[fields.pop("category")].id
        brand = fields.pop("brand", None)
        if brand:
            fields["brand_id"] = brands[brand].id
        catalog.create_product(db, ProductIn(**fields), admin_id)
        created += 1
    return created


def seed_marketing(db, admin_id=None):
    if not marketing.list_content(db):
        marketing.create_content(db, ContentBlockIn(
            type="HERO_BANNER", title=f"Welcome to {os.getenv('SITE_NAME', 'our shop')}",
            content={"subheading": "Free shipping on orders over $100", "link": "/", "button_text": "Shop now"},
        ), admin_id)
    if not marketing.list_coupons(db)[0]:
        now = datetime.utcnow()
        marketing.create_coupon(db, CouponIn(
            code="WELCOME10", description="10% off your first order", type="PERCENTAGE", value=10,
            valid_from=now, valid_until=now + timedelta(days=365),
        ), admin_id)
    if not db.execute(select(ShippingMethod)).first():
        orders.create_shipping_method(db, ShippingMethodIn(name="Standard Shipping", description="5-7 business days",
                                                           cost=9.99), admin_id)
        orders.create_shipping_method(db, ShippingMethodIn(name="Express Shipping", description="2-3 business days",
                                                           type="EXPRESS", cost=19.99, sort_order=1), admin_id)


def main():
    setup_logging()
    init_db()
    with main_session() as db:
        if seed_admin(db):
            print("Created super admin:", os.getenv("ADMIN_EMAIL", "admin@example.com"))
        db.flush()
        admin = db.execute(select(User).where(User.role == "SUPER_ADMIN")).scalars().first()
        created = seed_catalog(db, admin.id if admin else None)
        seed_marketing(db, admin.id if admin else None)
        db.commit()
    log.info(f"Seed complete, {created} products added")
    print("Seeded products:", created)


if __name__ == "__main__":
    main()
