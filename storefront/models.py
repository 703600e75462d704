# storefront/models.py
from datetime import datetime
from urllib.parse import quote
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Numeric, JSON, Table
)
from sqlalchemy.orm import declarative_base, relationship

from storefront.helpers import from_cents, iso

Base = declarative_base()

ROLES = ("CUSTOMER", "ORDER_MANAGER", "FINANCE_MANAGER", "CONTENT_MANAGER", "SUPER_ADMIN")
ADMIN_ROLES = ROLES[1:]

# ----------------- USERS -----------------
class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(200), unique=True, nullable=False)
    name = Column(String(200))
    phone = Column(String(40))
    password_hash = Column(String(200), nullable=False)
    role = Column(String(32), nullable=False, default="CUSTOMER")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    orders = relationship("Order", back_populates="user")

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    def to_dict(self):
        return {
            "id": self.id, "email": self.email, "name": self.name, "phone": self.phone,
            "role": self.role, "is_active": self.is_active, "created_at": iso(self.created_at),
        }

# ----------------- CATALOG -----------------
class Category(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), unique=True, nullable=False)
    description = Column(Text)
    image = Column(String(500))
    parent_id = Column(Integer, ForeignKey("categories.id"))
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    parent = relationship("Category", remote_side=[id])
    products = relationship("Product", back_populates="category")

    def to_dict(self, product_count=None):
        d = {
            "id": self.id, "name": self.name, "slug": self.slug, "description": self.description,
            "image": self.image, "parent_id": self.parent_id, "sort_order": self.sort_order,
            "is_active": self.is_active, "created_at": iso(self.created_at), "updated_at": iso(self.updated_at),
        }
        if product_count is not None:
            d["product_count"] = product_count
        return d

class Brand(Base):
    __tablename__ = "brands"
    id = Column(Integer, primary_key=True)
    name = Column(String(200), unique=True, nullable=False)
    slug = Column(String(200), unique=True, nullable=False)
    description = Column(Text)
    logo = Column(String(500))
    website = Column(String(500))
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    products = relationship("Product", back_populates="brand")

    def to_dict(self, product_count=None):
        d = {
            "id": self.id, "name": self.name, "slug": self.slug, "description": self.description,
            "logo": self.logo, "website": self.website, "sort_order": self.sort_order,
            "is_active": self.is_active, "created_at": iso(self.created_at), "updated_at": iso(self.updated_at),
        }
        if product_count is not None:
            d["product_count"] = product_count
        return d

product_attribute_links = Table(
    "product_attribute_links", Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("attribute_id", Integer, ForeignKey("product_attributes.id", ondelete="CASCADE"), primary_key=True),
)

class ProductAttribute(Base):
    __tablename__ = "product_attributes"
    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), unique=True, nullable=False)
    type = Column(String(16), nullable=False, default="TEXT")  # TEXT|COLOR|IMAGE|SELECT
    is_visible = Column(Boolean, nullable=False, default=True)
    is_filterable = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    values = relationship("AttributeValue", back_populates="attribute", cascade="all, delete-orphan",
                          order_by="AttributeValue.sort_order")
    products = relationship("Product", secondary=product_attribute_links, back_populates="attributes")

    def to_dict(self):
        return {
            "id": self.id, "name": self.name, "slug": self.slug, "type": self.type,
            "is_visible": self.is_visible, "is_filterable": self.is_filterable,
            "sort_order": self.sort_order,
            "values": [v.to_dict() for v in self.values],
            "product_count": len(self.products),
            "created_at": iso(self.created_at),
        }

class AttributeValue(Base):
    __tablename__ = "attribute_values"
    id = Column(Integer, primary_key=True)
    attribute_id = Column(Integer, ForeignKey("product_attributes.id"), nullable=False)
    value = Column(String(200), nullable=False)
    color_code = Column(String(16))
    sort_order = Column(Integer, nullable=False, default=0)
    attribute = relationship("ProductAttribute", back_populates="values")

    def to_dict(self):
        return {"id": self.id, "value": self.value, "color_code": self.color_code, "sort_order": self.sort_order}

class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), unique=True, nullable=False)
    sku = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    short_desc = Column(String(500))
    price_cents = Column(Integer, nullable=False, default=0)
    compare_price_cents = Column(Integer)
    cost_price_cents = Column(Integer)
    images = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    specifications = Column(JSON, default=dict)
    custom_fields = Column(JSON, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    featured = Column(Boolean, nullable=False, default=False)
    seo_title = Column(String(200))
    seo_desc = Column(String(300))
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    brand_id = Column(Integer, ForeignKey("brands.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    category = relationship("Category", back_populates="products")
    brand = relationship("Brand", back_populates="products")
    inventory = relationship("InventoryItem", back_populates="product", uselist=False,
                             cascade="all, delete-orphan")
    attributes = relationship("ProductAttribute", secondary=product_attribute_links, back_populates="products")
    deals = relationship("Deal", back_populates="product", cascade="all, delete-orphan")

    def img_url(self):
        p = ((self.images or [None])[0] or "").strip().replace("\\", "/")
        if not p:
            return "/static/placeholder.svg"
        if p.startswith(("http://", "https://", "/media/", "/static/")):
            if "/" in p:
                head, tail = p.rsplit("/", 1)
                return f"{head}/{quote(tail)}"
            return p
        return "/media/" + quote(p.rsplit("/", 1)[-1])

    def summary(self):
        return {"id": self.id, "name": self.name, "slug": self.slug, "sku": self.sku,
                "price": from_cents(self.price_cents), "images": self.images or []}

    def to_dict(self):
        inv = self.inventory
        return {
            "id": self.id, "name": self.name, "slug": self.slug, "sku": self.sku,
            "description": self.description, "short_desc": self.short_desc,
            "price": from_cents(self.price_cents),
            "compare_price": from_cents(self.compare_price_cents),
            "cost_price": from_cents(self.cost_price_cents),
            "images": self.images or [], "tags": self.tags or [],
            "specifications": self.specifications or {}, "custom_fields": self.custom_fields or {},
            "is_active": self.is_active, "featured": self.featured,
            "seo_title": self.seo_title, "seo_desc": self.seo_desc,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "brand_id": self.brand_id,
            "brand": self.brand.name if self.brand else None,
            "attribute_ids": [a.id for a in self.attributes],
            "quantity": inv.quantity if inv else 0,
            "created_at": iso(self.created_at), "updated_at": iso(self.updated_at),
        }

class InventoryItem(Base):
    __tablename__ = "inventory"
    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), unique=True, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=10)
    reorder_point = Column(Integer, nullable=False, default=5)
    track_quantity = Column(Boolean, nullable=False, default=True)
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    product = relationship("Product", back_populates="inventory")

    @property
    def available(self):
        return self.quantity - self.reserved

    @property
    def stock_status(self):
        if self.available <= 0:
            return "out"
        if self.available <= self.low_stock_threshold:
            return "low"
        return "in"

    def to_dict(self):
        p = self.product
        return {
            "id": self.id, "product_id": self.product_id,
            "product": p.summary() if p else None,
            "quantity": self.quantity, "reserved": self.reserved, "available": self.available,
            "low_stock_threshold": self.low_stock_threshold, "reorder_point": self.reorder_point,
            "track_quantity": self.track_quantity, "stock_status": self.stock_status,
            "last_updated": iso(self.last_updated),
        }

# ----------------- MARKETING -----------------
class ContentBlock(Base):
    __tablename__ = "content_blocks"
    id = Column(Integer, primary_key=True)
    type = Column(String(32), nullable=False)
    title = Column(String(200))
    content = Column(JSON, default=dict)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id, "type": self.type, "title": self.title, "content": self.content or {},
            "sort_order": self.sort_order, "is_active": self.is_active,
            "created_at": iso(self.created_at), "updated_at": iso(self.updated_at),
        }

class Coupon(Base):
    __tablename__ = "coupons"
    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False)
    description = Column(Text)
    type = Column(String(16), nullable=False)  # PERCENTAGE|FIXED
    value = Column(Numeric(10, 2), nullable=False)  # percent, or currency units for FIXED
    min_order_cents = Column(Integer)
    max_discount_cents = Column(Integer)
    usage_limit = Column(Integer)
    usage_count = Column(Integer, nullable=False, default=0)
    per_user_limit = Column(Integer)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id, "code": self.code, "description": self.description, "type": self.type,
            "value": float(self.value), "min_order_value": from_cents(self.min_order_cents),
            "max_discount": from_cents(self.max_discount_cents), "usage_limit": self.usage_limit,
            "usage_count": self.usage_count, "per_user_limit": self.per_user_limit,
            "valid_from": iso(self.valid_from), "valid_until": iso(self.valid_until),
            "is_active": self.is_active, "created_at": iso(self.created_at),
        }

class Deal(Base):
    __tablename__ = "deals"
    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    discount = Column(Integer, nullable=False)  # percent off
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    product = relationship("Product", back_populates="deals")

    def status(self, now=None):
        now = now or datetime.utcnow()
        if self.end_date < now:
            return "expired"
        if not self.is_active:
            return "inactive"
        if self.start_date > now:
            return "upcoming"
        return "active"

    def deal_price_cents(self):
        return round(self.product.price_cents * (100 - self.discount) / 100)

    def to_dict(self):
        return {
            "id": self.id, "product_id": self.product_id, "title": self.title,
            "description": self.description, "discount": self.discount,
            "start_date": iso(self.start_date), "end_date": iso(self.end_date),
            "is_active": self.is_active, "status": self.status(),
            "product": self.product.summary() if self.product else None,
            "deal_price": from_cents(self.deal_price_cents()) if self.product else None,
            "created_at": iso(self.created_at),
        }

# ----------------- SHIPPING & ORDERS -----------------
class ShippingMethod(Base):
    __tablename__ = "shipping_methods"
    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    type = Column(String(32), nullable=False, default="FLAT_RATE")  # FLAT_RATE|FREE_SHIPPING|LOCAL_PICKUP|EXPRESS
    cost_cents = Column(Integer, nullable=False, default=0)
    min_order_cents = Column(Integer)
    max_order_cents = Column(Integer)
    cities = Column(JSON, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id, "name": self.name, "description": self.description, "type": self.type,
            "cost": from_cents(self.cost_cents), "min_order": from_cents(self.min_order_cents),
            "max_order": from_cents(self.max_order_cents), "cities": self.cities or [],
            "is_active": self.is_active, "sort_order": self.sort_order,
        }

class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True)
    order_number = Column(String(64), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"))
    email = Column(String(200), nullable=False)
    name = Column(String(200), nullable=False)
    phone = Column(String(40))
    status = Column(String(32), nullable=False, default="PENDING")
    payment_status = Column(String(32), nullable=False, default="PENDING")  # PENDING|PAID|FAILED|REFUNDED
    payment_method = Column(String(32), nullable=False, default="CARD")  # CARD|COD
    currency = Column(String(8), nullable=False, default="USD")
    subtotal_cents = Column(Integer, nullable=False, default=0)
    tax_cents = Column(Integer, nullable=False, default=0)
    shipping_cents = Column(Integer, nullable=False, default=0)
    discount_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    coupon_code = Column(String(50))
    shipping_method = Column(String(200))
    notes = Column(Text)
    shipping_address = Column(JSON, default=dict)
    billing_address = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="order", cascade="all, delete-orphan",
                                order_by="Transaction.created_at.desc()")
    order_notes = relationship("OrderNote", back_populates="order", cascade="all, delete-orphan",
                               order_by="OrderNote.created_at.desc()")

    def to_dict(self, with_items=True):
        d = {
            "id": self.id, "order_number": self.order_number, "user_id": self.user_id,
            "email": self.email, "name": self.name, "phone": self.phone,
            "status": self.status, "payment_status": self.payment_status,
            "payment_method": self.payment_method, "currency": self.currency,
            "subtotal": from_cents(self.subtotal_cents), "tax_amount": from_cents(self.tax_cents),
            "shipping_amount": from_cents(self.shipping_cents),
            "discount_amount": from_cents(self.discount_cents),
            "total_amount": from_cents(self.total_cents),
            "coupon_code": self.coupon_code, "shipping_method": self.shipping_method,
            "notes": self.notes, "shipping_address": self.shipping_address or {},
            "billing_address": self.billing_address or {},
            "created_at": iso(self.created_at), "updated_at": iso(self.updated_at),
        }
        if with_items:
            d["items"] = [i.to_dict() for i in self.items]
            d["transactions"] = [t.to_dict() for t in self.transactions]
        return d

class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"))
    product_name = Column(String(200), nullable=False)
    product_sku = Column(String(100))
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    def to_dict(self):
        return {
            "id": self.id, "product_id": self.product_id, "product_name": self.product_name,
            "product_sku": self.product_sku, "quantity": self.quantity,
            "unit_price": from_cents(self.unit_price_cents), "total_price": from_cents(self.total_cents),
        }

class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    transaction_id = Column(String(128), unique=True, nullable=False)  # stripe checkout session id
    provider = Column(String(32), nullable=False, default="stripe")
    payment_method = Column(String(32))
    amount_cents = Column(Integer, nullable=False, default=0)
    status = Column(String(32), nullable=False, default="PENDING")  # PENDING|SUCCESS|FAILED
    checkout_url = Column(String(1000))
    gateway_response = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    order = relationship("Order", back_populates="transactions")

    def to_dict(self):
        return {
            "id": self.id, "transaction_id": self.transaction_id, "provider": self.provider,
            "payment_method": self.payment_method, "amount": from_cents(self.amount_cents),
            "status": self.status, "created_at": iso(self.created_at),
        }

class OrderNote(Base):
    __tablename__ = "order_notes"
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"))
    note = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    order = relationship("Order", back_populates="order_notes")
    user = relationship("User")

    def to_dict(self):
        return {
            "id": self.id, "order_id": self.order_id, "note": self.note, "is_internal": self.is_internal,
            "author": (self.user.name or self.user.email) if self.user else None,
            "created_at": iso(self.created_at),
        }

# ----------------- AFTER-SALES -----------------
class Quote(Base):
    __tablename__ = "quotes"
    id = Column(Integer, primary_key=True)
    quote_number = Column(String(64), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"))
    email = Column(String(200), nullable=False)
    name = Column(String(200), nullable=False)
    phone = Column(String(40), nullable=False)
    company = Column(String(200))
    items = Column(JSON, default=list)  # [{"product_id": 1, "quantity": 2}]
    message = Column(Text)
    status = Column(String(32), nullable=False, default="PENDING")
    quoted_amount_cents = Column(Integer)
    valid_until = Column(DateTime)
    admin_notes = Column(Text)
    converted_order_id = Column(Integer, ForeignKey("orders.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    user = relationship("User")

    def to_dict(self):
        return {
            "id": self.id, "quote_number": self.quote_number, "user_id": self.user_id,
            "email": self.email, "name": self.name, "phone": self.phone, "company": self.company,
            "items": self.items or [], "message": self.message, "status": self.status,
            "quoted_amount": from_cents(self.quoted_amount_cents),
            "valid_until": iso(self.valid_until), "admin_notes": self.admin_notes,
            "converted_order_id": self.converted_order_id, "created_at": iso(self.created_at),
        }

class ReturnRequest(Base):
    __tablename__ = "returns"
    id = Column(Integer, primary_key=True)
    return_number = Column(String(64), unique=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reason = Column(String(32), nullable=False)
    description = Column(Text)
    items = Column(JSON, default=list)  # [{"order_item_id", "quantity", "reason"}]
    images = Column(JSON, default=list)
    refund_cents = Column(Integer, nullable=False, default=0)
    refund_method = Column(String(32))
    status = Column(String(32), nullable=False, default="PENDING")
    admin_notes = Column(Text)
    tracking_code = Column(String(100))
    approved_at = Column(DateTime)
    rejected_at = Column(DateTime)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    order = relationship("Order")
    user = relationship("User")

    def to_dict(self):
        return {
            "id": self.id, "return_number": self.return_number, "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "user_id": self.user_id, "customer": self.user.email if self.user else None,
            "reason": self.reason, "description": self.description, "items": self.items or [],
            "images": self.images or [], "refund_amount": from_cents(self.refund_cents),
            "refund_method": self.refund_method, "status": self.status,
            "admin_notes": self.admin_notes, "tracking_code": self.tracking_code,
            "approved_at": iso(self.approved_at), "rejected_at": iso(self.rejected_at),
            "completed_at": iso(self.completed_at), "created_at": iso(self.created_at),
        }

class Warranty(Base):
    __tablename__ = "warranties"
    id = Column(Integer, primary_key=True)
    warranty_number = Column(String(64), unique=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    purchase_date = Column(DateTime, nullable=False)
    warranty_period = Column(Integer, nullable=False)  # months
    expiry_date = Column(DateTime, nullable=False)
    status = Column(String(32), nullable=False, default="ACTIVE")
    created_at = Column(DateTime, default=datetime.utcnow)
    order = relationship("Order")
    product = relationship("Product")
    user = relationship("User")
    claims = relationship("WarrantyClaim", back_populates="warranty", cascade="all, delete-orphan",
                          order_by="WarrantyClaim.created_at.desc()")

    def to_dict(self):
        return {
            "id": self.id, "warranty_number": self.warranty_number, "order_id": self.order_id,
            "order_number": self.order.order_number if self.order else None,
            "product_id": self.product_id, "product": self.product.name if self.product else None,
            "user_id": self.user_id, "customer": self.user.email if self.user else None,
            "purchase_date": iso(self.purchase_date), "warranty_period": self.warranty_period,
            "expiry_date": iso(self.expiry_date), "status": self.status,
            "claims": [c.to_dict() for c in self.claims], "created_at": iso(self.created_at),
        }

class WarrantyClaim(Base):
    __tablename__ = "warranty_claims"
    id = Column(Integer, primary_key=True)
    claim_number = Column(String(64), unique=True, nullable=False)
    warranty_id = Column(Integer, ForeignKey("warranties.id"), nullable=False)
    issue = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    images = Column(JSON, default=list)
    status = Column(String(32), nullable=False, default="SUBMITTED")
    resolution = Column(Text)
    admin_notes = Column(Text)
    resolved_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    warranty = relationship("Warranty", back_populates="claims")

    def to_dict(self):
        return {
            "id": self.id, "claim_number": self.claim_number, "warranty_id": self.warranty_id,
            "issue": self.issue, "description": self.description, "images": self.images or [],
            "status": self.status, "resolution": self.resolution, "admin_notes": self.admin_notes,
            "resolved_at": iso(self.resolved_at), "created_at": iso(self.created_at),
        }

# ----------------- AUDIT -----------------
class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    table_name = Column(String(64), nullable=False)
    record_id = Column(Integer)
    action = Column(String(16), nullable=False)  # INSERT|UPDATE|DELETE
    old_values = Column(JSON)
    new_values = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id, "user_id": self.user_id, "table_name": self.table_name,
            "record_id": self.record_id, "action": self.action,
            "old_values": self.old_values, "new_values": self.new_values,
            "created_at": iso(self.created_at),
        }
