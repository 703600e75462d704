from datetime import datetime

from sqlalchemy import select, func, or_, update

from storefront.errors import ApiError, Conflict, NotFound
from storefront.helpers import matches, paginate, to_cents
from storefront.models import (
    AttributeValue, Brand, Category, Deal, InventoryItem, OrderItem, Product, ProductAttribute, Warranty
)
from storefront.services.audit import log_audit


def _ensure_unique(db, model, column, value, exclude_id, message):
    stmt = select(model.id).where(column == value)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    if db.execute(stmt).first():
        raise Conflict(message)


def _get(db, model, obj_id, label):
    obj = db.get(model, obj_id)
    if not obj:
        raise NotFound(f"{label} not found")
    return obj

# ---------- Attributes ----------
def list_attributes(db, q=None):
    rows = db.execute(select(ProductAttribute).order_by(ProductAttribute.sort_order, ProductAttribute.id)).scalars().all()
    return [a for a in rows if matches(q, a.name, a.slug, a.type)]


def get_attribute(db, attribute_id):
    return _get(db, ProductAttribute, attribute_id, "Attribute")


def _apply_attribute(db, attr, data):
    for field in ("name", "slug", "type", "is_visible", "is_filterable", "sort_order"):
        setattr(attr, field, getattr(data, field))
    if data.values is not None:
        attr.values = [AttributeValue(value=v, sort_order=i) for i, v in enumerate(data.values) if v]


def create_attribute(db, data, user_id=None):
    _ensure_unique(db, ProductAttribute, ProductAttribute.slug, data.slug, None,
                   "Attribute with this slug already exists")
    attr = ProductAttribute()
    _apply_attribute(db, attr, data)
    db.add(attr); db.flush()
    return attr


def update_attribute(db, attribute_id, data, user_id=None):
    attr = get_attribute(db, attribute_id)
    _ensure_unique(db, ProductAttribute, ProductAttribute.slug, data.slug, attr.id,
                   "Attribute with this slug already exists")
    _apply_attribute(db, attr, data)
    db.flush()
    return attr


def delete_attribute(db, attribute_id, user_id=None):
    attr = get_attribute(db, attribute_id)
    if attr.products:
        raise ApiError("Cannot delete attribute with associated products. Please remove associations first.")
    db.delete(attr)
    db.flush()

# ---------- Brands ----------
def list_brands(db, q=None):
    """Brands in display order, each paired with its active product count."""
    counts = dict(db.execute(
        select(Product.brand_id, func.count(Product.id))
        .where(Product.is_active.is_(True), Product.brand_id.is_not(None))
        .group_by(Product.brand_id)
    ).all())
    rows = db.execute(select(Brand).order_by(Brand.sort_order, Brand.name)).scalars().all()
    return [(b, counts.get(b.id, 0)) for b in rows if matches(q, b.name, b.slug, b.description)]


def get_brand(db, brand_id):
    return _get(db, Brand, brand_id, "Brand")


def create_brand(db, data, user_id=None):
    _ensure_unique(db, Brand, Brand.name, data.name, None, "Brand with this name already exists")
    _ensure_unique(db, Brand, Brand.slug, data.slug, None, "Brand with this slug already exists")
    brand = Brand(**data.model_dump())
    db.add(brand); db.flush()
    log_audit(db, user_id, "brands", brand.id, "INSERT", new_values=brand.to_dict())
    return brand


def update_brand(db, brand_id, data, user_id=None):
    brand = get_brand(db, brand_id)
    _ensure_unique(db, Brand, Brand.name, data.name, brand.id, "Brand with this name already exists")
    _ensure_unique(db, Brand, Brand.slug, data.slug, brand.id, "Brand with this slug already exists")
    old = brand.to_dict()
    for k, v in data.model_dump().items():
        setattr(brand, k, v)
    db.flush()
    log_audit(db, user_id, "brands", brand.id, "UPDATE", old_values=old, new_values=brand.to_dict())
    return brand


def delete_brand(db, brand_id, user_id=None):
    brand = get_brand(db, brand_id)
    count = db.scalar(select(func.count(Product.id)).where(Product.brand_id == brand.id))
    if count:
        raise ApiError(f"Cannot delete brand with {count} products. Please reassign or delete products first.")
    old = brand.to_dict()
    db.delete(brand); db.flush()
    log_audit(db, user_id, "brands", brand_id, "DELETE", old_values=old)

# ---------- Categories ----------
def list_categories(db, q=None, active_only=False):
    counts = dict(db.execute(
        select(Product.category_id, func.count(Product.id)).group_by(Product.category_id)
    ).all())
    stmt = select(Category).order_by(Category.sort_order, Category.name)
    if active_only:
        stmt = stmt.where(Category.is_active.is_(True))
    rows = db.execute(stmt).scalars().all()
    return [(c, counts.get(c.id, 0)) for c in rows if matches(q, c.name, c.slug, c.description)]


def get_category(db, category_id):
    return _get(db, Category, category_id, "Category")


def _check_parent(db, data, category_id=None):
    if data.parent_id is None:
        return
    if data.parent_id == category_id:
        raise ApiError("A category cannot be its own parent")
    _get(db, Category, data.parent_id, "Parent category")


def create_category(db, data, user_id=None):
    _ensure_unique(db, Category, Category.slug, data.slug, None, "Category with this slug already exists")
    _check_parent(db, data)
    cat = Category(**data.model_dump())
    db.add(cat); db.flush()
    log_audit(db, user_id, "categories", cat.id, "INSERT", new_values=cat.to_dict())
    return cat


def update_category(db, category_id, data, user_id=None):
    cat = get_category(db, category_id)
    _ensure_unique(db, Category, Category.slug, data.slug, cat.id, "Category with this slug already exists")
    _check_parent(db, data, cat.id)
    old = cat.to_dict()
    for k, v in data.model_dump().items():
        setattr(cat, k, v)
    db.flush()
    log_audit(db, user_id, "categories", cat.id, "UPDATE", old_values=old, new_values=cat.to_dict())
    return cat


def delete_category(db, category_id, user_id=None):
    cat = get_category(db, category_id)
    count = db.scalar(select(func.count(Product.id)).where(Product.category_id == cat.id))
    if count:
        raise ApiError(f"Cannot delete category with {count} products. Please reassign or delete products first.")
    old = cat.to_dict()
    db.delete(cat); db.flush()
    log_audit(db, user_id, "categories", category_id, "DELETE", old_values=old)

# ---------- Products ----------
SORTABLE = {"created_at": Product.created_at, "name": Product.name, "price": Product.price_cents}


def list_products(db, q=None, category_id=None, category_slug=None, brand_id=None, active=None,
                  featured=None, sort_by="created_at", sort_order="desc", page=1, limit=20):
    stmt = select(Product)
    if q:
        like = f"%{q.strip()}%"
        stmt = stmt.where(or_(Product.name.ilike(like), Product.sku.ilike(like), Product.description.ilike(like)))
    if category_id:
        stmt = stmt.where(Product.category_id == category_id)
    if category_slug:
        stmt = stmt.join(Category, Product.category_id == Category.id).where(Category.slug == category_slug)
    if brand_id:
        stmt = stmt.where(Product.brand_id == brand_id)
    if active is not None:
        stmt = stmt.where(Product.is_active.is_(active))
    if featured:
        stmt = stmt.where(Product.featured.is_(True))
    col = SORTABLE.get(sort_by, Product.created_at)
    stmt = stmt.order_by(col.desc() if sort_order == "desc" else col.asc(), Product.id.desc())
    return paginate(db, stmt, page, limit)


def get_product(db, product_id):
    return _get(db, Product, product_id, "Product")


def get_product_by_slug(db, slug, active_only=True):
    stmt = select(Product).where(Product.slug == slug)
    if active_only:
        stmt = stmt.where(Product.is_active.is_(True))
    product = db.execute(stmt).scalar_one_or_none()
    if not product:
        raise NotFound("Product not found")
    return product


def _apply_product(db, product, data):
    _get(db, Category, data.category_id, "Category")
    if data.brand_id is not None:
        _get(db, Brand, data.brand_id, "Brand")
    for field in ("name", "slug", "sku", "description", "short_desc", "images", "tags",
                  "specifications", "custom_fields", "is_active", "featured", "seo_title",
                  "seo_desc", "category_id", "brand_id"):
        setattr(product, field, getattr(data, field))
    product.price_cents = to_cents(data.price)
    product.compare_price_cents = to_cents(data.compare_price)
    product.cost_price_cents = to_cents(data.cost_price)
    if data.attribute_ids:
        attrs = db.execute(select(ProductAttribute).where(ProductAttribute.id.in_(data.attribute_ids))).scalars().all()
        if len(attrs) != len(set(data.attribute_ids)):
            raise NotFound("One or more attributes not found")
        product.attributes = list(attrs)
    else:
        product.attributes = []


def create_product(db, data, user_id=None):
    _ensure_unique(db, Product, Product.slug, data.slug, None, "Product with this slug already exists")
    _ensure_unique(db, Product, Product.sku, data.sku, None, "Product with this SKU already exists")
    product = Product()
    _apply_product(db, product, data)
    product.inventory = InventoryItem(quantity=data.quantity)
    db.add(product); db.flush()
    log_audit(db, user_id, "products", product.id, "INSERT", new_values=product.to_dict())
    return product


def update_product(db, product_id, data, user_id=None):
    product = get_product(db, product_id)
    _ensure_unique(db, Product, Product.slug, data.slug, product.id, "Product with this slug already exists")
    _ensure_unique(db, Product, Product.sku, data.sku, product.id, "Product with this SKU already exists")
    old = product.to_dict()
    _apply_product(db, product, data)
    if "quantity" in data.model_fields_set:
        if product.inventory is None:
            product.inventory = InventoryItem(quantity=data.quantity)
        else:
            product.inventory.quantity = data.quantity
    db.flush()
    log_audit(db, user_id, "products", product.id, "UPDATE", old_values=old, new_values=product.to_dict())
    return product


def set_product_active(db, product_id, active, user_id=None):
    product = get_product(db, product_id)
    product.is_active = active
    db.flush()
    log_audit(db, user_id, "products", product.id, "UPDATE", new_values={"is_active": active})
    return product


def delete_product(db, product_id, user_id=None):
    product = get_product(db, product_id)
    if db.execute(select(Warranty.id).where(Warranty.product_id == product.id)).first():
        raise ApiError("Cannot delete product with registered warranties. Deactivate it instead.")
    old = product.to_dict()
    # order history keeps name and sku
    db.execute(update(OrderItem).where(OrderItem.product_id == product.id).values(product_id=None))
    db.delete(product); db.flush()
    log_audit(db, user_id, "products", product_id, "DELETE", old_values=old)


def active_deal(db, product_id, now=None):
    now = now or datetime.utcnow()
    return db.execute(
        select(Deal).where(Deal.product_id == product_id, Deal.is_active.is_(True),
                           Deal.start_date <= now, Deal.end_date >= now)
        .order_by(Deal.discount.desc())
    ).scalars().first()


def effective_price_cents(db, product, now=None):
    deal = active_deal(db, product.id, now)
    return deal.deal_price_cents() if deal else product.price_cents


def related_products(db, product, limit=4):
    return db.execute(
        select(Product).where(Product.category_id == product.category_id, Product.id != product.id,
                              Product.is_active.is_(True))
        .order_by(Product.featured.desc(), Product.created_at.desc()).limit(limit)
    ).scalars().all()

# ---------- Inventory ----------
def list_inventory(db, q=None, status=None):
    rows = db.execute(
        select(InventoryItem).join(Product, InventoryItem.product_id == Product.id).order_by(Product.name)
    ).scalars().all()
    rows = [i for i in rows if matches(q, i.product.name, i.product.sku)]
    if status in ("low", "out", "in"):
        if status == "low":
            # low includes out of stock, as the dashboard counts it
            rows = [i for i in rows if i.stock_status in ("low", "out")]
        else:
            rows = [i for i in rows if i.stock_status == status]
    return rows


def get_inventory(db, inventory_id):
    return _get(db, InventoryItem, inventory_id, "Inventory item")


def update_inventory(db, inventory_id, data, user_id=None):
    item = get_inventory(db, inventory_id)
    for field in ("quantity", "low_stock_threshold", "reorder_point"):
        value = getattr(data, field)
        if value is not None:
            setattr(item, field, value)
    item.last_updated = datetime.utcnow()
    db.flush()
    return item
