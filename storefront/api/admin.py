from flask import Blueprint, Response, request

from storefront.api import arg_bool, ok, parse
from storefront.auth import admin_required, current_user_id, roles_required
from storefront.db import main_session
from storefront.helpers import page_args
from storefront.schemas import (
    AttributeIn, BrandIn, CategoryIn, ContentBlockIn, CouponIn, DealIn, GenerateIn, InventoryUpdate,
    ProductIn, ShippingMethodIn, UserUpdate,
)
from storefront.services import ai_generator, audit, catalog, export, marketing, orders, users

admin_api = Blueprint("admin_api", __name__, url_prefix="/api/v1/admin")

content_required = roles_required("SUPER_ADMIN", "CONTENT_MANAGER")
super_admin_required = roles_required("SUPER_ADMIN")

# ---------- Attributes ----------
@admin_api.get("/attributes")
@admin_required
def attributes_list():
    with main_session() as db:
        return ok([a.to_dict() for a in catalog.list_attributes(db, request.args.get("q"))])

@admin_api.post("/attributes")
@admin_required
def attributes_create():
    data = parse(AttributeIn)
    with main_session() as db:
        attr = catalog.create_attribute(db, data, current_user_id())
        db.commit()
        return ok(attr.to_dict(), 201, message="Attribute created successfully")

@admin_api.get("/attributes/<int:attribute_id>")
@admin_required
def attributes_get(attribute_id):
    with main_session() as db:
        return ok(catalog.get_attribute(db, attribute_id).to_dict())

@admin_api.put("/attributes/<int:attribute_id>")
@admin_required
def attributes_update(attribute_id):
    data = parse(AttributeIn)
    with main_session() as db:
        attr = catalog.update_attribute(db, attribute_id, data, current_user_id())
        db.commit()
        return ok(attr.to_dict(), message="Attribute updated successfully")

@admin_api.delete("/attributes/<int:attribute_id>")
@admin_required
def attributes_delete(attribute_id):
    with main_session() as db:
        catalog.delete_attribute(db, attribute_id, current_user_id())
        db.commit()
    return ok(message="Attribute deleted successfully")

# ---------- Brands ----------
@admin_api.get("/brands")
@admin_required
def brands_list():
    with main_session() as db:
        return ok([b.to_dict(count) for b, count in catalog.list_brands(db, request.args.get("q"))])

@admin_api.post("/brands")
@admin_required
def brands_create():
    data = parse(BrandIn)
    with main_session() as db:
        brand = catalog.create_brand(db, data, current_user_id())
        db.commit()
        return ok(brand.to_dict(), 201, message="Brand created successfully")

@admin_api.get("/brands/<int:brand_id>")
@admin_required
def brands_get(brand_id):
    with main_session() as db:
        return ok(catalog.get_brand(db, brand_id).to_dict())

@admin_api.put("/brands/<int:brand_id>")
@admin_required
def brands_update(brand_id):
    data = parse(BrandIn)
    with main_session() as db:
        brand = catalog.update_brand(db, brand_id, data, current_user_id())
        db.commit()
        return ok(brand.to_dict(), message="Brand updated successfully")

@admin_api.delete("/brands/<int:brand_id>")
@admin_required
def brands_delete(brand_id):
    with main_session() as db:
        catalog.delete_brand(db, brand_id, current_user_id())
        db.commit()
    return ok(message="Brand deleted successfully")

# ---------- Categories ----------
@admin_api.get("/categories")
@admin_required
def categories_list():
    with main_session() as db:
        rows = catalog.list_categories(db, request.args.get("q"))
        return ok([c.to_dict(count) for c, count in rows])

@admin_api.post("/categories")
@admin_required
def categories_create():
    data = parse(CategoryIn)
    with main_session() as db:
        cat = catalog.create_category(db, data, current_user_id())
        db.commit()
        return ok(cat.to_dict(), 201, message="Category created successfully")

@admin_api.get("/categories/<int:category_id>")
@admin_required
def categories_get(category_id):
    with main_session() as db:
        return ok(catalog.get_category(db, category_id).to_dict())

@admin_api.put("/categories/<int:category_id>")
@admin_required
def categories_update(category_id):
    data = parse(CategoryIn)
    with main_session() as db:
        cat = catalog.update_category(db, category_id, data, current_user_id())
        db.commit()
        return ok(cat.to_dict(), message="Category updated successfully")

@admin_api.delete("/categories/<int:category_id>")
@admin_required
def categories_delete(category_id):
    with main_session() as db:
        catalog.delete_category(db, category_id, current_user_id())
        db.commit()
    return ok(message="Category deleted successfully")

# ---------- Products ----------
@admin_api.get("/products")
@admin_required
def products_list():
    page, limit = page_args()
    with main_session() as db:
        rows, pagination = catalog.list_products(
            db, q=request.args.get("search") or request.args.get("q"),
            category_id=request.args.get("category_id", type=int),
            brand_id=request.args.get("brand_id", type=int),
            active=arg_bool("is_active"), page=page, limit=limit,
        )
        return ok([p.to_dict() for p in rows], pagination=pagination)

@admin_api.post("/products")
@admin_required
def products_create():
    data = parse(ProductIn)
    with main_session() as db:
        product = catalog.create_product(db, data, current_user_id())
        db.commit()
        return ok(product.to_dict(), 201, message="Product created successfully")

@admin_api.get("/products/<int:product_id>")
@admin_required
def products_get(product_id):
    with main_session() as db:
        return ok(catalog.get_product(db, product_id).to_dict())

@admin_api.put("/products/<int:product_id>")
@admin_required
def products_update(product_id):
    data = parse(ProductIn)
    with main_session() as db:
        product = catalog.update_product(db, product_id, data, current_user_id())
        db.commit()
        return ok(product.to_dict(), message="Product updated successfully")

@admin_api.delete("/products/<int:product_id>")
@admin_required
def products_delete(product_id):
    with main_session() as db:
        catalog.delete_product(db, product_id, current_user_id())
        db.commit()
    return ok(message="Product deleted successfully")

@admin_api.post("/products/generate")
@admin_required
def products_generate():
    """Generate a listing; with ``"save": true`` also store it as an inactive product."""
    body = request.get_json(silent=True) or {}
    data = GenerateIn.model_validate(body)
    with main_session() as db:
        generated = ai_generator.generate(db, data)
        if not body.get("save"):
            return ok(generated)
        product = ai_generator.save_generated(db, generated, current_user_id())
        db.commit()
        return ok(product.to_dict(), 201, message="Product generated and saved as draft")

# ---------- Inventory ----------
@admin_api.get("/inventory")
@admin_required
def inventory_list():
    with main_session() as db:
        rows = catalog.list_inventory(db, request.args.get("q"), request.args.get("status"))
        return ok([i.to_dict() for i in rows])

@admin_api.put("/inventory/<int:inventory_id>")
@admin_required
def inventory_update(inventory_id):
    data = parse(InventoryUpdate)
    with main_session() as db:
        item = catalog.update_inventory(db, inventory_id, data, current_user_id())
        db.commit()
        return ok(item.to_dict(), message="Inventory updated successfully")

# ---------- Coupons ----------
@admin_api.get("/coupons")
@admin_required
def coupons_list():
    page, limit = page_args()
    with main_session() as db:
        rows, pagination = marketing.list_coupons(db, request.args.get("q"), page, limit)
        return ok([c.to_dict() for c in rows], pagination=pagination)

@admin_api.post("/coupons")
@admin_required
def coupons_create():
    data = parse(CouponIn)
    with main_session() as db:
        coupon = marketing.create_coupon(db, data, current_user_id())
        db.commit()
        return ok(coupon.to_dict(), 201, message="Coupon created successfully")

@admin_api.get("/coupons/<int:coupon_id>")
@admin_required
def coupons_get(coupon_id):
    with main_session() as db:
        return ok(marketing.get_coupon(db, coupon_id).to_dict())

@admin_api.put("/coupons/<int:coupon_id>")
@admin_required
def coupons_update(coupon_id):
    data = parse(CouponIn)
    with main_session() as db:
        coupon = marketing.update_coupon(db, coupon_id, data, current_user_id())
        db.commit()
        return ok(coupon.to_dict(), message="Coupon updated successfully")

@admin_api.delete("/coupons/<int:coupon_id>")
@admin_required
def coupons_delete(coupon_id):
    with main_session() as db:
        marketing.delete_coupon(db, coupon_id, current_user_id())
        db.commit()
    return ok(message="Coupon deleted successfully")

# ---------- Deals ----------
@admin_api.get("/deals")
@admin_required
def deals_list():
    page, limit = page_args(10)
    with main_session() as db:
        rows, pagination = marketing.list_deals(db, request.args.get("status"), request.args.get("q"),
                                                page, limit)
        return ok([d.to_dict() for d in rows], pagination=pagination)

@admin_api.post("/deals")
@admin_required
def deals_create():
    data = parse(DealIn)
    with main_session() as db:
        deal = marketing.create_deal(db, data, current_user_id())
        db.commit()
        return ok(deal.to_dict(), 201, message="Deal created successfully")

@admin_api.get("/deals/<int:deal_id>")
@admin_required
def deals_get(deal_id):
    with main_session() as db:
        return ok(marketing.get_deal(db, deal_id).to_dict())

@admin_api.put("/deals/<int:deal_id>")
@admin_required
def deals_update(deal_id):
    data = parse(DealIn)
    with main_session() as db:
        deal = marketing.update_deal(db, deal_id, data, current_user_id())
        db.commit()
        return ok(deal.to_dict(), message="Deal updated successfully")

@admin_api.delete("/deals/<int:deal_id>")
@admin_required
def deals_delete(deal_id):
    with main_session() as db:
        marketing.delete_deal(db, deal_id, current_user_id())
        db.commit()
    return ok(message="Deal deleted successfully")

# ---------- Content ----------
@admin_api.get("/content")
@content_required
def content_list():
    with main_session() as db:
        rows = marketing.list_content(db, request.args.get("q"), request.args.get("type"))
        return ok([b.to_dict() for b in rows])

@admin_api.post("/content")
@content_required
def content_create():
    data = parse(ContentBlockIn)
    with main_session() as db:
        block = marketing.create_content(db, data, current_user_id())
        db.commit()
        return ok(block.to_dict(), 201, message="Content block created successfully")

@admin_api.get("/content/<int:block_id>")
@content_required
def content_get(block_id):
    with main_session() as db:
        return ok(marketing.get_content(db, block_id).to_dict())

@admin_api.put("/content/<int:block_id>")
@content_required
def content_update(block_id):
    data = parse(ContentBlockIn)
    with main_session() as db:
        block = marketing.update_content(db, block_id, data, current_user_id())
        db.commit()
        return ok(block.to_dict(), message="Content block updated successfully")

@admin_api.delete("/content/<int:block_id>")
@content_required
def content_delete(block_id):
    with main_session() as db:
        marketing.delete_content(db, block_id, current_user_id())
        db.commit()
    return ok(message="Content block deleted successfully")

# ---------- Shipping methods ----------
@admin_api.get("/shipping-methods")
@admin_required
def shipping_list():
    with main_session() as db:
        rows = orders.list_shipping_methods(db, arg_bool("is_active"), request.args.get("q"))
        return ok([m.to_dict() for m in rows])

@admin_api.post("/shipping-methods")
@admin_required
def shipping_create():
    data = parse(ShippingMethodIn)
    with main_session() as db:
        method = orders.create_shipping_method(db, data, current_user_id())
        db.commit()
        return ok(method.to_dict(), 201, message="Shipping method created successfully")

@admin_api.put("/shipping-methods/<int:method_id>")
@admin_required
def shipping_update(method_id):
    data = parse(ShippingMethodIn)
    with main_session() as db:
        method = orders.update_shipping_method(db, method_id, data, current_user_id())
        db.commit()
        return ok(method.to_dict(), message="Shipping method updated successfully")

@admin_api.delete("/shipping-methods/<int:method_id>")
@admin_required
def shipping_delete(method_id):
    with main_session() as db:
        orders.delete_shipping_method(db, method_id, current_user_id())
        db.commit()
    return ok(message="Shipping method deleted successfully")

# ---------- Users ----------
@admin_api.get("/users")
@super_admin_required
def users_list():
    with main_session() as db:
        rows = users.list_users(db, request.args.get("search") or request.args.get("q"), request.args.get("role"))
        return ok([u.to_dict() for u in rows])

@admin_api.patch("/users/<int:user_id>")
@admin_api.put("/users/<int:user_id>")
@super_admin_required
def users_update(user_id):
    data = parse(UserUpdate)
    with main_session() as db:
        user = users.update_user(db, user_id, data, current_user_id())
        db.commit()
        return ok(user.to_dict(), message="User updated successfully")

@admin_api.delete("/users/<int:user_id>")
@super_admin_required
def users_delete(user_id):
    with main_session() as db:
        users.delete_user(db, user_id, current_user_id())
        db.commit()
    return ok(message="User deleted successfully")

# ---------- Export & audit ----------
@admin_api.get("/export")
@admin_required
def export_data():
    ids = [int(i) for i in request.args.get("ids", "").split(",") if i.strip().isdigit()]
    with main_session() as db:
        filename, body = export.export_csv(db, request.args.get("type"), ids)
    return Response(body, mimetype="text/csv",
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})

@admin_api.get("/audit-trail")
@super_admin_required
def audit_trail():
    limit = min(request.args.get("limit", type=int, default=100) or 100, 500)
    with main_session() as db:
        rows = audit.list_audit(db, request.args.get("table"), limit)
        return ok([a.to_dict() for a in rows])
