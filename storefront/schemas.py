"""Request payload schemas shared by the JSON API and the admin forms."""
from datetime import datetime, timezone
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

AttributeType = Literal["TEXT", "COLOR", "IMAGE", "SELECT"]
ContentType = Literal["HERO_BANNER", "FEATURED_PRODUCTS", "TESTIMONIALS", "CATEGORIES",
                      "INFO_SECTION", "PROMOTION_BANNER"]
CouponType = Literal["PERCENTAGE", "FIXED"]
ShippingType = Literal["FLAT_RATE", "FREE_SHIPPING", "LOCAL_PICKUP", "EXPRESS"]
Role = Literal["CUSTOMER", "ORDER_MANAGER", "FINANCE_MANAGER", "CONTENT_MANAGER", "SUPER_ADMIN"]
PaymentMethod = Literal["CARD", "COD"]
QuoteStatus = Literal["PENDING", "QUOTED", "ACCEPTED", "REJECTED", "EXPIRED"]
ReturnReason = Literal["DEFECTIVE", "WRONG_ITEM", "NOT_AS_DESCRIBED", "CHANGED_MIND",
                       "ARRIVED_LATE", "DAMAGED", "OTHER"]
ReturnStatus = Literal["PENDING", "APPROVED", "REJECTED", "IN_TRANSIT", "RECEIVED", "COMPLETED", "CANCELLED"]
RefundMethod = Literal["ORIGINAL_PAYMENT", "STORE_CREDIT", "BANK_TRANSFER", "GIFT_CARD"]
ClaimStatus = Literal["SUBMITTED", "UNDER_REVIEW", "APPROVED", "REJECTED", "IN_REPAIR", "COMPLETED"]


def _naive_utc(value):
    # stored datetimes are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_naive_utc)]

# amounts are stored as integer cents
MAX_AMOUNT = 10_000_000
MAX_QUANTITY = 1_000_000


class Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, allow_inf_nan=False)


def _url(value):
    if value and not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return value


# ---------- Catalog ----------
class AttributeIn(Payload):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    type: AttributeType = "TEXT"
    is_visible: bool = True
    is_filterable: bool = False
    sort_order: int = Field(default=0, ge=0)
    values: Optional[List[str]] = None


class BrandIn(Payload):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    description: Optional[str] = None
    logo: Optional[str] = None
    website: Optional[str] = None
    sort_order: int = Field(default=0, ge=0)
    is_active: bool = True

    @field_validator("logo", "website")
    @classmethod
    def check_urls(cls, v):
        return _url(v)


class CategoryIn(Payload):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    parent_id: Optional[int] = None
    sort_order: int = Field(default=0, ge=0)
    is_active: bool = True


class ProductIn(Payload):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    sku: str = Field(min_length=1)
    description: Optional[str] = None
    short_desc: Optional[str] = None
    price: float = Field(gt=0, le=MAX_AMOUNT)
    compare_price: Optional[float] = Field(default=None, gt=0, le=MAX_AMOUNT)
    cost_price: Optional[float] = Field(default=None, gt=0, le=MAX_AMOUNT)
    quantity: int = Field(default=0, ge=0, le=MAX_QUANTITY)
    images: List[str] = []
    tags: List[str] = []
    specifications: Dict[str, str] = {}
    custom_fields: Dict[str, str] = {}
    is_active: bool = True
    featured: bool = False
    seo_title: Optional[str] = None
    seo_desc: Optional[str] = None
    category_id: int
    brand_id: Optional[int] = None
    attribute_ids: List[int] = []

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v


class InventoryUpdate(Payload):
    quantity: Optional[int] = Field(default=None, ge=0, le=MAX_QUANTITY)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0, le=MAX_QUANTITY)
    reorder_point: Optional[int] = Field(default=None, ge=0, le=MAX_QUANTITY)


# ---------- Marketing ----------
class ContentBlockIn(Payload):
    type: ContentType
    title: Optional[str] = None
    content: dict = {}
    sort_order: int = Field(default=0, ge=0)
    is_active: bool = True


class CouponIn(Payload):
    code: str = Field(min_length=3, max_length=50)
    description: Optional[str] = None
    type: CouponType
    value: float = Field(gt=0, le=MAX_AMOUNT)
    min_order_value: Optional[float] = Field(default=None, gt=0, le=MAX_AMOUNT)
    max_discount: Optional[float] = Field(default=None, gt=0, le=MAX_AMOUNT)
    usage_limit: Optional[int] = Field(default=None, gt=0)
    per_user_limit: Optional[int] = Field(default=None, gt=0)
    valid_from: UtcDatetime
    valid_until: UtcDatetime
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, v):
        return v.upper()

    @model_validator(mode="after")
    def check_window(self):
        if self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        if self.type == "PERCENTAGE" and self.value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self


class CouponCheck(Payload):
    code: str = Field(min_length=1)
    order_value: float = Field(default=0, ge=0, le=MAX_AMOUNT)


class DealIn(Payload):
    product_id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    discount: int = Field(ge=1, le=99)
    start_date: UtcDatetime
    end_date: UtcDatetime
    is_active: bool = True

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date >= self.end_date:
            raise ValueError("End date must be after start date")
        return self


# ---------- Shipping & orders ----------
class ShippingMethodIn(Payload):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    type: ShippingType = "FLAT_RATE"
    cost: float = Field(ge=0, le=MAX_AMOUNT)
    min_order: Optional[float] = Field(default=None, ge=0, le=MAX_AMOUNT)
    max_order: Optional[float] = Field(default=None, ge=0, le=MAX_AMOUNT)
    cities: List[str] = []
    is_active: bool = True
    sort_order: int = Field(default=0, ge=0)

    @field_validator("cities", mode="before")
    @classmethod
    def split_cities(cls, v):
        if isinstance(v, str):
            return [c.strip() for c in v.split(",") if c.strip()]
        return v or []


class Address(Payload):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=5)
    address: str = Field(min_length=3)
    city: str = Field(min_length=1)
    state: Optional[str] = None
    zip_code: str = Field(min_length=2)
    country: str = "United States"


class OrderLine(Payload):
    product_id: int
    quantity: int = Field(ge=1, le=MAX_QUANTITY)


class OrderIn(Payload):
    items: List[OrderLine] = Field(min_length=1)
    shipping_address: Address
    billing_address: Optional[Address] = None
    shipping_method: str = "standard"
    payment_method: PaymentMethod
    coupon_code: Optional[str] = None
    notes: Optional[str] = None


class OrderCancel(Payload):
    action: Literal["cancel"]


class OrderNoteIn(Payload):
    note: str = Field(min_length=1)
    is_internal: bool = False


# ---------- After-sales ----------
class QuoteIn(Payload):
    email: EmailStr
    name: str = Field(min_length=1)
    phone: str = Field(min_length=10)
    company: Optional[str] = None
    items: List[OrderLine] = Field(min_length=1)
    message: Optional[str] = None


class QuoteUpdate(Payload):
    status: Optional[QuoteStatus] = None
    quoted_amount: Optional[float] = Field(default=None, gt=0, le=MAX_AMOUNT)
    valid_until: Optional[UtcDatetime] = None
    admin_notes: Optional[str] = None


class QuoteConvert(Payload):
    shipping_address: str = Field(min_length=10)
    payment_method: PaymentMethod


class ReturnLine(Payload):
    order_item_id: int
    quantity: int = Field(ge=1, le=MAX_QUANTITY)
    reason: str = ""


class ReturnIn(Payload):
    order_id: int
    reason: ReturnReason
    description: Optional[str] = None
    items: List[ReturnLine] = Field(min_length=1)
    images: List[str] = []


class ReturnUpdate(Payload):
    status: Optional[ReturnStatus] = None
    admin_notes: Optional[str] = None
    tracking_code: Optional[str] = None
    refund_method: Optional[RefundMethod] = None


class WarrantyIn(Payload):
    order_id: int
    product_id: int
    warranty_period: int = Field(ge=1, le=120)


class ClaimIn(Payload):
    warranty_id: int
    issue: str = Field(min_length=1)
    description: str = Field(min_length=10)
    images: List[str] = []


class ClaimUpdate(Payload):
    status: Optional[ClaimStatus] = None
    resolution: Optional[str] = None
    admin_notes: Optional[str] = None


# ---------- Users ----------
class UserUpdate(Payload):
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class RegisterIn(Payload):
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None
    phone: Optional[str] = None


class LoginIn(Payload):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


# ---------- AI ----------
class GenerateIn(Payload):
    product_name: str = Field(min_length=1)
    industry: str = "General"
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    additional_info: Optional[str] = None
