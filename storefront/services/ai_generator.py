"""
AI product generator.

Asks the hosted model for a full product listing as JSON and turns the reply
into a draft (inactive) product the admin can review before publishing.
"""
import json
import re
import time
from typing import Any, Dict, Optional

import anthropic
from pydantic import ValidationError

from storefront import config
from storefront.errors import ApiError, validation_details
from storefront.helpers import slugify
from storefront.models import Brand, Category
from storefront.notify import log
from storefront.schemas import ProductIn
from storefront.services.catalog import create_product

FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")


def get_client():
    if not config.ANTHROPIC_API_KEY:
        raise ApiError("AI generator not configured", status=503)
    return anthropic.Anthropic(api_key=config.ANTHROPIC_API_KEY)


def build_prompt(product_name: str, industry: str, category: Optional[str] = None,
                 brand: Optional[str] = None, additional_info: Optional[str] = None) -> str:
    return f"""Generate a comprehensive product listing for an e-commerce platform:

Product Name: {product_name}
Industry: {industry}
Category: {category or 'Not specified'}
Brand: {brand or 'Not specified'}
Additional Info: {additional_info or 'None'}

Reply with a single JSON object with the following structure:
{{
  "name": "{product_name}",
  "short_description": "A brief 1-2 sentence description",
  "long_description": "A comprehensive 3-4 paragraph description highlighting features, benefits, and use cases",
  "suggested_price": "Suggested retail price in {config.CURRENCY}, number only",
  "suggested_compare_price": "Suggested compare-at price (20-30% higher), number only",
  "specifications": {{"key": "value"}},
  "custom_fields": {{"warranty": "warranty period", "certification": "relevant certifications"}},
  "features": ["feature 1", "feature 2", "feature 3", "feature 4", "feature 5"],
  "tags": ["tag1", "tag2", "tag3", "tag4"],
  "seo_title": "SEO optimized title under 60 characters",
  "seo_description": "SEO optimized description under 160 characters"
}}

Include 5-10 relevant technical specifications. Make it professional, accurate,
and tailored to the {industry} industry."""


def parse_response(text: str) -> Dict[str, Any]:
    """Pull the JSON object out of a model reply.

    Tries the raw text, then a ```json fenced block, then the slice from the
    first ``{`` to the last ``}``.
    """
    text = (text or "").strip()
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except ValueError:
        pass

    m = FENCED_JSON.search(text)
    if m:
        try:
            data = json.loads(m.group(1))
            if isinstance(data, dict):
                return data
        except ValueError:
            pass

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except ValueError:
            pass
    raise ApiError("Could not parse AI response", status=502)


def _money(value):
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    m = re.search(r"\d[\d,]*(?:\.\d+)?", str(value))
    if not m:
        return None
    amount = float(m.group(0).replace(",", ""))
    return amount if amount > 0 else None


def _str_map(value):
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v not in (None, "")}


def _text(value, limit):
    if not isinstance(value, str):
        return None
    return value.strip()[:limit] or None


def _str_list(value, sep=None):
    if isinstance(value, str):
        value = value.split(sep) if sep else [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v not in (None, "") and str(v).strip()]


def generate(db, data) -> Dict[str, Any]:
    """Ask the model for a listing and normalise it into product fields."""
    category = db.get(Category, data.category_id) if data.category_id else None
    brand = db.get(Brand, data.brand_id) if data.brand_id else None
    prompt = build_prompt(data.product_name, data.industry, category.name if category else None,
                          brand.name if brand else None, data.additional_info)

    client = get_client()
    started = time.time()
    try:
        message = client.messages.create(
            model=config.AI_MODEL,
            max_tokens=config.AI_MAX_TOKENS,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIError as e:
        log.error(f"AI generation failed for '{data.product_name}': {e}")
        raise ApiError("Failed to generate product details. Please try again.", status=502)

    text = "".join(block.text for block in message.content if getattr(block, "type", "") == "text")
    log.info(f"AI generation for '{data.product_name}' took {time.time() - started:.1f}s")
    raw = parse_response(text)

    name = _text(raw.get("name"), 200) or data.product_name
    return {
        "name": name,
        "slug": slugify(name),
        "sku": f"{data.product_name[:3].upper()}-{str(int(time.time() * 1000))[-6:]}",
        "short_desc": _text(raw.get("short_description"), 500) or "",
        "description": _text(raw.get("long_description"), None) or "",
        "price": _money(raw.get("suggested_price")),
        "compare_price": _money(raw.get("suggested_compare_price")),
        "specifications": _str_map(raw.get("specifications")),
        "custom_fields": _str_map(raw.get("custom_fields")),
        "features": _str_list(raw.get("features")),
        "tags": _str_list(raw.get("tags"), ","),
        "seo_title": _text(raw.get("seo_title"), 200),
        "seo_desc": _text(raw.get("seo_description"), 300),
        "category_id": data.category_id,
        "brand_id": data.brand_id,
    }


def save_generated(db, generated: Dict[str, Any], user_id=None):
    """Store a generated listing as an inactive product."""
    if not generated.get("category_id"):
        raise ApiError("Select a category before saving the generated product")
    if not generated.get("price"):
        raise ApiError("Generated product has no usable price")
    fields = dict(generated, is_active=False)
    features = fields.pop("features", None) or []
    if features:
        fields["custom_fields"] = dict(fields.get("custom_fields") or {}, features="; ".join(features))
    try:
        payload = ProductIn.model_validate(fields)
    except ValidationError as e:
        raise ApiError("Generated product is incomplete", details=validation_details(e))
    return create_product(db, payload, user_id)
