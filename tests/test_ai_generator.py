"""AI product generation with the model client replaced by a canned reply."""
import json

import pytest

from storefront.errors import ApiError
from storefront.services.ai_generator import build_prompt, parse_response

LISTING = {
    "name": "Trail Runner 2",
    "short_description": "Light trail shoe",
    "long_description": "Grippy and light.",
    "suggested_price": "$1,299.00",
    "suggested_compare_price": 1599,
    "specifications": {"Weight": "240 g", "Drop": 6, "Empty": None},
    "custom_fields": {"warranty": "1 year"},
    "features": ["Vibram sole", "Rock plate"],
    "tags": ["running", "trail"],
    "seo_title": "Trail Runner 2 shoes",
    "seo_description": "Light trail running shoe",
}


def test_parse_plain_json():
    assert parse_response('{"name": "A"}') == {"name": "A"}


def test_parse_fenced_json():
    reply = 'Here you go:\n```json\n{"name": "B", "tags": ["x"]}\n```\nEnjoy!'
    assert parse_response(reply) == {"name": "B", "tags": ["x"]}


def test_parse_json_embedded_in_prose():
    assert parse_response('Sure! {"name": "C"} Let me know.') == {"name": "C"}


def test_parse_failure_is_a_bad_gateway():
    with pytest.raises(ApiError) as err:
        parse_response("I cannot help with that.")
    assert err.value.status == 502


def test_prompt_mentions_inputs():
    prompt = build_prompt("Trail Runner 2", "Sports", category="Shoes")
    assert "Product Name: Trail Runner 2" in prompt
    assert "Category: Shoes" in prompt
    assert "Brand: Not specified" in prompt
    assert "tailored to the Sports industry" in prompt


def test_generate_returns_normalised_listing(admin_client, catalog, fake_ai):
    fake = fake_ai("```json\n" + json.dumps(LISTING) + "\n```")
    res = admin_client.post("/api/v1/admin/products/generate", json={
        "product_name": "Trail Runner 2", "industry": "Sports", "category_id": catalog.category_id,
        "brand_id": catalog.brand_id,
    })
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["slug"] == "trail-runner-2"
    assert data["sku"].startswith("TRA-")
    assert data["price"] == 1299.0
    assert data["compare_price"] == 1599.0
    assert data["specifications"] == {"Weight": "240 g", "Drop": "6"}
    assert data["features"] == ["Vibram sole", "Rock plate"]
    assert data["seo_desc"] == "Light trail running shoe"

    prompt = fake.calls[0]["messages"][0]["content"]
    assert "Category: Apparel" in prompt
    assert "Brand: Acme" in prompt


def test_generate_and_save_creates_inactive_draft(admin_client, catalog, fake_ai):
    fake_ai(json.dumps(LISTING))
    res = admin_client.post("/api/v1/admin/products/generate", json={
        "product_name": "Trail Runner 2", "category_id": catalog.category_id, "save": True,
    })
    assert res.status_code == 201
    product = res.get_json()["data"]
    assert product["is_active"] is False
    assert product["custom_fields"]["features"] == "Vibram sole; Rock plate"
    assert product["custom_fields"]["warranty"] == "1 year"

    public = admin_client.get("/api/v1/products?search=trail").get_json()["data"]
    assert public == []


def test_saving_needs_a_category(admin_client, catalog, fake_ai):
    fake_ai(json.dumps(LISTING))
    res = admin_client.post("/api/v1/admin/products/generate", json={"product_name": "Trail Runner 2",
                                                                      "save": True})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Select a category before saving the generated product"


def test_unparseable_reply(admin_client, users, fake_ai):
    fake_ai("Sorry, no.")
    res = admin_client.post("/api/v1/admin/products/generate", json={"product_name": "Widget"})
    assert res.status_code == 502
    assert res.get_json()["error"] == "Could not parse AI response"


def test_generator_without_api_key(admin_client, users):
    res = admin_client.post("/api/v1/admin/products/generate", json={"product_name": "Widget"})
    assert res.status_code == 503
    assert res.get_json()["error"] == "AI generator not configured"


def test_customers_cannot_generate(customer_client, fake_ai):
    fake_ai("{}")
    assert customer_client.post("/api/v1/admin/products/generate",
                                json={"product_name": "Widget"}).status_code == 403


def test_parse_rejects_a_fenced_list():
    with pytest.raises(ApiError):
        parse_response("```json\n[1, 2]\n```")


def test_generate_tolerates_mistyped_fields(admin_client, catalog, fake_ai):
    fake_ai(json.dumps(dict(LISTING, name=["Trail"], seo_title=42, features="Vibram sole",
                            tags="running, trail", long_description={"text": "x"})))
    res = admin_client.post("/api/v1/admin/products/generate", json={"product_name": "Trail Runner 2"})
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["name"] == "Trail Runner 2"
    assert data["seo_title"] is None
    assert data["features"] == ["Vibram sole"]
    assert data["tags"] == ["running", "trail"]
    assert data["description"] == ""
