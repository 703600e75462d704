from storefront import __version__


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok", "database": "ok", "version": __version__}


def test_unknown_api_route_is_json(client):
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    assert res.get_json() == {"success": False, "error": "Not found"}


def test_unknown_page_renders_html(client):
    res = client.get("/definitely-missing")
    assert res.status_code == 404
    assert b"<html" in res.data.lower()


def test_pages_redirect_anonymous_users_to_login(client):
    res = client.get("/checkout")
    assert res.status_code == 302
    assert "/login" in res.headers["Location"]
