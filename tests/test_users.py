"""Accounts: registration, login and super-admin user management."""
from storefront.db import main_session
from storefront.models import User

from conftest import make_user


def test_register_logs_in_a_customer(client):
    res = client.post("/api/v1/auth/register", json={"email": "New@Example.com", "password": "hunter22",
                                                     "name": "Newbie"})
    assert res.status_code == 201
    data = res.get_json()["data"]
    assert data["email"] == "new@example.com"
    assert data["role"] == "CUSTOMER"
    assert "password_hash" not in data

    me = client.get("/api/v1/auth/me").get_json()["data"]
    assert me["name"] == "Newbie"


def test_register_rejects_duplicates_and_short_passwords(client, users):
    res = client.post("/api/v1/auth/register", json={"email": "ada@example.com", "password": "hunter22"})
    assert res.status_code == 409
    assert res.get_json()["error"] == "User already exists"

    res = client.post("/api/v1/auth/register", json={"email": "x@example.com", "password": "123"})
    assert res.status_code == 400
    assert res.get_json()["details"][0]["field"] == "password"


def test_login_and_logout(client, users):
    res = client.post("/api/v1/auth/login", json={"email": "ADA@example.com", "password": "secret123"})
    assert res.status_code == 200
    assert res.get_json()["message"] == "Login successful"
    assert client.get("/api/v1/auth/me").status_code == 200

    client.post("/api/v1/auth/logout")
    assert client.get("/api/v1/auth/me").status_code == 401


def test_login_with_wrong_password(client, users):
    res = client.post("/api/v1/auth/login", json={"email": "ada@example.com", "password": "wrong"})
    assert res.status_code == 401
    assert res.get_json()["error"] == "Invalid credentials"


def test_deactivated_account_cannot_log_in(client):
    make_user("gone@example.com", is_active=False)
    res = client.post("/api/v1/auth/login", json={"email": "gone@example.com", "password": "secret123"})
    assert res.status_code == 403
    assert res.get_json()["error"] == "Account is deactivated"


def test_user_management_is_super_admin_only(login_as, admin_client):
    assert login_as("orders@example.com").get("/api/v1/admin/users").status_code == 403

    listed = admin_client.get("/api/v1/admin/users?role=CUSTOMER").get_json()["data"]
    assert {u["email"] for u in listed} == {"ada@example.com", "bob@example.com"}
    found = admin_client.get("/api/v1/admin/users?search=bob").get_json()["data"]
    assert [u["email"] for u in found] == ["bob@example.com"]


def test_promote_and_deactivate(admin_client, customer_client, users):
    url = f"/api/v1/admin/users/{users['customer']}"
    res = admin_client.put(url, json={"role": "ORDER_MANAGER"})
    assert res.get_json()["data"]["role"] == "ORDER_MANAGER"

    admin_client.patch(url, json={"is_active": False})
    # the session of a deactivated user no longer loads
    assert customer_client.get("/api/v1/auth/me").status_code == 401


def test_admins_cannot_lock_themselves_out(admin_client, users):
    url = f"/api/v1/admin/users/{users['admin']}"
    res = admin_client.put(url, json={"role": "CUSTOMER"})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Cannot change your own super admin role"

    res = admin_client.put(url, json={"is_active": False})
    assert res.get_json()["error"] == "Cannot deactivate your own account"

    res = admin_client.delete(url)
    assert res.get_json()["error"] == "Cannot delete your own account"


def test_users_with_orders_are_kept(admin_client, customer_client, catalog, place_order, users):
    place_order(customer_client, (catalog.tee, 1))
    res = admin_client.delete(f"/api/v1/admin/users/{users['customer']}")
    assert res.status_code == 400
    assert res.get_json()["error"].startswith("Cannot delete a user with orders")

    assert admin_client.delete(f"/api/v1/admin/users/{users['other']}").status_code == 200
    with main_session() as db:
        assert db.get(User, users["other"]) is None
