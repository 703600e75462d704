import csv
import io
from datetime import date

import pytest

from storefront.db import main_session
from storefront.errors import ApiError
from storefront.services.export import export_csv


def rows_of(body):
    return list(csv.reader(io.StringIO(body)))


def test_products_csv_download(admin_client, catalog):
    res = admin_client.get("/api/v1/admin/export?type=products")
    assert res.status_code == 200
    assert res.mimetype == "text/csv"
    assert f'products_export_{date.today().isoformat()}.csv' in res.headers["Content-Disposition"]

    rows = rows_of(res.get_data(as_text=True))
    assert rows[0] == ["ID", "Name", "SKU", "Price", "Quantity", "Status", "Category", "Brand", "Created At"]
    by_name = {r[1]: r for r in rows[1:]}
    assert by_name["Tee"][2:8] == ["TEE-1", "25.0", "50", "Active", "Apparel", "Acme"]
    assert by_name["Cap"][5] == "Inactive"


def test_export_selected_ids(admin_client, catalog):
    res = admin_client.get(f"/api/v1/admin/export?type=products&ids={catalog.mug},x")
    rows = rows_of(res.get_data(as_text=True))
    assert [r[1] for r in rows[1:]] == ["Mug"]


def test_users_export_counts_orders(customer_client, admin_client, catalog, place_order):
    place_order(customer_client, (catalog.tee, 1))
    rows = rows_of(admin_client.get("/api/v1/admin/export?type=users").get_data(as_text=True))
    ada = next(r for r in rows if r[1] == "ada@example.com")
    assert ada[3:6] == ["CUSTOMER", "Yes", "1"]
    assert ada[2] == "N/A"


def test_unknown_export_type(admin_client, users):
    res = admin_client.get("/api/v1/admin/export?type=secrets")
    assert res.status_code == 400
    assert res.get_json()["error"] == "Invalid export type"


def test_filename_uses_given_day(users):
    with main_session() as db:
        filename, body = export_csv(db, "content", today=date(2024, 5, 1))
        assert filename == "content_export_2024-05-01.csv"
        assert rows_of(body) == [["Type", "Title", "Order", "Active", "Created", "Updated"]]
        with pytest.raises(ApiError):
            export_csv(db, None)
