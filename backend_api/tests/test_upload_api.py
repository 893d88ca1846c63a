from datetime import datetime

from conftest import build_workbook, rewrite_member
from finance_api.config import get_settings

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def upload(client, headers, content, filename="statement.xlsx"):
    return client.post("/api/upload/excel", files={"file": (filename, content, XLSX)}, headers=headers)


def test_upload_imports_rows(client, auth_headers):
    content = build_workbook(
        [
            (datetime(2024, 3, 1), "Uber ride home", -18.4, "U-1"),
            ("2024-03-02", "Monthly salary", 3200, None),
            ("tomorrow", "Unparsable date", -5, None),
        ]
    )

    response = upload(client, auth_headers, content)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["transactionsProcessed"] == 2
    assert body["skippedRows"] == 1
    ride, salary = body["transactions"]
    assert (ride["type"], ride["amount"], ride["categoryName"], ride["reference"]) == (
        "EXPENSE", 18.4, "Transportation", "U-1",
    )
    assert (salary["type"], salary["categoryName"]) == ("INCOME", "Income")

    listed = client.get("/api/transactions", headers=auth_headers).json()
    assert listed["total"] == 2


def test_upload_requires_auth(client):
    assert upload(client, {}, build_workbook([("2024-01-01", "x", 1)])).status_code == 401


def test_upload_rejects_wrong_extension(client, auth_headers):
    response = upload(client, auth_headers, b"date,description,amount\n", filename="statement.csv")
    assert response.status_code == 400


def test_upload_rejects_corrupt_workbook(client, auth_headers):
    response = upload(client, auth_headers, b"definitely not a spreadsheet")
    assert response.status_code == 400


def test_upload_rejects_oversized_file(client, auth_headers, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_bytes", 10)

    response = upload(client, auth_headers, build_workbook([("2024-01-01", "x", 1)]))
    assert response.status_code == 413


def test_sample_format(client):
    body = client.get("/api/upload/sample-format").json()

    assert set(body["expectedFormat"]) == {"Column A", "Column B", "Column C", "Column D"}
    assert body["notes"]


def test_upload_rejects_truncated_sheet_xml(client, auth_headers):
    content = rewrite_member(
        build_workbook([("2024-01-01", "Coffee", -3)]),
        "xl/worksheets/sheet1.xml",
        lambda data: data[: len(data) // 2],
    )

    response = upload(client, auth_headers, content)
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Could not read Excel file")

