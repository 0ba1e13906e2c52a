"""API tests for CSV / Excel bulk import."""

import io
import logging
from datetime import datetime
from decimal import Decimal

from openpyxl import Workbook

HEADER = (
    "company,campaign_name,date_from,date_to,customer_invoice_number,"
    "customer_amount_without_tax,customer_received_amount_without_tax,"
    "vendor_name,vendor_paid_amount_without_tax,customer_payment_status\n"
)


def _upload_csv(client, body: str, filename: str = "invoices.csv"):
    return client.post(
        "/api/invoices/import",
        files={"file": (filename, (HEADER + body).encode("utf-8"), "text/csv")},
    )


def test_csv_import_derives_fields(client):
    resp = _upload_csv(
        client,
        "Acme Foods,Diwali Push,2024-10-01,2024-10-31,A,10000,10000,PrintCo,7000,Clear\n"
        "Acme Foods,Diwali Push,2024/10/01,Oct 31 2024,B,\"5,000\",5000,PrintCo,6000,\n",
    )
    assert resp.status_code == 200, resp.text
    summary = resp.json()
    assert summary == {"total_rows": 2, "imported": 2, "skipped_duplicates": 0, "errors": []}

    invoices = {i["customer_invoice_number"]: i for i in client.get("/api/invoices").json()}
    assert Decimal(invoices["A"]["customer_amount_with_tax"]) == Decimal("11800.00")
    assert invoices["A"]["customer_payment_status"] == "Clear"
    assert Decimal(invoices["B"]["customer_amount_without_tax"]) == Decimal("5000")
    assert Decimal(invoices["B"]["profit"]) == Decimal("-1000")
    assert invoices["B"]["customer_payment_status"] == "Pending"


def test_csv_import_skips_duplicates(client):
    row = "Acme Foods,Diwali Push,2024-10-01,2024-10-31,A,100,100,,0,\n"
    assert _upload_csv(client, row).json()["imported"] == 1
    summary = _upload_csv(client, row + row).json()
    assert summary["imported"] == 0
    assert summary["skipped_duplicates"] == 2


def test_csv_import_reports_bad_rows_instead_of_coercing(client):
    resp = _upload_csv(
        client,
        "Acme Foods,Diwali Push,2024-10-01,2024-10-31,A,abc,0,,0,\n"
        "Acme Foods,Diwali Push,2024-10-01,2024-10-31,B,-10,0,,0,\n"
        "Acme Foods,Diwali Push,not a date,2024-10-31,C,10,0,,0,\n"
        "Acme Foods,Diwali Push,2024-10-01,2024-10-31,,10,0,,0,\n"
        "Acme Foods,Diwali Push,2024-10-01,2024-10-31,E,10,0,,0,Paid\n"
        "Acme Foods,Diwali Push,2024-10-01,2024-10-31,F,10,0,,0,\n",
    )
    summary = resp.json()
    assert summary["total_rows"] == 6
    assert summary["imported"] == 1
    errors = summary["errors"]
    assert len(errors) == 5
    assert errors[0].startswith("Row 2: Invalid amount")
    assert errors[1].startswith("Row 3: Invalid amount")
    assert errors[2].startswith("Row 4: invalid date")
    assert errors[3] == "Row 5: Please fill in: customer_invoice_number"
    assert errors[4].startswith("Row 6: invalid customer_payment_status")


def test_csv_import_requires_columns(client):
    resp = client.post(
        "/api/invoices/import",
        files={"file": ("invoices.csv", b"company,campaign_name\nAcme,Launch\n", "text/csv")},
    )
    assert resp.status_code == 400


def test_import_rejects_other_file_types(client):
    resp = client.post("/api/invoices/import", files={"file": ("invoices.txt", b"hello", "text/plain")})
    assert resp.status_code == 400


def test_excel_import(client):
    wb = Workbook()
    ws = wb.active
    ws.append(["Company", "Campaign_Name", "Date_From", "Date_To", "Customer_Invoice_Number",
               "Customer_Received_Amount_Without_Tax", "Vendor_Paid_Amount_Without_Tax"])
    ws.append(["Acme Foods", "Diwali Push", datetime(2024, 10, 1), datetime(2024, 10, 31), "X-1", 10000, 7000])
    ws.append([None] * 7)
    buf = io.BytesIO()
    wb.save(buf)

    resp = client.post(
        "/api/invoices/import",
        files={"file": ("invoices.xlsx", buf.getvalue(),
                        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["imported"] == 1

    inv = client.get("/api/invoices").json()[0]
    assert inv["date_from"] == "2024-10-01"
    assert Decimal(inv["margin"]) == Decimal("30")


def test_csv_import_reports_out_of_range_amount(client):
    resp = _upload_csv(
        client,
        "Acme Foods,Diwali Push,2024-10-01,2024-10-31,A,1e30,0,,0,\n"
        "Acme Foods,Diwali Push,2024-10-01,2024-10-31,B,10,0,,0,\n",
    )
    assert resp.status_code == 200, resp.text
    summary = resp.json()
    assert summary["imported"] == 1
    assert len(summary["errors"]) == 1
    assert summary["errors"][0].startswith("Row 2: Invalid amount")


def test_csv_import_stores_amounts_at_cents(client):
    assert _upload_csv(client, "Acme Foods,Diwali Push,2024-10-01,2024-10-31,A,0.085,0,,0,\n").json()["imported"] == 1
    inv = client.get("/api/invoices").json()[0]
    assert Decimal(inv["customer_amount_without_tax"]) == Decimal("0.09")
    assert Decimal(inv["customer_amount_with_tax"]) == Decimal("0.11")


def test_import_reports_database_failure(client, break_flush, caplog):
    break_flush()
    with caplog.at_level(logging.ERROR):
        resp = _upload_csv(client, "Acme Foods,Diwali Push,2024-10-01,2024-10-31,A,10,0,,0,\n")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Error importing invoices"}
    records = [r for r in caplog.records if r.getMessage() == "Error importing csv rows"]
    assert len(records) == 1
    assert records[0].exc_info is not None
