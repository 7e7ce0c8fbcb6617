"""
API tests: Excel import (upload, preview, confirm), history and export
"""

from datetime import datetime
from io import BytesIO

from openpyxl import Workbook, load_workbook

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def workbook_bytes(rows):
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def upload(client, import_type, content, filename="import.xlsx"):
    return client.post(
        "/api/import/upload",
        params={"import_type": import_type},
        files={"file": (filename, content, XLSX)},
    )


class TestImportAPI:

    def test_types_and_template(self, client):
        types = client.get("/api/import/types").json()
        assert len(types) == 7

        response = client.get("/api/import/template/daily_status")
        assert response.status_code == 200
        assert response.headers["content-type"] == XLSX
        sheet = load_workbook(BytesIO(response.content)).worksheets[0]
        assert sheet["A1"].value == "Aircraft Registration"

    def test_rejects_non_excel_upload(self, client):
        response = upload(client, "aircraft", b"a,b,c", filename="data.csv")
        assert response.status_code == 400

    def test_missing_column_rejected(self, client):
        response = upload(client, "aircraft", workbook_bytes([["Registration"], ["HZ-A1"]]))
        assert response.status_code == 400
        assert "Missing required column" in response.json()["detail"]

    def test_daily_status_preview_and_confirm(self, client, aircraft):
        content = workbook_bytes([
            ["Aircraft Registration", "Date", "POS Hours", "NMCM-S Hours", "NMCM-U Hours", "NMCS Hours", "Notes"],
            ["hz-a42", datetime(2025, 1, 1), 24, 2, 2, None, None],
            ["HZ-NOPE", datetime(2025, 1, 1), 24, 0, 0, None, None],
            ["HZ-A42", datetime(2025, 1, 2), 10, 8, 8, None, None],
            ["HZ-A42", datetime(2025, 1, 3), 24, 0, 0, None, "clean day"],
        ])
        preview = upload(client, "daily_status", content)
        assert preview.status_code == 200, preview.text
        data = preview.json()

        assert data["total_rows"] == 4
        assert data["valid_count"] == 2
        assert data["error_count"] == 2
        assert [e["row"] for e in data["errors"]] == [3, 4]
        assert "Unknown aircraft registration" in data["errors"][0]["message"]

        assert client.get("/api/daily-status").json() == [], "preview must not write"

        result = client.post("/api/import/confirm", json={"session_id": data["session_id"]}).json()
        assert result["success_count"] == 2
        assert result["error_count"] == 2

        records = client.get("/api/daily-status").json()
        assert sorted(r["fmc_hours"] for r in records) == [20.0, 24.0]

        again = client.post("/api/import/confirm", json={"session_id": data["session_id"]})
        assert again.status_code == 404

        history = client.get("/api/import/history").json()
        assert len(history) == 1
        assert history[0]["import_type"] == "daily_status"
        log = client.get(f"/api/import/log/{result['import_log_id']}").json()
        assert log["row_count"] == 4

    def test_duplicates_fail_at_confirm(self, client, aircraft):
        content = workbook_bytes([
            ["Registration", "Fleet Group", "Aircraft Type", "MSN", "Owner", "Manufacture Date", "Engines Count", "Status"],
            ["HZ-A42", "A340", "A340-642", "1234", "Royal Flight", "2008-05-01", 4, None],
            ["HZ-B1", "G650ER", "G650ER", "6001", "Royal Flight", "2016-01-01", 2, "Parked"],
        ])
        data = upload(client, "aircraft", content).json()
        assert data["valid_count"] == 2

        result = client.post("/api/import/confirm", json={"session_id": data["session_id"]}).json()
        assert result["success_count"] == 1
        assert result["errors"][0]["row"] == 2
        assert "already exists" in result["errors"][0]["message"]

        parked = client.get("/api/aircraft", params={"status": "parked"}).json()
        assert [a["registration"] for a in parked] == ["HZ-B1"]

    def test_aog_import(self, client, aircraft):
        content = workbook_bytes([
            ["Aircraft", "Defect Description", "Location", "Category", "Start Date", "Start Time", "Finish Date", "Finish Time"],
            ["HZ-A42", "Hydraulic leak", "OERK", "U-MX", "2025-03-01", "08:00", "2025-03-01", "20:30"],
            ["HZ-A42", "Bird strike", "OEJN", "AOG", "2025-03-05", "06:00", None, None],
            ["HZ-A42", "Backwards", "OEJN", "AOG", "2025-03-05", "06:00", "2025-03-04", "06:00"],
        ])
        data = upload(client, "aog_events", content).json()
        assert data["valid_count"] == 2
        assert data["errors"][0]["row"] == 4

        result = client.post("/api/import/confirm", json={"session_id": data["session_id"]}).json()
        assert result["success_count"] == 2

        events = {e["reason_code"]: e for e in client.get("/api/aog-events").json()}
        closed = events["Hydraulic leak"]
        assert closed["current_status"] == "BACK_IN_SERVICE"
        assert closed["category"] == "unscheduled"
        assert closed["total_downtime_hours"] == 12.5
        assert closed["technical_time_hours"] == closed["total_downtime_hours"] == 12.5
        assert closed["procurement_time_hours"] == 0.0
        assert closed["ops_time_hours"] == 0.0
        assert closed["is_imported"] is True
        assert events["Bird strike"]["current_status"] == "REPORTED"
        assert events["Bird strike"]["total_downtime_hours"] == 0.0

        buckets = client.get("/api/aog-events/analytics/buckets").json()["buckets"]
        assert buckets["technical"]["total_hours"] == 12.5
        assert buckets["technical"]["percentage"] == 100.0

    def test_budget_import_defaults_currency(self, client):
        content = workbook_bytes([
            ["Fiscal Year", "Clause ID", "Clause Description", "Aircraft Group", "Planned Amount"],
            [2025, 1, "Spare parts", "A340", 150000],
        ])
        data = upload(client, "budget", content).json()
        client.post("/api/import/confirm", json={"session_id": data["session_id"]})

        plans = client.get("/api/budget/plans").json()
        assert plans[0]["currency"] == "USD"
        assert plans[0]["planned_amount"] == 150000.0


class TestExportAPI:

    def test_export_types(self, client):
        assert {t["type"] for t in client.get("/api/export/types").json()} >= {"aircraft", "aog_events"}

    def test_export_daily_status(self, client, aircraft):
        client.post("/api/daily-status", json={"aircraft_id": aircraft["_id"], "date": "2025-01-01", "nmcm_s_hours": 3})

        response = client.get("/api/export/daily_status")
        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]

        sheet = load_workbook(BytesIO(response.content)).worksheets[0]
        row = [c.value for c in sheet[2]]
        assert row[0] == "HZ-A42"
        assert row[2] == 24
        assert row[3] == 3

    def test_unknown_export_type(self, client):
        assert client.get("/api/export/spaceships").status_code == 422
