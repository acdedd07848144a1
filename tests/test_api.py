"""End-to-end tests through the FastAPI application."""
from __future__ import annotations

import json
from io import BytesIO

from fastapi.testclient import TestClient
from openpyxl import load_workbook
from sqlalchemy.orm import Session

from .conftest import COLUMN_MAPPING, CSV_HEADERS, CSV_ROWS, add_member, auth_headers


def _import(client: TestClient, company_id: str, headers: dict[str, str]) -> dict:
    response = client.post(
        f"/api/companies/{company_id}/imports",
        json={
            "dataset_code": "DS1",
            "column_mapping": COLUMN_MAPPING,
            "csv_headers": CSV_HEADERS,
            "csv_data": CSV_ROWS,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def _create_plan(client: TestClient, company_id: str, headers: dict[str, str], import_id: int) -> dict:
    response = client.post(
        f"/api/companies/{company_id}/scenarios",
        json={"name": "Plan A", "import_id": import_id, "start_date": "2026-01-05", "end_date": "2026-01-25"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health_is_public(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_anonymous_api_requests_get_401(client: TestClient) -> None:
    response = client.get("/api/account")

    assert response.status_code == 401
    assert response.json() == {"error": {"code": "UNAUTHORIZED", "message": "Authentication required"}}


def test_invalid_token_is_rejected(client: TestClient) -> None:
    response = client.get("/api/account", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid or expired token"


def test_register_login_and_account(client: TestClient) -> None:
    registered = client.post(
        "/api/auth/register",
        json={"email": "fresh@example.com", "password": "long-enough", "companyName": "Fresh Co"},
    )
    assert registered.status_code == 201, registered.text
    body = registered.json()
    assert body["user"]["email"] == "fresh@example.com"
    assert body["token_type"] == "bearer"
    assert "access_token" in registered.cookies

    account = client.get("/api/account")
    assert account.status_code == 200
    assert account.json()["companies"][0]["id"] == body["company_id"]
    assert account.json()["stats"] == {"total": 0, "draft": 0, "locked": 0}

    client.post("/api/auth/logout")
    assert client.get("/api/profile").status_code == 401

    bad = client.post("/api/auth/login", json={"email": "fresh@example.com", "password": "wrong"})
    assert bad.status_code == 401
    assert bad.json()["error"]["message"] == "Invalid email or password"

    good = client.post("/api/auth/login", json={"email": "fresh@example.com", "password": "long-enough"})
    assert good.status_code == 200
    assert client.get("/api/profile").json()["default_company_id"] == body["company_id"]


def test_register_validation_envelope(client: TestClient) -> None:
    response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "short"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert {"email", "password", "companyName"} <= {detail["field"] for detail in error["details"]}


def test_non_members_are_forbidden(client: TestClient, session: Session, company) -> None:
    outsider, _ = add_member(session, email="outsider@example.com", company_name="Elsewhere")

    response = client.get(f"/api/companies/{company.id}/scenarios", headers=auth_headers(outsider))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_import_plan_override_and_export(client: TestClient, company, user) -> None:
    headers = auth_headers(user)
    base = f"/api/companies/{company.id}"

    imported = _import(client, company.id, headers)
    assert imported["status"] == "completed"
    assert imported["transaction_count"] == 6
    assert imported["scenario_id"] is not None

    status = client.get(f"{base}/imports/{imported['import_id']}/status", headers=headers).json()
    assert status["progress"] == 100
    assert client.get(f"{base}/imports", headers=headers).json()["total"] == 1

    plan = _create_plan(client, company.id, headers, imported["import_id"])
    scenario_url = f"{base}/scenarios/{plan['id']}"
    assert plan["status"] == "Draft"

    override = client.put(f"{scenario_url}/overrides/F2", json={"new_amount_book_cents": 50000}, headers=headers)
    assert override.status_code == 200, override.text
    assert override.json()["original_amount_book_cents"] == 40000

    batch = client.post(
        f"{scenario_url}/overrides/batch",
        json={"overrides": [{"flow_id": "F3", "new_date_due": "2026-01-21"}]},
        headers=headers,
    )
    assert batch.json()["updated_count"] == 1
    assert client.get(f"{scenario_url}/overrides", headers=headers).json()["total"] == 2
    assert client.get(scenario_url, headers=headers).json()["overrides_count"] == 2

    weeks = client.get(f"{scenario_url}/weekly-aggregates", headers=headers).json()["weeks"]
    assert [week["week_index"] for week in weeks] == [0, 1, 2, 3]
    assert weeks[1]["outflow_total_book_cents"] == 50000
    assert weeks[2]["inflow_total_book_cents"] == 0
    assert weeks[3]["inflow_total_book_cents"] == 200050

    summary = client.get(f"{scenario_url}/summary", headers=headers).json()
    assert summary["overridden_transactions"] == 2
    balance = client.get(f"{scenario_url}/running-balance", headers=headers).json()
    assert balance["points"][-1]["running_balance_book_cents"] == summary["net_book_cents"]

    draft_export = client.get(f"{scenario_url}/export", headers=headers)
    assert draft_export.status_code == 403

    locked = client.post(f"{scenario_url}/lock", headers=headers)
    assert locked.json()["status"] == "Locked"
    assert locked.json()["locked_by"] == user.id
    assert client.put(f"{scenario_url}/overrides/F1", json={"new_amount_book_cents": 1}, headers=headers).status_code == 409
    assert client.patch(scenario_url, json={"name": "Renamed"}, headers=headers).status_code == 409

    export = client.get(f"{scenario_url}/export", params={"includeCharts": "false"}, headers=headers)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert export.headers["content-disposition"].startswith('attachment; filename="scenario_Plan_A_')
    assert load_workbook(BytesIO(export.content)).sheetnames == ["Weekly Summary", "Transactions"]


def test_scenario_crud(client: TestClient, company, user) -> None:
    headers = auth_headers(user)
    base = f"/api/companies/{company.id}/scenarios"
    imported = _import(client, company.id, headers)
    plan = _create_plan(client, company.id, headers, imported["import_id"])

    duplicate = client.post(f"{base}/{plan['id']}/duplicate", json={"name": "Plan A"}, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["message"] == "A scenario with this name already exists"

    copy = client.post(f"{base}/{plan['id']}/duplicate", json={"name": "Plan B"}, headers=headers).json()
    assert copy["base_scenario_id"] == plan["id"]

    renamed = client.patch(f"{base}/{copy['id']}", json={"name": "Plan C"}, headers=headers)
    assert renamed.json()["name"] == "Plan C"

    listing = client.get(base, params={"search": "plan", "page_size": 1}, headers=headers).json()
    assert listing["total"] == 2
    assert len(listing["scenarios"]) == 1

    blocked = client.delete(f"{base}/{plan['id']}", headers=headers)
    assert blocked.status_code == 409
    assert client.delete(f"{base}/{copy['id']}", headers=headers).json() == {"id": copy["id"], "deleted": True}
    assert client.get(f"{base}/{copy['id']}", headers=headers).status_code == 404

    derived = client.post(
        f"{base}/from-import", json={"import_id": imported["import_id"], "name": "Derived"}, headers=headers
    )
    assert derived.status_code == 201
    assert derived.json()["start_date"] == "2026-01-01"


def test_scenario_validation_errors(client: TestClient, company, user) -> None:
    headers = auth_headers(user)
    imported = _import(client, company.id, headers)

    bad_dates = client.post(
        f"/api/companies/{company.id}/scenarios",
        json={"name": "Backwards", "import_id": imported["import_id"], "start_date": "2026-02-01", "end_date": "2026-01-01"},
        headers=headers,
    )
    assert bad_dates.status_code == 400
    assert bad_dates.json()["error"]["details"] == [
        {"field": "end_date", "message": "End date must be later than start date"}
    ]

    missing_name = client.post(
        f"/api/companies/{company.id}/scenarios",
        json={"import_id": imported["import_id"], "start_date": "2026-01-01", "end_date": "2026-02-01"},
        headers=headers,
    )
    assert missing_name.status_code == 400
    assert missing_name.json()["error"]["details"][0]["field"] == "name"

    empty_override = client.put(
        f"/api/companies/{company.id}/scenarios/{imported['scenario_id']}/overrides/F1", json={}, headers=headers
    )
    assert empty_override.status_code == 400

    missing = client.get(f"/api/companies/{company.id}/scenarios/999", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Scenario with id '999' not found"


def test_multipart_upload(client: TestClient, company, user) -> None:
    payload = "Due;Amount;Kind;Ccy\n2026-03-02;1 200,00;INFLOW;PLN\n2026-03-03;oops;INFLOW;PLN\n".encode("cp1250")

    response = client.post(
        f"/api/companies/{company.id}/imports/upload",
        files={"file": ("march.csv", payload, "text/csv")},
        data={
            "dataset_code": "UPLOAD",
            "column_mapping": json.dumps({"date_due": "Due", "amount": "Amount", "direction": "Kind", "currency": "Ccy"}),
            "skip_invalid_rows": "true",
        },
        headers=auth_headers(user),
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert (body["valid_rows"], body["invalid_rows"]) == (1, 1)
    assert body["errors"][0]["error_message"] == "amount: Invalid amount format: oops"


def test_upload_rejects_bad_mapping(client: TestClient, company, user) -> None:
    response = client.post(
        f"/api/companies/{company.id}/imports/upload",
        files={"file": ("x.csv", b"a;b\n1;2\n", "text/csv")},
        data={"dataset_code": "X", "column_mapping": json.dumps({"amount": "b"})},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid column mapping"
