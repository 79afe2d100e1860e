from __future__ import annotations

import io
import json

import pytest
from openpyxl import Workbook

from backend.app import create_app


@pytest.fixture()
def app(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "DATABASE_URL": f"sqlite:///{tmp_path / 'kpi.db'}",
                "UPLOAD_DIR": str(tmp_path / "uploads"),
                "EXPORT_DIR": str(tmp_path / "exports"),
            }
        )
    )
    app = create_app(str(config_path))
    app.config.update(TESTING=True)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _workbook_bytes(headers) -> io.BytesIO:
    wb = Workbook()
    wb.active.append(headers)
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


def _upload(client, filename, headers, role="lookup", name=None):
    form = {"file": (_workbook_bytes(headers), filename), "role": role}
    if name:
        form["name"] = name
    return client.post("/api/upload", data=form, content_type="multipart/form-data")


DATA = {
    "baseDataMapping": {
        "agentField": "AgentID",
        "txnIdField": "TxnID",
        "txnDateField": "Date",
        "amountField": "Amount",
    },
    "qualificationRules": [{"id": "q1", "kpiName": "Volume", "sourceField": "Amount"}],
}


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_create_load_and_version(client):
    created = client.post("/api/configurations", json={"caseFileId": "SALES", "data": DATA})
    assert created.status_code == 201
    assert created.get_json()["config"]["versions"][0]["version"] == "1.0"

    saved = client.post("/api/configurations/SALES/versions", json={"data": DATA, "description": "v2"})
    assert saved.status_code == 200
    assert saved.get_json()["version"] == "1.1"

    loaded = client.get("/api/configurations/SALES").get_json()["config"]
    assert [v["status"] for v in loaded["versions"]] == ["Deprecated", "Current"]
    assert loaded["versions"][1]["description"] == "v2"

    listing = client.get("/api/configurations").get_json()
    assert listing["configs"][0]["caseFileId"] == "SALES"
    assert listing["configs"][0]["currentVersion"] == "1.1"


def test_create_requires_case_file_id(client):
    response = client.post("/api/configurations", json={"data": DATA})
    assert response.status_code == 400
    payload = response.get_json()
    assert payload["success"] is False
    assert payload["field"] == "caseFileId"


def test_duplicate_case_file_is_rejected(client):
    client.post("/api/configurations", json={"caseFileId": "SALES", "data": DATA})
    response = client.post("/api/configurations", json={"caseFileId": "SALES", "data": DATA})
    assert response.status_code == 400


def test_unknown_configuration_returns_404(client):
    assert client.get("/api/configurations/NOPE").status_code == 404
    assert client.post("/api/configurations/NOPE/versions", json={"data": DATA}).status_code == 404


def test_save_version_requires_data(client):
    client.post("/api/configurations", json={"caseFileId": "SALES", "data": DATA})
    response = client.post("/api/configurations/SALES/versions", json={})
    assert response.status_code == 400


def test_export_and_import(client, app, tmp_path):
    client.post("/api/configurations", json={"caseFileId": "SALES", "data": DATA})
    exported = client.post("/api/configurations/SALES/export").get_json()
    assert exported["configId"].startswith("K_SALES_")
    path = tmp_path / "exports" / exported["configId"]
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["versions"][0]["status"] == "Current"

    document["caseFileId"] = "SALES-2"
    imported = client.post("/api/configurations/import", json=document)
    assert imported.status_code == 201
    assert client.get("/api/configurations/SALES-2").status_code == 200

    bad = client.post("/api/configurations/import", json={"caseFileId": "X", "versions": []})
    assert bad.status_code == 400


def test_readiness_uses_uploaded_files(client):
    before = client.post("/api/configurations/readiness", json={"caseFileId": "SALES", "data": DATA}).get_json()
    assert before["ready"] is False
    assert before["problems"] == ["Upload a base data file"]

    assert _upload(client, "sales.xlsx", ["AgentID", "TxnID"], role="base").status_code == 200
    after = client.post("/api/configurations/readiness", json={"caseFileId": "SALES", "data": DATA}).get_json()
    assert after == {"ready": True, "problems": []}


def test_readiness_reports_malformed_lookup_chain(client):
    rule = {
        "kpiName": "Bonus",
        "conditionField": "Region",
        "adjustFrom": "RTAMT",
        "adjustWhat": "Amount",
        "valueType": "Lookup",
        "lookupChain": [{"stepId": "first"}],
    }
    data = {**DATA, "adjustmentRules": [rule], "uploadedFiles": {"base": {"filename": "s.xlsx", "columns": []}}}
    response = client.post("/api/configurations/readiness", json={"caseFileId": "SALES", "data": data})
    assert response.status_code == 200
    assert response.get_json()["problems"] == ["Fix adjustment rule 'Bonus': Lookup chain is invalid"]


def test_upload_extracts_headers_and_registers_file(client, app):
    response = _upload(client, "rates.xlsx", ["Agent", "Rate"], name="rates")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["headers"] == ["Agent", "Rate"]
    assert payload["fileId"].endswith("-rates.xlsx")

    headers = client.get(f"/api/headers/{payload['fileId']}").get_json()
    assert headers == {"headers": ["Agent", "Rate"]}

    files = client.get("/api/files").get_json()
    assert files["lookup"] == {"rates": {"filename": "rates.xlsx", "columns": ["Agent", "Rate"]}}
    assert files["base"] is None


def test_upload_rejects_non_excel(client):
    response = client.post(
        "/api/upload",
        data={"file": (io.BytesIO(b"a,b"), "data.csv")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert "Only Excel files" in response.get_json()["error"]


def test_upload_requires_file_and_valid_role(client):
    missing = client.post("/api/upload", data={}, content_type="multipart/form-data")
    assert missing.status_code == 400
    bad_role = _upload(client, "x.xlsx", ["A"], role="archive")
    assert bad_role.status_code == 400


def test_upload_rejects_unreadable_workbook(client, tmp_path):
    response = client.post(
        "/api/upload",
        data={"file": (io.BytesIO(b"garbage"), "broken.xlsx")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert list((tmp_path / "uploads").iterdir()) == []


def test_headers_for_missing_file(client):
    assert client.get("/api/headers/nope.xlsx").status_code == 404


def test_save_mapping(client):
    file_id = _upload(client, "sales.xlsx", ["AgentID"], role="base").get_json()["fileId"]
    ok = client.post(f"/api/mapping/{file_id}", json={"mappings": [{"systemField": "agent", "excelHeader": "AgentID"}]})
    assert ok.status_code == 200
    assert client.post(f"/api/mapping/{file_id}", json={"mappings": "nope"}).status_code == 400
    assert client.post("/api/mapping/unknown", json={"mappings": []}).status_code == 404
