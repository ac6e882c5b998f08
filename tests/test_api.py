import json
from io import BytesIO

from fastapi.testclient import TestClient
from openpyxl import load_workbook


def _exigence_payload(**overrides):
    data = {
        "name": "Contrôle peinture",
        "code": "PEINT",
        "description": "Aspect et épaisseur",
        "sample_rule": {"pieces_per_sample": 25, "min_samples": 2, "max_samples": 3},
        "checklist": [
            {"label": "Aspect conforme", "type": "passFail", "guidance": "Pas de coulure"},
            {"label": "Commentaire", "type": "text"},
        ],
    }
    data.update(overrides)
    return data


def _run_session(client, order_number, labels):
    state = client.post("/api/operator/scan", json={"value": order_number}).json()
    checklist = state["session"]["exigence"]["checklist"]
    for label in labels:
        for item in checklist:
            if item["type"] == "passFail":
                client.put(f"/api/operator/responses/{item['id']}", json={"value": True})
        resp = client.post("/api/operator/samples", json={"label": label})
        assert resp.status_code == 200
    return resp.json()


def test_health_check(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_alias_without_api_prefix(client):
    assert client.get("/health").status_code == 200


def test_list_seeded_configuration(client):
    exigences = client.get("/api/exigences").json()
    orders = client.get("/api/orders").json()
    assert exigences[0]["code"] == "STD-CTRL"
    assert exigences[0]["order_count"] == 1
    assert orders[0]["order_number"] == "CMD-1001"
    assert orders[0]["exigence_code"] == "STD-CTRL"
    assert orders[0]["required_samples"] == 4


def test_create_update_exigence(client):
    created = client.post("/api/exigences", json=_exigence_payload()).json()
    assert created["id"]
    assert created["sample_rule"] == {"pieces_per_sample": 25, "min_samples": 2, "max_samples": 3}

    payload = _exigence_payload(name="Contrôle peinture v2")
    payload["checklist"][0]["id"] = created["checklist"][0]["id"]
    updated = client.put(f"/api/exigences/{created['id']}", json=payload)
    assert updated.status_code == 200
    assert updated.json()["id"] == created["id"]
    assert updated.json()["name"] == "Contrôle peinture v2"
    assert updated.json()["checklist"][0]["id"] == created["checklist"][0]["id"]


def test_invalid_exigence_is_rejected_without_change(client):
    before = client.get("/api/exigences").json()
    response = client.post("/api/exigences", json=_exigence_payload(name=" ", checklist=[]))
    assert response.status_code == 422
    assert client.get("/api/exigences").json() == before


def test_unknown_ids_return_404(client):
    assert client.get("/api/exigences/nope").status_code == 404
    assert client.put("/api/exigences/nope", json=_exigence_payload()).status_code == 404
    assert client.delete("/api/orders/nope").status_code == 404
    assert client.get("/api/operations/nope").status_code == 404


def test_order_requires_existing_exigence(client):
    response = client.post("/api/orders", json={
        "order_number": "OF-7", "exigence_id": "missing", "piece_count": 10,
    })
    assert response.status_code == 422


def test_order_number_must_be_unique(client):
    ex_id = client.get("/api/exigences").json()[0]["id"]
    response = client.post("/api/orders", json={
        "order_number": "cmd-1001", "exigence_id": ex_id, "piece_count": 10,
    })
    assert response.status_code == 409


def test_delete_exigence_cascades_orders(client):
    ex = client.post("/api/exigences", json=_exigence_payload()).json()
    o1 = client.post("/api/orders", json={"order_number": "OF-1", "exigence_id": ex["id"], "piece_count": 10}).json()
    o2 = client.post("/api/orders", json={"order_number": "OF-2", "exigence_id": ex["id"], "piece_count": 80.6}).json()
    assert o2["piece_count"] == 80

    response = client.delete(f"/api/exigences/{ex['id']}")
    assert response.status_code == 200
    assert sorted(response.json()["deleted_orders"]) == sorted([o1["id"], o2["id"]])

    remaining = client.get("/api/orders").json()
    assert all(o["exigence_id"] != ex["id"] for o in remaining)
    assert [o["order_number"] for o in remaining] == ["CMD-1001"]


def test_operator_flow_end_to_end(client):
    idle = client.get("/api/operator/session").json()
    assert idle["state"] == "idle"

    final = _run_session(client, "cmd-1001", ["E1", "E2", "E3", "E4"])
    assert final["state"] == "idle"
    assert final["feedback"] == "Contrôle finalisé et sauvegardé automatiquement."
    record = final["record"]
    assert record["required_samples"] == 4
    assert len(record["samples"]) == 4

    listing = client.get("/api/operations").json()
    assert listing["total"] == 1
    detail = client.get(f"/api/operations/{record['id']}").json()
    first = detail["samples"][0]["responses"][0]
    assert first["label"] == "État visuel conforme"
    assert first["display"] == "Conforme"


def test_operator_progress_is_reported(client):
    state = client.post("/api/operator/scan", json={"value": "CMD-1001"}).json()
    session = state["session"]
    assert session["required_samples"] == 4
    assert session["checklist_ready"] is False

    for item in session["exigence"]["checklist"]:
        if item["type"] == "passFail":
            state = client.put(f"/api/operator/responses/{item['id']}", json={"value": False}).json()
    assert state["session"]["checklist_ready"] is True

    client.put("/api/operator/label", json={"label": "E1"})
    state = client.post("/api/operator/samples").json()
    assert state["session"]["remaining_samples"] == 3
    assert state["record"] is None


def test_operator_errors_are_user_messages(client):
    response = client.post("/api/operator/scan", json={"value": "XYZ-1"})
    assert response.status_code == 404
    assert response.json()["kind"] == "order_not_found"
    assert "XYZ-1" in response.json()["detail"]

    response = client.post("/api/operator/samples", json={"label": "E1"})
    assert response.status_code == 409

    client.post("/api/operator/scan", json={"value": "CMD-1001"})
    response = client.post("/api/operator/samples", json={"label": "E1"})
    assert response.status_code == 422
    assert response.json()["kind"] == "gate"
    assert client.get("/api/operator/session").json()["session"]["samples"] == []


def test_resume_last_order(client):
    response = client.post("/api/operator/resume")
    assert response.status_code == 422

    _run_session(client, "CMD-1001", ["E1", "E2", "E3", "E4"])
    state = client.post("/api/operator/resume").json()
    assert state["scan_value"] == "CMD-1001"


def test_operations_newest_first_and_filter(client):
    first = _run_session(client, "CMD-1001", ["A1", "A2", "A3", "A4"])["record"]
    second = _run_session(client, "CMD-1001", ["B1", "B2", "B3", "B4"])["record"]

    items = client.get("/api/operations").json()["items"]
    assert [r["id"] for r in items] == [second["id"], first["id"]]
    assert client.get("/api/operations", params={"order_number": "cmd-1001"}).json()["total"] == 2
    assert client.get("/api/operations", params={"order_number": "OF-0"}).json()["total"] == 0


def test_export_operations_excel(client):
    _run_session(client, "CMD-1001", ["E1", "E2", "E3", "E4"])
    response = client.get("/api/operations/export")
    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]

    ws = load_workbook(BytesIO(response.content)).active
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0][:7] == (
        "Ordre", "Pièces", "Échantillons requis", "Démarré", "Clôturé",
        "N° échantillon", "Code échantillon",
    )
    assert "État visuel conforme" in rows[0]
    assert len(rows) == 5
    assert rows[1][0] == "CMD-1001"
    assert rows[1][6] == "E1"
    assert rows[1][7] == "Conforme"


def test_manager_actions_are_journaled(client):
    ex = client.post("/api/exigences", json=_exigence_payload()).json()
    client.delete(f"/api/exigences/{ex['id']}")

    logs = client.get("/api/journal", params={"target_type": "Exigence"}).json()
    actions = [i["action"] for i in logs["items"]]
    assert set(actions) == {"EXIGENCE_CREATE", "EXIGENCE_DELETE"}

    detail = client.get(f"/api/journal/{logs['items'][0]['id']}").json()
    assert detail["verified"] is True


def test_completed_operation_is_journaled(client):
    record = _run_session(client, "CMD-1001", ["E1", "E2", "E3", "E4"])["record"]
    logs = client.get("/api/journal", params={"action": "OPERATION_COMPLETED"}).json()
    assert logs["total"] == 1
    assert logs["items"][0]["target_id"] == record["id"]
    assert logs["items"][0]["station_id"]


def test_reading_operator_session_creates_no_station(client, qc):
    for _ in range(5):
        client.cookies.clear()
        state = client.get("/api/operator/session").json()
        assert state["state"] == "idle"
        assert state["session"] is None
    assert qc.station_count == 0

    response = client.put("/api/operator/label", json={"label": "E1"})
    assert response.status_code == 409
    assert response.json()["kind"] == "no_session"
    assert qc.station_count == 0

    client.post("/api/operator/scan", json={"value": "CMD-1001"})
    assert qc.station_count == 1


def test_non_finite_sample_rule_is_rejected(client):
    before = len(client.get("/api/exigences").json())
    body = json.dumps(_exigence_payload(sample_rule={"pieces_per_sample": 25, "max_samples": 9999}))
    for raw in ("1e400", "NaN"):
        response = client.post(
            "/api/exigences",
            content=body.replace("9999", raw),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert response.json()["kind"] == "validation"
    assert len(client.get("/api/exigences").json()) == before


def test_export_keeps_operator_text_out_of_formulas(client):
    state = client.post("/api/operator/scan", json={"value": "CMD-1001"}).json()
    checklist = state["session"]["exigence"]["checklist"]
    for i in range(4):
        for item in checklist:
            value = True if item["type"] == "passFail" else '=HYPERLINK("http://evil","x")'
            client.put(f"/api/operator/responses/{item['id']}", json={"value": value})
        assert client.post("/api/operator/samples", json={"label": f"=1+{i}"}).status_code == 200

    ws = load_workbook(BytesIO(client.get("/api/operations/export").content)).active
    assert all(cell.data_type != "f" for row in ws.iter_rows() for cell in row)
    rows = list(ws.iter_rows(values_only=True))
    assert rows[1][6] == "'=1+0"
    assert '\'=HYPERLINK("http://evil","x")' in rows[1]


def test_unhandled_error_is_journaled_in_app_database(client, qc, monkeypatch):
    from qc_checklist.main import app

    def boom(exigence_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(qc.registry, "orders_for_exigence", boom)
    response = TestClient(app, raise_server_exceptions=False).get("/api/exigences")
    assert response.status_code == 500

    logs = client.get("/api/journal", params={"action": "EXCEPTION"}).json()
    assert logs["total"] == 1
    assert logs["items"][0]["status"] == "FAILURE"
