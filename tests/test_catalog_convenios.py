from fastapi.testclient import TestClient

from app import app


def test_catalog_lists(admin_client):
    departments = admin_client.get("/api/departments").json()
    assert [d["flow_order"] for d in departments] == [1, 2, 3, 4, 5, 6]

    modalities = {m["name"]: m["deadline_days"] for m in admin_client.get("/api/modalities").json()}
    assert modalities["Pregão Eletrônico"] == 3

    sources = admin_client.get("/api/sources").json()
    assert [s["code"] for s in sources] == ["500", "700", "760"]
    assert admin_client.get("/api/resource-sources").json() == sources


def test_workflow_flow(admin_client):
    flow = admin_client.get("/api/workflow/flow").json()
    assert [step["position"] for step in flow] == [1, 2, 3, 4, 5, 6]
    assert flow[0]["name"] == "Setor de Solicitação"


def test_catalog_writes_invalidate_cache(admin_client):
    admin_client.get("/api/sources")
    created = admin_client.post("/api/sources", json={"code": "900", "description": "Outras fontes"})
    assert created.status_code == 201
    assert "900" in [s["code"] for s in admin_client.get("/api/sources").json()]

    assert admin_client.post("/api/sources", json={"code": "900", "description": "x"}).status_code == 409
    assert admin_client.post("/api/departments", json={"name": "Setor de Solicitação"}).status_code == 409

    renamed = admin_client.patch("/api/modalities/2", json={"deadline_days": 10})
    assert renamed.json()["deadline_days"] == 10
    assert admin_client.patch("/api/modalities/999", json={"name": "x"}).status_code == 404


def test_catalog_writes_require_admin(make_user, login):
    make_user("maria.souza")
    maria = login("maria.souza")
    assert maria.get("/api/departments").status_code == 200
    assert maria.post("/api/departments", json={"name": "Nova"}).status_code == 403


CONVENIO = {
    "numero": "CV-001/2025",
    "objeto": "Reforma de unidade prisional",
    "orgao_convenente": "Ministério da Justiça",
    "valor": 500000.0,
    "data_inicio": "2025-01-01",
    "data_fim": "2025-12-31",
}


def test_convenio_crud(admin_client):
    created = admin_client.post("/api/convenios", json=CONVENIO)
    assert created.status_code == 201
    convenio = created.json()
    assert convenio["status"] == "ativo"

    assert admin_client.post("/api/convenios", json=CONVENIO).status_code == 409

    found = admin_client.get("/api/convenios", params={"q": "prisional"}).json()
    assert [c["id"] for c in found] == [convenio["id"]]
    assert admin_client.get("/api/convenios", params={"q": "nada"}).json() == []

    updated = admin_client.patch(f"/api/convenios/{convenio['id']}", json={"status": "vencido"})
    assert updated.json()["status"] == "vencido"

    assert admin_client.delete(f"/api/convenios/{convenio['id']}").status_code == 200
    assert admin_client.get(f"/api/convenios/{convenio['id']}").status_code == 404


def test_convenio_period_validation(admin_client):
    bad = dict(CONVENIO, data_inicio="2025-06-01", data_fim="2025-01-01")
    assert admin_client.post("/api/convenios", json=bad).status_code == 400

    convenio = admin_client.post("/api/convenios", json=CONVENIO).json()
    response = admin_client.patch(f"/api/convenios/{convenio['id']}", json={"data_fim": "2024-12-01"})
    assert response.status_code == 400


def test_health():
    assert TestClient(app).get("/health").json() == {"status": "ok"}
