"""Departmental routing: transfer gate, returns and step rejection."""

import pytest

from conftest import ARQUIVO, COORDENACAO, DIRECAO, DIVISAO, GABINETE, SOLICITACAO


@pytest.fixture
def maria(make_user, login):
    make_user("maria.souza", department="Setor de Solicitação")
    return login("maria.souza")


@pytest.fixture
def joao(make_user, login):
    make_user("joao.lima", department="Divisão de Licitação")
    return login("joao.lima")


def _complete_department(http, process_id, department_id):
    for step in http.get(f"/api/processes/{process_id}/steps").json():
        if step["department_id"] == department_id and not step["is_completed"]:
            response = http.patch(f"/api/processes/{process_id}/steps/{step['id']}", json={"is_completed": True})
            assert response.status_code == 200


def test_workflow_state_of_a_new_process(maria, create_process):
    process = create_process(http=maria)
    state = maria.get(f"/api/processes/{process['id']}/workflow").json()

    assert state["current_department"]["id"] == SOLICITACAO
    assert state["next_department"]["id"] == DIVISAO
    assert state["previous_department"] is None
    assert state["is_final_department"] is False
    assert state["pending_steps"] == ["Elaboração do Termo de Referência", "Pesquisa de Preço"]
    assert state["can_transfer"] is False
    assert state["can_force"] is False
    assert state["movements"] == []


def test_admin_workflow_state_reports_the_gate(admin_client, create_process):
    process = create_process()
    url = f"/api/processes/{process['id']}"

    blocked = admin_client.get(f"{url}/workflow").json()
    assert blocked["can_transfer"] is False
    assert blocked["can_force"] is True

    _complete_department(admin_client, process["id"], SOLICITACAO)
    clear = admin_client.get(f"{url}/workflow").json()
    assert clear["pending_steps"] == []
    assert clear["can_transfer"] is True


def test_transfer_is_blocked_by_pending_steps(maria, create_process):
    process = create_process(http=maria)
    response = maria.post(f"/api/processes/{process['id']}/transfer", json={"department_id": DIVISAO})

    assert response.status_code == 422
    assert response.json()["details"] == {
        "pending_steps": ["Elaboração do Termo de Referência", "Pesquisa de Preço"],
        "rejected_steps": [],
    }


def test_common_user_can_only_move_forward_one_department(maria, create_process):
    process = create_process(http=maria)
    _complete_department(maria, process["id"], SOLICITACAO)

    skipped = maria.post(f"/api/processes/{process['id']}/transfer", json={"department_id": COORDENACAO})
    assert skipped.status_code == 422
    assert skipped.json()["details"] == {"expected_department_id": DIVISAO}

    same = maria.post(f"/api/processes/{process['id']}/transfer", json={"department_id": SOLICITACAO})
    assert same.status_code == 422

    unknown = maria.post(f"/api/processes/{process['id']}/transfer", json={"department_id": 999})
    assert unknown.status_code == 404


def test_transfer_and_return_round_trip(maria, joao, create_process):
    process = create_process(http=maria)
    url = f"/api/processes/{process['id']}"
    _complete_department(maria, process["id"], SOLICITACAO)

    moved = maria.post(f"{url}/transfer", json={"department_id": DIVISAO})
    assert moved.status_code == 200
    assert moved.json()["current_department_id"] == DIVISAO
    assert moved.json()["status"] == "in_progress"
    # Participants are reset on hand-over
    assert maria.get(f"{url}/participants").json() == []

    assert joao.get(url).status_code == 200
    assert joao.post(f"{url}/return", json={}).status_code == 400
    assert joao.post(f"{url}/return", json={"return_comment": "x", "target_department_id": SOLICITACAO}).status_code == 403

    returned = joao.post(f"{url}/return", json={"return_comment": "Faltou a pesquisa de preços"})
    assert returned.status_code == 200
    assert returned.json()["current_department_id"] == SOLICITACAO
    assert returned.json()["return_comments"] == "Faltou a pesquisa de preços"
    assert joao.get(url).status_code == 404

    again = maria.post(f"{url}/transfer", json={"department_id": DIVISAO})
    assert again.status_code == 200
    assert again.json()["return_comments"] is None

    movements = maria.get(f"{url}/workflow").json()["movements"]
    assert [(m["kind"], m["from_department_id"], m["to_department_id"]) for m in movements] == [
        ("transfer", SOLICITACAO, DIVISAO),
        ("return", DIVISAO, SOLICITACAO),
        ("transfer", SOLICITACAO, DIVISAO),
    ]
    assert movements[1]["comment"] == "Faltou a pesquisa de preços"


def test_cannot_return_from_the_first_department(maria, create_process):
    process = create_process(http=maria)
    response = maria.post(f"/api/processes/{process['id']}/return", json={"return_comment": "voltar"})
    assert response.status_code == 422


def test_admin_transfer_rules(admin_client, create_process, make_user):
    process = create_process()
    url = f"/api/processes/{process['id']}"

    blocked = admin_client.post(f"{url}/transfer", json={"department_id": GABINETE})
    assert blocked.status_code == 422

    forced = admin_client.post(f"{url}/transfer", json={"department_id": GABINETE, "force": True})
    assert forced.status_code == 200
    assert forced.json()["current_department_id"] == GABINETE

    back = admin_client.post(f"{url}/return", json={"return_comment": "ajustar", "target_department_id": DIRECAO})
    assert back.status_code == 200
    assert back.json()["current_department_id"] == DIRECAO

    pedro = make_user("pedro.alves", department="Direção de Administração")
    handed = admin_client.post(f"{url}/transfer", json={
        "department_id": ARQUIVO, "force": True, "responsible_id": pedro["id"],
    })
    assert handed.status_code == 200
    assert handed.json()["responsible_id"] == pedro["id"]


def test_final_department_cannot_transfer(admin_client, create_process, make_user, login):
    process = create_process()
    admin_client.post(f"/api/processes/{process['id']}/transfer", json={"department_id": ARQUIVO, "force": True})
    make_user("rui.arquivo", department="Arquivo/Finalização")
    rui = login("rui.arquivo")

    state = rui.get(f"/api/processes/{process['id']}/workflow").json()
    assert state["is_final_department"] is True
    assert state["next_department"] is None

    response = rui.post(f"/api/processes/{process['id']}/transfer", json={"department_id": SOLICITACAO})
    assert response.status_code == 422


def test_closed_process_cannot_move(admin_client, create_process):
    process = create_process()
    url = f"/api/processes/{process['id']}"
    admin_client.patch(url, json={"status": "canceled"})

    assert admin_client.post(f"{url}/transfer", json={"department_id": DIVISAO, "force": True}).status_code == 422
    assert admin_client.post(f"{url}/return", json={"return_comment": "x", "target_department_id": DIVISAO}).status_code == 422


def test_rejected_step_blocks_transfer_until_completed(maria, create_process):
    process = create_process(http=maria)
    url = f"/api/processes/{process['id']}"
    _complete_department(maria, process["id"], SOLICITACAO)
    step = maria.get(f"{url}/steps").json()[0]

    assert maria.post(f"{url}/steps/{step['id']}/reject", json={}).status_code == 400

    rejected = maria.post(f"{url}/steps/{step['id']}/reject", json={"reason": "Termo incompleto"})
    assert rejected.status_code == 200
    data = rejected.json()
    assert data["is_completed"] is False
    assert data["is_rejected"] is True
    assert data["rejection_reason"] == "Termo incompleto"
    assert data["observations"] == "[REJEITADO] Termo incompleto"

    blocked = maria.post(f"{url}/transfer", json={"department_id": DIVISAO})
    assert blocked.status_code == 422
    assert blocked.json()["details"]["rejected_steps"] == [step["step_name"]]

    listed = maria.get("/api/steps/rejected").json()
    assert [(s["id"], s["pbdoc_number"]) for s in listed] == [(step["id"], process["pbdoc_number"])]

    fixed = maria.patch(f"{url}/steps/{step['id']}", json={"is_completed": True})
    assert fixed.json()["is_rejected"] is False
    assert fixed.json()["observations"] == "Termo incompleto"
    assert maria.get("/api/steps/rejected").json() == []

    assert maria.post(f"{url}/transfer", json={"department_id": DIVISAO}).status_code == 200
