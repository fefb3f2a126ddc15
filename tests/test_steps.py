from conftest import COORDENACAO


def test_add_custom_step(admin_client, create_process):
    process = create_process()
    url = f"/api/processes/{process['id']}/steps"
    response = admin_client.post(url, json={"step_name": "Parecer jurídico", "department_id": COORDENACAO,
                                            "time_limit_days": 2})
    assert response.status_code == 201
    step = response.json()
    assert step["display_order"] == 4
    assert step["phase"] == "Execução"
    assert step["due_date"] is not None
    assert len(admin_client.get(url).json()) == 4


def test_add_step_validation(admin_client, create_process):
    process = create_process()
    url = f"/api/processes/{process['id']}/steps"
    assert admin_client.post(url, json={"step_name": "   ", "department_id": COORDENACAO}).status_code == 400
    assert admin_client.post(url, json={"step_name": "Parecer", "department_id": 999}).status_code == 400


def test_default_steps_only_once(admin_client, create_process):
    process = create_process()
    response = admin_client.post(f"/api/processes/{process['id']}/steps/defaults")
    assert response.status_code == 409


def test_complete_and_reopen_step(admin_client, create_process):
    process = create_process()
    url = f"/api/processes/{process['id']}/steps"
    step = admin_client.get(url).json()[0]

    done = admin_client.patch(f"{url}/{step['id']}", json={"is_completed": True, "observations": "ok"}).json()
    assert done["is_completed"] is True
    assert done["completed_by"] == 1
    assert done["completed_at"] is not None
    assert done["observations"] == "ok"

    reopened = admin_client.patch(f"{url}/{step['id']}", json={"is_completed": False}).json()
    assert reopened["is_completed"] is False
    assert reopened["completed_at"] is None
    assert reopened["completed_by"] is None


def test_step_must_belong_to_the_process(admin_client, create_process):
    first = create_process()
    second = create_process()
    step = admin_client.get(f"/api/processes/{first['id']}/steps").json()[0]

    response = admin_client.patch(f"/api/processes/{second['id']}/steps/{step['id']}", json={"is_completed": True})
    assert response.status_code == 404
    assert admin_client.patch(f"/api/processes/{first['id']}/steps/99999", json={}).status_code == 404
