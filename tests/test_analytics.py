from datetime import datetime

import pytest

from conftest import PREGAO, SOLICITACAO


@pytest.fixture
def dataset(admin_client, create_process):
    on_time = create_process()
    late = create_process(deadline="2020-01-10T00:00:00", source_id=2)
    canceled = create_process(modality_id=PREGAO)
    admin_client.patch(f"/api/processes/{canceled['id']}", json={"status": "canceled"})
    return on_time, late, canceled


def test_process_statistics(admin_client, dataset):
    stats = admin_client.get("/api/analytics/process-statistics").json()
    assert stats == {"total": 3, "draft": 2, "in_progress": 0, "completed": 0, "canceled": 1, "overdue": 1}

    filtered = admin_client.get("/api/analytics/process-statistics", params={"status": "canceled"}).json()
    assert filtered["total"] == 1


def test_processes_by_month(admin_client, dataset):
    months = admin_client.get("/api/analytics/processes-by-month").json()
    assert len(months) == 12
    assert months[0]["label"] == "jan"
    assert months[datetime.utcnow().month - 1]["count"] == 3


def test_processes_by_source_and_responsible(admin_client, dataset):
    sources = admin_client.get("/api/analytics/processes-by-source").json()
    assert [(s["source_code"], s["count"]) for s in sources] == [("500", 2), ("700", 1)]

    responsible = admin_client.get("/api/analytics/processes-by-responsible").json()
    assert responsible == [{"responsible_id": 1, "name": "Administrador", "total": 3, "completed": 0}]


def test_temporal_distribution(admin_client, dataset):
    monthly = admin_client.get("/api/analytics/temporal-distribution").json()
    assert len(monthly) == 6
    assert monthly[-1]["period"] == datetime.utcnow().strftime("%Y-%m")
    # Canceled processes are left out of every bucket
    assert (monthly[-1]["in_progress"], monthly[-1]["overdue"], monthly[-1]["completed"]) == (1, 1, 0)

    weekly = admin_client.get("/api/analytics/temporal-distribution", params={"period": "week"}).json()
    assert len(weekly) == 8
    assert sum(w["in_progress"] + w["overdue"] for w in weekly) == 2

    assert admin_client.get("/api/analytics/temporal-distribution", params={"period": "year"}).status_code == 422


def test_department_rankings(admin_client, dataset):
    ranking = admin_client.get("/api/analytics/department-ranking").json()
    assert ranking[0]["department_id"] == SOLICITACAO
    assert ranking[0]["total"] == 3
    assert len(ranking) == 6

    overdue = admin_client.get("/api/analytics/overdue-ranking").json()
    assert overdue == [{
        "department_id": SOLICITACAO, "name": "Setor de Solicitação", "overdue": 1, "total": 3, "percentage": 33.3,
    }]


def test_deadline_alerts(admin_client, dataset):
    on_time, late, _ = dataset

    alerts = admin_client.get("/api/alerts/deadlines", params={"days": 3}).json()
    assert [a["process_id"] for a in alerts] == [late["id"]]
    assert alerts[0]["is_overdue"] is True
    assert alerts[0]["business_days_left"] < 0

    # Concorrência processes get a five business day deadline
    wider = admin_client.get("/api/alerts/deadlines", params={"days": 5}).json()
    assert [a["process_id"] for a in wider] == [late["id"], on_time["id"]]
    assert wider[1]["business_days_left"] == 5


def test_monthly_goal(admin_client, dataset, make_user, login):
    assert admin_client.get("/api/settings/monthly-goal").json() == {"value": 200}

    assert admin_client.post("/api/settings/monthly-goal", json={"value": 150}).json() == {"value": 150}
    assert admin_client.get("/api/settings/monthly-goal").json() == {"value": 150}
    assert admin_client.post("/api/settings/monthly-goal", json={"value": 0}).status_code == 400
    assert admin_client.post("/api/settings/monthly-goal", json={"value": "abc"}).status_code == 400

    progress = admin_client.get("/api/settings/monthly-goal/progress").json()
    assert progress["goal"] == 150
    assert progress["created"] == 3
    assert progress["percentage"] == 2.0

    make_user("maria.souza")
    maria = login("maria.souza")
    assert maria.post("/api/settings/monthly-goal", json={"value": 10}).status_code == 403
    assert maria.get("/api/settings/monthly-goal").json() == {"value": 150}


@pytest.mark.parametrize("value", ["abc", "150", None, True, -3, 0.0, [150]])
def test_monthly_goal_rejects_non_positive_numbers(admin_client, value):
    response = admin_client.post("/api/settings/monthly-goal", json={"value": value})
    assert response.status_code == 400
    assert admin_client.get("/api/settings/monthly-goal").json() == {"value": 200}


def test_monthly_goal_accepts_decimals(admin_client):
    assert admin_client.post("/api/settings/monthly-goal", json={"value": 150.5}).json() == {"value": 150.5}
    assert admin_client.get("/api/settings/monthly-goal").json() == {"value": 150.5}
    assert admin_client.get("/api/settings/monthly-goal/progress").json()["goal"] == 150.5
