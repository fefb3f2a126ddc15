from fastapi.testclient import TestClient

from app import app
from conftest import TEST_PASSWORD


def test_login_status_and_logout(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "admin"
    assert "session_token" in response.cookies

    status = client.get("/api/auth/status")
    assert status.status_code == 200
    assert status.json()["user"]["username"] == "admin"

    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/status").status_code == 401


def test_login_with_wrong_password(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
    assert response.status_code == 401


def test_protected_routes_require_a_session(client):
    assert client.get("/api/processes").status_code == 401
    assert client.get("/api/users").status_code == 401


def test_registration_waits_for_approval(admin_client, login):
    anonymous = TestClient(app)
    response = anonymous.post("/api/auth/register", json={
        "username": "carla.dias",
        "password": TEST_PASSWORD,
        "full_name": "Carla Dias",
        "department": "Setor de Solicitação",
    })
    assert response.status_code == 201
    user = response.json()["user"]
    assert user["is_active"] is False
    assert user["role"] == "common"

    blocked = anonymous.post("/api/auth/login", json={"username": "carla.dias", "password": TEST_PASSWORD})
    assert blocked.status_code == 403

    admin_client.patch(f"/api/users/{user['id']}", json={"is_active": True})
    login("carla.dias")


def test_duplicate_registration_conflicts(client):
    payload = {"username": "admin", "password": TEST_PASSWORD, "full_name": "Outro", "department": "X"}
    assert client.post("/api/auth/register", json=payload).status_code == 409


def test_admin_manages_users(admin_client, make_user):
    user = make_user("bruno.melo")
    assert user["is_active"] is True

    assert admin_client.post("/api/users", json={
        "username": "bruno.melo", "password": TEST_PASSWORD, "full_name": "B", "department": "X",
    }).status_code == 409

    updated = admin_client.patch(f"/api/users/{user['id']}", json={"full_name": "Bruno Melo", "role": "admin"})
    assert updated.status_code == 200
    assert updated.json()["full_name"] == "Bruno Melo"
    assert updated.json()["role"] == "admin"

    usernames = [u["username"] for u in admin_client.get("/api/users").json()]
    assert {"admin", "bruno.melo"} <= set(usernames)
    assert admin_client.get("/api/users/999").status_code == 404


def test_common_user_cannot_manage_users(make_user, login):
    make_user("rita.gomes")
    rita = login("rita.gomes")
    response = rita.post("/api/users", json={
        "username": "x.y.z", "password": TEST_PASSWORD, "full_name": "X", "department": "X",
    })
    assert response.status_code == 403


def test_deactivating_a_user_ends_their_sessions(admin_client, make_user, login):
    user = make_user("tiago.reis")
    tiago = login("tiago.reis")
    assert tiago.get("/api/auth/status").status_code == 200

    admin_client.patch(f"/api/users/{user['id']}", json={"is_active": False})
    assert tiago.get("/api/auth/status").status_code == 401


def test_default_admin_cannot_be_deleted(admin_client):
    assert admin_client.delete("/api/users/1").status_code == 403


def test_default_admin_cannot_be_demoted_or_deactivated(admin_client):
    assert admin_client.patch("/api/users/1", json={"role": "common"}).status_code == 403
    assert admin_client.patch("/api/users/1", json={"is_active": False}).status_code == 403

    admin = admin_client.get("/api/users/1").json()
    assert admin["role"] == "admin"
    assert admin["is_active"] is True

    renamed = admin_client.patch("/api/users/1", json={"full_name": "Administrador Geral", "role": "admin"})
    assert renamed.status_code == 200
    assert renamed.json()["full_name"] == "Administrador Geral"
    assert admin_client.get("/api/auth/status").status_code == 200


def test_user_responsible_for_processes_cannot_be_deleted(admin_client, make_user, create_process):
    user = make_user("lara.nunes")
    create_process(responsible_id=user["id"])
    assert admin_client.delete(f"/api/users/{user['id']}").status_code == 409


def test_delete_user(admin_client, make_user):
    user = make_user("otavio.pinto")
    assert admin_client.delete(f"/api/users/{user['id']}").status_code == 200
    assert admin_client.get(f"/api/users/{user['id']}").status_code == 404
