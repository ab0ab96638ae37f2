from datetime import datetime

from .conftest import booking, make_professional, make_service, professional_headers


def test_service_crud(client, owner_headers):
    created = client.post(
        "/services",
        json={"name": "Escova", "price": 45, "durationMinutes": 40, "defaultCommission": 15},
        headers=owner_headers,
    )
    assert created.status_code == 200
    service_id = created.json()["id"]

    updated = client.patch(f"/services/{service_id}", json={"price": 50}, headers=owner_headers)
    assert updated.json()["price"] == 50

    assert client.delete(f"/services/{service_id}", headers=owner_headers).status_code == 200
    assert client.get(f"/services/{service_id}", headers=owner_headers).status_code == 404


def test_commission_must_be_a_percentage(client, owner_headers):
    response = client.post(
        "/services", json={"name": "Escova", "price": 45, "defaultCommission": 120}, headers=owner_headers
    )
    assert response.status_code == 422


def test_service_in_use_can_only_be_deactivated(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)
    client.post(
        "/appointments", json=booking(professional, [service.id], datetime(2026, 3, 10, 10)), headers=owner_headers
    )

    response = client.delete(f"/services/{service.id}", headers=owner_headers)
    assert response.status_code == 409
    assert response.json()["action"] == "deactivate"


def test_create_professional_with_login_and_services(client, db, owner, owner_headers):
    service = make_service(db, owner, commission=10)

    response = client.post(
        "/professionals",
        json={
            "name": "Carla",
            "email": "Carla@Salon.test",
            "password": "segredo1",
            "services": [{"serviceId": service.id, "commission": 35}],
        },
        headers=owner_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "carla@salon.test"
    assert body["hasLogin"] is True
    assert body["services"] == [{"serviceId": service.id, "serviceName": "Corte", "commission": 35.0}]


def test_assignment_without_commission_uses_service_default(client, db, owner, owner_headers):
    service = make_service(db, owner, commission=12)
    professional = make_professional(db, owner)

    response = client.put(
        f"/professionals/{professional.id}/services",
        json={"services": [{"serviceId": service.id}]},
        headers=owner_headers,
    )
    assert response.json()["services"][0]["commission"] == 12.0


def test_professional_login_and_me(client, db, owner):
    make_professional(db, owner, name="Dani", email="dani@salon.test", password="segredo1")

    response = client.post("/auth/professional/login", json={"email": "dani@salon.test", "password": "segredo1"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["role"] == "professional"
    assert me["professionalName"] == "Dani"
    assert me["userId"] == owner.id


def test_professional_login_rejects_bad_password(client, db, owner):
    make_professional(db, owner, email="dani@salon.test", password="segredo1")

    response = client.post("/auth/professional/login", json={"email": "dani@salon.test", "password": "errada"})
    assert response.status_code == 401


def test_inactive_professional_cannot_log_in(client, db, owner):
    make_professional(db, owner, email="dani@salon.test", password="segredo1", active=False)

    response = client.post("/auth/professional/login", json={"email": "dani@salon.test", "password": "segredo1"})
    assert response.status_code == 403


def test_professionals_cannot_manage_catalog(client, db, owner):
    professional = make_professional(db, owner)

    response = client.post("/services", json={"name": "X", "price": 1}, headers=professional_headers(professional))
    assert response.status_code == 403

    # but they can read it to book
    assert client.get("/services", headers=professional_headers(professional)).status_code == 200


def test_professional_with_appointments_is_skipped_in_batch_delete(client, db, owner, owner_headers):
    busy = make_professional(db, owner, name="Ocupada")
    idle = make_professional(db, owner, name="Livre")
    service = make_service(db, owner)
    client.post("/appointments", json=booking(busy, [service.id], datetime(2026, 3, 10, 10)), headers=owner_headers)

    response = client.post("/professionals/batch-delete", json={"ids": [busy.id, idle.id]}, headers=owner_headers)
    body = response.json()
    assert body["deletedCount"] == 1
    assert body["skippedIds"] == [busy.id]

    response = client.delete(f"/professionals/{busy.id}", headers=owner_headers)
    assert response.status_code == 409


def test_toggle_active(client, db, owner, owner_headers):
    professional = make_professional(db, owner)

    response = client.post(f"/professionals/{professional.id}/toggle-active", headers=owner_headers)
    assert response.json()["active"] is False
