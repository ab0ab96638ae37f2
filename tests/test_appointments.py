from datetime import datetime

from salonbook.models import CustomerPackageService, ProfessionalCommission

from .conftest import (
    assign,
    booking,
    make_customer,
    make_package,
    make_professional,
    make_service,
    professional_headers,
    sell_package,
)

TEN = datetime(2026, 3, 10, 10, 0)
TEN_FIFTEEN = datetime(2026, 3, 10, 10, 15)
TEN_THIRTY = datetime(2026, 3, 10, 10, 30)


def test_create_appointment_charges_full_price(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, price=80.0, duration=45)

    response = client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["totalPrice"] == 80.0
    assert body["durationMinutes"] == 45
    assert body["services"][0]["usedPackageSession"] is False
    assert body["overriddenConflict"] is False


def test_booking_creates_customer_from_phone(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)

    client.post(
        "/appointments",
        json=booking(professional, [service.id], TEN, phone="+55 (11) 98888-7777", name="Joana"),
        headers=owner_headers,
    )

    customers = client.get("/customers", headers=owner_headers).json()
    assert [(c["name"], c["phone"]) for c in customers] == [("Joana", "5511988887777")]


def test_overlapping_booking_returns_conflict_then_force_succeeds(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, duration=30)
    first = client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers).json()

    response = client.post(
        "/appointments", json=booking(professional, [service.id], TEN_FIFTEEN), headers=owner_headers
    )
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "appointment_conflict"
    assert body["action"] == "force"
    assert [c["id"] for c in body["conflicting_appointments"]] == [first["id"]]

    forced = client.post(
        "/appointments",
        json=booking(professional, [service.id], TEN_FIFTEEN, force=True),
        headers=owner_headers,
    )
    assert forced.status_code == 200
    assert forced.json()["overriddenConflict"] is True


def test_back_to_back_booking_is_allowed(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, duration=30)
    client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)

    response = client.post(
        "/appointments", json=booking(professional, [service.id], TEN_THIRTY), headers=owner_headers
    )
    assert response.status_code == 200


def test_other_professional_is_not_blocked(client, db, owner, owner_headers):
    ana = make_professional(db, owner, name="Ana")
    bia = make_professional(db, owner, name="Bia")
    service = make_service(db, owner)
    client.post("/appointments", json=booking(ana, [service.id], TEN), headers=owner_headers)

    response = client.post("/appointments", json=booking(bia, [service.id], TEN), headers=owner_headers)
    assert response.status_code == 200


def test_cancelled_and_completed_slots_can_be_rebooked(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)
    first = client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers).json()
    client.patch(f"/appointments/{first['id']}/status", json={"status": "cancelled"}, headers=owner_headers)

    second = client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)
    assert second.status_code == 200
    client.patch(f"/appointments/{second.json()['id']}/status", json={"status": "completed"}, headers=owner_headers)

    third = client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)
    assert third.status_code == 200


def test_reopening_taken_slot_requires_force(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)
    first = client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers).json()
    client.patch(f"/appointments/{first['id']}/status", json={"status": "cancelled"}, headers=owner_headers)
    client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)

    response = client.patch(
        f"/appointments/{first['id']}/status", json={"status": "pending"}, headers=owner_headers
    )
    assert response.status_code == 409

    response = client.patch(
        f"/appointments/{first['id']}/status",
        json={"status": "pending", "force": True},
        headers=owner_headers,
    )
    assert response.status_code == 200
    assert response.json()["overriddenConflict"] is True


def test_reschedule_into_conflict_is_rejected(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)
    client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)
    other = client.post(
        "/appointments", json=booking(professional, [service.id], TEN_THIRTY), headers=owner_headers
    ).json()

    response = client.patch(
        f"/appointments/{other['id']}",
        json={"appointmentDate": TEN_FIFTEEN.isoformat()},
        headers=owner_headers,
    )
    assert response.status_code == 409

    # Moving within its own window does not conflict with itself
    response = client.patch(
        f"/appointments/{other['id']}",
        json={"appointmentDate": datetime(2026, 3, 10, 10, 45).isoformat()},
        headers=owner_headers,
    )
    assert response.status_code == 200


def test_check_conflicts_dry_run(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)
    client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)

    response = client.post(
        "/appointments/check-conflicts",
        json={
            "professionalId": professional.id,
            "appointmentDate": TEN_FIFTEEN.isoformat(),
            "serviceIds": [service.id],
        },
        headers=owner_headers,
    )
    body = response.json()
    assert body["hasConflict"] is True
    assert len(body["conflicts"]) == 1


def test_inactive_professional_cannot_be_booked(client, db, owner, owner_headers):
    professional = make_professional(db, owner, active=False)
    service = make_service(db, owner)

    response = client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)
    assert response.status_code == 422
    assert response.json()["field"] == "professionalId"


def test_unknown_service_is_a_validation_error(client, db, owner, owner_headers):
    professional = make_professional(db, owner)

    response = client.post("/appointments", json=booking(professional, [9999], TEN), headers=owner_headers)
    assert response.status_code == 422
    assert response.json()["field"] == "services"


def test_service_duration_is_capped_at_a_day(client, owner_headers):
    response = client.post(
        "/services", json={"name": "Dia de spa", "price": 900, "durationMinutes": 1500}, headers=owner_headers
    )
    assert response.status_code == 422


def test_stacked_services_longer_than_a_day_are_rejected(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    first = make_service(db, owner, name="Mechas", duration=800)
    second = make_service(db, owner, name="Alongamento", duration=800)

    response = client.post(
        "/appointments", json=booking(professional, [first.id, second.id], TEN), headers=owner_headers
    )
    assert response.status_code == 422
    assert response.json()["field"] == "services"


def test_day_long_appointment_blocks_next_morning(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    long_service = make_service(db, owner, name="Dia de spa", duration=24 * 60)
    short_service = make_service(db, owner)

    first = client.post(
        "/appointments",
        json=booking(professional, [long_service.id], datetime(2026, 3, 10, 8, 0)),
        headers=owner_headers,
    )
    assert first.status_code == 200

    response = client.post(
        "/appointments",
        json=booking(professional, [short_service.id], datetime(2026, 3, 11, 7, 30)),
        headers=owner_headers,
    )
    assert response.status_code == 409

    response = client.post(
        "/appointments",
        json=booking(professional, [short_service.id], datetime(2026, 3, 11, 8, 0)),
        headers=owner_headers,
    )
    assert response.status_code == 200


def test_package_credit_pays_for_session(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, price=60.0)
    customer = make_customer(db, owner)
    package = make_package(db, owner, [(service, 2)])
    customer_package = sell_package(db, owner, customer, package)

    prices = []
    for hour in (9, 11, 13):
        body = client.post(
            "/appointments",
            json=booking(professional, [service.id], datetime(2026, 3, 10, hour)),
            headers=owner_headers,
        ).json()
        prices.append(body["totalPrice"])

    assert prices == [0, 0, 60.0]
    db.expire_all()
    balance = db.query(CustomerPackageService).filter_by(customer_package_id=customer_package.id).one()
    assert balance.sessions_remaining == 0


def test_use_package_false_charges_full_price(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, price=60.0)
    customer = make_customer(db, owner)
    sell_package(db, owner, customer, make_package(db, owner, [(service, 1)]))

    body = booking(professional, [service.id], TEN)
    body["services"] = [{"serviceId": service.id, "usePackage": False}]
    response = client.post("/appointments", json=body, headers=owner_headers).json()

    assert response["totalPrice"] == 60.0
    assert response["services"][0]["usedPackageSession"] is False


def test_cancel_refunds_credit_and_reprices_line(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, price=60.0)
    customer = make_customer(db, owner)
    customer_package = sell_package(db, owner, customer, make_package(db, owner, [(service, 1)]))
    created = client.post(
        "/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers
    ).json()
    assert created["totalPrice"] == 0

    cancelled = client.patch(
        f"/appointments/{created['id']}/status", json={"status": "cancelled"}, headers=owner_headers
    ).json()

    assert cancelled["totalPrice"] == 60.0
    assert cancelled["services"][0]["usedPackageSession"] is False
    db.expire_all()
    balance = db.query(CustomerPackageService).filter_by(customer_package_id=customer_package.id).one()
    assert balance.sessions_remaining == 1


def test_delete_refunds_credit(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)
    customer = make_customer(db, owner)
    customer_package = sell_package(db, owner, customer, make_package(db, owner, [(service, 1)]))
    created = client.post(
        "/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers
    ).json()

    assert client.delete(f"/appointments/{created['id']}", headers=owner_headers).status_code == 200

    db.expire_all()
    balance = db.query(CustomerPackageService).filter_by(customer_package_id=customer_package.id).one()
    assert balance.sessions_remaining == 1
    assert client.get(f"/appointments/{created['id']}", headers=owner_headers).status_code == 404


def test_completing_writes_commissions_and_reopening_removes_them(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    cut = make_service(db, owner, name="Corte", price=100.0, commission=10.0)
    color = make_service(db, owner, name="Coloração", price=200.0, commission=10.0)
    assign(db, professional, color, commission=40.0)
    created = client.post(
        "/appointments", json=booking(professional, [cut.id, color.id], TEN), headers=owner_headers
    ).json()

    client.patch(f"/appointments/{created['id']}/status", json={"status": "completed"}, headers=owner_headers)

    rows = db.query(ProfessionalCommission).order_by(ProfessionalCommission.service_price).all()
    assert [(r.service_price, r.commission_percentage, r.commission_amount) for r in rows] == [
        (100.0, 10.0, 10.0),
        (200.0, 40.0, 80.0),
    ]
    assert all(r.paid_at is not None for r in rows)

    client.patch(f"/appointments/{created['id']}/status", json={"status": "confirmed"}, headers=owner_headers)
    db.expire_all()
    assert db.query(ProfessionalCommission).count() == 0


def test_package_session_commission_uses_catalog_price(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, price=50.0, commission=20.0)
    customer = make_customer(db, owner)
    sell_package(db, owner, customer, make_package(db, owner, [(service, 1)]))
    created = client.post(
        "/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers
    ).json()

    client.patch(f"/appointments/{created['id']}/status", json={"status": "completed"}, headers=owner_headers)

    row = db.query(ProfessionalCommission).one()
    assert row.service_price == 50.0
    assert row.commission_amount == 10.0


def test_professional_sees_only_own_appointments(client, db, owner, owner_headers):
    ana = make_professional(db, owner, name="Ana")
    bia = make_professional(db, owner, name="Bia")
    service = make_service(db, owner)
    client.post("/appointments", json=booking(ana, [service.id], TEN), headers=owner_headers)
    bia_appt = client.post("/appointments", json=booking(bia, [service.id], TEN), headers=owner_headers).json()

    listed = client.get("/appointments", headers=professional_headers(ana)).json()
    assert [a["professionalId"] for a in listed] == [ana.id]

    response = client.get(f"/appointments/{bia_appt['id']}", headers=professional_headers(ana))
    assert response.status_code == 404

    response = client.post(
        "/appointments", json=booking(bia, [service.id], TEN_THIRTY), headers=professional_headers(ana)
    )
    assert response.status_code == 403


def test_search_by_day_and_customer(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)
    client.post("/appointments", json=booking(professional, [service.id], TEN, name="Maria"), headers=owner_headers)
    client.post(
        "/appointments",
        json=booking(professional, [service.id], datetime(2026, 3, 11, 10), name="Paula", phone="5511977776666"),
        headers=owner_headers,
    )

    by_day = client.get("/appointments", params={"day": "2026-03-11"}, headers=owner_headers).json()
    assert [a["customerName"] for a in by_day] == ["Paula"]

    by_name = client.get("/appointments", params={"customerName": "mar"}, headers=owner_headers).json()
    assert [a["customerName"] for a in by_name] == ["Maria"]


def test_calendar_and_stats(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, price=40.0)
    first = client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers).json()
    client.post("/appointments", json=booking(professional, [service.id], TEN_THIRTY), headers=owner_headers)
    client.patch(f"/appointments/{first['id']}/status", json={"status": "completed"}, headers=owner_headers)

    calendar = client.get("/appointments/calendar", params={"year": 2026, "month": 3}, headers=owner_headers).json()
    assert calendar == [{"date": "2026-03-10", "count": 2}]

    stats = client.get("/appointments/stats", headers=owner_headers).json()
    assert stats["totalAppointments"] == 2
    assert stats["realizedRevenue"] == 40.0
    assert stats["projectedRevenue"] == 80.0
    assert stats["activeProfessionals"] == 1


def test_availability_marks_booked_slots(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner, duration=30)
    client.post("/appointments", json=booking(professional, [service.id], TEN), headers=owner_headers)

    slots = client.get(
        "/appointments/availability",
        params={"professionalId": professional.id, "date": "2026-03-10", "serviceIds": [service.id]},
        headers=owner_headers,
    ).json()
    by_time = {s["start"][11:16]: s["available"] for s in slots}
    assert by_time["09:30"] is True
    assert by_time["10:00"] is False
    assert by_time["10:30"] is True


def test_batch_delete(client, db, owner, owner_headers):
    professional = make_professional(db, owner)
    service = make_service(db, owner)
    ids = [
        client.post(
            "/appointments",
            json=booking(professional, [service.id], datetime(2026, 3, 10, hour)),
            headers=owner_headers,
        ).json()["id"]
        for hour in (9, 10)
    ]

    response = client.post("/appointments/batch-delete", json={"appointmentIds": ids}, headers=owner_headers)
    assert response.json()["deletedCount"] == 2


def test_requests_without_token_are_unauthorized(client):
    assert client.get("/appointments").status_code in (401, 403)
