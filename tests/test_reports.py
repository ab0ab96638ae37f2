import csv
import io
from datetime import datetime, time, timedelta

import pytest

from salonbook.utils.dates import utcnow

from .conftest import (
    booking,
    make_customer,
    make_package,
    make_professional,
    make_service,
    professional_headers,
    sell_package,
)


@pytest.fixture
def period():
    now = utcnow()
    return {"start": (now - timedelta(days=1)).isoformat(), "end": (now + timedelta(days=1)).isoformat()}


def today_at(hour):
    return datetime.combine(utcnow().date(), time(hour))


def complete(client, headers, appointment_id):
    client.patch(f"/appointments/{appointment_id}/status", json={"status": "completed"}, headers=headers)


def test_financial_overview(client, db, owner, owner_headers, period):
    professional = make_professional(db, owner)
    service = make_service(db, owner, price=100.0, commission=30.0)
    customer = make_customer(db, owner, phone="5511900000009")
    package = make_package(db, owner, [(service, 2)], price=180.0)
    sell_package(db, owner, customer, package)
    sell_package(db, owner, customer, package, paid=False)

    done = client.post("/appointments", json=booking(professional, [service.id], today_at(9)), headers=owner_headers).json()
    client.post("/appointments", json=booking(professional, [service.id], today_at(11)), headers=owner_headers)
    complete(client, owner_headers, done["id"])

    report = client.get("/reports/overview", params=period, headers=owner_headers).json()
    assert report["packagesCount"] == 1
    assert report["packagesRevenue"] == 180.0
    assert report["servicesCount"] == 1
    assert report["servicesRevenue"] == 100.0
    assert report["totalRevenue"] == 280.0
    assert report["commissionsCost"] == 30.0
    assert report["netRevenue"] == 250.0


def test_range_must_be_ordered(client, owner_headers):
    response = client.get(
        "/reports/overview",
        params={"start": "2026-03-10T00:00:00", "end": "2026-03-01T00:00:00"},
        headers=owner_headers,
    )
    assert response.status_code == 422
    assert response.json()["field"] == "end"


def test_commission_report_per_professional(client, db, owner, owner_headers, period):
    ana = make_professional(db, owner, name="Ana")
    bia = make_professional(db, owner, name="Bia")
    service = make_service(db, owner, price=80.0, commission=25.0)
    for professional in (ana, bia):
        created = client.post(
            "/appointments", json=booking(professional, [service.id], today_at(10)), headers=owner_headers
        ).json()
        complete(client, owner_headers, created["id"])

    report = client.get("/reports/commissions", params=period, headers=owner_headers).json()
    assert report["totalCommission"] == 40.0
    assert [p["professionalName"] for p in report["professionals"]] == ["Ana", "Bia"]
    assert report["professionals"][0]["days"][0]["servicesValue"] == 80.0

    own = client.get("/reports/commissions", params=period, headers=professional_headers(ana)).json()
    assert [p["professionalName"] for p in own["professionals"]] == ["Ana"]

    response = client.get(
        "/reports/commissions",
        params={**period, "professionalId": bia.id},
        headers=professional_headers(ana),
    )
    assert response.status_code == 403


def test_financial_reports_are_owner_only(client, db, owner, period):
    professional = make_professional(db, owner)
    response = client.get("/reports/overview", params=period, headers=professional_headers(professional))
    assert response.status_code == 403


def test_csv_export(client, db, owner, owner_headers, period):
    professional = make_professional(db, owner, name="Ana")
    service = make_service(db, owner, name="Corte", price=55.0)
    client.post(
        "/appointments",
        json=booking(professional, [service.id], today_at(14), name="Maria"),
        headers=owner_headers,
    )

    response = client.get("/reports/export", params=period, headers=owner_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0][0] == "ID"
    assert rows[1][3:7] == ["Ana", "Maria", "5511999990000", "Corte"]
    assert rows[1][9] == "55.00"


def test_monthly_report_validates_month(client, owner_headers):
    response = client.get("/reports/monthly", params={"year": 2026, "month": 13}, headers=owner_headers)
    assert response.status_code == 422
