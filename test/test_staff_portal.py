from database.models import AccountStatus, DocumentStatus, RidsStatus


def test_staff_profile_lists_assignments(client, portal):
    response = client.get("/api/staff/me", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    assert response.json()["data"]["staff_details"]["assigned_companies"] == ["ALPHA"]


def test_reservist_cannot_open_staff_portal(client, portal):
    response = client.get("/api/staff/me", headers=portal.headers(portal.reservist))

    assert response.status_code == 403


def test_dashboard_stats_are_scoped(client, portal, factory):
    factory.reservist("waiting@example.com", status=AccountStatus.PENDING)
    factory.document(portal.reservist, status=DocumentStatus.PENDING)
    factory.document(portal.bravo_reservist, status=DocumentStatus.PENDING)
    factory.rids(portal.reservist, status=RidsStatus.SUBMITTED)
    factory.rids(portal.bravo_reservist)
    factory.training(company="ALPHA")
    factory.training(company=None)
    factory.training(company="BRAVO")

    response = client.get("/api/staff/dashboard-stats", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["totalReservists"] == 2
    assert data["activeReservists"] == 1
    assert data["pendingActions"] == 1
    assert data["pendingDocuments"] == 1
    assert data["upcomingTrainings"] == 2
    assert data["rids"]["submitted"] == 1
    assert data["rids"]["draft"] == 0


def test_dashboard_stats_for_staff_without_assignments(client, portal, factory):
    lonely = factory.staff("lonely@example.com", companies=())

    data = client.get("/api/staff/dashboard-stats", headers=portal.headers(lonely)).json()["data"]

    assert data["totalReservists"] == 0
    assert data["upcomingTrainings"] == 0
