def test_any_role_lists_companies(client, portal):
    response = client.get("/api/admin/companies", headers=portal.headers(portal.reservist))

    assert response.status_code == 200
    assert [c["code"] for c in response.json()["data"]] == ["ALPHA", "BRAVO"]


def test_active_filter(client, portal, factory):
    factory.company("CHARLIE", is_active=False)

    response = client.get("/api/admin/companies", params={"active": "true"}, headers=portal.headers(portal.staff))

    assert [c["code"] for c in response.json()["data"]] == ["ALPHA", "BRAVO"]


def test_super_admin_creates_company(client, portal):
    response = client.post("/api/admin/companies", json={"code": " delta ", "name": "Delta Company"},
                           headers=portal.headers(portal.super_admin))

    assert response.status_code == 201
    assert response.json()["data"]["code"] == "DELTA"
    assert response.json()["data"]["is_active"] is True


def test_create_company_rules(client, portal):
    headers = portal.headers(portal.super_admin)

    duplicate = client.post("/api/admin/companies", json={"code": "alpha", "name": "Again"}, headers=headers)
    assert duplicate.status_code == 409

    short = client.post("/api/admin/companies", json={"code": "X", "name": "Xray"}, headers=headers)
    assert short.json()["error"] == "Company code must be at least 2 characters"

    missing = client.post("/api/admin/companies", json={"code": "ECHO"}, headers=headers)
    assert missing.json()["error"] == "Missing required fields: code, name"


def test_admin_cannot_create_company(client, portal):
    response = client.post("/api/admin/companies", json={"code": "ECHO", "name": "Echo Company"},
                           headers=portal.headers(portal.admin))

    assert response.status_code == 403


def test_admin_updates_company(client, portal):
    response = client.put("/api/admin/companies/alpha", json={"name": "Alpha Company"},
                          headers=portal.headers(portal.admin))

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Alpha Company"

    empty = client.put("/api/admin/companies/ALPHA", json={}, headers=portal.headers(portal.admin))
    assert empty.json()["error"] == "No fields to update"


def test_deactivate_company_keeps_assignments(client, portal):
    headers = portal.headers(portal.admin)

    response = client.delete("/api/admin/companies/BRAVO", headers=headers)

    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False
    assert response.json()["message"] == "Company deactivated successfully (1 assignments remain)"

    again = client.delete("/api/admin/companies/BRAVO", headers=headers)
    assert again.status_code == 400
    assert again.json()["error"] == "Company is already deactivated"


def test_staff_cannot_change_companies(client, portal):
    response = client.delete("/api/admin/companies/ALPHA", headers=portal.headers(portal.staff))

    assert response.status_code == 403


def test_unknown_company(client, portal):
    response = client.put("/api/admin/companies/ZULU", json={"name": "Zulu"}, headers=portal.headers(portal.admin))

    assert response.status_code == 404
