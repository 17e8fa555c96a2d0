from database.models import Account, AccountStatus

from conftest import PASSWORD


def test_super_admin_lists_administrators(client, portal):
    response = client.get("/api/admin/administrators", headers=portal.headers(portal.super_admin))

    assert response.status_code == 200
    emails = sorted(a["email"] for a in response.json()["data"])
    assert emails == ["admin@example.com", "super@example.com"]

    admins_only = client.get("/api/admin/administrators", params={"role": "admin"},
                             headers=portal.headers(portal.super_admin)).json()["data"]
    assert [a["email"] for a in admins_only] == ["admin@example.com"]


def test_admin_cannot_manage_administrators(client, portal):
    response = client.get("/api/admin/administrators", headers=portal.headers(portal.admin))

    assert response.status_code == 403


def test_create_administrator(client, portal):
    response = client.post("/api/admin/administrators", json={
        "email": "second.admin@example.com",
        "password": PASSWORD,
        "firstName": "Rosa",
        "lastName": "Diaz",
        "role": "admin",
    }, headers=portal.headers(portal.super_admin))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["role"] == "admin"
    assert data["status"] == "active"
    assert data["creator"]["id"] == portal.super_admin


def test_create_administrator_refuses_other_roles(client, portal):
    response = client.post("/api/admin/administrators", json={
        "email": "not.admin@example.com",
        "password": PASSWORD,
        "firstName": "Rosa",
        "lastName": "Diaz",
        "role": "staff",
    }, headers=portal.headers(portal.super_admin))

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid role. Must be admin or super_admin"


def test_update_administrator_status(client, portal, db_session):
    response = client.put(f"/api/admin/administrators/{portal.admin}", json={"status": "inactive"},
                          headers=portal.headers(portal.super_admin))

    assert response.status_code == 200
    assert db_session.query(Account).filter(Account.id == portal.admin).one().status == AccountStatus.INACTIVE


def test_super_admin_cannot_deactivate_or_delete_self(client, portal):
    headers = portal.headers(portal.super_admin)

    deactivate = client.put(f"/api/admin/administrators/{portal.super_admin}", json={"status": "deactivated"},
                            headers=headers)
    assert deactivate.status_code == 400
    assert deactivate.json()["error"] == "Cannot deactivate your own account"

    delete = client.delete(f"/api/admin/administrators/{portal.super_admin}", headers=headers)
    assert delete.status_code == 400
    assert delete.json()["error"] == "Cannot delete your own account"


def test_delete_administrator(client, portal, db_session):
    response = client.delete(f"/api/admin/administrators/{portal.admin}", headers=portal.headers(portal.super_admin))

    assert response.status_code == 200
    assert db_session.query(Account).filter(Account.id == portal.admin).first() is None


def test_non_admin_account_is_not_an_administrator(client, portal):
    response = client.get(f"/api/admin/administrators/{portal.staff}", headers=portal.headers(portal.super_admin))

    assert response.status_code == 404
