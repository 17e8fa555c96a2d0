from database.models import Account, AccountRole, AccountStatus, AuditLog

from conftest import PASSWORD


def test_login_returns_tokens_and_sets_cookie(client, portal):
    response = client.post("/api/auth/login", json={"email": "alpha.one@example.com", "password": PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["token_type"] == "bearer"
    assert body["data"]["user"]["role"] == "reservist"
    assert "access_token" in response.cookies


def test_login_wrong_password_is_audited(client, portal, db_session):
    response = client.post("/api/auth/login", json={"email": "alpha.one@example.com", "password": "Wrong0ne!"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid email or password"}
    assert db_session.query(AuditLog).filter(AuditLog.action == "login_failed").count() == 1


def test_pending_account_cannot_login(client, factory):
    factory.company("ALPHA")
    factory.reservist("pending@example.com", status=AccountStatus.PENDING)

    response = client.post("/api/auth/login", json={"email": "pending@example.com", "password": PASSWORD})

    assert response.status_code == 403
    assert response.json()["error"] == "account_not_active"


def test_token_of_deactivated_account_is_refused(client, factory):
    factory.company("ALPHA")
    account_id = factory.reservist("gone@example.com", status=AccountStatus.DEACTIVATED)

    response = client.get("/api/auth/me", headers=factory.headers(account_id))

    assert response.status_code == 403


def test_register_creates_pending_reservist(client, factory, db_session):
    factory.company("ALPHA")
    response = client.post("/api/auth/register", json={
        "email": "New.Recruit@Example.com",
        "password": PASSWORD,
        "first_name": "Ana",
        "last_name": "Lopez",
        "service_number": "O-123456",
        "company": "alpha",
    })

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["reservist_details"]["company"] == "ALPHA"

    account = db_session.query(Account).filter(Account.email == "new.recruit@example.com").one()
    assert account.role == AccountRole.RESERVIST


def test_register_rejects_weak_password(client, factory):
    factory.company("ALPHA")
    response = client.post("/api/auth/register", json={
        "email": "weak@example.com",
        "password": "password",
        "first_name": "Weak",
        "last_name": "Password",
        "service_number": "O-000001",
    })

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_register_duplicate_service_number(client, factory):
    factory.company("ALPHA")
    payload = {
        "email": "first@example.com",
        "password": PASSWORD,
        "first_name": "First",
        "last_name": "Person",
        "service_number": "O-777",
    }
    assert client.post("/api/auth/register", json=payload).status_code == 201

    payload["email"] = "second@example.com"
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 409


def test_refresh_rotates_token(client, portal):
    login = client.post("/api/auth/login", json={"email": "admin@example.com", "password": PASSWORD}).json()
    refresh_token = login["data"]["refresh_token"]

    first = client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert first.status_code == 200
    assert first.json()["data"]["refresh_token"] != refresh_token

    # The old refresh token was revoked by the rotation
    second = client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert second.status_code == 401


def test_me_requires_authentication(client, portal):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_returns_staff_assignments(client, portal):
    response = client.get("/api/auth/me", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    assert response.json()["data"]["staff_details"]["assigned_companies"] == ["ALPHA"]
