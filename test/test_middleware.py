from database.models import AccountStatus


def test_signed_out_visitor_is_sent_to_signin(client, portal):
    response = client.get("/staff/reservists", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/signin?redirectedFrom=/staff/reservists"


def test_shared_pages_need_a_session(client, portal):
    response = client.get("/profile", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"].startswith("/signin?redirectedFrom=")


def test_wrong_dashboard_redirects_home(client, portal):
    staff = client.get("/admin/reservists", headers=portal.headers(portal.staff), follow_redirects=False)
    assert staff.status_code == 307
    assert staff.headers["location"] == "/staff"

    admin = client.get("/super-admin", headers=portal.headers(portal.admin), follow_redirects=False)
    assert admin.headers["location"] == "/admin"


def test_own_dashboard_passes_through(client, portal):
    response = client.get("/reservist", headers=portal.headers(portal.reservist), follow_redirects=False)

    # No page is served here; the request simply is not redirected
    assert response.status_code == 404


def test_signed_in_user_leaves_auth_pages(client, portal):
    response = client.get("/signin", headers=portal.headers(portal.super_admin), follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/super-admin"


def test_session_cookie_is_honoured(client, portal):
    token = portal.headers(portal.staff)["Authorization"].split(" ", 1)[1]

    response = client.get("/register", headers={"Cookie": f"access_token={token}"}, follow_redirects=False)

    assert response.headers["location"] == "/staff"


def test_inactive_account_is_sent_to_signin_message(client, portal, factory):
    inactive = factory.reservist("inactive@example.com", status=AccountStatus.INACTIVE)
    headers = factory.headers(inactive)

    response = client.get("/reservist", headers=headers, follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/signin?message=account_not_active"

    signin = client.get("/signin", headers=headers, follow_redirects=False)
    assert signin.status_code != 307


def test_api_paths_are_not_redirected(client, portal):
    response = client.get("/api/admin/stats", headers=portal.headers(portal.staff), follow_redirects=False)

    assert response.status_code == 403
    assert response.json()["success"] is False


def test_security_headers(client):
    response = client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "Strict-Transport-Security" not in response.headers


def test_validation_errors_use_envelope(client, portal):
    response = client.get("/api/notifications", params={"limit": 0}, headers=portal.headers(portal.reservist))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"].startswith("limit")


def test_unknown_api_route_uses_envelope(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}
