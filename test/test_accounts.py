from database.models import Account, AccountStatus, AccountStatusHistory, Notification


# ---------------------------------------------------------------------------
# Staff: reservists in assigned companies
# ---------------------------------------------------------------------------

def test_staff_lists_only_assigned_company(client, portal):
    response = client.get("/api/staff/reservists", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    emails = [r["email"] for r in response.json()["data"]]
    assert emails == ["alpha.one@example.com"]


def test_staff_filtering_unassigned_company_is_forbidden(client, portal):
    response = client.get("/api/staff/reservists", params={"company": "BRAVO"},
                          headers=portal.headers(portal.staff))

    assert response.status_code == 403
    assert response.json() == {"success": False, "error": "Access denied - Company not assigned to you"}


def test_staff_without_assignments_gets_empty_page(client, portal, factory):
    lonely = factory.staff("lonely@example.com", companies=())

    response = client.get("/api/staff/reservists", headers=portal.headers(lonely))

    assert response.status_code == 200
    assert response.json()["data"] == []
    assert response.json()["pagination"]["total"] == 0


def test_admin_sees_every_company(client, portal):
    response = client.get("/api/staff/reservists", params={"sortBy": "last_name", "sortOrder": "asc"},
                          headers=portal.headers(portal.admin))

    assert [r["last_name"] for r in response.json()["data"]] == ["Cruz", "Reyes"]


def test_invalid_sort_column(client, portal):
    response = client.get("/api/staff/reservists", params={"sortBy": "password"},
                          headers=portal.headers(portal.admin))

    assert response.status_code == 400


def test_reservist_detail_outside_scope(client, portal):
    response = client.get(f"/api/staff/reservists/{portal.bravo_reservist}", headers=portal.headers(portal.staff))

    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden - Reservist not in your assigned companies"


def test_staff_updates_reservist_profile(client, portal):
    response = client.put(f"/api/staff/reservists/{portal.reservist}", json={"rank": "Corporal", "phone": "0917"},
                          headers=portal.headers(portal.staff))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["reservist_details"]["rank"] == "Corporal"
    assert data["phone"] == "0917"


def test_staff_cannot_move_reservist_to_unassigned_company(client, portal):
    response = client.put(f"/api/staff/reservists/{portal.reservist}", json={"company": "BRAVO"},
                          headers=portal.headers(portal.staff))

    assert response.status_code == 403


def test_staff_toggles_active_inactive(client, portal, db_session):
    response = client.put(f"/api/staff/reservists/{portal.reservist}/change-status",
                          json={"status": "inactive", "reason": "On leave"}, headers=portal.headers(portal.staff))

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "inactive"
    history = db_session.query(AccountStatusHistory).filter(AccountStatusHistory.account_id == portal.reservist).one()
    assert history.reason == "On leave"
    notification = db_session.query(Notification).filter(Notification.user_id == portal.reservist).one()
    assert notification.title == "Account Status Changed to Inactive"


def test_staff_status_change_rules(client, portal, factory):
    headers = portal.headers(portal.staff)
    url = f"/api/staff/reservists/{portal.reservist}/change-status"

    assert client.put(url, json={"status": "inactive"}, headers=headers).json()["error"] == \
        "Status and reason are required"
    assert client.put(url, json={"status": "deactivated", "reason": "x"}, headers=headers).json()["error"] == \
        "Staff can only set status to active or inactive"
    assert client.put(url, json={"status": "inactive", "reason": "  "}, headers=headers).json()["error"] == \
        "Reason cannot be empty"
    assert client.put(url, json={"status": "active", "reason": "x"}, headers=headers).json()["error"] == \
        "Account is already active"

    pending = factory.reservist("waiting@example.com", status=AccountStatus.PENDING)
    refused = client.put(f"/api/staff/reservists/{pending}/change-status",
                         json={"status": "active", "reason": "Looks fine"}, headers=headers)
    assert refused.status_code == 403
    assert refused.json()["error"] == "Cannot modify pending accounts. Contact an administrator."


# ---------------------------------------------------------------------------
# Admin: approval workflow and status override
# ---------------------------------------------------------------------------

def test_admin_approves_pending_reservist(client, portal, factory, db_session):
    pending = factory.reservist("waiting@example.com", status=AccountStatus.PENDING)

    response = client.put(f"/api/admin/reservists/{pending}/approve", headers=portal.headers(portal.admin))

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "active"
    account = db_session.query(Account).filter(Account.id == pending).one()
    assert account.approved_by == portal.admin

    again = client.put(f"/api/admin/reservists/{pending}/approve", headers=portal.headers(portal.admin))
    assert again.json()["error"] == "This account is already approved"


def test_admin_reject_uses_default_reason(client, portal, factory):
    pending = factory.reservist("waiting@example.com", status=AccountStatus.PENDING)

    response = client.put(f"/api/admin/reservists/{pending}/reject", headers=portal.headers(portal.admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "deactivated"
    assert data["rejection_reason"] == "Account rejected by administrator"


def test_reactivate_and_revert_rules(client, portal):
    headers = portal.headers(portal.admin)

    not_deactivated = client.put(f"/api/admin/reservists/{portal.reservist}/reactivate", headers=headers)
    assert not_deactivated.json()["error"] == "Only deactivated or inactive accounts can be reactivated"

    reverted = client.put(f"/api/admin/reservists/{portal.reservist}/revert-to-pending",
                          json={"reason": "Documents expired"}, headers=headers)
    assert reverted.status_code == 200
    assert reverted.json()["data"]["status"] == "pending"


def test_approve_refuses_non_reservist(client, portal):
    response = client.put(f"/api/admin/reservists/{portal.staff}/approve", headers=portal.headers(portal.admin))

    assert response.status_code == 400
    assert response.json()["error"] == "This account is not a reservist account"


def test_admin_cannot_deactivate_self(client, portal):
    response = client.put(f"/api/admin/accounts/{portal.admin}/change-status",
                          json={"status": "deactivated", "reason": "Leaving"}, headers=portal.headers(portal.admin))

    assert response.status_code == 400
    assert response.json()["error"] == "Cannot deactivate your own account"


def test_admin_change_status_on_staff_account(client, portal):
    response = client.put(f"/api/admin/accounts/{portal.staff}/change-status",
                          json={"status": "inactive", "reason": "Transferred"}, headers=portal.headers(portal.admin))

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "inactive"


def test_reservist_change_status_route_refuses_other_roles(client, portal):
    response = client.put(f"/api/admin/reservists/{portal.staff}/change-status",
                          json={"status": "inactive", "reason": "Transferred"}, headers=portal.headers(portal.admin))

    assert response.status_code == 400
    assert response.json()["error"] == "This account is not a reservist account"


def test_admin_cannot_change_administrator_status(client, portal, db_session):
    headers = portal.headers(portal.admin)
    body = {"status": "deactivated", "reason": "Lockout attempt"}

    refused = client.put(f"/api/admin/accounts/{portal.super_admin}/change-status", json=body, headers=headers)
    assert refused.status_code == 403
    assert refused.json()["error"] == "Only a super admin can change the status of administrator accounts"

    via_reservists = client.put(f"/api/admin/reservists/{portal.super_admin}/change-status", json=body,
                                headers=headers)
    assert via_reservists.status_code == 400

    super_admin = db_session.query(Account).filter(Account.id == portal.super_admin).one()
    assert super_admin.status == AccountStatus.ACTIVE
    assert client.get("/api/auth/me", headers=portal.headers(portal.super_admin)).status_code == 200


def test_super_admin_changes_admin_status(client, portal):
    response = client.put(f"/api/admin/accounts/{portal.admin}/change-status",
                          json={"status": "inactive", "reason": "Extended leave"},
                          headers=portal.headers(portal.super_admin))

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "inactive"


def test_admin_endpoints_refuse_staff(client, portal):
    response = client.get("/api/admin/reservists", headers=portal.headers(portal.staff))

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Admin: staff accounts
# ---------------------------------------------------------------------------

def test_admin_creates_staff_with_assignments(client, portal):
    response = client.post("/api/admin/staff", json={
        "email": "clerk@example.com",
        "password": "Passw0rd!",
        "firstName": "Liza",
        "lastName": "Garcia",
        "assignedCompanies": ["alpha", "BRAVO"],
    }, headers=portal.headers(portal.admin))

    assert response.status_code == 201
    assert response.json()["data"]["staff_details"]["assigned_companies"] == ["ALPHA", "BRAVO"]


def test_create_staff_requires_fields(client, portal):
    response = client.post("/api/admin/staff", json={"email": "clerk@example.com"},
                           headers=portal.headers(portal.admin))

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields: email, firstName, lastName, password"


def test_update_staff_reassigns_companies(client, portal):
    response = client.put(f"/api/admin/staff/{portal.staff}", json={"assignedCompanies": ["BRAVO"]},
                          headers=portal.headers(portal.admin))

    assert response.status_code == 200
    assert response.json()["data"]["staff_details"]["assigned_companies"] == ["BRAVO"]

    listing = client.get("/api/staff/reservists", headers=portal.headers(portal.staff)).json()["data"]
    assert [r["email"] for r in listing] == ["bravo.one@example.com"]


def test_admin_stats(client, portal, factory):
    factory.reservist("waiting@example.com", status=AccountStatus.PENDING)

    response = client.get("/api/admin/stats", headers=portal.headers(portal.admin))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["totalCompanies"] == 2
    assert data["totalReservists"] == 3
    assert data["pendingActions"] == 1
