from database.models import Notification, NotificationType


def _announcement(**overrides):
    body = {
        "title": "Muster formation",
        "content": "All personnel report to the parade ground at 0700.",
        "priority": "high",
        "target_companies": ["ALPHA"],
    }
    body.update(overrides)
    return body


def test_create_draft_does_not_notify(client, portal, db_session):
    response = client.post("/api/staff/announcements", json=_announcement(), headers=portal.headers(portal.staff))

    assert response.status_code == 201
    body = response.json()
    assert body["notifications_sent"] == 0
    assert body["data"]["published_at"] is None
    assert body["data"]["is_active"] is False
    assert db_session.query(Notification).count() == 0


def test_publish_now_notifies_targeted_reservists(client, portal, db_session):
    response = client.post("/api/staff/announcements", json=_announcement(publish_now=True),
                           headers=portal.headers(portal.staff))

    assert response.status_code == 201
    assert response.json()["notifications_sent"] == 1
    notification = db_session.query(Notification).one()
    assert notification.user_id == portal.reservist
    assert notification.type == NotificationType.ANNOUNCEMENT


def test_untargeted_announcement_reaches_every_company(client, portal):
    response = client.post("/api/staff/announcements", json=_announcement(target_companies=[], publish_now=True),
                           headers=portal.headers(portal.admin))

    assert response.json()["notifications_sent"] == 2
    assert response.json()["data"]["target_companies"] == []


def test_create_validation(client, portal):
    headers = portal.headers(portal.staff)

    short_title = client.post("/api/staff/announcements", json=_announcement(title="Hi"), headers=headers)
    assert short_title.json()["error"] == "Title must be at least 3 characters long"

    short_content = client.post("/api/staff/announcements", json=_announcement(content="Too short"), headers=headers)
    assert short_content.json()["error"] == "Content must be at least 10 characters long"

    bad_priority = client.post("/api/staff/announcements", json=_announcement(priority="critical"), headers=headers)
    assert bad_priority.status_code == 400
    assert bad_priority.json()["error"] == "Invalid priority. Must be: low, normal, high, or urgent"


def test_staff_cannot_target_unassigned_company(client, portal):
    response = client.post("/api/staff/announcements", json=_announcement(target_companies=["BRAVO"]),
                           headers=portal.headers(portal.staff))

    assert response.status_code == 403
    assert response.json()["error"] == "You can only target companies you are assigned to"


def test_staff_only_edit_their_own(client, portal, factory):
    created = client.post("/api/staff/announcements", json=_announcement(), headers=portal.headers(portal.staff))
    announcement_id = created.json()["data"]["id"]
    colleague = factory.staff("staff.two@example.com", companies=("ALPHA",))

    refused = client.put(f"/api/staff/announcements/{announcement_id}", json={"title": "Changed title"},
                         headers=portal.headers(colleague))
    assert refused.status_code == 403
    assert refused.json()["error"] == "You can only update your own announcements"

    allowed = client.put(f"/api/staff/announcements/{announcement_id}", json={"title": "Changed title"},
                         headers=portal.headers(portal.admin))
    assert allowed.status_code == 200
    assert allowed.json()["data"]["title"] == "Changed title"


def test_publishing_a_draft_later_notifies(client, portal, db_session):
    headers = portal.headers(portal.staff)
    announcement_id = client.post("/api/staff/announcements", json=_announcement(), headers=headers).json()["data"]["id"]

    response = client.put(f"/api/staff/announcements/{announcement_id}", json={"publish_now": True}, headers=headers)

    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is True
    assert db_session.query(Notification).filter(Notification.user_id == portal.reservist).count() == 1


def test_other_company_announcements_are_hidden(client, portal):
    client.post("/api/staff/announcements", json=_announcement(target_companies=["BRAVO"]),
                headers=portal.headers(portal.admin))

    response = client.get("/api/staff/announcements", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    assert response.json()["data"] == []


def test_reservist_sees_published_announcements_for_company(client, portal):
    admin = portal.headers(portal.admin)
    client.post("/api/staff/announcements", json=_announcement(title="Alpha news", publish_now=True), headers=admin)
    client.post("/api/staff/announcements",
                json=_announcement(title="Bravo news", target_companies=["BRAVO"], publish_now=True), headers=admin)
    client.post("/api/staff/announcements", json=_announcement(title="Draft news"), headers=admin)

    response = client.get("/api/reservist/announcements", headers=portal.headers(portal.reservist))

    assert [a["title"] for a in response.json()["data"]] == ["Alpha news"]


def test_delete_announcement(client, portal):
    headers = portal.headers(portal.staff)
    announcement_id = client.post("/api/staff/announcements", json=_announcement(), headers=headers).json()["data"]["id"]

    assert client.delete(f"/api/staff/announcements/{announcement_id}", headers=headers).status_code == 200
    missing = client.get(f"/api/staff/announcements/{announcement_id}", headers=headers)
    assert missing.status_code == 404
