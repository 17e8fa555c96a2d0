from database.models import NotificationType


def test_list_filters_by_read_and_type(client, portal, factory):
    factory.notification(portal.reservist, title="Unread system")
    factory.notification(portal.reservist, title="Read system", is_read=True)
    factory.notification(portal.reservist, title="Training note", notification_type=NotificationType.TRAINING)
    factory.notification(portal.bravo_reservist, title="Someone else")
    headers = portal.headers(portal.reservist)

    everything = client.get("/api/notifications", headers=headers).json()
    assert everything["pagination"]["total"] == 3

    unread = client.get("/api/notifications", params={"read": "false"}, headers=headers).json()["data"]
    assert sorted(n["title"] for n in unread) == ["Training note", "Unread system"]

    training = client.get("/api/notifications", params={"type": "training"}, headers=headers).json()["data"]
    assert [n["title"] for n in training] == ["Training note"]


def test_unknown_type_filter(client, portal):
    response = client.get("/api/notifications", params={"type": "gossip"}, headers=portal.headers(portal.reservist))

    assert response.status_code == 400


def test_unread_count_and_mark_all_read(client, portal, factory):
    factory.notification(portal.reservist)
    factory.notification(portal.reservist)
    headers = portal.headers(portal.reservist)

    assert client.get("/api/notifications/unread-count", headers=headers).json()["data"]["count"] == 2

    marked = client.put("/api/notifications/mark-all-read", headers=headers)
    assert marked.json()["data"]["count"] == 2
    assert client.get("/api/notifications/unread-count", headers=headers).json()["data"]["count"] == 0


def test_mark_single_notification_read(client, portal, factory):
    notification_id = factory.notification(portal.staff)

    response = client.put(f"/api/notifications/{notification_id}/read", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    assert response.json()["data"]["is_read"] is True


def test_cannot_mark_another_users_notification(client, portal, factory):
    notification_id = factory.notification(portal.bravo_reservist)

    response = client.put(f"/api/notifications/{notification_id}/read", headers=portal.headers(portal.reservist))

    assert response.status_code == 404
    assert response.json()["error"] == "Notification not found"
