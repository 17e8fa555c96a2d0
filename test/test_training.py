from database.models import (
    Notification, NotificationType, RegistrationStatus, TrainingHours, TrainingRegistration, TrainingSession,
    TrainingStatus,
)


def test_create_training_defaults(client, portal):
    response = client.post("/api/staff/training", json={
        "title": "Map Reading",
        "company": "ALPHA",
        "scheduled_date": "2030-03-01T08:00:00Z",
        "capacity": 20,
    }, headers=portal.headers(portal.staff))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "scheduled"
    assert data["training_category"] == "Other"
    assert data["scheduled_date"] == "2030-03-01T08:00:00"


def test_create_training_validation(client, portal):
    headers = portal.headers(portal.staff)

    no_title = client.post("/api/staff/training", json={"scheduled_date": "2030-03-01"}, headers=headers)
    assert no_title.json()["error"] == "Title is required"

    bad_capacity = client.post("/api/staff/training", json={
        "title": "Drill", "scheduled_date": "2030-03-01", "capacity": 0
    }, headers=headers)
    assert bad_capacity.status_code == 400
    assert bad_capacity.json()["error"] == "Capacity must be greater than 0"

    backwards = client.post("/api/staff/training", json={
        "title": "Drill", "scheduled_date": "2030-03-02", "end_date": "2030-03-01"
    }, headers=headers)
    assert backwards.json()["error"] == "End date must be after scheduled date"


def test_staff_cannot_create_training_for_other_company(client, portal):
    response = client.post("/api/staff/training", json={
        "title": "Drill", "company": "BRAVO", "scheduled_date": "2030-03-01"
    }, headers=portal.headers(portal.staff))

    assert response.status_code == 403


def test_list_includes_system_wide_sessions_with_stats(client, portal, factory):
    alpha = factory.training(company="ALPHA", title="Alpha drill")
    factory.training(company="BRAVO", title="Bravo drill")
    factory.training(company=None, title="Battalion seminar")
    factory.register(alpha, portal.reservist)

    response = client.get("/api/staff/training", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    titles = sorted(s["title"] for s in response.json()["data"])
    assert titles == ["Alpha drill", "Battalion seminar"]
    alpha_row = next(s for s in response.json()["data"] if s["id"] == alpha)
    assert alpha_row["registration_count"] == 1


def test_attendance_marks_no_shows_and_starts_session(client, portal, factory, db_session):
    second = factory.reservist("alpha.two@example.com", company="ALPHA")
    session_id = factory.training()
    factory.register(session_id, portal.reservist)
    factory.register(session_id, second)

    response = client.post(f"/api/staff/training/{session_id}/attendance",
                           json={"reservist_ids": [portal.reservist]}, headers=portal.headers(portal.staff))

    assert response.status_code == 200
    assert response.json()["data"]["marked_count"] == 1
    assert response.json()["data"]["no_show_count"] == 1

    statuses = {
        r.reservist_id: r.status
        for r in db_session.query(TrainingRegistration).filter(
            TrainingRegistration.training_session_id == session_id
        )
    }
    assert statuses == {portal.reservist: RegistrationStatus.ATTENDED, second: RegistrationStatus.NO_SHOW}

    detail = client.get(f"/api/staff/training/{session_id}", headers=portal.headers(portal.staff)).json()["data"]
    assert detail["status"] == "ongoing"


def test_attendance_input_errors(client, portal, factory):
    session_id = factory.training()
    headers = portal.headers(portal.staff)

    not_a_list = client.post(f"/api/staff/training/{session_id}/attendance",
                             json={"reservist_ids": "12"}, headers=headers)
    assert not_a_list.json()["error"] == "Invalid input: reservist_ids must be an array"

    empty = client.post(f"/api/staff/training/{session_id}/attendance", json={"reservist_ids": []}, headers=headers)
    assert empty.json()["error"] == "No reservists provided"

    no_registrations = client.post(f"/api/staff/training/{session_id}/attendance",
                                   json={"reservist_ids": [portal.reservist]}, headers=headers)
    assert no_registrations.status_code == 404


def test_attendance_rejects_unregistered_reservist(client, portal, factory):
    session_id = factory.training()
    factory.register(session_id, portal.reservist)

    response = client.post(f"/api/staff/training/{session_id}/attendance",
                           json={"reservist_ids": [portal.reservist, 9999]}, headers=portal.headers(portal.staff))

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid reservist IDs: 9999"


def test_complete_awards_hours_and_notifies(client, portal, factory, db_session):
    session_id = factory.training()
    factory.register(session_id, portal.reservist)

    response = client.post(f"/api/staff/training/{session_id}/complete", json={
        "awards": [{"reservist_id": portal.reservist, "hours_completed": 8, "completion_status": "passed"}],
        "training_category": "Combat",
    }, headers=portal.headers(portal.staff))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["training_session"]["status"] == "completed"
    assert data["notifications_sent"] == 1
    assert data["hours_awarded"][0]["training_category"] == "Combat"

    hours = db_session.query(TrainingHours).filter(TrainingHours.reservist_id == portal.reservist).one()
    assert hours.hours_completed == 8
    notification = db_session.query(Notification).filter(Notification.user_id == portal.reservist).one()
    assert notification.type == NotificationType.TRAINING
    assert notification.title == "Training Completed - Passed"


def test_reaward_conflicts(client, portal, factory):
    session_id = factory.training()
    factory.register(session_id, portal.reservist)
    body = {"awards": [{"reservist_id": portal.reservist, "hours_completed": 4, "completion_status": "passed"}]}
    headers = portal.headers(portal.staff)

    assert client.post(f"/api/staff/training/{session_id}/complete", json=body, headers=headers).status_code == 200

    again = client.post(f"/api/staff/training/{session_id}/complete", json=body, headers=headers)
    assert again.status_code == 409


def test_complete_validates_awards(client, portal, factory):
    session_id = factory.training()
    factory.register(session_id, portal.reservist)
    headers = portal.headers(portal.staff)
    url = f"/api/staff/training/{session_id}/complete"

    too_many = client.post(url, json={"awards": [
        {"reservist_id": portal.reservist, "hours_completed": 800, "completion_status": "passed"}
    ]}, headers=headers)
    assert too_many.json()["error"] == "hours_completed cannot exceed 720 hours"

    bad_status = client.post(url, json={"awards": [
        {"reservist_id": portal.reservist, "hours_completed": 8, "completion_status": "excellent"}
    ]}, headers=headers)
    assert bad_status.json()["error"] == "Invalid completion_status"

    unregistered = client.post(url, json={"awards": [
        {"reservist_id": portal.bravo_reservist, "hours_completed": 8, "completion_status": "passed"}
    ]}, headers=headers)
    assert unregistered.status_code == 400
    assert unregistered.json()["error"].startswith("Reservists not registered for this training")


def test_completed_session_cannot_be_deleted_or_edited(client, portal, factory):
    session_id = factory.training(status=TrainingStatus.COMPLETED)
    headers = portal.headers(portal.staff)

    assert client.delete(f"/api/staff/training/{session_id}", headers=headers).status_code == 403
    edit = client.put(f"/api/staff/training/{session_id}", json={"location": "Camp Aguinaldo"}, headers=headers)
    assert edit.status_code == 400


def test_reservist_registration_rules(client, portal, factory):
    session_id = factory.training(capacity=1)
    headers = portal.headers(portal.reservist)

    first = client.post(f"/api/reservist/training/{session_id}/register", headers=headers)
    assert first.status_code == 201

    duplicate = client.post(f"/api/reservist/training/{session_id}/register", headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Already registered for this training"

    second = factory.reservist("alpha.two@example.com", company="ALPHA")
    full = client.post(f"/api/reservist/training/{session_id}/register", headers=portal.headers(second))
    assert full.status_code == 409
    assert full.json()["error"] == "Training session is full"


def test_reservist_cannot_register_for_other_company(client, portal, factory):
    session_id = factory.training(company="BRAVO")

    response = client.post(f"/api/reservist/training/{session_id}/register", headers=portal.headers(portal.reservist))

    assert response.status_code == 404


def test_reservist_training_hours_total_counts_passed_only(client, portal, factory):
    headers = portal.headers(portal.staff)
    for hours, outcome in ((8, "passed"), (5, "failed")):
        session_id = factory.training()
        factory.register(session_id, portal.reservist)
        client.post(f"/api/staff/training/{session_id}/complete", json={"awards": [
            {"reservist_id": portal.reservist, "hours_completed": hours, "completion_status": outcome}
        ]}, headers=headers)

    response = client.get("/api/reservist/training-hours", headers=portal.headers(portal.reservist))

    assert response.status_code == 200
    assert len(response.json()["data"]) == 2
    assert response.json()["total_hours"] == 8


def test_outcome_counters_cover_every_registration(client, portal, factory):
    session_id = factory.training()
    factory.register(session_id, portal.reservist)

    response = client.get("/api/staff/training", headers=portal.headers(portal.staff))

    row = next(s for s in response.json()["data"] if s["id"] == session_id)
    assert row["registration_count"] == 1
    assert row["completed_count"] == 0
    assert row["pending_count"] == 1
    assert row["passed_count"] == 0


def test_staff_cannot_change_other_company_session(client, portal, factory, db_session):
    session_id = factory.training(company="BRAVO", title="Bravo drill")
    factory.register(session_id, portal.bravo_reservist)
    headers = portal.headers(portal.staff)
    url = f"/api/staff/training/{session_id}"

    attendance = client.post(f"{url}/attendance", json={"reservist_ids": [portal.bravo_reservist]}, headers=headers)
    assert attendance.status_code == 403

    complete = client.post(f"{url}/complete", json={"awards": [
        {"reservist_id": portal.bravo_reservist, "hours_completed": 8, "completion_status": "passed"}
    ]}, headers=headers)
    assert complete.status_code == 403

    assert client.put(url, json={"title": "Renamed"}, headers=headers).status_code == 403
    assert client.delete(url, headers=headers).status_code == 403

    session = db_session.query(TrainingSession).filter(TrainingSession.id == session_id).one()
    assert session.title == "Bravo drill"
    assert session.status == TrainingStatus.SCHEDULED
    registration = db_session.query(TrainingRegistration).filter(
        TrainingRegistration.training_session_id == session_id
    ).one()
    assert registration.status == RegistrationStatus.REGISTERED
    assert db_session.query(TrainingHours).count() == 0
