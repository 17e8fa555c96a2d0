import time

from database.models import Notification, RidsForm, RidsStatus, RidsStatusHistory

import config


def test_staff_creates_draft_rids(client, portal):
    response = client.post(
        "/api/staff/rids",
        json={"reservist_id": portal.reservist, "present_occupation": "Teacher", "height_cm": 170},
        headers=portal.headers(portal.staff),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "draft"
    assert data["version"] == 1
    assert data["reservist"]["company"] == "ALPHA"


def test_second_rids_for_same_reservist_conflicts(client, portal, factory):
    factory.rids(portal.reservist)

    response = client.post("/api/staff/rids", json={"reservist_id": portal.reservist},
                           headers=portal.headers(portal.staff))

    assert response.status_code == 409


def test_staff_cannot_create_rids_outside_assigned_companies(client, portal):
    response = client.post("/api/staff/rids", json={"reservist_id": portal.bravo_reservist},
                           headers=portal.headers(portal.staff))

    assert response.status_code == 403


def test_submit_approve_lifecycle_records_history(client, portal, factory, db_session):
    rids_id = factory.rids(portal.reservist)
    headers = portal.headers(portal.staff)

    submitted = client.put(f"/api/staff/rids/{rids_id}/submit", headers=headers)
    assert submitted.status_code == 200
    assert submitted.json()["data"]["status"] == "submitted"

    approved = client.put(f"/api/staff/rids/{rids_id}/approve", headers=headers)
    assert approved.status_code == 200
    assert approved.json()["data"]["status"] == "approved"

    history = client.get(f"/api/staff/rids/{rids_id}/history", headers=headers).json()["data"]
    assert [(h["old_status"], h["new_status"]) for h in history] == [
        ("draft", "submitted"),
        ("submitted", "approved"),
    ]

    notification = db_session.query(Notification).filter(Notification.user_id == portal.reservist).one()
    assert notification.title == "RIDS Approved"


def test_approve_requires_submitted_status(client, portal, factory):
    rids_id = factory.rids(portal.reservist)

    response = client.put(f"/api/staff/rids/{rids_id}/approve", headers=portal.headers(portal.staff))

    assert response.status_code == 400
    assert response.json()["error"] == "Cannot approve RIDS with status: draft"


def test_reject_requires_reason(client, portal, factory):
    rids_id = factory.rids(portal.reservist, status=RidsStatus.SUBMITTED)
    headers = portal.headers(portal.staff)

    blank = client.put(f"/api/staff/rids/{rids_id}/reject", json={"rejection_reason": "   "}, headers=headers)
    assert blank.status_code == 400

    rejected = client.put(f"/api/staff/rids/{rids_id}/reject",
                          json={"rejection_reason": "Missing photo"}, headers=headers)
    assert rejected.status_code == 200
    assert rejected.json()["data"]["rejection_reason"] == "Missing photo"


def test_editing_rejected_rids_reverts_to_draft(client, portal, factory, db_session):
    rids_id = factory.rids(portal.reservist, status=RidsStatus.REJECTED)

    response = client.put(f"/api/staff/rids/{rids_id}", json={"religion": "Catholic"},
                          headers=portal.headers(portal.staff))

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "draft"
    history = db_session.query(RidsStatusHistory).filter(RidsStatusHistory.rids_id == rids_id).one()
    assert history.action_type == "revert"


def test_approved_rids_cannot_be_edited(client, portal, factory):
    rids_id = factory.rids(portal.reservist, status=RidsStatus.APPROVED)

    response = client.put(f"/api/staff/rids/{rids_id}", json={"religion": "Catholic"},
                          headers=portal.headers(portal.staff))

    assert response.status_code == 400


def test_only_draft_rids_can_be_deleted(client, portal, factory, db_session):
    submitted_id = factory.rids(portal.reservist, status=RidsStatus.SUBMITTED)
    headers = portal.headers(portal.staff)

    refused = client.delete(f"/api/staff/rids/{submitted_id}", headers=headers)
    assert refused.status_code == 403
    assert refused.json()["error"] == "Can only delete draft RIDS"

    draft_id = factory.rids(portal.bravo_reservist)
    deleted = client.delete(f"/api/staff/rids/{draft_id}", headers=portal.headers(portal.admin))
    assert deleted.status_code == 200
    assert db_session.query(RidsForm).filter(RidsForm.id == draft_id).first() is None


def test_change_status_is_admin_only(client, portal, factory):
    rids_id = factory.rids(portal.reservist, status=RidsStatus.APPROVED)
    body = {"new_status": "draft", "reason": "Correction needed"}

    staff = client.put(f"/api/staff/rids/{rids_id}/change-status", json=body, headers=portal.headers(portal.staff))
    assert staff.status_code == 403

    admin = client.put(f"/api/staff/rids/{rids_id}/change-status", json=body, headers=portal.headers(portal.admin))
    assert admin.status_code == 200
    assert admin.json()["data"]["status"] == "draft"
    assert admin.json()["data"]["approved_at"] is None


def test_sections_add_update_delete(client, portal, factory):
    rids_id = factory.rids(portal.reservist)
    headers = portal.headers(portal.staff)

    added = client.post(f"/api/staff/rids/{rids_id}/sections/active-duty", json={
        "unit": "1st Infantry Battalion",
        "date_start": "2023-01-01",
        "date_end": "2023-01-10",
    }, headers=headers)
    assert added.status_code == 201
    entry = added.json()["data"]
    assert entry["days_served"] == 10

    updated = client.put(f"/api/staff/rids/{rids_id}/sections/active-duty/{entry['id']}",
                         json={"purpose": "Annual training"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["purpose"] == "Annual training"

    detail = client.get(f"/api/staff/rids/{rids_id}", headers=headers).json()["data"]
    assert len(detail["sections"]["active_duty"]) == 1

    removed = client.delete(f"/api/staff/rids/{rids_id}/sections/active-duty/{entry['id']}", headers=headers)
    assert removed.status_code == 200


def test_section_requires_fields_and_known_name(client, portal, factory):
    rids_id = factory.rids(portal.reservist)
    headers = portal.headers(portal.staff)

    missing = client.post(f"/api/staff/rids/{rids_id}/sections/education", json={"course": "BS Nursing"},
                          headers=headers)
    assert missing.status_code == 400

    unknown = client.post(f"/api/staff/rids/{rids_id}/sections/hobbies", json={"name": "chess"}, headers=headers)
    assert unknown.status_code == 404


def test_upload_biometric_stores_locally(client, portal, factory):
    rids_id = factory.rids(portal.reservist)

    response = client.post(
        f"/api/staff/rids/{rids_id}/upload-biometric",
        data={"file_type": "signature"},
        files={"file": ("sig.png", b"\x89PNG fake image", "image/png")},
        headers=portal.headers(portal.staff),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["url"].startswith("/uploads/")
    assert data["rids"]["signature_url"] == data["url"]


def test_staff_list_only_shows_assigned_companies(client, portal, factory):
    factory.rids(portal.reservist)
    factory.rids(portal.bravo_reservist)

    response = client.get("/api/staff/rids", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    rows = response.json()["data"]
    assert [r["reservist"]["company"] for r in rows] == ["ALPHA"]
    assert response.json()["pagination"]["total"] == 1


def test_reservist_sees_own_rids(client, portal, factory):
    factory.rids(portal.reservist)

    response = client.get("/api/reservist/rids", headers=portal.headers(portal.reservist))

    assert response.status_code == 200
    assert response.json()["data"]["reservist_id"] == portal.reservist
    assert "sections" in response.json()["data"]


def test_staff_cannot_change_other_company_rids(client, portal, factory, db_session):
    draft_id = factory.rids(portal.bravo_reservist)
    headers = portal.headers(portal.staff)

    assert client.put(f"/api/staff/rids/{draft_id}/submit", headers=headers).status_code == 403
    assert client.put(f"/api/staff/rids/{draft_id}", json={"religion": "Catholic"}, headers=headers).status_code == 403
    section = client.post(f"/api/staff/rids/{draft_id}/sections/awards", json={
        "award_name": "Medal", "authority": "HQ", "date_awarded": "2020-01-01"
    }, headers=headers)
    assert section.status_code == 403
    upload = client.post(
        f"/api/staff/rids/{draft_id}/upload-biometric",
        data={"file_type": "photo"},
        files={"file": ("photo.png", b"\x89PNG fake image", "image/png")},
        headers=headers,
    )
    assert upload.status_code == 403

    draft = db_session.query(RidsForm).filter(RidsForm.id == draft_id).one()
    assert draft.status == RidsStatus.DRAFT
    assert draft.religion is None
    assert draft.photo_url is None


def test_staff_cannot_review_other_company_rids(client, portal, factory, db_session):
    submitted_id = factory.rids(portal.bravo_reservist, status=RidsStatus.SUBMITTED)
    headers = portal.headers(portal.staff)

    assert client.put(f"/api/staff/rids/{submitted_id}/approve", headers=headers).status_code == 403
    rejected = client.put(f"/api/staff/rids/{submitted_id}/reject", json={"rejection_reason": "Missing photo"},
                          headers=headers)
    assert rejected.status_code == 403
    assert client.delete(f"/api/staff/rids/{submitted_id}", headers=headers).status_code == 403

    form = db_session.query(RidsForm).filter(RidsForm.id == submitted_id).one()
    assert form.status == RidsStatus.SUBMITTED
    assert form.rejection_reason is None
    assert db_session.query(RidsStatusHistory).count() == 0


def test_replacing_biometric_removes_previous_file(client, portal, factory):
    rids_id = factory.rids(portal.reservist)
    headers = portal.headers(portal.staff)

    def upload(content):
        return client.post(
            f"/api/staff/rids/{rids_id}/upload-biometric",
            data={"file_type": "signature"},
            files={"file": ("sig.png", content, "image/png")},
            headers=headers,
        ).json()["data"]["url"]

    first = upload(b"\x89PNG first")
    first_path = config.UPLOADS_DIR / first[len("/uploads/"):]
    assert first_path.is_file()

    # Keys carry a millisecond timestamp
    time.sleep(0.01)
    second = upload(b"\x89PNG second")

    assert second != first
    assert not first_path.exists()
    assert (config.UPLOADS_DIR / second[len("/uploads/"):]).read_bytes() == b"\x89PNG second"


def test_text_fields_refuse_structured_values(client, portal, factory, db_session):
    rids_id = factory.rids(portal.reservist)
    headers = portal.headers(portal.staff)

    personal = client.put(f"/api/staff/rids/{rids_id}", json={"religion": {"name": "Catholic"}}, headers=headers)
    assert personal.status_code == 400
    assert personal.json()["error"].startswith("religion")

    section = client.post(f"/api/staff/rids/{rids_id}/sections/awards",
                          json={"award_name": ["Medal", "Ribbon"]}, headers=headers)
    assert section.status_code == 400
    assert section.json()["error"] == "award_name must be a string"

    assert db_session.query(RidsForm).filter(RidsForm.id == rids_id).one().religion is None


def test_numeric_text_values_are_stored_as_strings(client, portal, factory):
    rids_id = factory.rids(portal.reservist)

    response = client.post(f"/api/staff/rids/{rids_id}/sections/awards", json={"award_name": 1985},
                           headers=portal.headers(portal.staff))

    assert response.status_code == 201
    assert response.json()["data"]["award_name"] == "1985"
