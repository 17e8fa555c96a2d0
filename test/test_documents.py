from database.models import Document, DocumentStatus, Notification


def test_validate_pending_document(client, portal, factory, db_session):
    document_id = factory.document(portal.reservist)

    response = client.put(f"/api/staff/documents/{document_id}/validate", json={"notes": "Looks good"},
                          headers=portal.headers(portal.staff))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "verified"
    assert data["validated_by"] == portal.staff
    assert data["validator"]["id"] == portal.staff

    notification = db_session.query(Notification).filter(Notification.user_id == portal.reservist).one()
    assert notification.title == "Document Verified"


def test_validate_without_body(client, portal, factory):
    document_id = factory.document(portal.reservist)

    response = client.put(f"/api/staff/documents/{document_id}/validate", headers=portal.headers(portal.staff))

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "verified"


def test_validate_refuses_non_pending(client, portal, factory):
    document_id = factory.document(portal.reservist, status=DocumentStatus.REJECTED)

    response = client.put(f"/api/staff/documents/{document_id}/validate", headers=portal.headers(portal.staff))

    assert response.status_code == 400


def test_change_status_requires_reason(client, portal, factory):
    document_id = factory.document(portal.reservist)

    response = client.put(f"/api/staff/documents/{document_id}/change-status", json={"status": "rejected"},
                          headers=portal.headers(portal.staff))

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "reason is required for status changes"}


def test_reject_then_return_to_pending_clears_validator(client, portal, factory):
    document_id = factory.document(portal.reservist)
    headers = portal.headers(portal.staff)

    rejected = client.put(f"/api/staff/documents/{document_id}/change-status",
                          json={"status": "rejected", "reason": "Blurry scan"}, headers=headers)
    assert rejected.status_code == 200
    assert rejected.json()["data"]["rejection_reason"] == "Blurry scan"
    assert rejected.json()["data"]["validated_by"] == portal.staff

    pending = client.put(f"/api/staff/documents/{document_id}/change-status",
                         json={"status": "pending", "reason": "Re-review"}, headers=headers)
    data = pending.json()["data"]
    assert data["status"] == "pending"
    assert data["validated_by"] is None
    assert data["validated_at"] is None
    assert data["rejection_reason"] is None


def test_change_status_to_same_status_is_refused(client, portal, factory):
    document_id = factory.document(portal.reservist)

    response = client.put(f"/api/staff/documents/{document_id}/change-status",
                          json={"status": "pending", "reason": "No-op"}, headers=portal.headers(portal.staff))

    assert response.status_code == 400


def test_staff_cannot_see_other_company_document(client, portal, factory):
    document_id = factory.document(portal.bravo_reservist)

    response = client.get(f"/api/staff/documents/{document_id}", headers=portal.headers(portal.staff))

    assert response.status_code == 403


def test_staff_filtering_unassigned_company_is_forbidden(client, portal, factory):
    factory.document(portal.bravo_reservist)

    response = client.get("/api/staff/documents", params={"company": "BRAVO"}, headers=portal.headers(portal.staff))

    assert response.status_code == 403
    assert response.json()["error"] == "Access denied - Company not assigned to you"


def test_reservist_upload_creates_new_version(client, portal, factory, db_session):
    factory.document(portal.reservist, document_type="Birth Certificate", status=DocumentStatus.VERIFIED)

    response = client.post(
        "/api/reservist/documents",
        data={"document_type": "Birth Certificate"},
        files={"file": ("birth.pdf", b"%PDF-1.4 test", "application/pdf")},
        headers=portal.headers(portal.reservist),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["version"] == 2
    assert data["status"] == "pending"

    current = db_session.query(Document).filter(
        Document.reservist_id == portal.reservist, Document.is_current == True
    ).all()
    assert [d.version for d in current] == [2]


def test_reservist_upload_rejects_unsupported_type(client, portal):
    response = client.post(
        "/api/reservist/documents",
        data={"document_type": "Resume"},
        files={"file": ("resume.exe", b"MZ", "application/x-msdownload")},
        headers=portal.headers(portal.reservist),
    )

    assert response.status_code == 400


def test_staff_cannot_review_other_company_document(client, portal, factory, db_session):
    document_id = factory.document(portal.bravo_reservist)
    headers = portal.headers(portal.staff)

    assert client.put(f"/api/staff/documents/{document_id}/validate", headers=headers).status_code == 403
    changed = client.put(f"/api/staff/documents/{document_id}/change-status",
                         json={"status": "rejected", "reason": "Blurry scan"}, headers=headers)
    assert changed.status_code == 403

    document = db_session.query(Document).filter(Document.id == document_id).one()
    assert document.status == DocumentStatus.PENDING
    assert document.validated_by is None
    assert db_session.query(Notification).count() == 0
