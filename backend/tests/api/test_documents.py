# tests/api/test_documents.py
from datetime import timedelta

from fastapi import status

from noticeboard.models import Document

from conftest import BASE_TIME, auth


def test_requires_identity(client):
    """Requests without a resolved user are rejected"""
    response = client.get("/api/documents")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

    response = client.get("/api/documents", headers={"X-User-Id": "99999"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_inactive_user_rejected(client, db_session, student_cs):
    student_cs.is_active = False
    db_session.commit()

    response = client.get("/api/documents", headers=auth(student_cs))
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_list_documents_feed(client, admin, faculty_cs, student_cs, make_document, make_notice):
    """Documents and notice attachments come back as one feed"""
    make_document(faculty_cs, title="Lecture Notes", department="CS", created_at=BASE_TIME)
    notice = make_notice(admin, title="Exam Timetable", attachments=1,
                         created_at=BASE_TIME + timedelta(hours=1))

    response = client.get("/api/documents", headers=auth(student_cs))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 2
    assert data["count"] == 2
    first, second = data["documents"]
    assert first["id"] == f"notice_{notice.id}_0"
    assert first["is_notice_attachment"] is True
    assert first["description"] == "Attached to notice: Exam Timetable"
    assert first["owner"]["name"] == admin.name
    assert second["title"] == "Lecture Notes"
    assert second["is_notice_attachment"] is False


def test_list_documents_pagination_bounds(client, student_cs):
    response = client.get("/api/documents?page=0", headers=auth(student_cs))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.get("/api/documents?limit=101", headers=auth(student_cs))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    response = client.get("/api/documents?category=memo", headers=auth(student_cs))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_get_document(client, faculty_cs, student_cs, make_document):
    document = make_document(faculty_cs, title="Syllabus", department="CS")

    response = client.get(f"/api/documents/{document.id}", headers=auth(student_cs))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == document.id
    assert data["title"] == "Syllabus"
    assert data["owner"]["role"] == "faculty"


def test_get_document_other_department_forbidden(client, faculty_ee, student_cs, make_document):
    document = make_document(faculty_ee, department="EE")

    response = client.get(f"/api/documents/{document.id}", headers=auth(student_cs))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error_code"] == "FORBIDDEN"


def test_get_nonexistent_document(client, student_cs):
    """Unknown and malformed ids are both not found"""
    for item_id in ["99999", "abc", "notice_1", "notice_x_0", "notice_99999_0"]:
        response = client.get(f"/api/documents/{item_id}", headers=auth(student_cs))
        assert response.status_code == status.HTTP_404_NOT_FOUND, item_id


def test_get_projected_attachment(client, admin, student_cs, make_notice):
    notice = make_notice(admin, attachments=2)

    response = client.get(f"/api/documents/notice_{notice.id}_1", headers=auth(student_cs))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == "file1.pdf"
    assert data["notice_id"] == notice.id
    assert data["attachment_index"] == 1
    assert data["access_level"] == ["student"]


def test_download_document(client, db_session, admin, student_cs, make_document):
    document = make_document(admin, title="Fee Form", content=b"form bytes")

    response = client.get(f"/api/documents/{document.id}/download", headers=auth(student_cs))

    assert response.status_code == status.HTTP_200_OK
    assert response.content == b"form bytes"
    assert response.headers["content-type"] == "application/pdf"
    assert "fee_form.pdf" in response.headers["content-disposition"]
    db_session.expire_all()
    assert db_session.get(Document, document.id).download_count == 1


def test_download_projected_attachment(client, admin, student_cs, make_notice):
    notice = make_notice(admin, attachments=3)

    response = client.get(f"/api/documents/notice_{notice.id}_2/download", headers=auth(student_cs))

    assert response.status_code == status.HTTP_200_OK
    assert response.content == b"attachment 2"


def test_download_missing_file(client, admin, student_cs, make_document, uploads_dir):
    document = make_document(admin)
    (uploads_dir / document.file_locator).unlink()

    response = client.get(f"/api/documents/{document.id}/download", headers=auth(student_cs))

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_upload_document(client, db_session, faculty_cs, uploads_dir):
    response = client.post(
        "/api/documents",
        data={
            "title": "Lab Safety",
            "description": "Read before first lab",
            "category": "form",
            "access_level": "student, faculty",
            "department": "CS",
            "tags": "lab, safety"
        },
        files={"file": ("safety.pdf", b"%PDF safety", "application/pdf")},
        headers=auth(faculty_cs)
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == "Lab Safety"
    assert data["original_name"] == "safety.pdf"
    assert data["size"] == len(b"%PDF safety")
    assert data["access_level"] == ["student", "faculty"]
    assert data["tags"] == ["lab", "safety"]
    assert data["owner_id"] == faculty_cs.id
    stored = db_session.get(Document, data["id"])
    assert (uploads_dir / stored.file_locator).read_bytes() == b"%PDF safety"


def test_upload_requires_file(client, faculty_cs):
    response = client.post("/api/documents", data={"title": "Empty"}, headers=auth(faculty_cs))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_upload_rejects_unknown_access_level(client, faculty_cs):
    response = client.post(
        "/api/documents",
        data={"title": "Odd", "access_level": "alumni"},
        files={"file": ("odd.pdf", b"x", "application/pdf")},
        headers=auth(faculty_cs)
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_student_cannot_upload(client, student_cs):
    response = client.post(
        "/api/documents",
        data={"title": "Notes"},
        files={"file": ("notes.pdf", b"x", "application/pdf")},
        headers=auth(student_cs)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_update_document(client, faculty_cs, make_document):
    document = make_document(faculty_cs, department="CS")

    response = client.put(
        f"/api/documents/{document.id}",
        json={"title": "Updated Title", "access_level": ["all"]},
        headers=auth(faculty_cs)
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["title"] == "Updated Title"
    assert data["access_level"] == ["admin", "faculty", "student"]
    assert data["department"] == "CS"


def test_update_clears_description(client, db_session, faculty_cs, make_document):
    document = make_document(faculty_cs, department="CS")

    response = client.put(
        f"/api/documents/{document.id}",
        json={"description": None},
        headers=auth(faculty_cs)
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["description"] is None
    assert data["title"] == "Course Handbook"
    db_session.expire_all()
    assert db_session.get(Document, document.id).description is None


def test_update_without_description_keeps_it(client, faculty_cs, make_document):
    document = make_document(faculty_cs)

    response = client.put(
        f"/api/documents/{document.id}",
        json={"title": "Renamed"},
        headers=auth(faculty_cs)
    )

    assert response.json()["description"] == "Reference material"


def test_update_document_by_other_faculty(client, faculty_cs, faculty_ee, make_document):
    document = make_document(faculty_cs)

    response = client.put(
        f"/api/documents/{document.id}",
        json={"title": "Not mine"},
        headers=auth(faculty_ee)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_delete_document(client, faculty_cs, make_document, uploads_dir):
    document = make_document(faculty_cs)
    stored = uploads_dir / document.file_locator

    response = client.delete(f"/api/documents/{document.id}", headers=auth(faculty_cs))

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True}
    assert not stored.exists()

    get_response = client.get(f"/api/documents/{document.id}", headers=auth(faculty_cs))
    assert get_response.status_code == status.HTTP_404_NOT_FOUND


def test_admin_deletes_any_document(client, admin, faculty_ee, make_document):
    document = make_document(faculty_ee)
    response = client.delete(f"/api/documents/{document.id}", headers=auth(admin))
    assert response.status_code == status.HTTP_200_OK
