# tests/test_documents.py

"""
Syndic verification documents: upload to storage and (re)submission.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient

from supabase_mocks import make_supabase

PUBLIC = "https://x.supabase.co/storage/v1/object/public/SAKAN/"

PV = ("pv.pdf", b"%PDF-1.4 minutes", "application/pdf")
ID_CARD = ("id.png", b"\x89PNG card", "image/png")


def storage_client(submissions):
    supabase = make_supabase({"syndic_document_submissions": submissions})
    bucket = supabase.storage.from_.return_value
    bucket.get_public_url.side_effect = lambda path: PUBLIC + path
    return supabase, bucket


def test_first_submission_uploads_both_files(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    supabase, bucket = storage_client([])
    with patch("routers.documents.get_supabase_client", return_value=supabase):
        response = client.post("/documents/upload", files={"file": PV, "id_card": ID_CARD})

    assert response.status_code == 200
    uploaded = [c.args[0] for c in bucket.upload.call_args_list]
    assert uploaded[0].startswith("syndic-documents/syndic-1/proces-verbal-")
    assert uploaded[0].endswith(".pdf")
    assert uploaded[1].startswith("syndic-documents/syndic-1/id-card-")
    assert bucket.upload.call_args_list[0].args[1] == b"%PDF-1.4 minutes"

    row = supabase.queries["syndic_document_submissions"].insert.call_args[0][0]
    assert row["status"] == "pending"
    assert row["document_url"] == PUBLIC + uploaded[0]
    assert row["id_card_url"] == PUBLIC + uploaded[1]


def test_first_submission_needs_both_files(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    supabase, bucket = storage_client([])
    with patch("routers.documents.get_supabase_client", return_value=supabase):
        response = client.post("/documents/upload", files={"file": PV})

    assert response.status_code == 400
    bucket.upload.assert_not_called()


def test_unsupported_file_type(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    supabase, bucket = storage_client([])
    with patch("routers.documents.get_supabase_client", return_value=supabase):
        response = client.post("/documents/upload", files={
            "file": ("pv.docx", b"doc", "application/msword"),
            "id_card": ID_CARD,
        })

    assert response.status_code == 400
    assert "Invalid file type" in response.json()["error"]
    bucket.upload.assert_not_called()


def test_resubmission_replaces_one_file(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    rejected = {
        "id": 9,
        "status": "rejected",
        "document_url": PUBLIC + "syndic-documents/syndic-1/old.pdf",
        "id_card_url": PUBLIC + "syndic-documents/syndic-1/card.png",
    }
    supabase, bucket = storage_client([rejected])
    with patch("routers.documents.get_supabase_client", return_value=supabase):
        response = client.post("/documents/upload", files={"file": PV})

    assert response.status_code == 200
    bucket.remove.assert_called_once_with(["syndic-documents/syndic-1/old.pdf"])
    update = supabase.queries["syndic_document_submissions"].update.call_args[0][0]
    assert update["status"] == "pending"
    assert update["rejection_reason"] is None
    assert "id_card_url" not in update
    supabase.queries["syndic_document_submissions"].eq.assert_any_call("id", 9)


def test_storage_failure_is_reported(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    supabase, bucket = storage_client([])
    bucket.upload.side_effect = Exception("bucket unavailable")
    with patch("routers.documents.get_supabase_client", return_value=supabase):
        response = client.post("/documents/upload", files={"file": PV, "id_card": ID_CARD})

    assert response.status_code == 500
    supabase.queries["syndic_document_submissions"].insert.assert_not_called()


def test_residents_cannot_upload(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    response = client.post("/documents/upload", files={"file": PV, "id_card": ID_CARD})
    assert response.status_code == 403
