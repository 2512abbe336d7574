# tests/test_incidents.py

from unittest.mock import patch

from fastapi.testclient import TestClient

from supabase_mocks import make_supabase, make_query

INCIDENT = {"id": 11, "residence_id": 3, "user_id": "resident-1", "title": "Leak", "status": "open"}


def test_guard_reports_incident(client: TestClient, login_as, guard_user):
    login_as(guard_user)
    with patch("routers.incidents.get_supabase_client") as mock_supabase:
        supabase = make_supabase({
            "residences": [{"id": 3}],
            "incidents": [{**INCIDENT, "user_id": "guard-1"}],
        })
        mock_supabase.return_value = supabase
        response = client.post("/incidents", json={"title": "Broken gate", "description": "Does not close"})

    assert response.status_code == 200
    row = supabase.queries["incidents"].insert.call_args[0][0]
    assert row["status"] == "open"
    assert row["residence_id"] == 3
    assert row["user_id"] == "guard-1"


def test_syndic_cannot_report(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    response = client.post("/incidents", json={"title": "x", "description": "y"})
    assert response.status_code == 403


def test_resident_cannot_change_status(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.incidents.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "profile_residences": [{"residence_id": 3}],
            "incidents": [INCIDENT],
        })
        response = client.patch("/incidents/11", json={"status": "resolved"})
    assert response.status_code == 403


def test_resident_cannot_edit_someone_elses_incident(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.incidents.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "profile_residences": [{"residence_id": 3}],
            "incidents": [{**INCIDENT, "user_id": "resident-2"}],
        })
        response = client.patch("/incidents/11", json={"title": "Big leak"})
    assert response.status_code == 403


def test_syndic_resolving_sets_resolved_at(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.incidents.get_supabase_client") as mock_supabase:
        supabase = make_supabase({
            "residences": [{"id": 3}],
            "incidents": [INCIDENT],
        })
        mock_supabase.return_value = supabase
        response = client.patch("/incidents/11", json={"status": "resolved"})

    assert response.status_code == 200
    update = supabase.queries["incidents"].update.call_args[0][0]
    assert update["status"] == "resolved"
    assert "resolved_at" in update


def test_resident_lists_only_own_incidents(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    with patch("routers.incidents.get_supabase_client") as mock_supabase:
        supabase = make_supabase({
            "profile_residences": [{"residence_id": 3}],
            "incidents": [INCIDENT],
        })
        mock_supabase.return_value = supabase
        response = client.get("/incidents")

    assert response.status_code == 200
    supabase.queries["incidents"].eq.assert_any_call("user_id", "resident-1")


def test_guard_cannot_delete(client: TestClient, login_as, guard_user):
    login_as(guard_user)
    with patch("routers.incidents.get_supabase_client") as mock_supabase:
        supabase = make_supabase({"residences": [{"id": 3}], "incidents": [INCIDENT]})
        mock_supabase.return_value = supabase
        response = client.delete("/incidents/11")

    assert response.status_code == 403
    supabase.queries["incidents"].delete.assert_not_called()


def test_delete_is_scoped_to_residence(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.incidents.get_supabase_client") as mock_supabase:
        supabase = make_supabase({"residences": [{"id": 3}], "incidents": []})
        mock_supabase.return_value = supabase
        response = client.delete("/incidents/11")

    assert response.status_code == 404
    incidents = supabase.queries["incidents"]
    incidents.eq.assert_any_call("id", 11)
    incidents.eq.assert_any_call("residence_id", 3)
    incidents.delete.assert_not_called()


def test_insert_failure_becomes_500(client: TestClient, login_as, resident_user):
    login_as(resident_user)
    incidents = make_query([])
    incidents.execute.side_effect = Exception("connection reset")
    with patch("routers.incidents.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({
            "profile_residences": [{"residence_id": 3}],
            "incidents": incidents,
        })
        response = client.post("/incidents", json={"title": "Leak", "description": "Kitchen"})

    assert response.status_code == 500
    assert response.json()["error"].startswith("Failed to insert into incidents")
