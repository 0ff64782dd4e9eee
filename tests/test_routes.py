"""
Tests for the HTTP boundary: authentication, error mapping and end-to-end flows.
"""
import uuid
from datetime import datetime, timedelta

from installhub.auth.security import create_access_token

from conftest import ACTOR_ID, FIRM_ID


def _create_crew(client, headers, name, number, members):
    response = client.post(
        "/crews",
        json={"firm_id": str(FIRM_ID), "name": name, "unique_number": number, "leader_name": members[0][0]},
        headers=headers,
    )
    assert response.status_code == 201
    crew = response.json()
    for first, last, member_number in members:
        added = client.post(
            f"/crews/{crew['id']}/members",
            json={"first_name": first, "last_name": last, "unique_number": member_number},
            headers=headers,
        )
        assert added.status_code == 201
    return client.get(f"/crews/{crew['id']}", headers=headers).json()


def _create_project(client, headers, **fields):
    body = {"firm_id": str(FIRM_ID)}
    body.update(fields)
    response = client.post("/projects", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()


def _create_completed_project(client, headers, **fields):
    project = _create_project(client, headers, **fields)
    response = client.patch(f"/projects/{project['id']}/status", json={"status": "work_completed"}, headers=headers)
    assert response.status_code == 200
    return response.json()


class TestAuthAndErrors:
    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_missing_token(self, client):
        assert client.get(f"/projects/{uuid.uuid4()}").status_code == 401

    def test_invalid_token(self, client):
        response = client.get(f"/projects/{uuid.uuid4()}", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401

    def test_token_without_uuid_subject(self, client):
        token = create_access_token("someone")
        response = client.get(f"/projects/{uuid.uuid4()}", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_not_found_detail(self, client, auth_headers):
        missing = uuid.uuid4()
        response = client.get(f"/projects/{missing}", headers=auth_headers)
        assert response.status_code == 404
        detail = response.json()["detail"]
        assert detail["error"] == "not_found"
        assert detail["entity"] == "project"
        assert detail["entity_id"] == str(missing)

    def test_malformed_id_is_a_validation_error(self, client, auth_headers):
        response = client.get("/projects/not-a-uuid", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "validation_error"


class TestProjectRoutes:
    def test_create_and_read(self, client, auth_headers):
        project = _create_project(client, auth_headers, notes="Carport")
        assert project["status"] == "planning"
        assert project["leiter_id"] == str(ACTOR_ID)
        fetched = client.get(f"/projects/{project['id']}", headers=auth_headers).json()
        assert fetched["notes"] == "Carport"

    def test_status_change(self, client, auth_headers):
        project = _create_project(client, auth_headers)
        response = client.patch(f"/projects/{project['id']}/status", json={"status": "equipment_waiting"}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "equipment_waiting"
        assert body["suggested_next_status"] == "equipment_arrived"

        history = client.get(f"/projects/{project['id']}/history", headers=auth_headers).json()
        assert [h["change_type"] for h in history] == ["status_change", "created"]
        assert history[0]["user_id"] == str(ACTOR_ID)

    def test_invalid_status(self, client, auth_headers):
        project = _create_project(client, auth_headers)
        response = client.patch(f"/projects/{project['id']}/status", json={"status": "finished"}, headers=auth_headers)
        assert response.status_code == 400

    def test_field_update_and_auto_advance(self, client, auth_headers):
        project = _create_project(client, auth_headers)
        client.patch(f"/projects/{project['id']}/status", json={"status": "equipment_waiting"}, headers=auth_headers)
        response = client.patch(
            f"/projects/{project['id']}",
            json={"equipment_arrived_date": "2024-06-03", "needs_call_for_equipment_delay": True},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "equipment_arrived"

        history = client.get(
            f"/projects/{project['id']}/history",
            params={"order": "oldest", "change_type": ["date_update", "status_change", "call_update"]},
            headers=auth_headers,
        ).json()
        assert [h["change_type"] for h in history] == ["status_change", "date_update", "call_update", "status_change"]

    def test_inverted_dates_rejected(self, client, auth_headers):
        project = _create_project(client, auth_headers, work_start_date="2024-06-10")
        response = client.patch(f"/projects/{project['id']}", json={"work_end_date": "2024-06-01"}, headers=auth_headers)
        assert response.status_code == 400
        assert "work_end_date" in response.json()["detail"]["reason"]

    def test_assign_crew_and_snapshots(self, client, auth_headers):
        crew = _create_crew(client, auth_headers, "Crew A", "BR-0001", [("Anna", "Leader", "WRK-0001")])
        project = _create_project(client, auth_headers)
        assert client.get(f"/projects/{project['id']}/snapshots/latest", headers=auth_headers).json() is None

        response = client.post(f"/projects/{project['id']}/crew", json={"crew_id": crew["id"]}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["project"]["crew_id"] == crew["id"]
        snapshot = body["snapshot"]
        assert snapshot["crew_data"]["name"] == "Crew A"
        assert [m["unique_number"] for m in snapshot["members_data"]] == ["WRK-0001"]

        client.patch(f"/crews/{crew['id']}", json={"name": "Crew A (renamed)"}, headers=auth_headers)
        latest = client.get(f"/projects/{project['id']}/snapshots/latest", headers=auth_headers).json()
        assert latest["id"] == snapshot["id"]
        assert latest["crew_data"]["name"] == "Crew A"
        by_id = client.get(f"/crews/snapshots/{snapshot['id']}", headers=auth_headers).json()
        assert by_id["members_data"] == snapshot["members_data"]

        captured = client.post(f"/projects/{project['id']}/snapshots", json={"crew_id": crew["id"]}, headers=auth_headers)
        assert captured.status_code == 201
        assert captured.json()["crew_data"]["name"] == "Crew A (renamed)"
        assert len(client.get(f"/projects/{project['id']}/snapshots", headers=auth_headers).json()) == 2


class TestCrewRoutes:
    def test_roster_lifecycle(self, client, auth_headers):
        crew = _create_crew(
            client, auth_headers, "Crew A", "BR-0001",
            [("Anna", "Leader", "WRK-0001"), ("Ben", "Worker", "WRK-0002")],
        )
        assert len(crew["members"]) == 2
        member_id = crew["members"][1]["id"]

        updated = client.patch(f"/crews/members/{member_id}", json={"role": "specialist"}, headers=auth_headers)
        assert updated.json()["role"] == "specialist"
        archived = client.post(f"/crews/members/{member_id}/archive", headers=auth_headers)
        assert archived.json()["archived"] is True
        active = client.get(f"/crews/{crew['id']}/members", headers=auth_headers).json()
        assert [m["unique_number"] for m in active] == ["WRK-0001"]

        history = client.get(f"/crews/{crew['id']}/history", headers=auth_headers).json()
        assert [h["change_type"] for h in history] == [
            "member_removed", "member_updated", "member_added", "member_added", "crew_created",
        ]

        assert client.post(f"/crews/{crew['id']}/archive", headers=auth_headers).json()["archived"] is True
        listed = client.get("/crews", params={"firm_id": str(FIRM_ID)}, headers=auth_headers).json()
        assert listed == []

    def test_duplicate_member_number(self, client, auth_headers):
        crew = _create_crew(client, auth_headers, "Crew A", "BR-0001", [("Anna", "Leader", "WRK-0001")])
        response = client.post(
            f"/crews/{crew['id']}/members",
            json={"first_name": "Anna", "last_name": "Twin", "unique_number": "WRK-0001"},
            headers=auth_headers,
        )
        assert response.status_code == 400


class TestReclamationRoutes:
    def test_hand_off_flow(self, client, auth_headers):
        crew_a = _create_crew(client, auth_headers, "Crew A", "BR-0001", [("Anna", "Leader", "WRK-0001")])
        crew_b = _create_crew(client, auth_headers, "Crew B", "BR-0002", [("Bruno", "Boss", "WRK-0002")])
        project = _create_completed_project(client, auth_headers)
        deadline = (datetime.utcnow().date() + timedelta(days=5)).isoformat()

        created = client.post(
            f"/projects/{project['id']}/reclamations",
            json={"firm_id": str(FIRM_ID), "crew_id": crew_a["id"], "description": "Inverter fault", "deadline": deadline},
            headers=auth_headers,
        )
        assert created.status_code == 201
        reclamation_id = created.json()["id"]
        member_a = crew_a["members"][0]["id"]
        member_b = crew_b["members"][0]["id"]

        short = client.post(
            f"/reclamations/{reclamation_id}/reject",
            json={"member_id": member_a, "reason": "no"},
            headers=auth_headers,
        )
        assert short.status_code == 400

        rejected = client.post(
            f"/reclamations/{reclamation_id}/reject",
            json={"member_id": member_a, "reason": "Crew is on another site all week"},
            headers=auth_headers,
        )
        assert rejected.json()["status"] == "rejected"

        board = client.get(f"/reclamations/crew/{crew_b['id']}", headers=auth_headers).json()
        assert [r["id"] for r in board["available"]] == [reclamation_id]

        accepted = client.post(f"/reclamations/{reclamation_id}/accept", json={"member_id": member_b}, headers=auth_headers)
        assert accepted.status_code == 200
        assert accepted.json()["current_crew_id"] == crew_b["id"]
        assert accepted.json()["original_crew_id"] == crew_a["id"]

        completed = client.post(
            f"/reclamations/{reclamation_id}/complete",
            json={"member_id": member_b, "notes": "Inverter replaced"},
            headers=auth_headers,
        )
        assert completed.json()["status"] == "completed"

        again = client.post(f"/reclamations/{reclamation_id}/accept", json={"member_id": member_b}, headers=auth_headers)
        assert again.status_code == 409
        assert again.json()["detail"]["error"] == "conflict"

        history = client.get(
            f"/reclamations/{reclamation_id}/history", params={"newest_first": False}, headers=auth_headers
        ).json()
        assert [h["action"] for h in history] == ["created", "rejected", "reassigned", "accepted", "completed"]

        by_project = client.get(f"/projects/{project['id']}/reclamations", headers=auth_headers).json()
        assert [r["id"] for r in by_project] == [reclamation_id]

    def test_cancel_and_reassign(self, client, auth_headers):
        crew_a = _create_crew(client, auth_headers, "Crew A", "BR-0001", [("Anna", "Leader", "WRK-0001")])
        crew_b = _create_crew(client, auth_headers, "Crew B", "BR-0002", [("Bruno", "Boss", "WRK-0002")])
        project = _create_completed_project(client, auth_headers)
        deadline = (datetime.utcnow().date() + timedelta(days=5)).isoformat()
        reclamation = client.post(
            f"/projects/{project['id']}/reclamations",
            json={"firm_id": str(FIRM_ID), "crew_id": crew_a["id"], "description": "Cable loose", "deadline": deadline},
            headers=auth_headers,
        ).json()

        moved = client.post(f"/reclamations/{reclamation['id']}/reassign", json={"crew_id": crew_b["id"]}, headers=auth_headers)
        assert moved.json()["current_crew_id"] == crew_b["id"]

        cancelled = client.post(f"/reclamations/{reclamation['id']}/cancel", headers=auth_headers)
        assert cancelled.json()["status"] == "cancelled"
        listed = client.get("/reclamations", params={"firm_id": str(FIRM_ID), "status": "cancelled"}, headers=auth_headers)
        assert [r["id"] for r in listed.json()] == [reclamation["id"]]

        refused = client.post(f"/reclamations/{reclamation['id']}/reassign", json={"crew_id": crew_a["id"]}, headers=auth_headers)
        assert refused.status_code == 409

    def test_past_deadline(self, client, auth_headers):
        crew = _create_crew(client, auth_headers, "Crew A", "BR-0001", [("Anna", "Leader", "WRK-0001")])
        project = _create_completed_project(client, auth_headers)
        response = client.post(
            f"/projects/{project['id']}/reclamations",
            json={"firm_id": str(FIRM_ID), "crew_id": crew["id"], "description": "Late", "deadline": "2000-01-01"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_unfinished_project_refuses_reclamations(self, client, auth_headers):
        crew = _create_crew(client, auth_headers, "Crew A", "BR-0001", [("Anna", "Leader", "WRK-0001")])
        project = _create_project(client, auth_headers)
        deadline = (datetime.utcnow().date() + timedelta(days=5)).isoformat()
        response = client.post(
            f"/projects/{project['id']}/reclamations",
            json={"firm_id": str(FIRM_ID), "crew_id": crew["id"], "description": "Too early", "deadline": deadline},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert client.get(f"/projects/{project['id']}/reclamations", headers=auth_headers).json() == []
