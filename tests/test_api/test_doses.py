"""
Tests for Doses API
===================

Tests dose listing, outcomes, reconciliation, sweeps and platform stats.
"""

import pytest
from datetime import date, datetime, timedelta
from fastapi import status
from fastapi.testclient import TestClient


USER = "user-abc"
BASE = f"/api/v1/trackers/{USER}"


# ==================== FIXTURES ====================

@pytest.fixture
def created_medicine(client: TestClient, medicine_payload):
    """Medicine added through the API"""
    response = client.post(f"{BASE}/medicines", json=medicine_payload)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["medicine"]


@pytest.fixture
def future_dose(client: TestClient, created_medicine):
    """A dose three days ahead, still due"""
    day = (date.today() + timedelta(days=3)).isoformat()
    doses = client.get(f"{BASE}/doses", params={"start": day, "end": day}).json()["doses"]
    return doses[0]


@pytest.fixture
def missed_dose(client: TestClient, created_medicine):
    """A dose from two days ago, swept to missed"""
    day = (date.today() - timedelta(days=2)).isoformat()
    doses = client.get(f"{BASE}/doses", params={"start": day, "end": day}).json()["doses"]
    return doses[0]


# ==================== LIST TESTS ====================

class TestListDoses:
    """Tests for GET /trackers/{user_id}/doses"""

    @pytest.mark.api
    def test_list_all(self, client: TestClient, created_medicine):
        response = client.get(f"{BASE}/doses")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 12
        assert len(data["doses"]) == 12

    @pytest.mark.api
    def test_filter_by_status_and_date(self, client: TestClient, created_medicine):
        day = (date.today() - timedelta(days=2)).isoformat()

        response = client.get(
            f"{BASE}/doses", params={"start": day, "end": day, "status": "missed"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["total"] == 2

    @pytest.mark.api
    def test_future_doses_stay_due(self, client: TestClient, created_medicine):
        start = (date.today() + timedelta(days=1)).isoformat()

        data = client.get(f"{BASE}/doses", params={"start": start}).json()

        assert data["total"] == 6
        assert all(d["status"] == "due" for d in data["doses"])

    @pytest.mark.api
    def test_unknown_user(self, client: TestClient):
        response = client.get("/api/v1/trackers/nobody/doses")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] is True


# ==================== OUTCOME TESTS ====================

class TestUpdateDose:
    """Tests for PATCH /trackers/{user_id}/doses/{dose_id}"""

    @pytest.mark.api
    def test_mark_taken(self, client: TestClient, future_dose):
        taken_at = datetime.now().replace(microsecond=0).isoformat()

        response = client.patch(
            f"{BASE}/doses/{future_dose['id']}",
            json={
                "status": "taken",
                "taken_at": taken_at,
                "side_effects_experienced": ["nausea"]
            }
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "taken"
        assert data["taken_at"] == taken_at
        assert data["side_effects_experienced"] == ["nausea"]

    @pytest.mark.api
    def test_mark_skipped(self, client: TestClient, future_dose):
        response = client.patch(
            f"{BASE}/doses/{future_dose['id']}",
            json={"status": "skipped", "notes": "Doctor advised to pause"}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "skipped"
        assert data["taken_at"] is None

    @pytest.mark.api
    def test_resolved_dose_conflicts(self, client: TestClient, future_dose):
        client.patch(f"{BASE}/doses/{future_dose['id']}", json={"status": "taken"})

        response = client.patch(f"{BASE}/doses/{future_dose['id']}", json={"status": "skipped"})

        assert response.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.api
    def test_missed_dose_conflicts(self, client: TestClient, missed_dose):
        assert missed_dose["status"] == "missed"

        response = client.patch(f"{BASE}/doses/{missed_dose['id']}", json={"status": "taken"})

        assert response.status_code == status.HTTP_409_CONFLICT

    @pytest.mark.api
    def test_missed_status_not_accepted(self, client: TestClient, future_dose):
        response = client.patch(f"{BASE}/doses/{future_dose['id']}", json={"status": "missed"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.api
    def test_unknown_dose(self, client: TestClient, created_medicine):
        response = client.patch(f"{BASE}/doses/99999", json={"status": "taken"})

        assert response.status_code == status.HTTP_404_NOT_FOUND


# ==================== MAINTENANCE TESTS ====================

class TestMaintenance:
    """Tests for reconcile, sweep and stats endpoints"""

    @pytest.mark.api
    def test_reconcile_has_nothing_to_fill(self, client: TestClient, created_medicine):
        response = client.post(f"{BASE}/reconcile")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["created_doses"] == 0

    @pytest.mark.api
    def test_sweep_all(self, client: TestClient, created_medicine):
        response = client.post("/api/v1/trackers/sweep")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["trackers"] == 1
        assert data["processed"] == 1
        assert data["failed"] == []

    @pytest.mark.api
    def test_platform_stats(self, client: TestClient, created_medicine):
        response = client.get("/api/v1/trackers/stats")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total_users"] == 1
        assert data["total_medicines"] == 1
        assert data["total_doses"] == 12
        assert 0 <= data["adherence_rate"] <= 100

    @pytest.mark.api
    def test_health_reports_scheduler(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["checks"]["scheduler"]["mode"] == "on_demand"
        assert data["checks"]["scheduler"]["running"] is True
