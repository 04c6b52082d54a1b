"""
Model Registry Tests

Listing, creating, renaming and deleting the creator's models, including the
plan's model limit and cascade of monthly data on delete.
"""

from fanclub.data import monthly
from fanclub.data.users import update_user
from tests.conftest import auth

USER = "creator-1"


def _create(client, name="Model One", headers=None):
    return client.post("/api/models", json={"name": name}, headers=headers or auth(USER))


class TestModels:
    """CRUD under /api/models."""

    def test_empty_list_reports_remaining(self, client):
        response = client.get("/api/models", headers=auth(USER))
        assert response.status_code == 200
        assert response.json()["data"] == {"models": [], "remaining": 1}

    def test_create(self, client):
        response = _create(client)
        assert response.status_code == 201
        row = response.json()["data"]
        assert row["name"] == "Model One"
        assert row["display_name"] == "Model One"
        assert row["status"] == "active"

    def test_free_plan_allows_one_model(self, client):
        assert _create(client).status_code == 201
        response = _create(client, "Model Two")
        assert response.status_code == 403
        assert response.json() == {"error": "Model limit reached for your plan"}

    def test_pro_plan_is_unlimited(self, client):
        _create(client)
        update_user(USER, plan="pro")
        assert _create(client, "Model Two").status_code == 201
        assert _create(client, "Model Three").status_code == 201
        data = client.get("/api/models", headers=auth(USER)).json()["data"]
        assert len(data["models"]) == 3
        assert data["remaining"] is None

    def test_blank_name_is_400(self, client):
        response = client.post("/api/models", json={"name": ""}, headers=auth(USER))
        assert response.status_code == 400

    def test_update(self, client):
        model_id = _create(client).json()["data"]["id"]
        response = client.patch(
            f"/api/models/{model_id}",
            json={"displayName": "Renamed", "status": "inactive"},
            headers=auth(USER),
        )
        assert response.status_code == 200
        row = response.json()["data"]
        assert row["display_name"] == "Renamed"
        assert row["status"] == "inactive"
        assert row["name"] == "Model One"

    def test_update_unknown_is_404(self, client):
        response = client.patch("/api/models/nope", json={"name": "x"}, headers=auth(USER))
        assert response.status_code == 404
        assert response.json() == {"error": "Model not found"}

    def test_models_are_private(self, client):
        model_id = _create(client).json()["data"]["id"]
        other = client.patch(f"/api/models/{model_id}", json={"name": "x"}, headers=auth("other"))
        assert other.status_code == 404

    def test_delete_cascades_monthly_data(self, client):
        model_id = _create(client).json()["data"]["id"]
        monthly.upsert_monthly_data(USER, model_id, 2025, 5, [{"amount": 1}], {})
        response = client.delete(f"/api/models/{model_id}", headers=auth(USER))
        assert response.status_code == 200
        assert monthly.list_monthly_data(USER, model_id) == []

    def test_delete_unknown_is_404(self, client):
        response = client.delete("/api/models/nope", headers=auth(USER))
        assert response.status_code == 404

    def test_delete_frees_a_slot(self, client):
        model_id = _create(client).json()["data"]["id"]
        client.delete(f"/api/models/{model_id}", headers=auth(USER))
        assert _create(client, "Model Two").status_code == 201
