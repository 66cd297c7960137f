"""Tests for the /whatsapp endpoints."""

import pytest


@pytest.fixture
def fonnte(client):
    response = client.post(
        "/whatsapp/providers",
        json={
            "name": "Fonnte",
            "type": "fonnte",
            "api_url": "https://api.fonnte.com/send",
            "api_key": "token-1",
            "priority": 1,
        },
    )
    assert response.status_code == 201
    return response.json()


class TestProviders:
    def test_create_hides_api_key(self, fonnte):
        assert fonnte["name"] == "Fonnte"
        assert fonnte["type"] == "fonnte"
        assert fonnte["is_active"] is True
        assert "api_key" not in fonnte

    def test_invalid_type(self, client):
        response = client.post(
            "/whatsapp/providers",
            json={"name": "X", "type": "telegram", "api_url": "https://x"},
        )

        assert response.status_code == 400

    def test_list_in_priority_order(self, client, fonnte):
        client.post(
            "/whatsapp/providers",
            json={"name": "WAHA", "type": "waha", "api_url": "http://waha:3000", "priority": 0},
        )

        data = client.get("/whatsapp/providers").json()

        assert data["total"] == 2
        assert [p["name"] for p in data["providers"]] == ["WAHA", "Fonnte"]

    def test_update(self, client, fonnte):
        response = client.patch(
            f"/whatsapp/providers/{fonnte['id']}", json={"is_active": False, "priority": 5}
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert response.json()["priority"] == 5

    def test_update_unknown(self, client):
        assert client.patch("/whatsapp/providers/missing", json={"priority": 1}).status_code == 404

    def test_delete(self, client, fonnte):
        response = client.delete(f"/whatsapp/providers/{fonnte['id']}")

        assert response.json() == {"success": True, "provider_id": fonnte["id"]}
        assert client.get("/whatsapp/providers").json()["total"] == 0
        assert client.delete(f"/whatsapp/providers/{fonnte['id']}").status_code == 404

    def test_test_unknown_provider(self, client):
        response = client.post("/whatsapp/providers/missing/test", json={"phone": "0812"})

        assert response.status_code == 404


class TestSend:
    def test_no_active_provider(self, client):
        response = client.post("/whatsapp/send", json={"phone": "0812", "message": "hi"})

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "provider": None,
            "attempts": [],
            "error": "No active WhatsApp provider configured",
        }

    def test_empty_message_rejected(self, client):
        assert client.post("/whatsapp/send", json={"phone": "0812", "message": ""}).status_code == 422
