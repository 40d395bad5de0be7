"""Unit tests for the message webhook and order history endpoints."""
import pytest


class TestMessageWebhook:
    """Test POST /webhooks/messages."""

    def test_order_message(self, test_client):
        """Test an order message returns the structured outcome."""
        response = test_client.post(
            "/webhooks/messages",
            json={"conversation_id": "5491155550000", "text": "quiero una docena de empanadas de pollo"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["intent"] == "order"
        assert [(line["item_id"], line["quantity"]) for line in data["lines"]] == [("2", 12)]
        assert "Empanada de pollo" in data["response_text"]

    def test_conversation_continues(self, test_client):
        """Test follow-up messages see the stored draft."""
        test_client.post("/webhooks/messages", json={"conversation_id": "c1", "text": "2 de carne"})

        response = test_client.post("/webhooks/messages", json={"conversation_id": "c1", "text": "confirmar"})

        data = response.json()
        assert data["intent"] == "confirm"
        assert data["confirmed_order_id"]

    def test_confirm_without_order(self, test_client):
        """Test confirming with nothing ordered."""
        response = test_client.post("/webhooks/messages", json={"conversation_id": "c2", "text": "confirmar"})

        assert response.status_code == 200
        assert response.json()["intent"] == "no_active_order"

    def test_missing_conversation_id(self, test_client):
        """Test the request body is validated."""
        response = test_client.post("/webhooks/messages", json={"text": "hola"})
        assert response.status_code == 422


class TestOrderHistory:
    """Test GET /api/orders/history."""

    @pytest.mark.asyncio
    async def test_confirmed_orders_listed(self, async_client, test_session_factory, engine):
        """Test orders stored by the SQL sink are listed, newest first."""
        from pedidobot.services.persistence.orders import SqlOrderSink

        engine.order_sink = SqlOrderSink(test_session_factory)
        await engine.process_message("c1", "media docena de carne y media de pollo")
        await engine.process_message("c1", "confirmar")

        response = await async_client.get("/api/orders/history", params={"limit": 10})

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["conversation_id"] == "c1"
        assert float(data[0]["total"]) == 84.0
        assert data[0]["estimated_minutes"] == 15
        assert [item["menu_item_id"] for item in data[0]["items"]] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_empty_history(self, async_client):
        """Test no orders yields an empty list."""
        response = await async_client.get("/api/orders/history")

        assert response.status_code == 200
        assert response.json() == []
