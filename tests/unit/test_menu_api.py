"""Unit tests for menu API endpoints."""
import pytest


class TestMenuAPI:
    """Test menu API endpoints."""

    def test_get_menu_success(self, test_client):
        """Test GET /api/menu returns full menu."""
        response = test_client.get("/api/menu")

        assert response.status_code == 200
        data = response.json()
        assert "items" in data
        assert "categories" in data
        assert isinstance(data["items"], list)
        assert isinstance(data["categories"], list)

    def test_get_menu_includes_test_items(self, test_client):
        """Test that menu includes items from test fixture."""
        response = test_client.get("/api/menu")

        assert response.status_code == 200
        data = response.json()

        assert len(data["items"]) == 6
        item_ids = [item["id"] for item in data["items"]]
        assert item_ids == ["1", "2", "3", "5", "6", "7"]

        carne = data["items"][0]
        assert carne["name"] == "Empanada de carne"
        assert carne["category"] == "Empanadas"
        assert float(carne["price"]) == 7.0

        assert data["categories"] == ["Empanadas", "Pizzas", "Bebidas"]

    def test_health(self, test_client):
        """Test GET /health."""
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "engine": True}
