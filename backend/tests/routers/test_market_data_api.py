# tests/routers/test_market_data_api.py
"""
Integration tests for POST /market-data/refresh.

The app's provider is the MockMarketDataProvider from conftest.
"""

from datetime import date, timedelta
from decimal import Decimal

from app.services.exceptions import ProviderUnavailableError
from app.services.market_data import PriceBar


def submit(client, user_id: str = "user-1", **overrides) -> None:
    payload = {
        "side": "Buy",
        "ticker": "AAPL",
        "operation_date": "2024-01-10",
        "price_per_share": "100",
        "exchange_rate": "0.9",
        "currency": "USD",
        "holders": {"Ana": "10"},
    }
    payload.update(overrides)
    assert client.post(f"/users/{user_id}/transactions", json=payload).status_code == 201


def recent_bars(days: int = 3) -> list[PriceBar]:
    today = date.today()
    return [PriceBar(date=today - timedelta(days=i), close=Decimal("100")) for i in range(days)]


class TestRefreshEndpoint:
    """Tests for POST /market-data/refresh."""

    def test_nothing_to_refresh(self, client):
        response = client.post("/market-data/refresh")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["symbols"] == []
        assert data["warnings"]

    def test_refresh_tickers_and_fx(self, client, mock_provider):
        submit(client)
        mock_provider.set_bars("AAPL", recent_bars())
        mock_provider.set_bars("USDEUR=X", recent_bars())

        response = client.post("/market-data/refresh", json={"user_id": "user-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["bars_stored"] == 6
        assert {s["symbol"] for s in data["symbols"]} == {"AAPL", "USDEUR=X"}
        assert all(s["success"] for s in data["symbols"])

    def test_second_refresh_stores_nothing(self, client, mock_provider):
        submit(client)
        mock_provider.set_bars("AAPL", recent_bars())
        mock_provider.set_bars("USDEUR=X", recent_bars())

        client.post("/market-data/refresh")
        data = client.post("/market-data/refresh").json()

        assert data["bars_stored"] == 0
        assert all(s["up_to_date"] for s in data["symbols"])

    def test_partial_failure(self, client, mock_provider):
        submit(client)
        mock_provider.set_bars("AAPL", recent_bars())
        mock_provider.set_error("USDEUR=X", ProviderUnavailableError(provider="mock", reason="down"))

        data = client.post("/market-data/refresh").json()

        assert data["status"] == "partial"
        [failed] = [s for s in data["symbols"] if not s["success"]]
        assert failed["symbol"] == "USDEUR=X"
        assert "down" in failed["error"]

    def test_refreshed_prices_feed_the_snapshot(self, client, mock_provider):
        submit(client)
        mock_provider.set_bars("AAPL", recent_bars())
        mock_provider.set_bars("USDEUR=X", [
            PriceBar(date=b.date, close=Decimal("0.5")) for b in recent_bars()
        ])
        client.post("/market-data/refresh")

        [position] = client.get("/users/user-1/snapshot").json()["positions"]

        assert Decimal(position["current_price"]) == Decimal("50")
        assert position["is_live_price"] is True
