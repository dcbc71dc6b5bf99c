# tests/routers/test_valuation_api.py
"""
Integration tests for the valuation endpoints.

These tests verify:
- GET /users/{user_id}/snapshot (point-in-time positions)
- POST /users/{user_id}/history (daily series)

Prices are inserted straight into market_data; the endpoints never call
the provider.
"""

from datetime import date
from decimal import Decimal

from tests.factories import add_bars, daily_closes

BASE = "/users/user-1"


def submit(client, **overrides) -> dict:
    payload = {
        "side": "Buy",
        "ticker": "AAPL",
        "operation_date": "2024-01-10",
        "price_per_share": "100",
        "exchange_rate": "1",
        "currency": "EUR",
        "holders": {"Ana": "10"},
    }
    payload.update(overrides)
    response = client.post(f"{BASE}/transactions", json=payload)
    assert response.status_code == 201
    return response.json()


# =============================================================================
# SNAPSHOT
# =============================================================================

class TestSnapshotEndpoint:
    """Tests for GET /users/{user_id}/snapshot."""

    def test_empty_portfolio(self, client):
        response = client.get(f"{BASE}/snapshot", params={"target_date": "2024-01-31"})

        assert response.status_code == 200
        data = response.json()
        assert data["positions"] == []
        assert data["display_currency"] == "EUR"
        assert data["is_live"] is True

    def test_position_with_price(self, client, db):
        submit(client)
        add_bars(db, "AAPL", {date(2024, 1, 30): "120"})

        data = client.get(f"{BASE}/snapshot", params={"target_date": "2024-01-31"}).json()

        [position] = data["positions"]
        assert position["ticker"] == "AAPL"
        assert Decimal(position["quantity"]) == Decimal("10")
        assert Decimal(position["market_value"]) == Decimal("1200")
        assert Decimal(position["profit_loss"]) == Decimal("200")
        assert Decimal(position["performance_perc"]) == Decimal("20")
        assert position["price_date"] == "2024-01-30"
        assert position["is_live_price"] is True
        assert Decimal(data["total_market_value"]) == Decimal("1200")

    def test_position_without_price_flagged(self, client):
        submit(client)

        data = client.get(f"{BASE}/snapshot", params={"target_date": "2024-01-31"}).json()

        assert data["positions"][0]["is_live_price"] is False
        assert data["is_live"] is False
        assert data["warnings"] == ["AAPL: no market price, valued at cost"]

    def test_person_filter(self, client):
        submit(client, ticker="AAPL", holders={"Ana": "1"})
        submit(client, ticker="MSFT", holders={"Ben": "1"})

        data = client.get(
            f"{BASE}/snapshot", params={"target_date": "2024-01-31", "person": ["Ana"]}
        ).json()

        assert [p["ticker"] for p in data["positions"]] == ["AAPL"]

    def test_display_currency_preference(self, client):
        client.put(f"{BASE}/preferences", json={"display_currency": "usd"})

        data = client.get(f"{BASE}/snapshot", params={"target_date": "2024-01-31"}).json()

        assert data["display_currency"] == "USD"

    def test_invalid_target_date(self, client):
        response = client.get(f"{BASE}/snapshot", params={"target_date": "not-a-date"})

        assert response.status_code == 422


# =============================================================================
# HISTORY
# =============================================================================

class TestHistoryEndpoint:
    """Tests for POST /users/{user_id}/history."""

    def test_daily_points(self, client, db):
        submit(client, operation_date="2024-01-02")
        add_bars(db, "AAPL", daily_closes(date(2024, 1, 1), 5, "110"), dividends={date(2024, 1, 4): "1"})

        response = client.post(
            f"{BASE}/history", json={"start_date": "2024-01-01", "end_date": "2024-01-05"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["tickers"] == ["AAPL"]
        assert [p["date"] for p in data["points"]] == [
            "2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04", "2024-01-05",
        ]
        first, second = data["points"][0], data["points"][1]
        assert Decimal(first["market_value"]) == Decimal("0")
        assert Decimal(second["exposure"]) == Decimal("1000")
        assert Decimal(second["profit_loss"]) == Decimal("100")
        last = data["points"][-1]
        assert Decimal(last["dividends"]) == Decimal("10")
        assert Decimal(last["gross_value"]) == Decimal("1110")

    def test_filters_normalized(self, client):
        submit(client, ticker="AAPL")
        submit(client, ticker="MSFT")

        data = client.post(f"{BASE}/history", json={
            "start_date": "2024-01-10", "end_date": "2024-01-10", "tickers": ["msft"],
        }).json()

        assert data["tickers"] == ["MSFT"]

    def test_inverted_range(self, client):
        response = client.post(
            f"{BASE}/history", json={"start_date": "2024-02-01", "end_date": "2024-01-01"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidDateRangeError"

    def test_missing_dates(self, client):
        response = client.post(f"{BASE}/history", json={"start_date": "2024-01-01"})

        assert response.status_code == 422
