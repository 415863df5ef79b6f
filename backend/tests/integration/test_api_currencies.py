"""Integration tests for currencies API."""

from decimal import Decimal


class TestCurrencies:
    def test_list_seeded_currencies(self, client, auth_headers, currencies):
        response = client.get("/api/currencies", headers=auth_headers)

        assert response.status_code == 200
        data = {c["code"]: c for c in response.json()}
        assert set(data) == {"USD", "EUR", "GBP", "CHF", "JPY", "CAD"}
        assert data["USD"]["is_default"] is True
        assert Decimal(data["EUR"]["exchange_rate"]) == Decimal("1.08")

    def test_create_currency(self, client, auth_headers, currencies):
        response = client.post(
            "/api/currencies",
            headers=auth_headers,
            json={"code": "SEK", "name": "Swedish Krona", "symbol": "kr", "exchange_rate": "0.095"},
        )

        assert response.status_code == 201
        assert response.json()["is_default"] is False

    def test_duplicate_currency_is_400(self, client, auth_headers, currencies):
        response = client.post(
            "/api/currencies",
            headers=auth_headers,
            json={"code": "USD", "name": "Dollar", "exchange_rate": "1"},
        )

        assert response.status_code == 400

    def test_set_default_keeps_rates(self, client, auth_headers, currencies):
        response = client.put(
            "/api/currencies/default", headers=auth_headers, json={"currency_id": currencies["EUR"].id}
        )

        assert response.status_code == 200
        assert response.json()["is_default"] is True
        data = {c["code"]: c for c in client.get("/api/currencies", headers=auth_headers).json()}
        assert data["USD"]["is_default"] is False
        assert Decimal(data["USD"]["exchange_rate"]) == Decimal("1")
        assert Decimal(data["EUR"]["exchange_rate"]) == Decimal("1.08")

    def test_set_unknown_default_is_422(self, client, auth_headers, currencies):
        response = client.put("/api/currencies/default", headers=auth_headers, json={"currency_id": 999})

        assert response.status_code == 422

    def test_update_rates(self, client, auth_headers, currencies):
        response = client.put(
            "/api/currencies/rates", headers=auth_headers, json={"rates": {"EUR": "1.10", "GBP": "1.30"}}
        )

        assert response.status_code == 200
        assert {c["code"]: Decimal(c["exchange_rate"]) for c in response.json()} == {
            "EUR": Decimal("1.10"),
            "GBP": Decimal("1.30"),
        }

    def test_reference_rate_is_fixed(self, client, auth_headers, currencies):
        response = client.put("/api/currencies/rates", headers=auth_headers, json={"rates": {"USD": "2"}})

        assert response.status_code == 400

    def test_convert(self, client, auth_headers, currencies):
        response = client.get(
            "/api/currencies/convert",
            headers=auth_headers,
            params={"amount": "100", "from": "EUR", "to": "USD"},
        )

        assert response.status_code == 200
        assert Decimal(response.json()["converted"]) == Decimal("108")

    def test_refresh_from_provider(self, client, auth_headers, currencies, mock_provider):
        mock_provider._quotes["EURUSD=X"] = Decimal("1.09")

        response = client.post("/api/currencies/refresh", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["updated"] == ["EUR"]
        assert sorted(data["failed"]) == ["CAD", "CHF", "GBP", "JPY"]
