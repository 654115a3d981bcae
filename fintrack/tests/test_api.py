import unittest
from decimal import Decimal
from unittest import mock

from fastapi.testclient import TestClient

from fintrack import main
from fintrack.currency_conversion import StaticRateProvider

RATES = {"USD": "1", "EUR": "0.5"}

LEDGER = {
    "assets": [
        {"id": "a1", "name": "Bank", "init_balance": "1000", "currency": "USD"},
        {"id": "a2", "name": "Savings", "init_balance": "0", "currency": "USD"},
    ],
    "categories": [
        {"id": "c1", "name": "Groceries", "total_budgeted": "60", "currency": "USD"},
    ],
    "transactions": [
        {
            "id": "t1",
            "name": "Market",
            "amount": "50",
            "currency": "USD",
            "date": "2024-01-10",
            "type": "expense",
            "asset_id": "a1",
            "category_id": "c1",
        },
        {
            "id": "t2",
            "name": "Corner shop",
            "amount": "30",
            "currency": "USD",
            "date": "2024-02-03",
            "type": "expense",
            "asset_id": "a1",
            "category_id": "c1",
        },
        {
            "id": "t3",
            "name": "Move to savings",
            "amount": "100",
            "currency": "USD",
            "date": "2024-02-15",
            "type": "transfer",
            "asset_id": "a2",
            "asset_from_id": "a1",
        },
    ],
    "today": "2024-02-20",
}


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(main.app)

    def test_health_and_currencies(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})
        currencies = self.client.get("/currencies").json()
        self.assertIn("EUR", currencies)
        self.assertEqual(currencies[0], "USD")

    def test_asset_balance(self) -> None:
        response = self.client.post("/assets/a1/balance", json=LEDGER)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(Decimal(str(body["balance"])), Decimal("820"))
        self.assertEqual(body["currency"], "USD")

    def test_unknown_asset_is_404(self) -> None:
        response = self.client.post("/assets/zzz/balance", json=LEDGER)

        self.assertEqual(response.status_code, 404)

    def test_asset_details_for_this_month(self) -> None:
        payload = dict(LEDGER, period={"type": "relative", "option": "This", "unit": "month"})

        body = self.client.post("/assets/a1/details", json=payload).json()

        self.assertEqual(body["start_date"], "2024-02-01")
        self.assertEqual(body["end_date"], "2024-02-29")
        self.assertEqual(Decimal(str(body["expense"])), Decimal("30"))
        self.assertEqual(Decimal(str(body["transfer_from"])), Decimal("100"))

    def test_bad_period_unit_is_400(self) -> None:
        payload = dict(LEDGER, period={"option": "Past", "unit": "decade"})

        response = self.client.post("/assets/a1/details", json=payload)

        self.assertEqual(response.status_code, 400)

    def test_category_budget(self) -> None:
        payload = dict(
            LEDGER,
            rates=RATES,
            period={"type": "absolute", "start": "2024-01-01", "end": "2024-12-31"},
        )

        body = self.client.post("/categories/c1/budget", json=payload).json()

        self.assertEqual(Decimal(str(body["current_value"])), Decimal("80"))
        self.assertEqual(body["status"], "over")

    def test_category_totals_with_missing_rate_are_null(self) -> None:
        payload = dict(
            LEDGER,
            categories=[{"id": "c9", "name": "Travel", "total_budgeted": "100", "currency": "EUR"}],
            transactions=[dict(LEDGER["transactions"][0], category_id="c9")],
            rates={"USD": "1"},
            period={"type": "absolute", "start": "2024-01-01", "end": "2024-12-31"},
        )

        spent = self.client.post("/categories/c9/spent", json=payload)
        budget = self.client.post("/categories/c9/budget", json=payload)

        self.assertEqual(spent.status_code, 200)
        self.assertIsNone(spent.json()["total_spent"])
        self.assertEqual(budget.status_code, 200)
        self.assertIsNone(budget.json()["current_value"])
        self.assertIsNone(budget.json()["remaining"])
        self.assertEqual(budget.json()["status"], "unknown")

    def test_history_without_base_currency_skips_rate_lookup(self) -> None:
        payload = dict(LEDGER, period={"type": "absolute", "start": "2024-01-01", "end": "2024-12-31"})

        with mock.patch.object(main, "FX_PROVIDER") as provider:
            body = self.client.post("/reports/category-history", json=payload).json()

        provider.get_rates.assert_not_called()
        self.assertEqual(Decimal(str(body["data"][0]["Groceries"])), Decimal("50"))

    def test_category_history(self) -> None:
        payload = dict(
            LEDGER,
            rates=RATES,
            period={"type": "absolute", "start": "2024-01-01", "end": "2024-12-31"},
        )

        body = self.client.post("/reports/category-history", json=payload).json()

        self.assertIsNone(body["base_currency"])
        self.assertEqual([record["month"] for record in body["data"]], ["2024-01", "2024-02"])
        self.assertEqual(Decimal(str(body["data"][0]["Groceries"])), Decimal("50"))
        self.assertEqual(Decimal(str(body["data"][1]["Groceries"])), Decimal("30"))

    def test_asset_history_with_base_currency(self) -> None:
        payload = dict(
            LEDGER,
            rates=RATES,
            base_currency="eur",
            period={"type": "absolute", "start": "2024-01-01", "end": "2024-12-31"},
        )

        body = self.client.post("/reports/asset-history", json=payload).json()

        self.assertEqual(body["base_currency"], "EUR")
        february = body["data"][1]
        self.assertEqual(Decimal(str(february["Bank"])), Decimal("410"))
        self.assertEqual(Decimal(str(february["Savings"])), Decimal("50"))

    def test_history_without_data_is_null(self) -> None:
        payload = dict(
            LEDGER,
            rates=RATES,
            period={"type": "absolute", "start": "2030-01-01", "end": "2030-12-31"},
        )

        body = self.client.post("/reports/asset-history", json=payload).json()

        self.assertIsNone(body["data"])

    def test_query_filters_sorts_and_resolves_names(self) -> None:
        payload = dict(
            LEDGER,
            filter_option="Asset",
            filter_value=["a1"],
            sort=[{"key": "Amount", "ascending": False}],
        )

        rows = self.client.post("/transactions/query", json=payload).json()

        self.assertEqual([row["id"] for row in rows], ["t3", "t1", "t2"])
        self.assertEqual(rows[0]["asset_name"], "Savings")
        self.assertEqual(rows[0]["asset_from_name"], "Bank")
        self.assertEqual(rows[1]["category_name"], "Groceries")
        self.assertEqual(rows[1]["display_amount"], "- 50 USD")
        self.assertEqual(rows[1]["display_date"], "January 10, 2024")

    def test_query_rejects_unknown_sort_key(self) -> None:
        payload = dict(LEDGER, sort=[{"key": "Color"}])

        response = self.client.post("/transactions/query", json=payload)

        self.assertEqual(response.status_code, 400)

    def test_convert_with_supplied_rates(self) -> None:
        payload = {"amount": "10", "source_currency": "usd", "target_currency": "EUR", "rates": RATES}

        body = self.client.post("/currency/convert", json=payload).json()

        self.assertEqual(Decimal(str(body["amount"])), Decimal("5"))
        self.assertEqual(body["currency"], "EUR")

    def test_convert_with_incomplete_rates_is_400(self) -> None:
        payload = {"amount": "10", "source_currency": "USD", "target_currency": "JPY", "rates": RATES}

        response = self.client.post("/currency/convert", json=payload)

        self.assertEqual(response.status_code, 400)

    def test_rates_come_from_provider(self) -> None:
        with mock.patch.object(main, "FX_PROVIDER", StaticRateProvider()):
            body = self.client.get("/currency/rates", params={"base": "EUR"}).json()

        self.assertEqual(body["base_currency"], "EUR")
        self.assertEqual(Decimal(str(body["rates"]["EUR"])), Decimal("1"))


if __name__ == "__main__":
    unittest.main()
