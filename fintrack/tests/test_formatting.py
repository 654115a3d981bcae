import unittest
from datetime import date, datetime
from decimal import Decimal

from fintrack.formatting import (
    format_currency,
    format_date,
    format_date_input,
    format_month,
    signed_amount,
)
from fintrack.models import Transaction


class FormattingTests(unittest.TestCase):
    def test_format_currency_drops_trailing_zeros(self) -> None:
        self.assertEqual(format_currency(Decimal("12.50"), "USD"), "12.5 USD")
        self.assertEqual(format_currency(Decimal("100"), "EUR"), "100 EUR")
        self.assertEqual(format_currency("3.14159", "GBP"), "3.14 GBP")
        self.assertEqual(format_currency(Decimal("-0.001"), "USD"), "0 USD")

    def test_signed_amount_by_type(self) -> None:
        base = {
            "id": "t1",
            "name": "x",
            "amount": Decimal("5"),
            "currency": "USD",
            "date": date(2024, 1, 1),
            "asset_id": "a1",
        }

        self.assertEqual(signed_amount(Transaction(type="income", **base)), "+ 5 USD")
        self.assertEqual(signed_amount(Transaction(type="expense", **base)), "- 5 USD")
        self.assertEqual(signed_amount(Transaction(type="transfer", **base)), "5 USD")

    def test_dates(self) -> None:
        self.assertEqual(format_date(date(2024, 3, 5)), "March 5, 2024")
        self.assertEqual(format_date(datetime(2024, 12, 25, 18, 30)), "December 25, 2024")
        self.assertEqual(format_month("2024-06"), "June 2024")
        self.assertEqual(format_date_input(datetime(2024, 1, 9, 8, 0)), "2024-01-09")


if __name__ == "__main__":
    unittest.main()
