"""
Pure calculation tests.

These functions hold every derived figure in the system (item value and
low-stock flag, order totals, cash-close reconciliation), so they are
tested without a database.
"""

from datetime import datetime

import pytest

from resto.errors import ValidationError
from resto.services.inventory_service import compute_item_derived, apply_quantity_operation
from resto.services.order_service import (
    compute_order_totals,
    generate_order_number,
    elapsed_minutes,
)
from resto.services.cash_close_service import compute_cash_close_totals, reconcile_close


class TestInventoryDerived:

    def test_total_value_is_quantity_times_cost(self):
        derived = compute_item_derived(12, 150000, 5)
        assert derived["total_value_cents"] == 1800000
        assert derived["is_low_stock"] is False

    def test_low_stock_is_inclusive_of_min_quantity(self):
        assert compute_item_derived(5, 100, 5)["is_low_stock"] is True
        assert compute_item_derived(6, 100, 5)["is_low_stock"] is False

    def test_zero_quantity_has_no_value(self):
        derived = compute_item_derived(0, 999, 0)
        assert derived == {"total_value_cents": 0, "is_low_stock": True}


class TestQuantityOperations:

    def test_set(self):
        assert apply_quantity_operation(10, 3, "set") == 3

    def test_add(self):
        assert apply_quantity_operation(10, 3, "add") == 13

    def test_subtract_is_floored_at_zero(self):
        assert apply_quantity_operation(10, 3, "subtract") == 7
        assert apply_quantity_operation(2, 5, "subtract") == 0

    def test_unknown_operation_rejected(self):
        with pytest.raises(ValidationError):
            apply_quantity_operation(10, 3, "multiply")


class TestOrderTotals:

    def test_totals_with_tax_and_discount(self):
        totals = compute_order_totals([(2, 300000), (1, 450000)], tax_cents=10000, discount_cents=5000)
        assert totals["line_totals"] == [600000, 450000]
        assert totals["subtotal_cents"] == 1050000
        assert totals["total_cents"] == 1055000

    def test_no_lines(self):
        totals = compute_order_totals([])
        assert totals["subtotal_cents"] == 0
        assert totals["total_cents"] == 0

    def test_order_number_format(self):
        number = generate_order_number(datetime(2024, 3, 7, 12, 0))
        assert len(number) == 9
        assert number.startswith("240307")
        assert number[6:].isdigit()

    def test_elapsed_minutes_never_negative(self):
        start = datetime(2024, 1, 1, 12, 0)
        assert elapsed_minutes(start, datetime(2024, 1, 1, 12, 45, 59)) == 45
        assert elapsed_minutes(start, datetime(2024, 1, 1, 11, 0)) == 0


class TestCashCloseArithmetic:

    def test_totals(self):
        totals = compute_cash_close_totals(1000000, [100000, 50000])
        assert totals == {"total_expenses_cents": 150000, "net_sales_cents": 850000}

    def test_reconcile_short_drawer(self):
        figures = reconcile_close(
            opening_cash_cents=5000000,
            closing_cash_cents=13800000,
            card_sales_cents=3000000,
            system_sales_cents=12000000,
            expense_amounts=[],
        )
        assert figures["sales_cash_cents"] == 9000000
        assert figures["expected_cash_cents"] == 14000000
        assert figures["difference_cents"] == -200000
        assert figures["net_sales_cents"] == 12000000

    def test_reconcile_with_expenses(self):
        figures = reconcile_close(
            opening_cash_cents=100000,
            closing_cash_cents=250000,
            card_sales_cents=50000,
            system_sales_cents=300000,
            expense_amounts=[100000],
        )
        # expected = 100000 + (300000 - 50000) - 100000
        assert figures["expected_cash_cents"] == 250000
        assert figures["difference_cents"] == 0
        assert figures["total_expenses_cents"] == 100000
        assert figures["net_sales_cents"] == 200000
