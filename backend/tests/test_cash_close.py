# Overview: Pytest coverage for cash-close lifecycle and reconciliation.

"""
Cash Close Tests

LIFECYCLE: open -> closed -> verified, with restore back to open.

RECONCILIATION (on close):
  sales.total    = today's delivered orders
  sales.cash     = sales.total - card_sales
  expected_cash  = opening + sales.cash - expenses
  difference     = closing - expected
"""

import pytest

from resto.services import cash_close_service
from resto.time_utils import utcnow


@pytest.fixture
def open_close(client, manager_headers):
    resp = client.post(
        "/api/cash-close",
        json={"shift": "morning", "opening_cash_cents": 5000000, "notes": "Caja 1"},
        headers=manager_headers,
    )
    assert resp.status_code == 201
    return resp.json["data"]["cash_close"]


@pytest.fixture
def delivered_sales(client, employee_headers, restaurant_a, item_factory):
    """One delivered order worth 12,000,000 cents."""
    item = item_factory(restaurant_a, name="Bandeja paisa", category="Comida", quantity=10,
                        cost_price_cents=2000000, selling_price_cents=6000000)
    order = client.post(
        "/api/orders",
        json={"customer": {"name": "Mesa 4"}, "items": [{"inventory_item_id": item.id, "quantity": 2}]},
        headers=employee_headers,
    ).json["data"]["order"]
    resp = client.put(f"/api/orders/{order['id']}/status", json={"status": "delivered"}, headers=employee_headers)
    assert resp.status_code == 200
    assert resp.json["data"]["order"]["total_cents"] == 12000000
    return order


class TestOpen:

    def test_open_sets_expected_to_opening(self, open_close):
        assert open_close["status"] == "open"
        assert open_close["shift"] == "morning"
        assert open_close["expected_cash_cents"] == 5000000
        assert open_close["total_expenses_cents"] == 0
        assert open_close["opened_by"]["email"] == "manager@a.com"

    def test_one_open_record_per_shift(self, client, manager_headers, open_close):
        resp = client.post(
            "/api/cash-close",
            json={"shift": "morning", "opening_cash_cents": 100},
            headers=manager_headers,
        )
        assert resp.status_code == 400
        assert resp.json["message"] == "A cash close is already open for this shift"

    def test_other_shift_can_open(self, client, manager_headers, open_close):
        resp = client.post(
            "/api/cash-close",
            json={"shift": "afternoon", "opening_cash_cents": 100},
            headers=manager_headers,
        )
        assert resp.status_code == 201

    def test_invalid_shift(self, client, manager_headers):
        resp = client.post("/api/cash-close", json={"shift": "brunch", "opening_cash_cents": 0}, headers=manager_headers)
        assert resp.status_code == 400

    def test_opening_cash_must_be_cents(self, client, manager_headers):
        resp = client.post("/api/cash-close", json={"shift": "night", "opening_cash_cents": 10.5}, headers=manager_headers)
        assert resp.status_code == 400

    def test_current(self, client, employee_headers, open_close):
        resp = client.get("/api/cash-close/current", headers=employee_headers)
        assert resp.json["data"]["cash_close"]["id"] == open_close["id"]


class TestClose:

    def test_reconciliation_short_drawer(self, client, manager_headers, open_close, delivered_sales):
        resp = client.put(
            f"/api/cash-close/{open_close['id']}/close",
            json={"closing_cash_cents": 13800000, "card_sales_cents": 3000000, "notes": "Faltante"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        record = resp.json["data"]["cash_close"]
        assert record["status"] == "closed"
        assert record["sales"]["total_cents"] == 12000000
        assert record["sales"]["card_cents"] == 3000000
        assert record["sales"]["cash_cents"] == 9000000
        assert record["expected_cash_cents"] == 14000000
        assert record["difference_cents"] == -200000
        assert record["net_sales_cents"] == 12000000
        assert record["closed_by"]["email"] == "manager@a.com"
        assert record["closed_at"] is not None

    def test_close_replaces_expenses(self, client, manager_headers, open_close, delivered_sales):
        client.post(
            f"/api/cash-close/{open_close['id']}/expenses",
            json={"description": "Hielo", "amount_cents": 10000},
            headers=manager_headers,
        )
        resp = client.put(
            f"/api/cash-close/{open_close['id']}/close",
            json={
                "closing_cash_cents": 13800000,
                "card_sales_cents": 3000000,
                "expenses": [{"description": "Gas", "amount_cents": 200000, "category": "utilities"}],
            },
            headers=manager_headers,
        )
        record = resp.json["data"]["cash_close"]
        assert [e["description"] for e in record["expenses"]] == ["Gas"]
        assert record["total_expenses_cents"] == 200000
        assert record["expected_cash_cents"] == 13800000
        assert record["difference_cents"] == 0
        assert record["net_sales_cents"] == 11800000

    def test_cannot_close_twice(self, client, manager_headers, open_close):
        body = {"closing_cash_cents": 5000000, "card_sales_cents": 0}
        client.put(f"/api/cash-close/{open_close['id']}/close", json=body, headers=manager_headers)
        resp = client.put(f"/api/cash-close/{open_close['id']}/close", json=body, headers=manager_headers)
        assert resp.status_code == 400
        assert resp.json["message"] == "Cash close is not open"

    def test_invalid_expense_reported_with_path(self, client, manager_headers, open_close):
        resp = client.put(
            f"/api/cash-close/{open_close['id']}/close",
            json={"closing_cash_cents": 0, "card_sales_cents": 0, "expenses": [{"amount_cents": 5}]},
            headers=manager_headers,
        )
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "expenses[0].description"


class TestVerifyAndRestore:

    def _close(self, client, headers, record_id):
        return client.put(
            f"/api/cash-close/{record_id}/close",
            json={"closing_cash_cents": 5000000, "card_sales_cents": 0},
            headers=headers,
        )

    def test_verify_requires_closed(self, client, manager_headers, open_close):
        resp = client.put(f"/api/cash-close/{open_close['id']}/verify", headers=manager_headers)
        assert resp.status_code == 400

    def test_verify(self, client, manager_headers, open_close):
        self._close(client, manager_headers, open_close["id"])
        resp = client.put(f"/api/cash-close/{open_close['id']}/verify", headers=manager_headers)
        assert resp.status_code == 200
        record = resp.json["data"]["cash_close"]
        assert record["status"] == "verified"
        assert record["verified_by"]["email"] == "manager@a.com"

    def test_employee_cannot_verify(self, client, manager_headers, employee_headers, open_close):
        self._close(client, manager_headers, open_close["id"])
        resp = client.put(f"/api/cash-close/{open_close['id']}/verify", headers=employee_headers)
        assert resp.status_code == 403

    def test_restore_clears_closing_figures(self, client, manager_headers, open_close):
        self._close(client, manager_headers, open_close["id"])
        client.put(f"/api/cash-close/{open_close['id']}/verify", headers=manager_headers)

        resp = client.put(f"/api/cash-close/{open_close['id']}/restore", headers=manager_headers)
        assert resp.status_code == 200
        record = resp.json["data"]["cash_close"]
        assert record["status"] == "open"
        assert record["closing_cash_cents"] is None
        assert record["difference_cents"] is None
        assert record["verified_by"] is None
        assert record["closed_by"] is None
        assert record["expected_cash_cents"] == 5000000
        assert record["sales"]["total_cents"] == 0

    def test_restore_open_record_rejected(self, client, manager_headers, open_close):
        resp = client.put(f"/api/cash-close/{open_close['id']}/restore", headers=manager_headers)
        assert resp.status_code == 400


class TestExpensesAndSummary:

    def test_add_expense_updates_totals(self, client, employee_headers, open_close):
        resp = client.post(
            f"/api/cash-close/{open_close['id']}/expenses",
            json={"description": "Servilletas", "amount_cents": 25000, "category": "supplies"},
            headers=employee_headers,
        )
        assert resp.status_code == 201
        record = resp.json["data"]["cash_close"]
        assert record["total_expenses_cents"] == 25000
        assert record["net_sales_cents"] == -25000

    def test_add_expense_to_closed_rejected(self, client, manager_headers, open_close):
        client.put(
            f"/api/cash-close/{open_close['id']}/close",
            json={"closing_cash_cents": 5000000, "card_sales_cents": 0},
            headers=manager_headers,
        )
        resp = client.post(
            f"/api/cash-close/{open_close['id']}/expenses",
            json={"description": "Tarde", "amount_cents": 100},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_daily_summary_counts_closed_only(self, client, manager_headers, open_close, restaurant_a):
        client.post("/api/cash-close", json={"shift": "night", "opening_cash_cents": 0}, headers=manager_headers)
        client.put(
            f"/api/cash-close/{open_close['id']}/close",
            json={"closing_cash_cents": 5000000, "card_sales_cents": 0},
            headers=manager_headers,
        )

        summary = cash_close_service.daily_summary(restaurant_id=restaurant_a.id)
        assert summary["total_cash_closes"] == 1
        assert summary["perfect_closes"] == 1
        assert summary["average_difference_cents"] == 0

    def test_list_filters(self, client, manager_headers, open_close):
        client.post("/api/cash-close", json={"shift": "night", "opening_cash_cents": 0}, headers=manager_headers)
        resp = client.get("/api/cash-close?shift=night", headers=manager_headers)
        assert [r["shift"] for r in resp.json["data"]["cash_closes"]] == ["night"]
        assert resp.json["data"]["pagination"]["total"] == 1

    def test_list_date_only_range_covers_whole_day(self, client, manager_headers, open_close):
        today = utcnow().date().isoformat()
        resp = client.get(f"/api/cash-close?start_date={today}&end_date={today}", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["pagination"]["total"] == 1

    def test_list_rejects_end_before_start(self, client, manager_headers, open_close):
        resp = client.get("/api/cash-close?start_date=2024-02-01&end_date=2024-01-31", headers=manager_headers)
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "end_date"
