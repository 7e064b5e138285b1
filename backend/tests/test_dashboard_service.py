"""
Dashboard aggregator tests.

`now` is pinned to Friday 2024-03-15 12:00 UTC so windows are predictable.
"""

from datetime import datetime

import pytest

from branchstock.services.dashboard_service import get_dashboard_data, growth, resolve_window


NOW = datetime(2024, 3, 15, 12, 0)


@pytest.mark.parametrize(
    "period,start,end",
    [
        ("daily", datetime(2024, 3, 15), datetime(2024, 3, 16)),
        ("weekly", datetime(2024, 3, 8, 12, 0), NOW),
        ("monthly", datetime(2024, 3, 1), datetime(2024, 4, 1)),
        ("yearly", datetime(2024, 1, 1), datetime(2025, 1, 1)),
    ],
)
def test_resolve_window(period, start, end):
    assert resolve_window(period, NOW) == (start, end)


def test_resolve_window_december():
    assert resolve_window("monthly", datetime(2023, 12, 31, 23, 59)) == (
        datetime(2023, 12, 1), datetime(2024, 1, 1)
    )


@pytest.mark.parametrize(
    "current,previous,expected",
    [(150, 100, 50.0), (50, 100, -50.0), (1, 3, -66.67), (10, 0, 0.0), (0, 0, 0.0)],
)
def test_growth(current, previous, expected):
    assert growth(current, previous) == expected


class TestDashboard:
    def test_stats_and_growth(self, make_invoice, make_payment, product):
        make_invoice(3000, datetime(2024, 3, 2, 9))
        make_invoice(1000, datetime(2024, 3, 5, 9))
        make_invoice(2000, datetime(2024, 2, 20, 9))
        make_payment(700, "debit", datetime(2024, 3, 3))

        data = get_dashboard_data("monthly", now=NOW)
        stats = data["stats"]

        assert stats["total_invoices"] == 2
        assert stats["total_sales"] == 2
        assert stats["total_revenue_cents"] == 4000
        assert stats["total_payments_cents"] == 700
        assert stats["total_products"] == 1
        assert stats["revenue_growth"] == 100.0
        assert stats["invoice_growth"] == 100.0
        assert stats["sales_growth"] == 100.0
        assert data["summary"]["average_order_value_cents"] == 2000
        assert data["summary"]["period"] == "monthly"
        assert data["summary"]["date_range"] == {
            "start": "2024-03-01T00:00:00Z",
            "end": "2024-04-01T00:00:00Z",
        }

    def test_product_growth_counts_products_created_before_window(self, make_product):
        make_product(created_at=datetime(2024, 1, 10))
        make_product(created_at=datetime(2024, 3, 4))
        make_product(created_at=datetime(2024, 3, 6))

        stats = get_dashboard_data("monthly", now=NOW)["stats"]

        assert stats["total_products"] == 3
        assert stats["product_growth"] == 200.0

    def test_monthly_sales_data_is_capped_at_thirty_days(self, make_invoice):
        make_invoice(1500, datetime(2024, 3, 2, 18))

        sales = get_dashboard_data("monthly", now=NOW)["sales_data"]

        assert len(sales) == 30
        assert sales[0] == {"date": "2024-03-01", "name": "Fri", "sales_cents": 0, "value": 0}
        assert sales[1]["sales_cents"] == 1500

    def test_daily_label(self, db_session):
        sales = get_dashboard_data("daily", now=NOW)["sales_data"]
        assert sales == [{"date": "2024-03-15", "name": "Friday", "sales_cents": 0, "value": 0}]

    def test_weekly_starts_seven_days_back(self, db_session):
        sales = get_dashboard_data("weekly", now=NOW)["sales_data"]
        assert len(sales) == 7
        assert sales[0]["date"] == "2024-03-08"
        assert sales[0]["name"] == "Fri"

    def test_yearly_label(self, db_session):
        sales = get_dashboard_data("yearly", now=NOW)["sales_data"]
        assert sales[0]["name"] == "Mon, Jan 1"
        assert len(sales) == 365

    def test_unknown_period_falls_back_to_monthly(self, db_session):
        data = get_dashboard_data("fortnightly", now=NOW)
        assert data["summary"]["period"] == "monthly"

    def test_recent_invoices_are_five_newest(self, make_invoice):
        for day in range(1, 8):
            make_invoice(100 * day, datetime(2024, 3, day, 10), customer=f"Customer {day}")

        recent = get_dashboard_data("monthly", now=NOW)["recent_invoices"]

        assert [r["customer"] for r in recent] == [f"Customer {d}" for d in (7, 6, 5, 4, 3)]
        assert recent[0]["amount_cents"] == 700
        assert recent[0]["date"] == "2024-03-07T10:00:00Z"

    def test_product_data_and_low_stock(self, product, make_product):
        make_product(category="Groceries", stock=1, min_stock=3)
        make_product(category="Groceries", stock=8, min_stock=3)

        data = get_dashboard_data("monthly", now=NOW)

        assert data["product_data"] == [
            {"name": "Electronics", "total_products": 1, "total_stock": 50, "value": 1},
            {"name": "Groceries", "total_products": 2, "total_stock": 9, "value": 2},
        ]
        assert [p["stock"] for p in data["low_stock_products"]] == [1]

    def test_branch_scope(self, make_invoice, branch_b, product):
        make_invoice(1000, datetime(2024, 3, 2))
        make_invoice(9000, datetime(2024, 3, 2), branch=branch_b)

        data = get_dashboard_data("monthly", branch_id=branch_b.id, now=NOW)

        assert data["stats"]["total_revenue_cents"] == 9000
        assert data["stats"]["total_products"] == 0
        # Users and branches are counted globally
        assert data["summary"]["total_branches"] == 2
        assert data["summary"]["total_users"] == 1
