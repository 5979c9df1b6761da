"""
Dashboard and analytics figures.
"""

from datetime import datetime, timedelta

import pytest

from repairshop.extensions import db
from repairshop.models import Sale
from repairshop.services import analytics_service
from repairshop.services.analytics_service import AnalyticsError, percent_change, period_bounds


class TestPeriodBounds:
    # Wednesday
    NOW = datetime(2024, 5, 15, 10, 30)

    def test_day(self):
        start, end, prev_start, prev_end = period_bounds("day", self.NOW)
        assert start == datetime(2024, 5, 15)
        assert end.date() == self.NOW.date()
        assert prev_start == datetime(2024, 5, 14)
        assert prev_end.date() == datetime(2024, 5, 14).date()

    def test_week_starts_on_sunday(self):
        start, end, prev_start, prev_end = period_bounds("week", self.NOW)
        assert start == datetime(2024, 5, 12)
        assert end.date() == datetime(2024, 5, 18).date()
        assert prev_start == datetime(2024, 5, 5)
        assert prev_end.date() == datetime(2024, 5, 11).date()

    def test_week_on_a_sunday(self):
        start, _, _, _ = period_bounds("week", datetime(2024, 5, 12, 8))
        assert start == datetime(2024, 5, 12)

    def test_month(self):
        start, end, prev_start, prev_end = period_bounds("month", self.NOW)
        assert start == datetime(2024, 5, 1)
        assert end.date() == datetime(2024, 5, 31).date()
        assert prev_start == datetime(2024, 4, 1)
        assert prev_end.date() == datetime(2024, 4, 30).date()

    def test_month_in_january_reaches_back_a_year(self):
        _, _, prev_start, prev_end = period_bounds("month", datetime(2024, 1, 10))
        assert prev_start == datetime(2023, 12, 1)
        assert prev_end.date() == datetime(2023, 12, 31).date()

    def test_year(self):
        start, end, prev_start, prev_end = period_bounds("year", self.NOW)
        assert start == datetime(2024, 1, 1)
        assert end.date() == datetime(2024, 12, 31).date()
        assert prev_start == datetime(2023, 1, 1)
        assert prev_end.date() == datetime(2023, 12, 31).date()

    def test_unknown_period(self):
        with pytest.raises(AnalyticsError):
            period_bounds("fortnight", self.NOW)


def test_percent_change():
    assert percent_change(150, 100) == 50.0
    assert percent_change(50, 100) == -50.0
    assert percent_change(10, 0) == 100.0


class TestDashboard:
    def test_stats(self, client, make_part):
        make_part(stock=1, low_stock_threshold=2, selling_price_cents=10000)
        make_part(stock=10, low_stock_threshold=2, selling_price_cents=2550)

        body = client.get("/api/dashboard").get_json()

        assert body["stats"] == {
            "totalParts": 2,
            "lowStockCount": 1,
            "inventoryValue": 125.5,
            "recentTransactions": 2,
        }
        assert len(body["lowStockParts"]) == 1
        assert body["recentSales"] == []
        assert len(body["recentTransactions"]) == 2

    def test_recent_sales(self, client, make_part, make_sale):
        part = make_part(stock=5)
        make_sale([(part, 1, 1000)], customer_name="Walk-in")

        body = client.get("/api/dashboard").get_json()
        assert [s["customerName"] for s in body["recentSales"]] == ["Walk-in"]


class TestInventoryAnalytics:
    def test_valuation(self, client, make_part):
        make_part(stock=0, real_cost_cents=1000, selling_price_cents=2000, low_stock_threshold=1)
        make_part(stock=4, real_cost_cents=2500, selling_price_cents=5000, low_stock_threshold=1)

        body = client.get("/api/analytics/inventory").get_json()

        assert body["totalParts"] == 2
        assert body["lowStockCount"] == 1
        assert body["outOfStockCount"] == 1
        assert body["stockValueAtCost"] == 100.0
        assert body["stockValueAtPrice"] == 200.0
        assert body["potentialProfit"] == 100.0
        assert body["profitMargin"] == 50.0
        assert body["averageMarkup"] == 100.0
        # 100 - 50 (low share) - 25 (out-of-stock share)
        assert body["healthScore"] == 25.0
        assert body["activity"]["weeklyIn"] == 1

    def test_empty_catalog(self, client, db_session):
        body = client.get("/api/analytics/inventory").get_json()
        assert body["totalParts"] == 0
        assert body["healthScore"] == 100.0


class TestSalesAnalytics:
    def test_current_day_figures(self, client, make_part, make_sale):
        screen = make_part(stock=10, real_cost_cents=6000, name="Screen")
        battery = make_part(stock=10, real_cost_cents=1000, name="Battery")
        make_sale([(screen, 1, 10000), (battery, 2, 2500)], discount_cents=1000)
        make_sale([(battery, 1, 2500)])

        resp = client.get("/api/sales/analytics?period=day")

        assert resp.status_code == 200
        body = resp.get_json()
        summary = body["summary"]
        assert summary["revenue"] == 165.0
        assert summary["salesCount"] == 2
        assert summary["revenueChange"] == 100.0
        assert summary["salesCountChange"] == 100.0
        # (100 - 60) + (50 - 20) + (25 - 10)
        assert summary["profit"] == 85.0
        assert summary["itemsSold"] == 4
        assert summary["averageSaleValue"] == 82.5
        assert [p["name"] for p in body["topProducts"]] == ["Screen", "Battery"]
        assert body["topProducts"][1]["quantity"] == 3
        assert body["topProducts"][1]["revenue"] == 75.0
        assert len(body["dailySales"]) == 1
        assert body["dailySales"][0]["count"] == 2
        assert body["dailySales"][0]["revenue"] == 165.0
        assert body["period"]["name"] == "day"

    def test_only_completed_sales_count(self, client, make_part, make_sale, db_session):
        part = make_part(stock=5)
        sale = make_sale([(part, 1, 4000)])
        sale.status = "CANCELLED"
        db_session.commit()

        summary = client.get("/api/sales/analytics?period=day").get_json()["summary"]
        assert summary["salesCount"] == 0
        assert summary["revenue"] == 0

    def test_compares_with_previous_period(self, make_part, make_sale, db_session):
        part = make_part(stock=10)
        today = make_sale([(part, 1, 3000)])
        yesterday = make_sale([(part, 1, 2000)])
        yesterday.created_at = today.created_at - timedelta(days=1)
        db_session.commit()

        summary = analytics_service.sales_analytics("day", now=today.created_at)["summary"]

        assert summary["revenue"] == 30.0
        assert summary["revenueChange"] == 50.0
        assert summary["salesCountChange"] == 0.0

    def test_unknown_period_falls_back_to_week(self, client, db_session):
        resp = client.get("/api/sales/analytics?period=decade")

        assert resp.status_code == 200
        assert resp.get_json()["period"]["name"] == "week"

    def test_money_sums_have_no_float_drift(self, make_part, make_sale):
        part = make_part(stock=10, real_cost_cents=0)
        for _ in range(3):
            make_sale([(part, 1, 10)])

        summary = analytics_service.sales_analytics("day")["summary"]

        assert summary["revenue"] == 0.3
        assert summary["profit"] == 0.3
        assert summary["averageSaleValue"] == 0.1
