"""
Financial records and report tests.
"""

import pytest

from acpn.errors import BadRequest
from acpn.services import financial_service


def _record(actor, record_type, category, amount, date, title=None):
    return financial_service.create_record(
        {
            "type": record_type,
            "category": category,
            "amount": amount,
            "date": date,
            "title": title or f"{category} {amount}",
        },
        actor,
    )


@pytest.fixture
def ledger(treasurer):
    _record(treasurer, "income", "dues", 5000, "2024-01-15")
    _record(treasurer, "income", "donation", 1500, "2024-03-02")
    _record(treasurer, "expense", "rent", 2000, "2024-03-20")
    _record(treasurer, "expense", "utility", 250.5, "2024-12-31T18:00:00")
    _record(treasurer, "income", "dues", 999, "2023-06-01")
    return treasurer


# =============================================================================
# CRUD
# =============================================================================


class TestFinancialRecords:

    def test_title_falls_back_to_description(self, treasurer):
        record = financial_service.create_record(
            {"type": "income", "category": "event", "amount": 300, "description": "Gala tickets"},
            treasurer,
        )
        assert record.title == "Gala tickets"
        assert record.status == "approved"
        assert record.approved_by == treasurer.id

    @pytest.mark.parametrize(
        "payload",
        [
            {"category": "dues", "amount": 10, "title": "x"},
            {"type": "income", "amount": 10, "title": "x"},
            {"type": "income", "category": "dues", "title": "x"},
            {"type": "income", "category": "dues", "amount": 10},
            {"type": "gift", "category": "dues", "amount": 10, "title": "x"},
            {"type": "income", "category": "lottery", "amount": 10, "title": "x"},
        ],
    )
    def test_create_validation(self, treasurer, payload):
        with pytest.raises(BadRequest):
            financial_service.create_record(payload, treasurer)

    def test_list_filters_and_sort(self, ledger):
        rows, total = financial_service.list_records({"type": "income", "sort": "amount"})
        assert total == 3
        assert [r.amount for r in rows] == [999, 1500, 5000]

        rows, total = financial_service.list_records({"startDate": "2024-03-01", "endDate": "2024-03-31"})
        assert total == 2

        rows, total = financial_service.list_records({"search": "rent"})
        assert [r.category for r in rows] == ["rent"]

    def test_list_unknown_sort(self, ledger):
        with pytest.raises(BadRequest):
            financial_service.list_records({"sort": "password"})

    def test_update_and_delete(self, ledger):
        rows, _ = financial_service.list_records({"category": "rent"})
        record = financial_service.update_record(rows[0].id, {"amount": 2100}, ledger)
        assert record.amount == 2100

        financial_service.delete_record(record.id)
        _, total = financial_service.list_records({"category": "rent"})
        assert total == 0


# =============================================================================
# REPORTS
# =============================================================================


class TestReports:

    def test_empty_year_has_twelve_zero_months(self, db_session):
        report = financial_service.generate_report({"reportType": "yearly", "year": "1990"})

        assert report["totalIncome"] == 0
        assert report["totalExpenses"] == 0
        assert len(report["monthlyBreakdown"]) == 12
        assert [m["month"] for m in report["monthlyBreakdown"]] == list(range(1, 13))
        assert all(m["income"] == 0 and m["expenses"] == 0 for m in report["monthlyBreakdown"])

    def test_yearly_totals(self, ledger):
        report = financial_service.yearly_report(2024)

        assert report["totalIncome"] == 6500
        assert report["totalExpenses"] == 2250.5
        assert report["balance"] == 4249.5
        march = report["monthlyBreakdown"][2]
        assert march == {"month": 3, "income": 1500, "expenses": 2000, "balance": -500}
        assert report["monthlyBreakdown"][11]["expenses"] == 250.5

    def test_category_breakdown(self, ledger):
        report = financial_service.yearly_report(2024)
        assert {"type": "income", "category": "dues", "total": 5000, "count": 1} in report["categoryBreakdown"]

    def test_monthly_report_days(self, ledger):
        report = financial_service.generate_report({"reportType": "monthly", "year": "2024", "month": "2"})
        assert len(report["dailyBreakdown"]) == 29
        assert report["transactions"] == []

        report = financial_service.monthly_report(2024, 3)
        assert len(report["dailyBreakdown"]) == 31
        assert len(report["transactions"]) == 2

    def test_custom_report_requires_dates(self, db_session):
        with pytest.raises(BadRequest) as exc:
            financial_service.generate_report({"reportType": "custom", "startDate": "2024-01-01"})
        assert exc.value.message == "Please provide startDate and endDate for custom report"

    def test_custom_report_inclusive_end(self, ledger):
        report = financial_service.custom_report("2024-12-01", "2024-12-31")
        assert report["totalExpenses"] == 250.5

    def test_year_bounds(self, db_session):
        with pytest.raises(BadRequest) as exc:
            financial_service.generate_report({"reportType": "yearly", "year": "10000"})
        assert exc.value.message == "year must be between 1 and 9999"

        report = financial_service.generate_report({"reportType": "yearly", "year": "9999"})
        assert len(report["monthlyBreakdown"]) == 12

    def test_invalid_report_type(self, db_session):
        with pytest.raises(BadRequest) as exc:
            financial_service.generate_report({"reportType": "weekly"})
        assert exc.value.message == "Invalid report type"

    def test_summary_for_range(self, ledger):
        summary = financial_service.get_summary("2024-01-01", "2024-12-31")
        assert summary["totalIncome"] == 6500
        assert {"type": "expense", "year": 2024, "month": 3, "total": 2000} in summary["monthlyBreakdown"]
        assert len(summary["recentTransactions"]) == 5


class TestFinancialRoutes:

    def test_reports_route(self, client, treasurer, auth_headers):
        resp = client.get("/api/financial-records/reports?reportType=yearly&year=1990", headers=auth_headers(treasurer))
        assert resp.status_code == 200
        assert len(resp.get_json()["data"]["monthlyBreakdown"]) == 12

    def test_secretary_denied(self, client, secretary, auth_headers):
        resp = client.get("/api/financial-records", headers=auth_headers(secretary))
        assert resp.status_code == 403

    @pytest.mark.parametrize(
        "query",
        [
            "reportType=yearly&year=10000",
            "reportType=monthly&year=0&month=1",
            "reportType=yearly&year=abc",
        ],
    )
    def test_report_year_out_of_range(self, client, treasurer, auth_headers, query):
        resp = client.get(f"/api/financial-records/reports?{query}", headers=auth_headers(treasurer))
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False
