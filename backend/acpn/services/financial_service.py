# Overview: Service-layer operations for financial records; CRUD, summary and period reports.

from __future__ import annotations

import calendar
from datetime import datetime

from sqlalchemy import extract, func, or_

from ..errors import BadRequest, NotFound
from ..extensions import db
from ..models import FinancialRecord, RecordCategories, RecordPaymentMethods, RecordStatuses, RecordTypes, User
from ..validation import (
    parse_datetime_field,
    parse_int,
    parse_year,
    parse_positive_amount,
    require_choice,
)
from acpn.time_utils import end_of_day, parse_iso_datetime, to_utc_z, utcnow


class ReportError(BadRequest):
    """Raised when report parameters are invalid."""


REPORT_TYPES = ("yearly", "monthly", "custom")

_SORTABLE = {
    "date": FinancialRecord.date,
    "amount": FinancialRecord.amount,
    "title": FinancialRecord.title,
    "category": FinancialRecord.category,
    "type": FinancialRecord.type,
    "createdAt": FinancialRecord.created_at,
}


# =============================================================================
# CRUD
# =============================================================================

def get_record_or_404(record_id: int) -> FinancialRecord:
    record = db.session.get(FinancialRecord, record_id)
    if not record:
        raise NotFound(f"Financial record not found with id of {record_id}")
    return record


def _apply_fields(record: FinancialRecord, payload: dict) -> None:
    if "type" in payload:
        record.type = require_choice(payload["type"], RecordTypes.ALL, "type")
    if "category" in payload:
        record.category = require_choice(payload["category"], RecordCategories.ALL, "category")
    if "amount" in payload:
        record.amount = parse_positive_amount(payload["amount"])
    if payload.get("date"):
        record.date = parse_datetime_field(payload["date"], "date")
    if "description" in payload:
        record.description = payload["description"]
    if payload.get("title"):
        record.title = str(payload["title"]).strip()
    if "paymentMethod" in payload and payload["paymentMethod"] is not None:
        record.payment_method = require_choice(payload["paymentMethod"], RecordPaymentMethods.ALL, "paymentMethod")
    if "referenceNumber" in payload:
        record.reference_number = payload["referenceNumber"]
    if "status" in payload:
        record.status = require_choice(payload["status"], RecordStatuses.ALL, "status")
    if "attachments" in payload:
        attachments = payload["attachments"] or []
        if not isinstance(attachments, list):
            raise BadRequest("attachments must be a list")
        record.attachments = attachments


def create_record(payload: dict, actor: User) -> FinancialRecord:
    if not payload.get("type") or not payload.get("category") or payload.get("amount") in (None, ""):
        raise BadRequest("Please provide type, category and amount")

    # Title falls back to description
    if not payload.get("title") and payload.get("description"):
        payload = dict(payload, title=payload["description"])
    if not payload.get("title"):
        raise BadRequest("Please provide a title or description")

    record = FinancialRecord(recorded_by=actor.id, date=utcnow(), status=RecordStatuses.APPROVED)
    _apply_fields(record, payload)
    if record.status == RecordStatuses.APPROVED:
        record.approved_by = actor.id
    db.session.add(record)
    db.session.commit()
    return record


def update_record(record_id: int, payload: dict, actor: User) -> FinancialRecord:
    record = get_record_or_404(record_id)
    if not payload.get("title") and payload.get("description") and not record.title:
        payload = dict(payload, title=payload["description"])
    _apply_fields(record, payload)
    if payload.get("status") == RecordStatuses.APPROVED:
        record.approved_by = actor.id
    db.session.commit()
    return record


def delete_record(record_id: int) -> None:
    record = get_record_or_404(record_id)
    db.session.delete(record)
    db.session.commit()


def list_records(filters: dict, page: int = 1, limit: int = 10) -> tuple[list[FinancialRecord], int]:
    """
    Filters: type, category, startDate/endDate (inclusive), search over
    title/description. Sort: field name with optional '-' prefix.
    """
    query = db.session.query(FinancialRecord)
    if filters.get("type"):
        query = query.filter(FinancialRecord.type == filters["type"])
    if filters.get("category"):
        query = query.filter(FinancialRecord.category == filters["category"])
    if filters.get("status"):
        query = query.filter(FinancialRecord.status == filters["status"])

    start, end = _optional_range(filters.get("startDate"), filters.get("endDate"))
    if start:
        query = query.filter(FinancialRecord.date >= start)
    if end:
        query = query.filter(FinancialRecord.date <= end)

    if filters.get("search"):
        like = f"%{filters['search'].strip()}%"
        query = query.filter(or_(FinancialRecord.title.ilike(like), FinancialRecord.description.ilike(like)))

    sort = filters.get("sort") or "-date"
    descending = sort.startswith("-")
    column = _SORTABLE.get(sort.lstrip("-"))
    if column is None:
        raise BadRequest(f"Cannot sort by {sort.lstrip('-')}")
    order = column.desc() if descending else column.asc()

    total = query.count()
    rows = query.order_by(order, FinancialRecord.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return rows, total


# =============================================================================
# AGGREGATION
# =============================================================================

def _optional_range(start_raw: str | None, end_raw: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start = parse_iso_datetime(start_raw) if start_raw else None
        end = parse_iso_datetime(end_raw) if end_raw else None
    except ValueError:
        raise BadRequest("startDate and endDate must be ISO-8601 dates")
    # Date-only end bounds cover the whole day
    if end is not None and end_raw and len(end_raw.strip()) == 10:
        end = end_of_day(end)
    return start, end


def _in_range(start: datetime, end: datetime):
    return (FinancialRecord.date >= start, FinancialRecord.date <= end)


def _type_totals(start: datetime, end: datetime) -> dict:
    rows = (
        db.session.query(
            FinancialRecord.type,
            func.coalesce(func.sum(FinancialRecord.amount), 0),
            func.count(FinancialRecord.id),
        )
        .filter(*_in_range(start, end))
        .group_by(FinancialRecord.type)
        .all()
    )
    income = expenses = 0.0
    count = 0
    for record_type, total, n in rows:
        count += int(n or 0)
        if record_type == RecordTypes.INCOME:
            income = float(total or 0)
        elif record_type == RecordTypes.EXPENSE:
            expenses = float(total or 0)
    return {
        "totalIncome": round(income, 2),
        "totalExpenses": round(expenses, 2),
        "balance": round(income - expenses, 2),
        "count": count,
    }


def _category_breakdown(start: datetime, end: datetime) -> list[dict]:
    rows = (
        db.session.query(
            FinancialRecord.type,
            FinancialRecord.category,
            func.coalesce(func.sum(FinancialRecord.amount), 0),
            func.count(FinancialRecord.id),
        )
        .filter(*_in_range(start, end))
        .group_by(FinancialRecord.type, FinancialRecord.category)
        .order_by(FinancialRecord.type, FinancialRecord.category)
        .all()
    )
    return [
        {"type": t, "category": c, "total": round(float(total or 0), 2), "count": int(n or 0)}
        for t, c, total, n in rows
    ]


def _bucketed(start: datetime, end: datetime, part: str) -> dict[int, dict]:
    """{bucket: {"income": x, "expenses": y}} for extract(part) buckets."""
    bucket = extract(part, FinancialRecord.date)
    rows = (
        db.session.query(
            bucket.label("bucket"),
            FinancialRecord.type,
            func.coalesce(func.sum(FinancialRecord.amount), 0),
        )
        .filter(*_in_range(start, end))
        .group_by(bucket, FinancialRecord.type)
        .all()
    )
    result: dict[int, dict] = {}
    for key, record_type, total in rows:
        slot = result.setdefault(int(key), {"income": 0.0, "expenses": 0.0})
        if record_type == RecordTypes.INCOME:
            slot["income"] = float(total or 0)
        else:
            slot["expenses"] = float(total or 0)
    return result


def _zero_filled(buckets: dict[int, dict], keys, label: str) -> list[dict]:
    rows = []
    for key in keys:
        slot = buckets.get(key, {"income": 0.0, "expenses": 0.0})
        income = round(slot["income"], 2)
        expenses = round(slot["expenses"], 2)
        rows.append({label: key, "income": income, "expenses": expenses, "balance": round(income - expenses, 2)})
    return rows


def _transactions(start: datetime, end: datetime) -> list[dict]:
    rows = (
        db.session.query(FinancialRecord)
        .filter(*_in_range(start, end))
        .order_by(FinancialRecord.date.desc(), FinancialRecord.id.desc())
        .all()
    )
    return [r.to_dict() for r in rows]


def get_summary(start_raw: str | None = None, end_raw: str | None = None) -> dict:
    """Dashboard summary; defaults to the current calendar year."""
    year = utcnow().year
    start, end = _optional_range(start_raw, end_raw)
    start = start or datetime(year, 1, 1)
    end = end or end_of_day(datetime(year, 12, 31))

    totals = _type_totals(start, end)

    month = extract("month", FinancialRecord.date)
    yr = extract("year", FinancialRecord.date)
    monthly_rows = (
        db.session.query(
            FinancialRecord.type,
            yr.label("year"),
            month.label("month"),
            func.coalesce(func.sum(FinancialRecord.amount), 0),
        )
        .filter(*_in_range(start, end))
        .group_by(FinancialRecord.type, yr, month)
        .order_by(yr, month, FinancialRecord.type)
        .all()
    )

    recent = (
        db.session.query(FinancialRecord)
        .order_by(FinancialRecord.date.desc(), FinancialRecord.id.desc())
        .limit(5)
        .all()
    )

    return {
        "totalIncome": totals["totalIncome"],
        "totalExpenses": totals["totalExpenses"],
        "balance": totals["balance"],
        "categoryBreakdown": _category_breakdown(start, end),
        "monthlyBreakdown": [
            {"type": t, "year": int(y), "month": int(m), "total": round(float(total or 0), 2)}
            for t, y, m, total in monthly_rows
        ],
        "recentTransactions": [r.to_dict() for r in recent],
        "dateRange": {"startDate": to_utc_z(start), "endDate": to_utc_z(end)},
    }


# =============================================================================
# REPORTS
# =============================================================================

def yearly_report(year: int) -> dict:
    start = datetime(year, 1, 1)
    end = end_of_day(datetime(year, 12, 31))
    totals = _type_totals(start, end)
    return {
        "reportType": "yearly",
        "year": year,
        "totalIncome": totals["totalIncome"],
        "totalExpenses": totals["totalExpenses"],
        "balance": totals["balance"],
        "monthlyBreakdown": _zero_filled(_bucketed(start, end, "month"), range(1, 13), "month"),
        "categoryBreakdown": _category_breakdown(start, end),
    }


def monthly_report(year: int, month: int) -> dict:
    if not 1 <= month <= 12:
        raise ReportError("month must be between 1 and 12")
    days_in_month = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = end_of_day(datetime(year, month, days_in_month))
    totals = _type_totals(start, end)
    return {
        "reportType": "monthly",
        "year": year,
        "month": month,
        "totalIncome": totals["totalIncome"],
        "totalExpenses": totals["totalExpenses"],
        "balance": totals["balance"],
        "dailyBreakdown": _zero_filled(_bucketed(start, end, "day"), range(1, days_in_month + 1), "day"),
        "categoryBreakdown": _category_breakdown(start, end),
        "transactions": _transactions(start, end),
    }


def custom_report(start_raw: str | None, end_raw: str | None) -> dict:
    if not start_raw or not end_raw:
        raise ReportError("Please provide startDate and endDate for custom report")
    start, end = _optional_range(start_raw, end_raw)
    if start > end:
        raise ReportError("startDate must be before endDate")
    totals = _type_totals(start, end)
    return {
        "reportType": "custom",
        "dateRange": {"startDate": to_utc_z(start), "endDate": to_utc_z(end)},
        "totalIncome": totals["totalIncome"],
        "totalExpenses": totals["totalExpenses"],
        "balance": totals["balance"],
        "categoryBreakdown": _category_breakdown(start, end),
        "transactions": _transactions(start, end),
    }


def generate_report(params: dict) -> dict:
    report_type = params.get("reportType") or "yearly"
    if report_type not in REPORT_TYPES:
        raise ReportError("Invalid report type")

    now = utcnow()
    if report_type == "yearly":
        year = parse_year(params["year"]) if params.get("year") else now.year
        return yearly_report(year)
    if report_type == "monthly":
        year = parse_year(params["year"]) if params.get("year") else now.year
        month = parse_int(params["month"], "month") if params.get("month") else now.month
        return monthly_report(year, month)
    return custom_report(params.get("startDate"), params.get("endDate"))
