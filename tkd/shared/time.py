from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime | None = None) -> int:
    moment = moment or now_utc()
    return int(moment.timestamp() * 1000)


def days_ago(days: int) -> datetime:
    return now_utc() - timedelta(days=days)


def fmt_form_date(value) -> str:
    """Render a date the way the printed forms show it (DD-MM-YYYY)."""
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%d-%m-%Y")
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text).strftime("%d-%m-%Y")
    except ValueError:
        return text


def iso(value) -> str | None:
    if value is None:
        return None
    return value.isoformat()
