"""
Date helpers
============

Kolom tanggal di repair order disimpan sebagai text (warisan spreadsheet),
formatnya campur: MM/DD/YYYY, MM/DD/YY, MM-DD-YYYY, ISO, sampai serial Excel.
Semua parsing lewat ``parse_date`` supaya dashboard dan job konsisten.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

DateLike = Union[str, int, float, date, datetime, None]

EXCEL_EPOCH = date(1899, 12, 30)

_US_SLASH_4 = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')
_US_SLASH_2 = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{2})$')
_US_DASH = re.compile(r'^(\d{1,2})-(\d{1,2})-(\d{4})$')
_ISO = re.compile(r'^(\d{4})-(\d{2})-(\d{2})')


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: DateLike) -> Optional[date]:
    """
    Parse nilai tanggal ke ``date``. Return None kalau tidak bisa diparse.

    Format yang didukung: MM/DD/YYYY, M/D/YYYY, MM/DD/YY (00-49 = 20xx,
    50-99 = 19xx), MM-DD-YYYY, YYYY-MM-DD, ISO 8601 dengan jam, serial
    Excel (hari sejak 1899-12-30), ``date`` dan ``datetime``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        try:
            return EXCEL_EPOCH + timedelta(days=int(value))
        except OverflowError:
            return None
    if not isinstance(value, str):
        return None

    trimmed = value.strip()
    if not trimmed:
        return None

    match = _US_SLASH_4.match(trimmed)
    if match:
        month, day, year = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = _US_SLASH_2.match(trimmed)
    if match:
        month, day, year = (int(part) for part in match.groups())
        year = 2000 + year if year < 50 else 1900 + year
        return _safe_date(year, month, day)

    match = _US_DASH.match(trimmed)
    if match:
        month, day, year = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    match = _ISO.match(trimmed)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    return None


def is_overdue(value: DateLike, today: Optional[date] = None) -> bool:
    """True kalau tanggal valid dan sebelum hari ini (jam 00:00)."""
    parsed = parse_date(value)
    if parsed is None:
        return False
    return parsed < (today or date.today())


def days_since(value: DateLike, today: Optional[date] = None) -> Optional[int]:
    parsed = parse_date(value)
    if parsed is None:
        return None
    return ((today or date.today()) - parsed).days


def days_until(value: DateLike, today: Optional[date] = None) -> Optional[int]:
    parsed = parse_date(value)
    if parsed is None:
        return None
    return (parsed - (today or date.today())).days


def format_date_us(value: Optional[date]) -> Optional[str]:
    """Format ke mm/dd/yy, sesuai kolom varchar lama."""
    if value is None:
        return None
    return value.strftime('%m/%d/%y')


def today_iso() -> str:
    return date.today().isoformat()
