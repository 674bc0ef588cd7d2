# backend/app/utils/time_utils.py

from datetime import date, datetime
import pytz


UTC = pytz.utc


def now_utc() -> datetime:
    return datetime.now(UTC)


def parse_trip_date(value) -> date:
    """
    Accepts:
    - date / datetime objects
    - 12/03/2025 (dd/mm/yyyy)
    - 2025-03-12 or a full ISO timestamp
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()

    if "/" in text:
        d, m, y = text.split("/")
        return date(int(y), int(m), int(d))

    return date.fromisoformat(text[:10])
