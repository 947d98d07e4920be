"""
Data normalization utilities for scrapers.

These functions standardize scraped numbers, years, dates and grades into
consistent formats. All timestamps are emitted as ISO-8601 with the Korean
+09:00 offset since every source publishes local (KST) times.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

KST = timezone(timedelta(hours=9))

# Three-tier grade scale and the wider vocabulary mapped onto it
GRADE_GOOD = '상'
GRADE_FAIR = '중'
GRADE_POOR = '하'

GRADE_MAP = {
    '상': GRADE_GOOD,
    '양호': GRADE_GOOD,
    '정상': GRADE_GOOD,
    '중': GRADE_FAIR,
    '주의': GRADE_FAIR,
    '하': GRADE_POOR,
    '불량': GRADE_POOR,
}

FLUID_GRADES = (GRADE_GOOD, GRADE_FAIR, GRADE_POOR)
MECHANICAL_GRADES = tuple(GRADE_MAP.keys())


def parse_price(price_text: Optional[str]) -> Optional[int]:
    """
    Extract the first integer from a price string.

    Examples:
        "12,340,000" -> 12340000
        "예정가 5,000,000원" -> 5000000
        "" -> None
    """
    if not price_text:
        return None
    match = re.search(r'(\d+)', str(price_text).replace(',', ''))
    return int(match.group(1)) if match else None


def parse_amount(value: Any, zero_is_none: bool = False) -> Optional[int]:
    """
    Parse an API amount field ("1,200,000", 1200000, "") into an int.

    Args:
        value: Raw value from JSON/XML
        zero_is_none: Treat 0 as absent (court auction reports 0 for "no value")
    """
    if value is None or value == '':
        return None
    try:
        amount = int(str(value).replace(',', '').strip())
    except ValueError:
        return None
    if zero_is_none and amount == 0:
        return None
    return amount


def parse_year(value: Any, now: Optional[datetime] = None) -> Optional[int]:
    """
    Extract a plausible model year from the first four digits of a value.

    Examples:
        "2019" -> 2019
        "2019년식" -> 2019
        "20190315" -> 2019
        "19" -> None
    """
    if value is None or value == '':
        return None
    digits = re.sub(r'[^0-9]', '', str(value))
    if len(digits) < 4:
        return None
    year = int(digits[:4])
    current = (now or datetime.now(KST)).year
    if 1900 < year <= current + 1:
        return year
    return None


def parse_korean_date(date_text: Optional[str], now: Optional[datetime] = None) -> Optional[str]:
    """
    Parse Korean listing date formats to ISO 8601 (+09:00).

    Supports:
        "MM/DD (HH:mm)"     current year inferred, "24:00" rolls to next day 00:00
        "YYYY.MM.DD HH:mm"  full date with time
        "YYYY-MM-DD"        date only

    Returns:
        ISO string or None when the text is not a recognised date
    """
    if not date_text:
        return None
    text = date_text.strip()

    short_match = re.match(r'^(\d{1,2})/(\d{1,2})\s*\((\d{2}):(\d{2})\)', text)
    if short_match:
        month, day, hour, minute = (int(g) for g in short_match.groups())
        year = (now or datetime.now(KST)).year
        try:
            if hour == 24:
                moment = datetime(year, month, day, 0, minute, tzinfo=KST) + timedelta(days=1)
            else:
                moment = datetime(year, month, day, hour, minute, tzinfo=KST)
        except ValueError:
            return None
        return moment.isoformat()

    normalized = text.replace('.', '-')
    full_match = re.match(r'^(\d{4})-(\d{1,2})-(\d{1,2})(?:\s+(\d{1,2}):(\d{2}))?', normalized)
    if full_match:
        year, month, day = (int(g) for g in full_match.group(1, 2, 3))
        hour = int(full_match.group(4) or 0)
        minute = int(full_match.group(5) or 0)
        try:
            if hour == 24:
                moment = datetime(year, month, day, 0, minute, tzinfo=KST) + timedelta(days=1)
            else:
                moment = datetime(year, month, day, hour, minute, tzinfo=KST)
        except ValueError:
            return None
        return moment.isoformat()

    return None


def parse_compact_datetime(value: Optional[str]) -> Optional[str]:
    """
    Parse compact API datetimes.

    Examples:
        "20260214150000" -> "2026-02-14T15:00:00+09:00"
        "20260214" -> "2026-02-14T00:00:00+09:00"
    """
    if not value:
        return None
    digits = re.sub(r'[^0-9]', '', value)
    try:
        if len(digits) >= 14:
            moment = datetime.strptime(digits[:14], '%Y%m%d%H%M%S')
        elif len(digits) >= 8:
            moment = datetime.strptime(digits[:8], '%Y%m%d')
        else:
            return None
    except ValueError:
        return None
    return moment.replace(tzinfo=KST).isoformat()


def parse_sale_date(value: Any, hour: int = 10) -> Optional[str]:
    """
    Parse a court sale date "YYYYMMDD"; court sales open at 10:00 local time.

    Examples:
        "20260305" -> "2026-03-05T10:00:00+09:00"
    """
    if not value:
        return None
    text = str(value).strip()
    if not re.match(r'^\d{8}$', text):
        return None
    try:
        moment = datetime.strptime(text, '%Y%m%d').replace(hour=hour, tzinfo=KST)
    except ValueError:
        return None
    return moment.isoformat()


def normalize_grade(grade: Optional[str]) -> Optional[str]:
    """
    Map an inspection grade onto the 상/중/하 scale.

    Examples:
        양호 -> 상
        정상 -> 상
        주의 -> 중
        불량 -> 하
        미확인 -> None
    """
    if not grade:
        return None
    return GRADE_MAP.get(grade.strip())
