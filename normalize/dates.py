"""
Date range helpers: report windows, month parsing and days-back cutoffs.
"""
import re
import calendar
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

MONTH_NAMES = {
    'january': 1, 'jan': 1,
    'february': 2, 'feb': 2,
    'march': 3, 'mar': 3,
    'april': 4, 'apr': 4,
    'may': 5,
    'june': 6, 'jun': 6,
    'july': 7, 'jul': 7,
    'august': 8, 'aug': 8,
    'september': 9, 'sept': 9, 'sep': 9,
    'october': 10, 'oct': 10,
    'november': 11, 'nov': 11,
    'december': 12, 'dec': 12,
}


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


class TimeWindow:
    """Inclusive [since, until] window; either bound may be open."""

    def __init__(self, since: Optional[datetime] = None, until: Optional[datetime] = None, month_name: Optional[str] = None):
        self.since = since
        self.until = until
        self.month_name = month_name

    def comparator(self) -> Optional[Dict[str, str]]:
        """GraphQL date comparator for this window, or None when unbounded."""
        cmp: Dict[str, str] = {}
        if self.since:
            cmp['gte'] = _iso(self.since)
        if self.until:
            cmp['lte'] = _iso(self.until)
        return cmp or None

    def describe(self) -> str:
        if self.month_name:
            return self.month_name
        if self.since and self.until:
            return f"{self.since.date().isoformat()} to {self.until.date().isoformat()}"
        if self.since:
            return f"Since {self.since.date().isoformat()}"
        if self.until:
            return f"Until {self.until.date().isoformat()}"
        return "All time"

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'since': _iso(self.since) if self.since else None,
            'until': _iso(self.until) if self.until else None,
            'month_name': self.month_name,
        }


def parse_month_input(value: Optional[str], today: Optional[datetime] = None) -> Optional[Tuple[int, int]]:
    """Parse "October", "Oct", "10", "2024-10", "October 2024", "Oct 2024" or "10/2024".

    Returns (month, year) with month in 1..12, or None when nothing recognisable is found.
    The year defaults to the current year.
    """
    if not value:
        return None
    text = value.strip().lower()
    year = (today or datetime.now(timezone.utc)).year

    # longest names first so "sept" wins over "sep" and "june" over "jun"
    for name in sorted(MONTH_NAMES, key=len, reverse=True):
        if re.search(r'\b' + name + r'\b', text):
            m = re.search(r'\b(\d{4})\b', text)
            return MONTH_NAMES[name], int(m.group(1)) if m else year

    m = re.fullmatch(r'(\d{4})[/-](\d{1,2})', text)
    if m:
        month, year = int(m.group(2)), int(m.group(1))
    else:
        m = re.fullmatch(r'(\d{1,2})(?:[/-](\d{4}))?', text)
        if not m:
            return None
        month = int(m.group(1))
        if m.group(2):
            year = int(m.group(2))
    if not 1 <= month <= 12:
        return None
    return month, year


def month_date_range(month: int, year: int) -> Tuple[datetime, datetime]:
    """First instant and last microsecond of a month, in UTC."""
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)
    return start, end


def format_month_name(month: int, year: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def month_window(value: str, today: Optional[datetime] = None) -> Optional[TimeWindow]:
    parsed = parse_month_input(value, today)
    if not parsed:
        return None
    month, year = parsed
    start, end = month_date_range(month, year)
    return TimeWindow(start, end, format_month_name(month, year))


def days_back_window(days: Optional[int], now: Optional[datetime] = None) -> TimeWindow:
    """Window starting `days` days ago with an open upper bound; 0 or None means all time."""
    if not days:
        return TimeWindow()
    now = now or datetime.now(timezone.utc)
    return TimeWindow(since=now - timedelta(days=int(days)))


def parse_team_emails(value: Optional[str]) -> List[str]:
    """Split a comma- and/or whitespace-separated email list."""
    if not value:
        return []
    return [e.strip() for e in re.split(r'[,\s]+', value) if e.strip()]
