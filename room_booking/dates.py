from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

ISO_FORMAT = '%Y-%m-%d'


@dataclass(frozen=True)
class DateParseResult:
    value: Optional[date] = None
    error: str = ''

    @property
    def ok(self) -> bool:
        return self.value is not None


def parse_iso_date(raw: str | None) -> DateParseResult:
    """Parse ``YYYY-MM-DD`` without raising; failures carry a reason."""
    if raw is None or not str(raw).strip():
        return DateParseResult(error='Date is required')
    try:
        return DateParseResult(value=datetime.strptime(str(raw).strip(), ISO_FORMAT).date())
    except ValueError:
        return DateParseResult(error=f'Invalid date {raw!r}. Use YYYY-MM-DD')


def as_date(value, fallback: Optional[date]) -> Optional[date]:
    """Coerce a stored date (date or ISO string) falling back when unusable."""
    if isinstance(value, date):
        return value
    result = parse_iso_date(value)
    return result.value if result.ok else fallback
