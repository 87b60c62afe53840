"""
Freshness Evaluator

Flags documents that have outlived their expected validity window for
their type, or whose text declares an expiry date that has passed.
"""

import calendar
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ..common.clock import Clock, days_between, ensure_utc, utc_now
from ..common.config import DecayConfig
from ..common.schemas import Citation, Document, DocumentVersion
from .signals import DecaySignal

NAME = "freshness"

MONTHS = {
    name.lower(): index
    for index, name in enumerate(calendar.month_name)
    if name
}
MONTHS.update({
    name.lower(): index
    for index, name in enumerate(calendar.month_abbr)
    if name
})
MONTHS["sept"] = 9

_MONTH = r"\b(?P<month>" + "|".join(sorted(MONTHS, key=len, reverse=True)) + r")\.?"

_DATE_PATTERNS = [
    ("iso", re.compile(r"\b(?P<year>\d{4})-(?P<mon>\d{1,2})-(?P<day>\d{1,2})\b")),
    ("us", re.compile(r"\b(?P<mon>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4})\b")),
    ("month_day", re.compile(_MONTH + r"\s+(?P<day>\d{1,2})(?:st|nd|rd|th)?,?\s+(?P<year>\d{4})\b", re.IGNORECASE)),
    ("month_year", re.compile(_MONTH + r"\s+(?P<year>\d{4})\b", re.IGNORECASE)),
]

EXPIRY_PHRASES = re.compile(
    r"\b(?P<phrase>valid until|valid through|valid thru|expires on|expires|expiry date|"
    r"expiration date|effective until|effective through)\b\s*:?\s*",
    re.IGNORECASE,
)

# How far past an expiry phrase to look for its date
_EXPIRY_WINDOW = 40


def _build_date(kind: str, match: re.Match) -> Optional[datetime]:
    parts = match.groupdict()
    year = int(parts["year"])
    if kind in ("iso", "us"):
        month = int(parts["mon"])
    else:
        month = MONTHS[parts["month"].lower()]

    if kind == "month_year":
        # A bare month means "through the end of that month"
        day = calendar.monthrange(year, month)[1]
    else:
        day = int(parts["day"])

    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def find_dates(text: str) -> List[Tuple[int, datetime, str]]:
    """All recognizable dates as (offset, date, matched text), by offset."""
    found = []
    claimed = set()
    for kind, pattern in _DATE_PATTERNS:
        for match in pattern.finditer(text):
            if any(pos in claimed for pos in range(match.start(), match.end())):
                continue
            value = _build_date(kind, match)
            if value is None:
                continue
            claimed.update(range(match.start(), match.end()))
            found.append((match.start(), value, match.group(0)))
    found.sort(key=lambda item: item[0])
    return found


def find_expiry_dates(text: str) -> List[Tuple[str, datetime, str]]:
    """Explicit expiry statements as (phrase, date, matched date text)."""
    results = []
    for match in EXPIRY_PHRASES.finditer(text or ""):
        window = text[match.end(): match.end() + _EXPIRY_WINDOW]
        dates = find_dates(window)
        if dates:
            _, value, raw = dates[0]
            results.append((match.group("phrase").lower(), value, raw))
    return results


class FreshnessEvaluator:
    """Age-vs-validity-window and declared-expiry checks."""

    name = NAME

    def __init__(self, config: Optional[DecayConfig] = None, clock: Clock = utc_now):
        self._config = config or DecayConfig()
        self._clock = clock

    @property
    def weight(self) -> float:
        return self._config.weights.get(NAME, 0.0)

    def evaluate(
        self,
        document: Document,
        versions: List[DocumentVersion],
        siblings: List[Document],
    ) -> DecaySignal:
        now = ensure_utc(self._clock())
        reasons = []

        age_days = days_between(document.updated_at, now)
        validity = self._config.validity_for(document.type)
        if age_days > validity:
            reasons.append(
                f"Document has not been updated in {age_days} days "
                f"(expected validity for {document.type}: {validity} days)"
            )

        expired = [
            (phrase, value, raw)
            for phrase, value, raw in find_expiry_dates(document.content)
            if value < now
        ]
        for phrase, value, raw in expired:
            reasons.append(f'Declared effective period has elapsed ("{phrase} {raw}")')

        citations = []
        if reasons:
            citations.append(Citation(
                document_id=document.id,
                title=document.title,
                version_number=document.current_version,
                excerpt=f"{expired[0][0]} {expired[0][2]}" if expired else None,
            ))

        return DecaySignal(
            name=NAME,
            detected=bool(reasons),
            weight=self.weight,
            reasons=reasons,
            citations=citations,
            details={
                "age_days": age_days,
                "validity_days": validity,
                "expired": [value.date().isoformat() for _, value, _ in expired],
            },
        )
