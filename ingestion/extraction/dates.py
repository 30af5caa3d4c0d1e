"""Publish-date resolution for article fragments.

``DateResolver.resolve`` walks an ordered list of strategies and returns the
first date found. Each strategy returns ``None`` when it has nothing; parse
failures are swallowed per strategy so resolution always yields a date, the
current day being the last resort.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Iterable, List, Optional

from bs4 import BeautifulSoup, Tag

from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

DateStrategy = Callable[[Tag, Optional[str], date], Optional[date]]

DATE_ATTRIBUTES = ("datetime", "content", "data-date", "data-published", "data-timestamp", "title")

DATE_CLASS_SELECTORS = (
    ".date",
    ".published",
    ".post-date",
    ".entry-date",
    ".timestamp",
    ".article-date",
    "[itemprop='datePublished']",
)

EXPLICIT_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%b. %d, %Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%A, %B %d, %Y",
    "%a, %d %b %Y",
)

_LABEL_RE = re.compile(r"^\s*(?:published|posted|date|updated|last updated)\s*(?:on)?\s*[:\-]?\s*", re.IGNORECASE)
_ISO_IN_TEXT_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_EPOCH_RE = re.compile(r"^\d{10}(?:\d{3})?$")

_MONTHS = {
    "january": 1, "jan": 1, "february": 2, "feb": 2, "march": 3, "mar": 3,
    "april": 4, "apr": 4, "may": 5, "june": 6, "jun": 6, "july": 7, "jul": 7,
    "august": 8, "aug": 8, "september": 9, "sept": 9, "sep": 9, "october": 10, "oct": 10,
    "november": 11, "nov": 11, "december": 12, "dec": 12,
}
_MONTH_ALT = "|".join(sorted(_MONTHS, key=len, reverse=True))
_MONTH_FIRST_RE = re.compile(rf"\b({_MONTH_ALT})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?(?:,?\s+(\d{{4}}))?\b", re.IGNORECASE)
_DAY_FIRST_RE = re.compile(rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+({_MONTH_ALT})\.?(?:,?\s+(\d{{4}}))?\b", re.IGNORECASE)

_RELATIVE_RE = re.compile(
    r"\b(?:(\d+)\s*|(an?)\s+)(minutes?|mins?|hours?|hrs?|h|days?|d|weeks?|w|months?|years?)\s+ago\b",
    re.IGNORECASE,
)
_RELATIVE_DAYS = {"day": 1, "d": 1, "week": 7, "w": 7, "month": 30, "year": 365}


def clean_date_text(text: str) -> str:
    value = " ".join(text.split())
    previous = None
    while previous != value:
        previous = value
        value = _LABEL_RE.sub("", value, count=1)
    return value.strip(" |,·•")


def _with_year(year: Optional[str], month: int, day: int, today: date) -> Optional[date]:
    if year:
        return date(int(year), month, day)
    guess = date(today.year, month, day)
    if guess > today:
        guess = date(today.year - 1, month, day)
    return guess


def _parse_free_form(text: str, today: date) -> Optional[date]:
    iso = text.replace("Z", "+00:00") if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(iso).date()
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(text).date()
    except (TypeError, ValueError, IndexError, AttributeError):
        pass
    match = _ISO_IN_TEXT_RE.search(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            pass
    match = _MONTH_FIRST_RE.search(text)
    if match:
        try:
            return _with_year(match.group(3), _MONTHS[match.group(1).lower()], int(match.group(2)), today)
        except ValueError:
            pass
    match = _DAY_FIRST_RE.search(text)
    if match:
        try:
            return _with_year(match.group(3), _MONTHS[match.group(2).lower()], int(match.group(1)), today)
        except ValueError:
            pass
    return None


def parse_date_text(text: Optional[str], today: Optional[date] = None) -> Optional[date]:
    """Parse a date out of ``text``; explicit formats first, then free-form."""
    if not text:
        return None
    value = clean_date_text(text)
    if not value:
        return None
    ref = today or date.today()
    if _EPOCH_RE.match(value):
        seconds = int(value) / (1000 if len(value) == 13 else 1)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    for fmt in EXPLICIT_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return _parse_free_form(value, ref)


def parse_relative_date(text: Optional[str], today: date) -> Optional[date]:
    """Resolve "3 days ago", "an hour ago", "yesterday" and "today" against ``today``."""
    if not text:
        return None
    match = _RELATIVE_RE.search(text)
    if match:
        count = int(match.group(1)) if match.group(1) else 1
        unit = match.group(3).lower()
        unit = unit.rstrip("s") if len(unit) > 1 else unit
        if unit in ("minute", "min", "hour", "hr", "h"):
            return today
        return today - timedelta(days=count * _RELATIVE_DAYS[unit])
    lowered = text.lower()
    if re.search(r"\byesterday\b", lowered):
        return today - timedelta(days=1)
    if re.search(r"\b(?:today|just now)\b", lowered):
        return today
    return None


def article_container(fragment: Tag) -> Tag:
    """Closest enclosing ``<article>`` (or the fragment itself)."""
    if fragment.name == "article":
        return fragment
    parent = fragment.find_parent("article")
    return parent if parent is not None else fragment


def search_scopes(fragment: Tag, depth: int = 2) -> List[Tag]:
    """The article container followed by up to ``depth`` ancestor containers."""
    container = article_container(fragment)
    scopes = [container]
    for parent in container.parents:
        if isinstance(parent, BeautifulSoup) or len(scopes) > depth:
            break
        scopes.append(parent)
    return scopes


def document_root(fragment: Tag) -> Tag:
    root = fragment
    for parent in fragment.parents:
        root = parent
    return root


def read_element_date(element: Tag, today: date) -> Optional[date]:
    """Try datetime-like attributes first, then the element text."""
    for attr in DATE_ATTRIBUTES:
        value = element.get(attr)
        if isinstance(value, list):
            value = " ".join(value)
        found = parse_date_text(value, today)
        if found is not None:
            return found
    return parse_date_text(element.get_text(" ", strip=True), today)


def _first_in_scopes(scopes: Iterable[Tag], selector: str, today: date) -> Optional[date]:
    for scope in scopes:
        for element in scope.select(selector, limit=3):
            found = read_element_date(element, today)
            if found is not None:
                return found
    return None


def from_selector_hint(fragment: Tag, date_selector: Optional[str], today: date) -> Optional[date]:
    if not date_selector:
        return None
    return _first_in_scopes(search_scopes(fragment), date_selector, today)


def from_time_element(fragment: Tag, _hint: Optional[str], today: date) -> Optional[date]:
    return _first_in_scopes(search_scopes(fragment), "time", today)


def from_meta_tags(fragment: Tag, _hint: Optional[str], today: date) -> Optional[date]:
    for meta in document_root(fragment).find_all("meta"):
        key = (meta.get("property") or meta.get("name") or meta.get("itemprop") or "").lower()
        if "time" not in key and "date" not in key:
            continue
        found = parse_date_text(meta.get("content"), today)
        if found is not None:
            return found
    return None


def from_date_classes(fragment: Tag, _hint: Optional[str], today: date) -> Optional[date]:
    container = article_container(fragment)
    for selector in DATE_CLASS_SELECTORS:
        element = container.select_one(selector)
        if element is None:
            continue
        found = read_element_date(element, today)
        if found is not None:
            return found
    return None


def from_relative_text(fragment: Tag, _hint: Optional[str], today: date) -> Optional[date]:
    return parse_relative_date(article_container(fragment).get_text(" ", strip=True), today)


DEFAULT_STRATEGIES: tuple[DateStrategy, ...] = (
    from_selector_hint,
    from_time_element,
    from_meta_tags,
    from_date_classes,
    from_relative_text,
)


class DateResolver:
    """Resolve a publish date for a document fragment; never raises."""

    def __init__(
        self,
        today: Optional[Callable[[], date]] = None,
        strategies: Optional[Iterable[DateStrategy]] = None,
    ) -> None:
        self._today = today or date.today
        self.strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES

    def resolve(self, fragment: Optional[Tag], date_selector: Optional[str] = None) -> date:
        today = self._today()
        if fragment is None:
            return today
        for strategy in self.strategies:
            try:
                found = strategy(fragment, date_selector, today)
            except Exception as exc:  # noqa: BLE001 - a broken strategy falls through to the next one
                logger.debug("date.strategy.failed", extra={"strategy": strategy.__name__, "error": str(exc)})
                continue
            if found is None:
                continue
            if found > today:
                logger.debug("date.strategy.future", extra={"strategy": strategy.__name__, "found": found.isoformat()})
                continue
            return found
        return today
