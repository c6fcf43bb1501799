"""Formatting filters available to every document template."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from email.utils import format_datetime
from functools import partial
from typing import Any, Callable, Dict, Mapping

from jinja2 import Environment

__all__ = [
    "DEFAULT_DATE_FORMATS",
    "DEFAULT_NUMBER_FORMATS",
    "DEFAULT_TIMESTAMP_FORMATS",
    "TemplateFilterError",
    "date_offset",
    "format_date",
    "format_number",
    "format_timestamp",
    "merge_formats",
    "register_filters",
]


class TemplateFilterError(ValueError):
    """Raised when a formatting filter receives an unusable value."""


DEFAULT_DATE_FORMATS: Mapping[str, str] = {
    "iso": "ISO",
    "yyyy-mm-dd": "%Y-%m-%d",
    "mm-dd-yy": "%m-%d-%y",
    "dd-mm-yyyy": "%d-%m-%Y",
    "dd.mm.yyyy": "%d.%m.%Y",
    "month-name": "%B %d, %Y",
    "day-month-name": "%d %B %Y",
}

DEFAULT_TIMESTAMP_FORMATS: Mapping[str, str] = {
    "iso": "ISO",
    "unix": "UNIX",
    "rfc2822": "RFC2822",
    "short": "%Y-%m-%d %H:%M",
}

DEFAULT_NUMBER_FORMATS: Mapping[str, str] = {
    "integer": ",d",
    "decimal": ",.2f",
    "percent": ".0%",
    "currency": ",.2f",
}


_TIMESTAMP_HANDLERS: Mapping[str, Callable[[datetime], str]] = {
    "ISO": lambda value: value.isoformat(),
    "UNIX": lambda value: str(int(value.timestamp())),
    "RFC2822": format_datetime,
}


def merge_formats(builtins: Mapping[str, Any], overrides: Mapping[str, Any] | None) -> Dict[str, Any]:
    return {**builtins, **(overrides or {})}


def _parse_iso(value: str) -> date:
    # date-only strings stay dates so "iso" formatting has no time part
    for parser in (date.fromisoformat, datetime.fromisoformat):
        try:
            return parser(value)
        except ValueError:
            continue
    raise TemplateFilterError(f"'{value}' is not an ISO date")


def _coerce_date(value: Any) -> date:
    if isinstance(value, (date, datetime)):
        return value
    if isinstance(value, str):
        return _parse_iso(value)
    raise TemplateFilterError("date filters require a date, datetime or ISO string")


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def date_offset(value: Any, days: int = 0, weeks: int = 0) -> date:
    """Shift a date by ``days`` and ``weeks``."""

    return _coerce_date(value) + timedelta(days=days, weeks=weeks)


def format_date(value: Any, format_key: str = "iso", *, formats: Mapping[str, Any]) -> str:
    current = _coerce_date(value)
    definition = formats.get(format_key)
    if definition is None:
        raise TemplateFilterError(f"Unknown date format '{format_key}'")
    if definition == "ISO":
        return current.isoformat()
    return current.strftime(str(definition))


def format_timestamp(value: Any, format_key: str = "iso", *, formats: Mapping[str, Any]) -> str:
    if isinstance(value, (int, float, Decimal)):
        value = datetime.fromtimestamp(float(value), tz=timezone.utc)
    elif isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as exc:
            raise TemplateFilterError(f"'{value}' is not an ISO timestamp") from exc
    if not isinstance(value, datetime):
        raise TemplateFilterError("timestamp_format requires a datetime")

    definition = formats.get(format_key)
    if definition is None:
        raise TemplateFilterError(f"Unknown timestamp format '{format_key}'")

    value = _ensure_aware(value)
    handler = _TIMESTAMP_HANDLERS.get(definition)
    return handler(value) if handler else value.strftime(definition)


def format_number(value: Any, format_key: str = "decimal", *, formats: Mapping[str, Any]) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise TemplateFilterError("number_format requires a numeric value")

    definition = formats.get(format_key)
    if definition is None:
        raise TemplateFilterError(f"Unknown number format '{format_key}'")
    if definition.endswith("d") and not isinstance(value, int):
        value = int(value)
    return format(value, definition)


def register_filters(
    environment: Environment,
    *,
    date_formats: Mapping[str, Any] | None = None,
    timestamp_formats: Mapping[str, Any] | None = None,
    number_formats: Mapping[str, Any] | None = None,
) -> Environment:
    """Install the formatting filters on ``environment`` and return it."""

    environment.filters["date_offset"] = date_offset
    environment.filters["date_format"] = partial(
        format_date, formats=merge_formats(DEFAULT_DATE_FORMATS, date_formats)
    )
    environment.filters["timestamp_format"] = partial(
        format_timestamp,
        formats=merge_formats(DEFAULT_TIMESTAMP_FORMATS, timestamp_formats),
    )
    environment.filters["number_format"] = partial(
        format_number, formats=merge_formats(DEFAULT_NUMBER_FORMATS, number_formats)
    )
    return environment
