"""Tests for the formatting filters installed on the document environment."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from jinja2 import Environment

from htmldocs_server._templating.formatters import (
    DEFAULT_DATE_FORMATS,
    DEFAULT_NUMBER_FORMATS,
    TemplateFilterError,
    date_offset,
    format_date,
    format_number,
    register_filters,
)


@pytest.fixture
def environment() -> Environment:
    return register_filters(Environment())


def test_date_offset_shifts_days_and_weeks():
    assert date_offset(date(2024, 1, 31), days=1) == date(2024, 2, 1)
    assert date_offset(date(2024, 1, 1), weeks=2) == date(2024, 1, 15)


def test_date_format_uses_named_patterns(environment):
    template = environment.from_string("{{ day | date_format('month-name') }}")
    assert template.render(day=date(2024, 3, 5)) == "March 05, 2024"


def test_date_format_rejects_unknown_keys():
    with pytest.raises(TemplateFilterError, match="Unknown date format"):
        format_date(date(2024, 3, 5), "julian", formats=DEFAULT_DATE_FORMATS)


def test_date_format_rejects_non_dates():
    with pytest.raises(TemplateFilterError, match="not an ISO date"):
        format_date("yesterday", formats=DEFAULT_DATE_FORMATS)


def test_timestamp_format_accepts_epoch_seconds(environment):
    template = environment.from_string("{{ ts | timestamp_format('short') }}")
    assert template.render(ts=0) == "1970-01-01 00:00"


def test_timestamp_format_treats_naive_values_as_utc(environment):
    template = environment.from_string("{{ ts | timestamp_format('unix') }}")
    assert template.render(ts=datetime(1970, 1, 2)) == "86400"
    aware = datetime(1970, 1, 2, tzinfo=timezone.utc)
    assert template.render(ts=aware) == "86400"


def test_number_format_groups_thousands(environment):
    template = environment.from_string(
        "{{ total | number_format('currency') }} {{ count | number_format('integer') }}"
    )
    assert template.render(total=1234.5, count=9876.4) == "1,234.50 9,876"


def test_number_format_rejects_booleans_and_text():
    with pytest.raises(TemplateFilterError, match="numeric"):
        format_number(True, formats=DEFAULT_NUMBER_FORMATS)
    with pytest.raises(TemplateFilterError, match="numeric"):
        format_number("12", formats=DEFAULT_NUMBER_FORMATS)


def test_register_filters_merges_custom_formats():
    environment = register_filters(Environment(), number_formats={"compact": ".1f"})
    template = environment.from_string("{{ value | number_format('compact') }}")
    assert template.render(value=2.25) == "2.2"


def test_date_only_strings_stay_dates(environment):
    template = environment.from_string("{{ day | date_format }} {{ day | date_offset(days=1) }}")
    assert template.render(day="2024-01-05") == "2024-01-05 2024-01-06"


def test_datetime_strings_keep_their_time(environment):
    template = environment.from_string("{{ ts | date_format }}")
    assert template.render(ts="2024-01-05T10:30:00") == "2024-01-05T10:30:00"


def test_timestamp_format_parses_date_only_strings_as_midnight(environment):
    template = environment.from_string("{{ ts | timestamp_format('short') }}")
    assert template.render(ts="2024-01-05") == "2024-01-05 00:00"
