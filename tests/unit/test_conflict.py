"""Overwrite conflict detection tests."""

from datetime import timedelta

import pytest

from debtflow.upload.conflict import (
    ConflictChecker,
    conflict_message,
    format_upload_date,
    parse_timestamp,
)


def _checker(now, last_upload=None, error=None, window_days=30):
    async def lookup(organization):
        if error is not None:
            raise error
        return last_upload

    return ConflictChecker(lookup, window_days=window_days, clock=lambda: now)


@pytest.mark.asyncio
async def test_recent_upload_produces_overwrite_warning(fixed_now):
    last = fixed_now - timedelta(days=10)

    warning = await _checker(fixed_now, last).check("Acme")

    assert warning is not None
    assert warning.type == "overwrite"
    assert warning.last_upload_date_formatted == "6/20/2024"
    assert warning.days_since_last_upload == 10
    assert warning.message == (
        "It has NOT been 30 days since the last upload "
        "(last upload: 6/20/2024). Do you want to overwrite?"
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("days,expected", [(29, True), (30, False), (45, False)])
async def test_window_boundary(fixed_now, days, expected):
    last = fixed_now - timedelta(days=days, hours=1)
    warning = await _checker(fixed_now, last).check("Acme")
    assert (warning is not None) is expected


@pytest.mark.asyncio
async def test_no_previous_upload_means_no_conflict(fixed_now):
    assert await _checker(fixed_now).check("Acme") is None


@pytest.mark.asyncio
async def test_lookup_failure_is_swallowed(fixed_now):
    checker = _checker(fixed_now, error=RuntimeError("backend down"))
    assert await checker.check("Acme") is None


def test_naive_timestamps_treated_as_utc():
    parsed = parse_timestamp("2024-06-20T08:00:00")
    assert parsed.tzinfo is not None
    assert parse_timestamp("2024-06-20T08:00:00.000Z") == parsed
    assert parse_timestamp(None) is None


def test_message_helpers(fixed_now):
    assert format_upload_date(fixed_now) == "6/30/2024"
    assert "NOT been 7 days" in conflict_message("1/2/2024", window_days=7)


@pytest.mark.parametrize("value", [1719000000, {"date": "2024-06-20"}, "yesterday"])
def test_parse_timestamp_rejects_non_iso_values(value):
    with pytest.raises(ValueError):
        parse_timestamp(value)
