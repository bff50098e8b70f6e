"""Tests: SLA classification helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from tramitation.services.sla import (
    SLA_CRITICAL,
    SLA_NORMAL,
    SLA_OVERDUE,
    SLA_WARNING,
    is_late,
    sla_status,
)

NOW = datetime(2026, 5, 4, 10, 0, tzinfo=timezone.utc)
CREATED = NOW - timedelta(days=5)


@pytest.mark.parametrize("remaining,expected", [
    (timedelta(days=3), SLA_NORMAL),
    (timedelta(hours=23), SLA_WARNING),
    (timedelta(hours=3), SLA_CRITICAL),
    (timedelta(minutes=-1), SLA_OVERDUE),
])
def test_sla_status_thresholds(remaining, expected):
    info = sla_status(CREATED, NOW + remaining, now=NOW)
    assert info.status == expected
    assert info.remaining == remaining


def test_percentage_elapsed():
    deadline = CREATED + timedelta(days=10)
    info = sla_status(CREATED, deadline, now=NOW)
    assert info.percentage_elapsed == pytest.approx(50.0)


def test_percentage_is_capped_when_overdue():
    info = sla_status(CREATED, NOW - timedelta(days=1), now=NOW)
    assert info.percentage_elapsed == 100.0
    assert info.to_dict()["remaining"]["days"] == 0


def test_no_deadline_means_no_sla():
    assert sla_status(CREATED, None, now=NOW) is None


def test_naive_datetimes_are_taken_as_utc():
    info = sla_status(CREATED.replace(tzinfo=None), (NOW + timedelta(hours=2)).replace(tzinfo=None), now=NOW)
    assert info.status == SLA_CRITICAL


def test_thresholds_come_from_config(app):
    app.config["SLA_WARNING_HOURS"] = 48
    try:
        info = sla_status(CREATED, NOW + timedelta(hours=30), now=NOW)
    finally:
        app.config["SLA_WARNING_HOURS"] = 24
    assert info.status == SLA_WARNING


def test_is_late(make_process):
    late = make_process(sla_deadline=NOW - timedelta(seconds=1))
    on_time = make_process(sla_deadline=NOW + timedelta(hours=1))
    open_ended = make_process()

    assert is_late(late, now=NOW) is True
    assert is_late(on_time, now=NOW) is False
    assert is_late(open_ended, now=NOW) is False
