"""
SLA monitoring helpers.

Classifies how close a process is to its deadline:

    OVERDUE    deadline passed
    CRITICAL   less than SLA_CRITICAL_HOURS left (default 4)
    WARNING    less than SLA_WARNING_HOURS left (default 24)
    NORMAL     otherwise

Pure functions; ``now`` is injectable for tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import current_app, has_app_context

SLA_NORMAL = "NORMAL"
SLA_WARNING = "WARNING"
SLA_CRITICAL = "CRITICAL"
SLA_OVERDUE = "OVERDUE"


@dataclass(frozen=True)
class SlaInfo:
    deadline: datetime
    status: str
    remaining: timedelta
    percentage_elapsed: float

    def to_dict(self) -> dict:
        seconds = max(0, int(self.remaining.total_seconds()))
        return {
            "deadline": self.deadline.isoformat(),
            "status": self.status,
            "remaining": {
                "total_seconds": int(self.remaining.total_seconds()),
                "days": seconds // 86400,
                "hours": (seconds % 86400) // 3600,
                "minutes": (seconds % 3600) // 60,
            },
            "percentage_elapsed": round(self.percentage_elapsed, 1),
        }


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; they are stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _thresholds() -> tuple[int, int]:
    if has_app_context():
        cfg = current_app.config
        return int(cfg.get("SLA_WARNING_HOURS", 24)), int(cfg.get("SLA_CRITICAL_HOURS", 4))
    return 24, 4


def sla_status(created_at: datetime | None, deadline: datetime | None, now: datetime | None = None) -> SlaInfo | None:
    """Return the SLA position of a process, or None when it has no deadline."""
    if created_at is None or deadline is None:
        return None

    created = as_utc(created_at)
    due = as_utc(deadline)
    now = as_utc(now) or datetime.now(timezone.utc)
    warning_hours, critical_hours = _thresholds()

    remaining = due - now
    total = (due - created).total_seconds()
    if total > 0:
        elapsed_pct = ((total - remaining.total_seconds()) / total) * 100
        elapsed_pct = min(100.0, max(0.0, elapsed_pct))
    else:
        elapsed_pct = 100.0

    if remaining < timedelta(0):
        status = SLA_OVERDUE
    elif remaining < timedelta(hours=critical_hours):
        status = SLA_CRITICAL
    elif remaining < timedelta(hours=warning_hours):
        status = SLA_WARNING
    else:
        status = SLA_NORMAL

    return SlaInfo(deadline=due, status=status, remaining=remaining, percentage_elapsed=elapsed_pct)


def is_late(process, now: datetime | None = None) -> bool:
    if process.sla_deadline is None:
        return False
    now = as_utc(now) or datetime.now(timezone.utc)
    return as_utc(process.sla_deadline) < now
