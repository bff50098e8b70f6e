"""Shared blueprint helpers.

get_or_404:      tuple-return lookup (NOT abort)
parse_datetime:  ISO / DD.MM.YYYY parsing, raising ValueError on bad input
parse_role:      Role parsing, raising ValueError on bad input
parse_text:      optional JSON string field, raising ValueError on non-strings
"""
import logging
from datetime import date, datetime, time, timezone

from flask import jsonify

from tramitation.models import db
from tramitation.models.workflow import Role

logger = logging.getLogger(__name__)


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or return a 404 error tuple.

    - Success: (obj, None)
    - Failure: (None, (jsonify_response, 404))

        obj, err = get_or_404(ProcessRecord, pid)
        if err:
            return err
    """
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if not obj:
        return None, (jsonify({"error": f"{label} not found", "code": "ERR_NOT_FOUND"}), 404)
    return obj, None


def parse_datetime(value):
    """Parse an ISO datetime, ISO date or DD.MM.YYYY string to an aware UTC datetime.

    Dates become midnight UTC. Naive datetimes are taken as UTC.
    Returns None for empty input; raises ValueError for anything unparseable.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = datetime.strptime(text, "%d.%m.%Y")
            except ValueError as exc:
                raise ValueError(
                    "Invalid date format. Use ISO 8601 (YYYY-MM-DD[THH:MM:SS]) or DD.MM.YYYY."
                ) from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_role(value, field="role"):
    """Parse a role name, raising ValueError with the field name on failure."""
    if not value:
        raise ValueError(f"{field} is required")
    try:
        return Role.parse(value)
    except ValueError:
        raise ValueError(
            f"Unknown {field} '{value}'. Must be one of: {', '.join(r.value for r in Role)}"
        ) from None


def parse_text(data, field):
    """Read an optional string field from a JSON body.

    Returns the stripped value or None; raises ValueError for non-strings.
    """
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Field '{field}' must be a string.")
    return value.strip() or None
