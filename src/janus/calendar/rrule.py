"""Recurrence codec: canonical ``RecurrenceRule`` <-> provider encodings.

Two encodings are supported:

- RFC 5545 ``RRULE:`` strings, as stored by Google Calendar.  Field order on
  encode is fixed: ``FREQ``, ``INTERVAL``, ``COUNT``/``UNTIL``, ``BYDAY``,
  ``BYMONTHDAY``, ``BYMONTH``.
- Microsoft Graph ``patternedRecurrence`` objects (``pattern`` + ``range``).
  Graph carries at most one ``dayOfMonth`` and one ``month``, so only the
  first ``by_month_day`` / ``by_month`` value is written.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import ValidationError

from janus.calendar.errors import RecurrenceParseError
from janus.calendar.types import (
    CountEnd,
    ForeverEnd,
    RecurrenceFrequency,
    RecurrenceRule,
    UntilEnd,
    Weekday,
    normalize_until,
)

RRULE_PREFIX = "RRULE:"

_FREQ_TO_RRULE: dict[RecurrenceFrequency, str] = {
    RecurrenceFrequency.daily: "DAILY",
    RecurrenceFrequency.weekly: "WEEKLY",
    RecurrenceFrequency.monthly: "MONTHLY",
    RecurrenceFrequency.yearly: "YEARLY",
}
_RRULE_TO_FREQ = {value: key for key, value in _FREQ_TO_RRULE.items()}

_FREQ_TO_GRAPH: dict[RecurrenceFrequency, str] = {
    RecurrenceFrequency.daily: "daily",
    RecurrenceFrequency.weekly: "weekly",
    RecurrenceFrequency.monthly: "absoluteMonthly",
    RecurrenceFrequency.yearly: "absoluteYearly",
}
# Relative forms are only read; their week index is dropped.
_GRAPH_TO_FREQ: dict[str, RecurrenceFrequency] = {
    "daily": RecurrenceFrequency.daily,
    "weekly": RecurrenceFrequency.weekly,
    "absoluteMonthly": RecurrenceFrequency.monthly,
    "relativeMonthly": RecurrenceFrequency.monthly,
    "absoluteYearly": RecurrenceFrequency.yearly,
    "relativeYearly": RecurrenceFrequency.yearly,
}

WEEKDAY_TO_GRAPH_DAY: dict[Weekday, str] = {
    Weekday.MO: "monday",
    Weekday.TU: "tuesday",
    Weekday.WE: "wednesday",
    Weekday.TH: "thursday",
    Weekday.FR: "friday",
    Weekday.SA: "saturday",
    Weekday.SU: "sunday",
}
GRAPH_DAY_TO_WEEKDAY: dict[str, Weekday] = {
    value: key for key, value in WEEKDAY_TO_GRAPH_DAY.items()
}

_UNTIL_DATE_PATTERN = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_UNTIL_DATETIME_PATTERN = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z$")


# ---------------------------------------------------------------------------
# RFC 5545
# ---------------------------------------------------------------------------


def encode_rrule(rule: RecurrenceRule) -> str:
    """Render *rule* as an ``RRULE:`` line."""
    parts = [f"FREQ={_FREQ_TO_RRULE[rule.frequency]}"]

    if rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")

    end = rule.end
    if isinstance(end, CountEnd):
        parts.append(f"COUNT={end.count}")
    elif isinstance(end, UntilEnd):
        parts.append(f"UNTIL={_compact_until(end.until)}")

    if rule.by_day:
        parts.append(f"BYDAY={','.join(day.value for day in rule.by_day)}")
    if rule.by_month_day:
        parts.append(f"BYMONTHDAY={','.join(str(day) for day in rule.by_month_day)}")
    if rule.by_month:
        parts.append(f"BYMONTH={','.join(str(month) for month in rule.by_month)}")

    return f"{RRULE_PREFIX}{';'.join(parts)}"


def decode_rrule(value: str) -> RecurrenceRule:
    """Parse an ``RRULE:`` line (prefix optional) into a ``RecurrenceRule``.

    Raises
    ------
    RecurrenceParseError
        When the line uses a frequency or part this codec does not support,
        or specifies both ``COUNT`` and ``UNTIL``.
    """
    body = value.strip()
    if body.upper().startswith(RRULE_PREFIX):
        body = body[len(RRULE_PREFIX) :]
    if not body:
        raise RecurrenceParseError("RRULE is empty")

    fields: dict[str, str] = {}
    for part in body.split(";"):
        if not part:
            continue
        key, sep, raw = part.partition("=")
        if not sep or not raw:
            raise RecurrenceParseError(f"Malformed RRULE part: {part!r}")
        key = key.strip().upper()
        if key in fields:
            raise RecurrenceParseError(f"Duplicate RRULE part: {key}")
        fields[key] = raw.strip()

    freq_raw = fields.pop("FREQ", None)
    if freq_raw is None:
        raise RecurrenceParseError("RRULE is missing FREQ")
    frequency = _RRULE_TO_FREQ.get(freq_raw.upper())
    if frequency is None:
        raise RecurrenceParseError(f"Unsupported RRULE frequency: {freq_raw}")

    data: dict[str, Any] = {"frequency": frequency}

    if "INTERVAL" in fields:
        data["interval"] = _parse_int(fields.pop("INTERVAL"), "INTERVAL")

    count_raw = fields.pop("COUNT", None)
    until_raw = fields.pop("UNTIL", None)
    if count_raw is not None and until_raw is not None:
        raise RecurrenceParseError("RRULE cannot specify both COUNT and UNTIL")
    if count_raw is not None:
        data["end"] = CountEnd(count=_parse_int(count_raw, "COUNT"))
    elif until_raw is not None:
        data["end"] = {"type": "until", "until": _expand_until(until_raw)}

    if "BYDAY" in fields:
        data["by_day"] = [_parse_weekday(code) for code in fields.pop("BYDAY").split(",")]
    if "BYMONTHDAY" in fields:
        data["by_month_day"] = _parse_int_list(fields.pop("BYMONTHDAY"), "BYMONTHDAY")
    if "BYMONTH" in fields:
        data["by_month"] = _parse_int_list(fields.pop("BYMONTH"), "BYMONTH")

    if fields:
        unknown = ", ".join(sorted(fields))
        raise RecurrenceParseError(f"Unsupported RRULE part(s): {unknown}")

    try:
        return RecurrenceRule(**data)
    except ValidationError as exc:
        raise RecurrenceParseError(f"RRULE values out of range: {value}") from exc


def _compact_until(until: str) -> str:
    """``2024-12-31`` -> ``20241231``; ``2024-12-31T23:59:59Z`` -> ``20241231T235959Z``."""
    return normalize_until(until).replace("-", "").replace(":", "")


def _expand_until(raw: str) -> str:
    if match := _UNTIL_DATE_PATTERN.match(raw):
        year, month, day = match.groups()
        return f"{year}-{month}-{day}"
    if match := _UNTIL_DATETIME_PATTERN.match(raw):
        year, month, day, hour, minute, second = match.groups()
        return f"{year}-{month}-{day}T{hour}:{minute}:{second}Z"
    raise RecurrenceParseError(f"Unsupported RRULE UNTIL value: {raw}")


def _parse_int(raw: str, key: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise RecurrenceParseError(f"RRULE {key} must be an integer: {raw!r}") from exc


def _parse_int_list(raw: str, key: str) -> list[int]:
    return [_parse_int(item, key) for item in raw.split(",") if item]


def _parse_weekday(code: str) -> Weekday:
    try:
        return Weekday(code.strip().upper())
    except ValueError as exc:
        # Ordinal prefixes such as ``1MO`` / ``-1FR`` are outside the subset.
        raise RecurrenceParseError(f"Unsupported RRULE BYDAY value: {code!r}") from exc


# ---------------------------------------------------------------------------
# Microsoft Graph patternedRecurrence
# ---------------------------------------------------------------------------


def encode_graph_recurrence(rule: RecurrenceRule, start: str) -> dict[str, Any]:
    """Build a Graph ``patternedRecurrence`` for *rule*.

    *start* is the event's own start (date or date-time); its date portion
    seeds ``range.startDate``.
    """
    pattern: dict[str, Any] = {
        "type": _FREQ_TO_GRAPH[rule.frequency],
        "interval": rule.interval,
    }
    if rule.by_day:
        pattern["daysOfWeek"] = [WEEKDAY_TO_GRAPH_DAY[day] for day in rule.by_day]
    if rule.by_month_day:
        pattern["dayOfMonth"] = rule.by_month_day[0]
    if rule.by_month:
        pattern["month"] = rule.by_month[0]

    recurrence_range: dict[str, Any] = {
        "type": "noEnd",
        "startDate": _date_portion(start),
    }
    end = rule.end
    if isinstance(end, UntilEnd):
        recurrence_range["type"] = "endDate"
        recurrence_range["endDate"] = _date_portion(end.until)
    elif isinstance(end, CountEnd):
        recurrence_range["type"] = "numbered"
        recurrence_range["numberOfOccurrences"] = end.count

    return {"pattern": pattern, "range": recurrence_range}


def decode_graph_recurrence(payload: Any) -> RecurrenceRule | None:
    """Translate a Graph ``patternedRecurrence`` into a ``RecurrenceRule``.

    Returns ``None`` when the payload is absent, lacks a pattern or range, or
    uses a pattern type this codec does not know.
    """
    if not isinstance(payload, dict):
        return None
    pattern = payload.get("pattern")
    recurrence_range = payload.get("range")
    if not isinstance(pattern, dict) or not isinstance(recurrence_range, dict):
        return None

    frequency = _GRAPH_TO_FREQ.get(str(pattern.get("type") or ""))
    if frequency is None:
        return None

    data: dict[str, Any] = {"frequency": frequency}

    interval = pattern.get("interval")
    if isinstance(interval, int) and not isinstance(interval, bool) and interval > 1:
        data["interval"] = interval

    days = pattern.get("daysOfWeek")
    if isinstance(days, list):
        by_day = [
            GRAPH_DAY_TO_WEEKDAY[day.lower()]
            for day in days
            if isinstance(day, str) and day.lower() in GRAPH_DAY_TO_WEEKDAY
        ]
        if by_day:
            data["by_day"] = by_day

    day_of_month = pattern.get("dayOfMonth")
    if isinstance(day_of_month, int) and 1 <= day_of_month <= 31:
        data["by_month_day"] = [day_of_month]

    month = pattern.get("month")
    if isinstance(month, int) and 1 <= month <= 12:
        data["by_month"] = [month]

    range_type = recurrence_range.get("type")
    end_date = recurrence_range.get("endDate")
    occurrences = recurrence_range.get("numberOfOccurrences")
    if range_type == "endDate" and isinstance(end_date, str) and end_date:
        # Graph end dates are inclusive; pin UNTIL to the last second of that day.
        try:
            data["end"] = UntilEnd(until=f"{_date_portion(end_date)}T23:59:59Z")
        except ValidationError:
            return None
    elif range_type == "numbered" and isinstance(occurrences, int) and occurrences > 0:
        data["end"] = CountEnd(count=occurrences)
    else:
        data["end"] = ForeverEnd()

    return RecurrenceRule(**data)


def _date_portion(value: str) -> str:
    return value.split("T", 1)[0]
