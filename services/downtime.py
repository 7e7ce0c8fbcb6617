"""
AOG downtime bucket calculator.

Splits the time an aircraft spent on the ground into three mutually exclusive
buckets, driven by the milestone timestamps recorded on an AOG event:

    reported_at -> procurement_requested_at -> available_at_store_at
      -> issued_back_at -> installation_complete_at -> test_start_at
      -> up_and_running_at

- Technical time   = (reported -> procurement requested) + (available at store -> installation complete)
                     or (reported -> installation complete) when no part was needed
- Procurement time = (procurement requested -> available at store)
- Ops time         = (test start -> up and running)
- Total downtime   = (reported -> up and running)

Missing milestones never raise: the affected bucket is 0.
"""

import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

MILESTONE_ORDER = (
    "reported_at",
    "procurement_requested_at",
    "available_at_store_at",
    "issued_back_at",
    "installation_complete_at",
    "test_start_at",
    "up_and_running_at",
)

BUCKET_FIELDS = (
    "technical_time_hours",
    "procurement_time_hours",
    "ops_time_hours",
    "total_downtime_hours",
)

MS_PER_HOUR = 3.6e6


class MilestoneOrderError(ValueError):
    """A milestone timestamp precedes the one before it"""

    code = "INVALID_TIMESTAMP_ORDER"

    def __init__(self, field: str, previous: str, value: datetime, previous_value: datetime):
        self.field = field
        self.previous = previous
        self.value = value
        self.previous_value = previous_value
        super().__init__(f"Timestamp {field} cannot be before {previous}")

    def to_detail(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "details": {
                "field": self.field,
                "constraint": f"{self.field} must be >= {self.previous}",
                "previous_milestone": self.previous,
                "previous_value": self.previous_value.isoformat(),
                "current_milestone": self.field,
                "current_value": self.value.isoformat(),
            },
        }


def round2(value: float) -> float:
    """Round half up to 2 decimals"""
    return math.floor(value * 100 + 0.5) / 100


def hours_between(start: Optional[datetime], end: Optional[datetime]) -> float:
    """Hours from start to end, 0 when either is missing, never negative"""
    if start is None or end is None:
        return 0.0
    ms = (end - start).total_seconds() * 1000
    return max(0.0, round2(ms / MS_PER_HOUR))


def downtime_duration_hours(detected_at: datetime, cleared_at: datetime) -> float:
    """Legacy detected -> cleared duration, rounded but not clamped"""
    return round2((cleared_at - detected_at).total_seconds() / 3600)


def resolve_milestones(event: Mapping[str, Any]) -> Dict[str, Optional[datetime]]:
    """Milestones of an event with reported/cleared fallbacks applied"""
    milestones = {name: event.get(name) for name in MILESTONE_ORDER}
    milestones["reported_at"] = event.get("reported_at") or event.get("detected_at")
    milestones["up_and_running_at"] = event.get("up_and_running_at") or event.get("cleared_at")
    return milestones


def compute_downtime_metrics(event: Mapping[str, Any]) -> Dict[str, float]:
    m = resolve_milestones(event)
    reported_at = m["reported_at"]
    up_and_running_at = m["up_and_running_at"]

    # Active events carry zero buckets until they are closed
    if up_and_running_at is None:
        return {field: 0.0 for field in BUCKET_FIELDS}

    procurement_requested_at = m["procurement_requested_at"]
    if procurement_requested_at is None:
        technical = hours_between(reported_at, m["installation_complete_at"])
        procurement = 0.0
    else:
        technical = round2(
            hours_between(reported_at, procurement_requested_at)
            + hours_between(m["available_at_store_at"], m["installation_complete_at"])
        )
        procurement = hours_between(procurement_requested_at, m["available_at_store_at"])

    return {
        "technical_time_hours": technical,
        "procurement_time_hours": procurement,
        "ops_time_hours": hours_between(m["test_start_at"], up_and_running_at),
        "total_downtime_hours": hours_between(reported_at, up_and_running_at),
    }


def validate_milestone_order(milestones: Mapping[str, Optional[datetime]]) -> None:
    """
    Non-null milestones must be non-decreasing in MILESTONE_ORDER.
    Null milestones are skipped.
    """
    previous_name = None
    previous_value = None
    for name in MILESTONE_ORDER:
        value = milestones.get(name)
        if value is None:
            continue
        if previous_value is not None and value < previous_value:
            raise MilestoneOrderError(name, previous_name, value, previous_value)
        previous_name, previous_value = name, value


def is_legacy_event(event: Mapping[str, Any]) -> bool:
    """Events created before milestones existed: no reported_at, metrics or history"""
    if event.get("reported_at") is not None:
        return False
    if any((event.get(field) or 0) > 0 for field in BUCKET_FIELDS):
        return False
    if event.get("milestone_history"):
        return False
    return True


def legacy_metrics(event: Mapping[str, Any]) -> Dict[str, float]:
    """All legacy downtime is attributed to technical time"""
    total = hours_between(event.get("detected_at"), event.get("cleared_at"))
    return {
        "technical_time_hours": total,
        "procurement_time_hours": 0.0,
        "ops_time_hours": 0.0,
        "total_downtime_hours": total,
    }


def _percentage(value: float, total: float) -> float:
    if total == 0:
        return 0.0
    return round2(value / total * 100)


def _average(value: float, count: int) -> float:
    return round2(value / count) if count > 0 else 0.0


def summarize_buckets(
    events: Iterable[Mapping[str, Any]],
    registrations: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """
    Three-bucket analytics over a set of AOG events.

    Returns totals, averages and share of total downtime for each bucket plus
    a per-aircraft breakdown sorted by total hours (descending).
    """
    registrations = registrations or {}
    totals = {field: 0.0 for field in BUCKET_FIELDS}
    by_aircraft: Dict[str, Dict[str, Any]] = {}
    total_events = 0
    active_events = 0

    for event in events:
        total_events += 1
        if event.get("up_and_running_at") is None and event.get("cleared_at") is None:
            active_events += 1

        if event.get("is_legacy") or is_legacy_event(event):
            metrics = legacy_metrics(event)
        else:
            metrics = {field: event.get(field) or 0.0 for field in BUCKET_FIELDS}

        for field in BUCKET_FIELDS:
            totals[field] += metrics[field]

        aircraft_id = event.get("aircraft_id")
        row = by_aircraft.setdefault(aircraft_id, {
            "aircraft_id": aircraft_id,
            "registration": registrations.get(aircraft_id, "Unknown"),
            "technical_hours": 0.0,
            "procurement_hours": 0.0,
            "ops_hours": 0.0,
            "total_hours": 0.0,
        })
        row["technical_hours"] += metrics["technical_time_hours"]
        row["procurement_hours"] += metrics["procurement_time_hours"]
        row["ops_hours"] += metrics["ops_time_hours"]
        row["total_hours"] += metrics["total_downtime_hours"]

    aircraft_rows: List[Dict[str, Any]] = []
    for row in by_aircraft.values():
        for key in ("technical_hours", "procurement_hours", "ops_hours", "total_hours"):
            row[key] = round2(row[key])
        aircraft_rows.append(row)
    aircraft_rows.sort(key=lambda r: r["total_hours"], reverse=True)

    total_downtime = totals["total_downtime_hours"]

    def bucket(field: str) -> Dict[str, float]:
        return {
            "total_hours": round2(totals[field]),
            "average_hours": _average(totals[field], total_events),
            "percentage": _percentage(totals[field], total_downtime),
        }

    return {
        "summary": {
            "total_events": total_events,
            "active_events": active_events,
            "total_downtime_hours": round2(total_downtime),
            "average_downtime_hours": _average(total_downtime, total_events),
        },
        "buckets": {
            "technical": bucket("technical_time_hours"),
            "procurement": bucket("procurement_time_hours"),
            "ops": bucket("ops_time_hours"),
        },
        "by_aircraft": aircraft_rows,
    }
