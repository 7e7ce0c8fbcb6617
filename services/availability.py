"""
Fleet availability calculations.

Availability = FMC hours / POS hours * 100, capped at 100.
Fleet-wide figures sum POS and FMC over every record before taking the
ratio, so aircraft with few recorded hours do not skew the result.
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping

from services.downtime import round2

MAX_DAILY_HOURS = 24.0

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}


def calculate_availability(pos_hours: float, fmc_hours: float) -> float:
    if pos_hours <= 0:
        return 0.0
    percentage = fmc_hours / pos_hours * 100
    return max(0.0, min(percentage, 100.0))


def calculate_total_downtime(nmcm_s_hours: float, nmcm_u_hours: float, nmcs_hours: float = 0) -> float:
    return nmcm_s_hours + nmcm_u_hours + (nmcs_hours or 0)


def calculate_fmc_hours(
    pos_hours: float,
    nmcm_s_hours: float,
    nmcm_u_hours: float,
    nmcs_hours: float = 0,
) -> float:
    """POS minus all downtime, clamped to [0, pos_hours]"""
    downtime = calculate_total_downtime(nmcm_s_hours, nmcm_u_hours, nmcs_hours)
    fmc = max(0.0, pos_hours - downtime)
    return min(fmc, max(0.0, pos_hours))


def validate_downtime_hours(
    pos_hours: float,
    nmcm_s_hours: float,
    nmcm_u_hours: float,
    nmcs_hours: float = 0,
) -> bool:
    return calculate_total_downtime(nmcm_s_hours, nmcm_u_hours, nmcs_hours) <= pos_hours


def validate_pos_hours(pos_hours: float) -> bool:
    return 0 <= pos_hours <= MAX_DAILY_HOURS


def availability_status(
    percentage: float,
    warning_threshold: float = 85.0,
    critical_threshold: float = 70.0,
) -> str:
    if percentage >= warning_threshold:
        return "green"
    if percentage >= critical_threshold:
        return "amber"
    return "red"


def summarize_availability(records: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
    total_pos = 0.0
    total_fmc = 0.0
    for record in records:
        total_pos += record.get("pos_hours") or 0.0
        total_fmc += record.get("fmc_hours") or 0.0
    return {
        "total_pos_hours": round2(total_pos),
        "total_fmc_hours": round2(total_fmc),
        "availability_percentage": round2(calculate_availability(total_pos, total_fmc)),
    }


def calculate_fleet_availability(records: Iterable[Mapping[str, Any]]) -> float:
    return summarize_availability(records)["availability_percentage"]


def _group(records: Iterable[Mapping[str, Any]], key_fn) -> "OrderedDict[Any, List[Mapping[str, Any]]]":
    groups: "OrderedDict[Any, List[Mapping[str, Any]]]" = OrderedDict()
    for record in records:
        groups.setdefault(key_fn(record), []).append(record)
    return groups


def aggregate_by_period(
    records: Iterable[Mapping[str, Any]],
    period: str = "month",
) -> List[Dict[str, Any]]:
    """Availability per (period, aircraft), newest period first"""
    if period not in PERIOD_FORMATS:
        raise ValueError(f"Unsupported period: {period}")
    fmt = PERIOD_FORMATS[period]

    groups = _group(records, lambda r: (r["date"].strftime(fmt), r.get("aircraft_id")))
    results = []
    for (label, aircraft_id), rows in groups.items():
        summary = summarize_availability(rows)
        results.append({
            "period": label,
            "aircraft_id": aircraft_id,
            "record_count": len(rows),
            **summary,
        })
    results.sort(key=lambda r: r["period"], reverse=True)
    return results


def availability_by_aircraft(records: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Per-aircraft availability, best first"""
    groups = _group(records, lambda r: r.get("aircraft_id"))
    results = []
    for aircraft_id, rows in groups.items():
        results.append({
            "aircraft_id": aircraft_id,
            "record_count": len(rows),
            **summarize_availability(rows),
        })
    results.sort(key=lambda r: r["availability_percentage"], reverse=True)
    return results
