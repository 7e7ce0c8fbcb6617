"""
Budget vs actual calculations.

Plans are yearly per (clause, aircraft group); actual spend is booked per
month. A spend row counts against the plan with the same clause and
aircraft group.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from services.downtime import round2


def fiscal_year_periods(fiscal_year: int) -> Dict[str, str]:
    """Inclusive YYYY-MM range for a fiscal year"""
    return {"$gte": f"{fiscal_year}-01", "$lte": f"{fiscal_year}-12"}


def compute_variance(
    plans: Iterable[Mapping[str, Any]],
    spends: Iterable[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    actual: Dict[tuple, float] = {}
    for spend in spends:
        key = (spend.get("clause_id"), spend.get("aircraft_group"))
        actual[key] = actual.get(key, 0.0) + (spend.get("amount") or 0)

    results = []
    for plan in plans:
        planned = plan.get("planned_amount") or 0
        actual_amount = actual.get((plan["clause_id"], plan.get("aircraft_group")), 0.0)
        variance = planned - actual_amount
        results.append({
            "clause_id": plan["clause_id"],
            "clause_description": plan.get("clause_description"),
            "aircraft_group": plan.get("aircraft_group"),
            "planned_amount": round2(planned),
            "actual_amount": round2(actual_amount),
            "variance": round2(variance),
            "remaining_budget": round2(max(0.0, variance)),
            "utilization_percentage": round2(actual_amount / planned * 100) if planned > 0 else 0.0,
        })

    results.sort(key=lambda r: (r["clause_id"], r["aircraft_group"] or ""))
    return results


def compute_burn_rate(
    total_planned: float,
    spends: Iterable[Mapping[str, Any]],
) -> Dict[str, Any]:
    """
    Average monthly spend over the months that have spend, and how many
    months the remaining budget lasts at that rate (-1 when it never runs out).
    """
    total_spent = 0.0
    periods = set()
    for spend in spends:
        total_spent += spend.get("amount") or 0
        periods.add(spend.get("period"))

    months_with_data = len(periods)
    average_monthly = total_spent / months_with_data if months_with_data > 0 else 0.0
    remaining = max(0.0, total_planned - total_spent)

    if average_monthly > 0:
        projected = round(remaining / average_monthly, 1)
    elif remaining > 0:
        projected = -1
    else:
        projected = 0

    return {
        "total_planned": round2(total_planned),
        "total_spent": round2(total_spent),
        "months_with_data": months_with_data,
        "average_monthly_spend": round2(average_monthly),
        "remaining_budget": round2(remaining),
        "projected_months_remaining": projected,
    }


def spend_by_period(spends: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    totals: Dict[str, Dict[str, Any]] = {}
    for spend in spends:
        row = totals.setdefault(spend["period"], {"period": spend["period"], "total_amount": 0.0, "count": 0})
        row["total_amount"] += spend.get("amount") or 0
        row["count"] += 1

    results = sorted(totals.values(), key=lambda r: r["period"])
    for row in results:
        row["total_amount"] = round2(row["total_amount"])
    return results


def period_range(start_period: Optional[str], end_period: Optional[str]) -> Dict[str, Any]:
    if not start_period and not end_period:
        return {}
    condition = {}
    if start_period:
        condition["$gte"] = start_period
    if end_period:
        condition["$lte"] = end_period
    return {"period": condition}
