"""
Dashboard Routes - fleet-wide KPIs and operational alerts
"""

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional
import logging

from config import get_settings
from database.mongodb import get_database
from models.common import UTCDateTime, utcnow
from models.user import User
from models.work_order import WorkOrderStatus
from routes.aircraft import registration_map
from routes.aog_events import ACTIVE_QUERY
from routes.discrepancies import UNCORRECTED_QUERY
from routes.work_orders import overdue_query
from services.aog_workflow import BLOCKING_STATUSES
from services.auth_deps import get_current_user
from services.availability import availability_by_aircraft, availability_status, summarize_availability
from services.downtime import hours_between
from services.queries import date_range_query

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])
logger = logging.getLogger(__name__)


@router.get("/kpis")
async def get_dashboard_kpis(
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    db: AsyncIOMotorDatabase = Depends(get_database),
    current_user: User = Depends(get_current_user)
):
    """
    Fleet KPIs.
    Availability sums POS and FMC hours over every daily status record in the
    range before taking the ratio.
    """
    settings = get_settings()
    records = await db.daily_status.find(date_range_query("date", start_date, end_date)).to_list(length=None)
    availability = summarize_availability(records)

    now = utcnow()
    kpis = {
        "fleet_availability_percentage": availability["availability_percentage"],
        "availability_status": availability_status(
            availability["availability_percentage"],
            settings.availability_warning_threshold,
            settings.availability_critical_threshold,
        ),
        "total_pos_hours": availability["total_pos_hours"],
        "total_fmc_hours": availability["total_fmc_hours"],
        "total_aircraft": await db.aircraft.count_documents({}),
        "active_aog_count": await db.aog_events.count_documents(ACTIVE_QUERY),
        "open_work_orders": await db.work_orders.count_documents({"status": {"$ne": WorkOrderStatus.CLOSED.value}}),
        "overdue_work_orders": await db.work_orders.count_documents(overdue_query(now)),
        "uncorrected_discrepancies": await db.discrepancies.count_documents(UNCORRECTED_QUERY),
    }

    logger.info(f"Dashboard KPIs requested by {current_user.email}")
    return kpis


@router.get("/alerts")
async def get_dashboard_alerts(
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    db: AsyncIOMotorDatabase = Depends(get_database),
    current_user: User = Depends(get_current_user)
):
    """Active and blocked AOGs, overdue work orders and low-availability aircraft"""
    settings = get_settings()
    registrations = await registration_map(db)
    now = utcnow()
    alerts = []

    blocking_values = [s.value for s in BLOCKING_STATUSES]
    async for event in db.aog_events.find(ACTIVE_QUERY).sort("detected_at", 1):
        registration = registrations.get(event["aircraft_id"], "Unknown")
        hours_down = hours_between(event.get("reported_at") or event.get("detected_at"), now)
        alerts.append({
            "type": "aog_active",
            "severity": "critical",
            "aircraft_id": event["aircraft_id"],
            "registration": registration,
            "reference_id": event["_id"],
            "message": f"{registration} AOG for {hours_down} h: {event.get('reason_code', '')}",
        })
        if event.get("current_status") in blocking_values:
            alerts.append({
                "type": "aog_blocked",
                "severity": "warning",
                "aircraft_id": event["aircraft_id"],
                "registration": registration,
                "reference_id": event["_id"],
                "message": f"{registration} AOG blocked at {event['current_status']} ({event.get('blocking_reason') or 'no reason'})",
            })

    async for wo in db.work_orders.find(overdue_query(now)).sort("due_date", 1):
        registration = registrations.get(wo["aircraft_id"], "Unknown")
        alerts.append({
            "type": "work_order_overdue",
            "severity": "warning",
            "aircraft_id": wo["aircraft_id"],
            "registration": registration,
            "reference_id": wo["_id"],
            "message": f"Work order {wo['wo_number']} on {registration} overdue since {wo['due_date'].date()}",
        })

    records = await db.daily_status.find(date_range_query("date", start_date, end_date)).to_list(length=None)
    for row in availability_by_aircraft(records):
        level = availability_status(
            row["availability_percentage"],
            settings.availability_warning_threshold,
            settings.availability_critical_threshold,
        )
        if level == "green":
            continue
        registration = registrations.get(row["aircraft_id"], "Unknown")
        alerts.append({
            "type": "low_availability",
            "severity": "critical" if level == "red" else "warning",
            "aircraft_id": row["aircraft_id"],
            "registration": registration,
            "reference_id": None,
            "message": f"{registration} availability {row['availability_percentage']}%",
        })

    return {
        "total": len(alerts),
        "critical": len([a for a in alerts if a["severity"] == "critical"]),
        "warning": len([a for a in alerts if a["severity"] == "warning"]),
        "alerts": alerts,
    }
