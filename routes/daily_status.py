from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from database.mongodb import get_database
from models.common import UTCDateTime, start_of_day, utcnow
from models.daily_status import DailyStatus, DailyStatusCreate, DailyStatusUpdate
from models.user import User
from routes.aircraft import get_aircraft_or_404, registration_map
from services.auth_deps import get_current_user, require_editor
from services.availability import (
    aggregate_by_period,
    availability_by_aircraft,
    calculate_fmc_hours,
    summarize_availability,
    validate_downtime_hours,
)
from services.queries import new_id, build_filter, date_range_query
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/daily-status", tags=["daily-status"])

def apply_hours(record: dict) -> dict:
    """Validate downtime against POS and derive FMC when it was not given"""
    pos = record.get("pos_hours", 24.0)
    s = record.get("nmcm_s_hours") or 0.0
    u = record.get("nmcm_u_hours") or 0.0
    supply = record.get("nmcs_hours") or 0.0

    if not validate_downtime_hours(pos, s, u, supply):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Downtime hours ({s + u + supply}) exceed possessed hours ({pos})"
        )

    if record.get("fmc_hours") is None:
        record["fmc_hours"] = calculate_fmc_hours(pos, s, u, supply)
    elif record["fmc_hours"] > pos:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="FMC hours cannot exceed possessed hours"
        )
    return record

async def find_status_records(
    db: AsyncIOMotorDatabase,
    aircraft_id: Optional[str] = None,
    start_date=None,
    end_date=None,
) -> List[dict]:
    query = build_filter(aircraft_id=aircraft_id)
    query.update(date_range_query("date", start_date, end_date))
    return await db.daily_status.find(query).to_list(length=None)

@router.post("", response_model=DailyStatus, status_code=status.HTTP_201_CREATED)
async def create_daily_status(
    record: DailyStatusCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Record one day of status for an aircraft"""
    await get_aircraft_or_404(db, record.aircraft_id)

    now = utcnow()
    record_dict = apply_hours(record.model_dump())
    record_dict.update({
        "_id": new_id(),
        "date": start_of_day(record.date),
        "updated_by": current_user.id,
        "created_at": now,
        "updated_at": now,
    })

    existing = await db.daily_status.find_one({
        "aircraft_id": record.aircraft_id,
        "date": record_dict["date"]
    })
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A status record already exists for this aircraft and date"
        )

    try:
        await db.daily_status.insert_one(record_dict)
    except DuplicateKeyError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A status record already exists for this aircraft and date"
        )

    logger.info(f"Daily status {record_dict['date'].date()} for aircraft {record.aircraft_id} created by {current_user.email}")
    return DailyStatus(**record_dict)

@router.get("", response_model=List[DailyStatus])
async def list_daily_status(
    aircraft_id: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    limit: int = Query(100, ge=1, le=1000),
    skip: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """List daily status records, newest first"""
    query = build_filter(aircraft_id=aircraft_id)
    query.update(date_range_query("date", start_date, end_date))

    cursor = db.daily_status.find(query).sort("date", -1).skip(skip).limit(limit)
    records = await cursor.to_list(length=limit)
    return [DailyStatus(**r) for r in records]

@router.get("/availability")
async def get_availability(
    aircraft_id: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Summed POS/FMC and availability for an aircraft or the whole fleet"""
    records = await find_status_records(db, aircraft_id, start_date, end_date)
    summary = summarize_availability(records)
    summary["record_count"] = len(records)
    return summary

@router.get("/availability/aggregated")
async def get_aggregated_availability(
    period: str = Query("month", pattern="^(day|month|year)$"),
    aircraft_id: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Availability per period and aircraft"""
    records = await find_status_records(db, aircraft_id, start_date, end_date)
    return aggregate_by_period(records, period)

@router.get("/availability/fleet")
async def get_fleet_availability(
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Per-aircraft availability, highest first"""
    records = await find_status_records(db, None, start_date, end_date)
    registrations = await registration_map(db)

    rows = availability_by_aircraft(records)
    for row in rows:
        row["registration"] = registrations.get(row["aircraft_id"], "")
    return rows

@router.get("/{record_id}", response_model=DailyStatus)
async def get_daily_status(
    record_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    record = await db.daily_status.find_one({"_id": record_id})
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Daily status record not found"
        )
    return DailyStatus(**record)

@router.put("/{record_id}", response_model=DailyStatus)
async def update_daily_status(
    record_id: str,
    record_update: DailyStatusUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Update hours; FMC is re-derived unless supplied"""
    record = await db.daily_status.find_one({"_id": record_id})
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Daily status record not found"
        )

    update_data = record_update.model_dump(exclude_unset=True)
    merged = {**record, **update_data}
    if "fmc_hours" not in update_data or update_data["fmc_hours"] is None:
        merged["fmc_hours"] = None
    apply_hours(merged)

    update_data["fmc_hours"] = merged["fmc_hours"]
    update_data["updated_by"] = current_user.id
    update_data["updated_at"] = utcnow()

    await db.daily_status.update_one({"_id": record_id}, {"$set": update_data})
    updated = await db.daily_status.find_one({"_id": record_id})

    logger.info(f"Daily status {record_id} updated by {current_user.email}")
    return DailyStatus(**updated)

@router.delete("/{record_id}")
async def delete_daily_status(
    record_id: str,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    result = await db.daily_status.delete_one({"_id": record_id})
    if result.deleted_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Daily status record not found"
        )

    logger.info(f"Daily status {record_id} deleted by {current_user.email}")
    return {"message": "Daily status record deleted successfully"}
