from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from database.mongodb import get_database
from models.aircraft import Aircraft, AircraftCreate, AircraftUpdate, AircraftStatus
from models.common import utcnow
from models.user import User
from services.auth_deps import get_current_user, require_admin, require_editor
from services.queries import new_id, build_filter
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/aircraft", tags=["aircraft"])

def format_registration(registration: str) -> str:
    """Format registration to uppercase"""
    return registration.upper().strip()

async def get_aircraft_or_404(db: AsyncIOMotorDatabase, aircraft_id: str) -> dict:
    aircraft_doc = await db.aircraft.find_one({"_id": aircraft_id})
    if not aircraft_doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aircraft not found"
        )
    return aircraft_doc

async def registration_map(db: AsyncIOMotorDatabase) -> dict:
    """aircraft_id -> registration for every aircraft"""
    cursor = db.aircraft.find({}, {"registration": 1})
    return {doc["_id"]: doc.get("registration", "") async for doc in cursor}

@router.post("", response_model=Aircraft, status_code=status.HTTP_201_CREATED)
async def create_aircraft(
    aircraft: AircraftCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Register a new aircraft in the fleet"""
    registration = format_registration(aircraft.registration)

    existing = await db.aircraft.find_one({"registration": registration})
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Aircraft with registration {registration} already exists"
        )

    now = utcnow()
    aircraft_dict = aircraft.model_dump(mode="python")
    aircraft_dict.update({
        "_id": new_id(),
        "registration": registration,
        "fleet_group": aircraft.fleet_group.strip(),
        "status": aircraft.status.value,
        "created_at": now,
        "updated_at": now,
    })

    await db.aircraft.insert_one(aircraft_dict)
    logger.info(f"Aircraft {registration} created by {current_user.email}")

    return Aircraft(**aircraft_dict)

@router.get("", response_model=List[Aircraft])
async def list_aircraft(
    fleet_group: Optional[str] = None,
    status_filter: Optional[AircraftStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """List fleet aircraft, optionally filtered by fleet group or status"""
    query = build_filter(
        fleet_group=fleet_group,
        status=status_filter.value if status_filter else None,
    )
    cursor = db.aircraft.find(query).sort("registration", 1)
    aircraft_list = await cursor.to_list(length=1000)
    return [Aircraft(**aircraft) for aircraft in aircraft_list]

@router.get("/fleet-groups", response_model=List[str])
async def list_fleet_groups(
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Distinct fleet groups"""
    groups = await db.aircraft.distinct("fleet_group")
    return sorted(g for g in groups if g)

@router.get("/{aircraft_id}", response_model=Aircraft)
async def get_aircraft(
    aircraft_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Get a specific aircraft by ID"""
    return Aircraft(**await get_aircraft_or_404(db, aircraft_id))

@router.put("/{aircraft_id}", response_model=Aircraft)
async def update_aircraft(
    aircraft_id: str,
    aircraft_update: AircraftUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Update an aircraft"""
    await get_aircraft_or_404(db, aircraft_id)

    update_data = {k: v for k, v in aircraft_update.model_dump(exclude_unset=True).items() if v is not None}

    if "registration" in update_data:
        update_data["registration"] = format_registration(update_data["registration"])
        clash = await db.aircraft.find_one({
            "registration": update_data["registration"],
            "_id": {"$ne": aircraft_id}
        })
        if clash:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Aircraft with registration {update_data['registration']} already exists"
            )
    if "status" in update_data:
        update_data["status"] = update_data["status"].value

    if update_data:
        update_data["updated_at"] = utcnow()
        await db.aircraft.update_one(
            {"_id": aircraft_id},
            {"$set": update_data}
        )

    updated_aircraft = await db.aircraft.find_one({"_id": aircraft_id})
    logger.info(f"Aircraft {aircraft_id} updated by {current_user.email}")

    return Aircraft(**updated_aircraft)

@router.delete("/{aircraft_id}")
async def delete_aircraft(
    aircraft_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Delete an aircraft (administrators only)"""
    result = await db.aircraft.delete_one({"_id": aircraft_id})

    if result.deleted_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aircraft not found"
        )

    logger.info(f"Aircraft {aircraft_id} deleted by {current_user.email}")
    return {"message": "Aircraft deleted successfully"}
