"""
Maintenance Task Routes - shift-level maintenance work logged per aircraft
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List, Optional
import logging

from database.mongodb import get_database
from models.common import UTCDateTime, utcnow
from models.maintenance import MaintenanceTask, MaintenanceTaskCreate, MaintenanceTaskUpdate, Shift
from models.user import User
from routes.aircraft import get_aircraft_or_404
from services.auth_deps import get_current_user, require_editor
from services.downtime import round2
from services.queries import build_filter, date_range_query, enum_values, new_id, to_document

router = APIRouter(prefix="/api/maintenance-tasks", tags=["maintenance"])
logger = logging.getLogger(__name__)


def task_filter(aircraft_id=None, task_type=None, shift=None, start_date=None, end_date=None) -> dict:
    query = build_filter(
        aircraft_id=aircraft_id,
        task_type=task_type,
        shift=shift.value if shift else None,
    )
    query.update(date_range_query("date", start_date, end_date))
    return query


@router.post("", response_model=MaintenanceTask, status_code=status.HTTP_201_CREATED)
async def create_maintenance_task(
    task: MaintenanceTaskCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    await get_aircraft_or_404(db, task.aircraft_id)

    now = utcnow()
    task_doc = to_document(
        task,
        _id=new_id(),
        updated_by=current_user.id,
        created_at=now,
        updated_at=now,
    )
    await db.maintenance_tasks.insert_one(task_doc)

    logger.info(f"Maintenance task '{task.task_type}' logged for aircraft {task.aircraft_id} by {current_user.email}")
    return MaintenanceTask(**task_doc)


@router.get("", response_model=List[MaintenanceTask])
async def list_maintenance_tasks(
    aircraft_id: Optional[str] = None,
    task_type: Optional[str] = None,
    shift: Optional[Shift] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    limit: int = Query(100, ge=1, le=1000),
    skip: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = task_filter(aircraft_id, task_type, shift, start_date, end_date)
    cursor = db.maintenance_tasks.find(query).sort("date", -1).skip(skip).limit(limit)
    tasks = await cursor.to_list(length=limit)
    return [MaintenanceTask(**t) for t in tasks]


@router.get("/summary")
async def get_maintenance_summary(
    aircraft_id: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Task count, man-hours and cost per task type, most man-hours first"""
    query = task_filter(aircraft_id, start_date=start_date, end_date=end_date)
    tasks = await db.maintenance_tasks.find(query).to_list(length=None)

    summary = {}
    for task in tasks:
        row = summary.setdefault(task["task_type"], {
            "task_type": task["task_type"],
            "count": 0,
            "total_man_hours": 0.0,
            "total_cost": 0.0,
        })
        row["count"] += 1
        row["total_man_hours"] += task.get("man_hours") or 0
        row["total_cost"] += task.get("cost") or 0

    results = list(summary.values())
    for row in results:
        row["total_man_hours"] = round2(row["total_man_hours"])
        row["total_cost"] = round2(row["total_cost"])
    results.sort(key=lambda r: r["total_man_hours"], reverse=True)
    return results


@router.get("/{task_id}", response_model=MaintenanceTask)
async def get_maintenance_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    task = await db.maintenance_tasks.find_one({"_id": task_id})
    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Maintenance task not found"
        )
    return MaintenanceTask(**task)


@router.put("/{task_id}", response_model=MaintenanceTask)
async def update_maintenance_task(
    task_id: str,
    task_update: MaintenanceTaskUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    update_data = enum_values(task_update.model_dump(exclude_unset=True))
    update_data["updated_by"] = current_user.id
    update_data["updated_at"] = utcnow()

    result = await db.maintenance_tasks.update_one({"_id": task_id}, {"$set": update_data})
    if result.matched_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Maintenance task not found"
        )

    logger.info(f"Maintenance task {task_id} updated by {current_user.email}")
    return MaintenanceTask(**await db.maintenance_tasks.find_one({"_id": task_id}))


@router.delete("/{task_id}")
async def delete_maintenance_task(
    task_id: str,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    result = await db.maintenance_tasks.delete_one({"_id": task_id})
    if result.deleted_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Maintenance task not found"
        )

    logger.info(f"Maintenance task {task_id} deleted by {current_user.email}")
    return {"message": "Maintenance task deleted successfully"}
