"""
Work Order Routes

Turnaround and overdue flags are derived when a work order is read.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import List, Optional
import logging

from database.mongodb import get_database
from models.common import UTCDateTime, utcnow
from models.user import User
from models.work_order import WorkOrder, WorkOrderCreate, WorkOrderStatus, WorkOrderUpdate
from routes.aircraft import get_aircraft_or_404
from services.auth_deps import get_current_user, require_editor
from services.downtime import round2
from services.queries import build_filter, date_range_query, enum_values, new_id, to_document

router = APIRouter(prefix="/api/work-orders", tags=["work-orders"])
logger = logging.getLogger(__name__)

OVERDUE_QUERY_STATUSES = [WorkOrderStatus.OPEN.value, WorkOrderStatus.IN_PROGRESS.value, WorkOrderStatus.DEFERRED.value]


def turnaround_days(date_in: Optional[datetime], date_out: Optional[datetime]) -> Optional[float]:
    if not date_in or not date_out:
        return None
    return round2((date_out - date_in).total_seconds() / 86400)


def is_overdue(work_order: dict, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    due_date = work_order.get("due_date")
    return bool(due_date and due_date < now and work_order.get("status") != WorkOrderStatus.CLOSED.value)


def serialize_work_order(work_order: dict, now: Optional[datetime] = None) -> WorkOrder:
    return WorkOrder(
        **work_order,
        turnaround_days=turnaround_days(work_order.get("date_in"), work_order.get("date_out")),
        is_overdue=is_overdue(work_order, now),
    )


def overdue_query(now: datetime) -> dict:
    return {"due_date": {"$lt": now}, "status": {"$in": OVERDUE_QUERY_STATUSES}}


@router.post("", response_model=WorkOrder, status_code=status.HTTP_201_CREATED)
async def create_work_order(
    work_order: WorkOrderCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    await get_aircraft_or_404(db, work_order.aircraft_id)

    wo_number = work_order.wo_number.strip()
    if await db.work_orders.find_one({"wo_number": wo_number}):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Work order {wo_number} already exists"
        )

    now = utcnow()
    wo_doc = to_document(
        work_order,
        _id=new_id(),
        wo_number=wo_number,
        updated_by=current_user.id,
        created_at=now,
        updated_at=now,
    )
    await db.work_orders.insert_one(wo_doc)

    logger.info(f"Work order {wo_number} created by {current_user.email}")
    return serialize_work_order(wo_doc)


@router.get("", response_model=List[WorkOrder])
async def list_work_orders(
    aircraft_id: Optional[str] = None,
    status_filter: Optional[WorkOrderStatus] = Query(None, alias="status"),
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = build_filter(
        aircraft_id=aircraft_id,
        status=status_filter.value if status_filter else None,
    )
    query.update(date_range_query("date_in", start_date, end_date))

    work_orders = await db.work_orders.find(query).sort("date_in", -1).to_list(length=1000)
    now = utcnow()
    return [serialize_work_order(wo, now) for wo in work_orders]


@router.get("/overdue", response_model=List[WorkOrder])
async def list_overdue_work_orders(
    aircraft_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Work orders past their due date and not closed, most overdue first"""
    now = utcnow()
    query = overdue_query(now)
    query.update(build_filter(aircraft_id=aircraft_id))

    work_orders = await db.work_orders.find(query).sort("due_date", 1).to_list(length=1000)
    return [serialize_work_order(wo, now) for wo in work_orders]


@router.get("/status-distribution")
async def get_status_distribution(
    aircraft_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Work order count per status"""
    query = build_filter(aircraft_id=aircraft_id)
    distribution = {s.value: 0 for s in WorkOrderStatus}
    async for wo in db.work_orders.find(query, {"status": 1}):
        wo_status = wo.get("status") or WorkOrderStatus.OPEN.value
        distribution[wo_status] = distribution.get(wo_status, 0) + 1

    total = sum(distribution.values())
    return {
        "total": total,
        "distribution": [{"status": s, "count": c} for s, c in distribution.items()],
    }


@router.get("/{work_order_id}", response_model=WorkOrder)
async def get_work_order(
    work_order_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    work_order = await db.work_orders.find_one({"_id": work_order_id})
    if not work_order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Work order not found"
        )
    return serialize_work_order(work_order)


@router.put("/{work_order_id}", response_model=WorkOrder)
async def update_work_order(
    work_order_id: str,
    work_order_update: WorkOrderUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    update_data = enum_values(work_order_update.model_dump(exclude_unset=True))
    update_data["updated_by"] = current_user.id
    update_data["updated_at"] = utcnow()

    result = await db.work_orders.update_one({"_id": work_order_id}, {"$set": update_data})
    if result.matched_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Work order not found"
        )

    logger.info(f"Work order {work_order_id} updated by {current_user.email}")
    return serialize_work_order(await db.work_orders.find_one({"_id": work_order_id}))


@router.delete("/{work_order_id}")
async def delete_work_order(
    work_order_id: str,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    result = await db.work_orders.delete_one({"_id": work_order_id})
    if result.deleted_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Work order not found"
        )

    logger.info(f"Work order {work_order_id} deleted by {current_user.email}")
    return {"message": "Work order deleted successfully"}
