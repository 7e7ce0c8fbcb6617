"""
AOG Event Routes

Aircraft On Ground events: milestone tracking, three-bucket downtime,
workflow transitions, part requests and budget integration.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from config import get_settings
from database.mongodb import get_database
from models.aog_event import (
    AOGCategory,
    AOGEvent,
    AOGEventCreate,
    AOGEventUpdate,
    AOGWorkflowStatus,
    BudgetIntegrationUpdate,
    PartRequestCreate,
    PartRequestStatus,
    PartRequestUpdate,
    ResponsibleParty,
    StatusHistoryEntry,
    TransitionCreate,
)
from models.common import UTCDateTime, utcnow
from models.user import User
from routes.aircraft import get_aircraft_or_404, registration_map
from services.aog_workflow import (
    BLOCKING_STATUSES,
    TERMINAL_STATUSES,
    TransitionError,
    infer_status,
    validate_transition,
)
from services.auth_deps import get_current_user, require_editor
from services.downtime import (
    MILESTONE_ORDER,
    MilestoneOrderError,
    compute_downtime_metrics,
    downtime_duration_hours,
    is_legacy_event,
    legacy_metrics,
    round2,
    summarize_buckets,
    validate_milestone_order,
)
from services.queries import build_filter, date_range_query, enum_values, new_id

router = APIRouter(prefix="/api/aog-events", tags=["aog-events"])
logger = logging.getLogger(__name__)

COST_FIELDS = ("cost_labor", "cost_parts", "cost_external")

ACTIVE_QUERY = {"cleared_at": None, "up_and_running_at": None}


# ============================================================
# HELPERS
# ============================================================

def aog_not_found(event_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "AOG_NOT_FOUND", "message": f"AOG event with ID {event_id} not found"}
    )


async def get_event_or_404(db: AsyncIOMotorDatabase, event_id: str) -> dict:
    event = await db.aog_events.find_one({"_id": event_id})
    if not event:
        raise aog_not_found(event_id)
    return event


def serialize_event(event: dict) -> AOGEvent:
    """Output view: legacy handling, inferred status and detected->cleared duration"""
    output = dict(event)

    if not event.get("current_status"):
        output["current_status"] = infer_status(event).value
        output["is_legacy"] = True

    if is_legacy_event(event):
        output["is_legacy"] = True
        output.update(legacy_metrics(event))

    if event.get("cleared_at") and event.get("detected_at"):
        output["downtime_hours"] = downtime_duration_hours(event["detected_at"], event["cleared_at"])

    return AOGEvent(**output)


def validate_event_timestamps(
    detected_at: Optional[datetime],
    cleared_at: Optional[datetime],
    milestones: Dict[str, Optional[datetime]],
):
    """Raises MilestoneOrderError when cleared_at precedes detected_at or milestones are out of order"""
    if detected_at and cleared_at and cleared_at < detected_at:
        raise MilestoneOrderError("cleared_at", "detected_at", cleared_at, detected_at)
    validate_milestone_order(milestones)


def timestamp_error(error: MilestoneOrderError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.to_detail())


def milestone_entries(milestones: Dict[str, Optional[datetime]], user_id: str) -> List[dict]:
    now = utcnow()
    return [
        {"milestone": name, "timestamp": milestones[name], "recorded_at": now, "recorded_by": user_id}
        for name in MILESTONE_ORDER
        if milestones.get(name) is not None
    ]


def calculate_total_parts_cost(event: dict) -> float:
    return round2(sum(part.get("actual_cost") or 0 for part in event.get("part_requests") or []))


async def find_events(
    db: AsyncIOMotorDatabase,
    query: Dict[str, Any],
    limit: Optional[int] = None,
) -> List[dict]:
    cursor = db.aog_events.find(query).sort("detected_at", -1)
    return await cursor.to_list(length=limit)


def event_filter(
    aircraft_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    **equals: Any,
) -> Dict[str, Any]:
    query = build_filter(aircraft_id=aircraft_id, **equals)
    query.update(date_range_query("detected_at", start_date, end_date))
    return query


def follow_clearance(
    existing: dict,
    payload: Dict[str, Any],
    update_data: Dict[str, Any],
    changed_milestones: Dict[str, Optional[datetime]],
) -> None:
    """
    Keep timestamps that were copied from each other in step.

    A stored cleared_at equal to up_and_running_at moves with whichever of
    the two is corrected, and an imported installation_complete_at equal to
    the old clearance moves with it. Fields sent explicitly are left alone.
    """
    old_cleared = existing.get("cleared_at")
    if old_cleared is None:
        return

    new_cleared = update_data.get("cleared_at")
    if new_cleared is not None and new_cleared != old_cleared:
        for name in ("installation_complete_at", "up_and_running_at"):
            if name not in payload and existing.get(name) == old_cleared:
                update_data[name] = new_cleared
                changed_milestones[name] = new_cleared
        return

    new_running = changed_milestones.get("up_and_running_at")
    if (
        new_running is not None
        and "cleared_at" not in payload
        and existing.get("up_and_running_at") == old_cleared
    ):
        update_data["cleared_at"] = new_running


def new_event_document(
    event: AOGEventCreate,
    user_id: str,
    current_status: AOGWorkflowStatus = AOGWorkflowStatus.REPORTED,
) -> dict:
    """
    Stored form of a new event.

    reported_at defaults to detected_at and cleared_at defaults to
    up_and_running_at. up_and_running_at is stored only when given; the
    bucket calculation falls back to cleared_at. Downtime buckets are
    computed here.
    """
    data = enum_values(event.model_dump())
    data["reported_at"] = data["reported_at"] or data["detected_at"]
    data["cleared_at"] = data["cleared_at"] or data["up_and_running_at"]

    milestones = {name: data[name] for name in MILESTONE_ORDER}
    checked = {**milestones, "up_and_running_at": data["up_and_running_at"] or data["cleared_at"]}
    validate_event_timestamps(data["detected_at"], data["cleared_at"], checked)

    now = utcnow()
    data.update(compute_downtime_metrics(data))
    data.update({
        "_id": new_id(),
        "current_status": current_status.value,
        "blocking_reason": None,
        "status_history": [],
        "milestone_history": milestone_entries(milestones, user_id),
        "cost_audit_trail": [],
        "part_requests": [],
        "is_budget_affecting": False,
        "is_legacy": False,
        "is_imported": False,
        "updated_by": user_id,
        "created_at": now,
        "updated_at": now,
    })
    return data


# ============================================================
# CRUD
# ============================================================

@router.post("", response_model=AOGEvent, status_code=status.HTTP_201_CREATED)
async def create_aog_event(
    event: AOGEventCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Record a new AOG event; it starts in REPORTED"""
    await get_aircraft_or_404(db, event.aircraft_id)

    try:
        data = new_event_document(event, current_user.id)
    except MilestoneOrderError as e:
        raise timestamp_error(e)

    await db.aog_events.insert_one(data)
    logger.info(f"AOG event {data['_id']} created for aircraft {event.aircraft_id} by {current_user.email}")

    return serialize_event(data)


@router.get("", response_model=List[AOGEvent])
async def list_aog_events(
    aircraft_id: Optional[str] = None,
    responsible_party: Optional[ResponsibleParty] = None,
    category: Optional[AOGCategory] = None,
    current_status: Optional[AOGWorkflowStatus] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    active: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """List AOG events, newest first"""
    query = event_filter(
        aircraft_id,
        start_date,
        end_date,
        responsible_party=responsible_party.value if responsible_party else None,
        category=category.value if category else None,
        current_status=current_status.value if current_status else None,
    )
    if active is True:
        query.update(ACTIVE_QUERY)
    elif active is False:
        query["$or"] = [{"cleared_at": {"$ne": None}}, {"up_and_running_at": {"$ne": None}}]

    events = await find_events(db, query)
    return [serialize_event(e) for e in events]


@router.get("/active", response_model=List[AOGEvent])
async def list_active_aog_events(
    aircraft_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Events not yet back in service"""
    query = build_filter(aircraft_id=aircraft_id)
    query.update(ACTIVE_QUERY)
    events = await find_events(db, query)
    return [serialize_event(e) for e in events]


@router.get("/active/count")
async def count_active_aog_events(
    aircraft_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = build_filter(aircraft_id=aircraft_id)
    query.update(ACTIVE_QUERY)
    return {"count": await db.aog_events.count_documents(query)}


# ============================================================
# ANALYTICS
# ============================================================

@router.get("/analytics/buckets")
async def get_bucket_analytics(
    aircraft_id: Optional[str] = None,
    fleet_group: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Technical / procurement / ops downtime breakdown"""
    query = event_filter(aircraft_id, start_date, end_date)

    if fleet_group and not aircraft_id:
        group_ids = await db.aircraft.distinct("_id", {"fleet_group": fleet_group})
        query["aircraft_id"] = {"$in": group_ids}

    events = await find_events(db, query)
    registrations = await registration_map(db)
    return summarize_buckets(events, registrations)


@router.get("/analytics/downtime-by-responsibility")
async def get_downtime_by_responsibility(
    aircraft_id: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Cleared downtime (detected -> cleared) per responsible party, largest first"""
    query = event_filter(aircraft_id, start_date, end_date)
    query["cleared_at"] = {"$ne": None}

    totals: Dict[str, Dict[str, Any]] = {}
    for event in await find_events(db, query):
        party = event.get("responsible_party") or ResponsibleParty.OTHER.value
        row = totals.setdefault(party, {"responsible_party": party, "total_downtime_hours": 0.0, "event_count": 0})
        row["total_downtime_hours"] += (event["cleared_at"] - event["detected_at"]).total_seconds() / 3600
        row["event_count"] += 1

    results = list(totals.values())
    for row in results:
        row["total_downtime_hours"] = round2(row["total_downtime_hours"])
    results.sort(key=lambda r: r["total_downtime_hours"], reverse=True)
    return results


@router.get("/analytics/stages")
async def get_stage_breakdown(
    aircraft_id: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Event count per workflow status and per blocking reason"""
    events = await find_events(db, event_filter(aircraft_id, start_date, end_date))

    by_status: Dict[str, int] = {}
    by_reason: Dict[str, int] = {}
    total_active = 0
    total_blocked = 0

    blocking_values = {s.value for s in BLOCKING_STATUSES}
    for event in events:
        current = infer_status(event).value
        by_status[current] = by_status.get(current, 0) + 1
        if event.get("blocking_reason"):
            by_reason[event["blocking_reason"]] = by_reason.get(event["blocking_reason"], 0) + 1
        if event.get("cleared_at") is None and event.get("up_and_running_at") is None:
            total_active += 1
        if current in blocking_values:
            total_blocked += 1

    return {
        "by_status": [
            {"status": s, "count": c}
            for s, c in sorted(by_status.items(), key=lambda item: item[1], reverse=True)
        ],
        "by_blocking_reason": [
            {"blocking_reason": r, "count": c}
            for r, c in sorted(by_reason.items(), key=lambda item: item[1], reverse=True)
        ],
        "total_active": total_active,
        "total_blocked": total_blocked,
    }


@router.get("/{event_id}", response_model=AOGEvent)
async def get_aog_event(
    event_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    return serialize_event(await get_event_or_404(db, event_id))


@router.put("/{event_id}", response_model=AOGEvent)
async def update_aog_event(
    event_id: str,
    event_update: AOGEventUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Update an AOG event.

    Milestones sent as null are cleared. Buckets are recomputed when a
    milestone, detected_at or cleared_at changes; changed milestones and
    cost fields are appended to their audit histories.
    """
    existing = await get_event_or_404(db, event_id)
    payload = enum_values(event_update.model_dump(exclude_unset=True))
    now = utcnow()

    update_data: Dict[str, Any] = {
        key: value for key, value in payload.items()
        if key not in MILESTONE_ORDER and value is not None
    }

    # Milestones: an explicit null clears the value
    changed_milestones = {}
    for name in MILESTONE_ORDER:
        if name not in payload:
            continue
        update_data[name] = payload[name]
        if existing.get(name) != payload[name]:
            changed_milestones[name] = payload[name]

    follow_clearance(existing, payload, update_data, changed_milestones)

    merged = {**existing, **update_data}
    milestones = {name: merged.get(name) for name in MILESTONE_ORDER}
    milestones["reported_at"] = milestones["reported_at"] or merged.get("detected_at")
    milestones["up_and_running_at"] = milestones["up_and_running_at"] or merged.get("cleared_at")
    try:
        validate_event_timestamps(merged.get("detected_at"), merged.get("cleared_at"), milestones)
    except MilestoneOrderError as e:
        raise timestamp_error(e)

    if changed_milestones or "detected_at" in update_data or "cleared_at" in update_data:
        update_data.update(compute_downtime_metrics(merged))

    push: Dict[str, Any] = {}
    history = milestone_entries(changed_milestones, current_user.id)
    if history:
        push["milestone_history"] = {"$each": history}

    cost_entries = []
    for field in COST_FIELDS:
        if field in payload and payload[field] != existing.get(field):
            cost_entries.append({
                "field": field,
                "previous_value": existing.get(field) or 0.0,
                "new_value": payload[field] or 0.0,
                "changed_at": now,
                "changed_by": current_user.id,
                "reason": None,
            })
    if cost_entries:
        push["cost_audit_trail"] = {"$each": cost_entries}

    update_data["updated_by"] = current_user.id
    update_data["updated_at"] = now

    operation: Dict[str, Any] = {"$set": update_data}
    if push:
        operation["$push"] = push
    await db.aog_events.update_one({"_id": event_id}, operation)

    logger.info(f"AOG event {event_id} updated by {current_user.email}")
    return serialize_event(await get_event_or_404(db, event_id))


@router.delete("/{event_id}")
async def delete_aog_event(
    event_id: str,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    result = await db.aog_events.delete_one({"_id": event_id})
    if result.deleted_count == 0:
        raise aog_not_found(event_id)

    logger.info(f"AOG event {event_id} deleted by {current_user.email}")
    return {"message": "AOG event deleted successfully"}


# ============================================================
# WORKFLOW
# ============================================================

@router.post("/{event_id}/transitions", response_model=AOGEvent)
async def transition_aog_event(
    event_id: str,
    transition: TransitionCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Move an event to its next workflow status"""
    event = await get_event_or_404(db, event_id)
    current = infer_status(event)

    try:
        validate_transition(current, transition.to_status, transition.blocking_reason)
    except TransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.to_detail())

    now = utcnow()
    metadata = transition.metadata.model_dump() if transition.metadata else {}
    entry = StatusHistoryEntry(
        from_status=current,
        to_status=transition.to_status,
        timestamp=now,
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        notes=transition.notes,
        **metadata,
    )

    update_data: Dict[str, Any] = {
        "current_status": transition.to_status.value,
        "blocking_reason": (
            transition.blocking_reason.value
            if transition.to_status in BLOCKING_STATUSES and transition.blocking_reason
            else None
        ),
        "updated_by": current_user.id,
        "updated_at": now,
    }

    # Reaching a terminal status clears the event
    if transition.to_status in TERMINAL_STATUSES and not event.get("cleared_at"):
        update_data["cleared_at"] = now
        update_data.update(compute_downtime_metrics({**event, "cleared_at": now}))

    await db.aog_events.update_one(
        {"_id": event_id},
        {"$set": update_data, "$push": {"status_history": enum_values(entry.model_dump())}}
    )

    logger.info(f"AOG event {event_id}: {current.value} -> {transition.to_status.value} by {current_user.email}")
    return serialize_event(await get_event_or_404(db, event_id))


@router.get("/{event_id}/history", response_model=List[StatusHistoryEntry])
async def get_status_history(
    event_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    event = await get_event_or_404(db, event_id)
    return [StatusHistoryEntry(**entry) for entry in event.get("status_history") or []]


# ============================================================
# PART REQUESTS
# ============================================================

@router.get("/{event_id}/parts")
async def list_part_requests(
    event_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Part requests of an event and their total actual cost"""
    event = await get_event_or_404(db, event_id)
    return {
        "part_requests": event.get("part_requests") or [],
        "total_parts_cost": calculate_total_parts_cost(event),
    }


@router.post("/{event_id}/parts", response_model=AOGEvent, status_code=status.HTTP_201_CREATED)
async def add_part_request(
    event_id: str,
    part: PartRequestCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    await get_event_or_404(db, event_id)

    part_doc = part.model_dump()
    part_doc.update({"_id": new_id(), "status": PartRequestStatus.REQUESTED.value})

    await db.aog_events.update_one(
        {"_id": event_id},
        {
            "$push": {"part_requests": part_doc},
            "$set": {"updated_by": current_user.id, "updated_at": utcnow()}
        }
    )

    logger.info(f"Part {part.part_number} requested on AOG event {event_id} by {current_user.email}")
    return serialize_event(await get_event_or_404(db, event_id))


@router.put("/{event_id}/parts/{part_id}", response_model=AOGEvent)
async def update_part_request(
    event_id: str,
    part_id: str,
    part_update: PartRequestUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    event = await get_event_or_404(db, event_id)
    parts = list(event.get("part_requests") or [])

    index = next((i for i, p in enumerate(parts) if p.get("_id") == part_id), None)
    if index is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "PART_NOT_FOUND", "message": f"Part request with ID {part_id} not found"}
        )

    changes = {k: v for k, v in enum_values(part_update.model_dump(exclude_unset=True)).items() if v is not None}
    parts[index] = {**parts[index], **changes, "_id": part_id}

    await db.aog_events.update_one(
        {"_id": event_id},
        {"$set": {"part_requests": parts, "updated_by": current_user.id, "updated_at": utcnow()}}
    )

    logger.info(f"Part request {part_id} on AOG event {event_id} updated by {current_user.email}")
    return serialize_event(await get_event_or_404(db, event_id))


# ============================================================
# BUDGET INTEGRATION
# ============================================================

@router.put("/{event_id}/budget", response_model=AOGEvent)
async def update_budget_integration(
    event_id: str,
    budget: BudgetIntegrationUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    await get_event_or_404(db, event_id)

    update_data = budget.model_dump(exclude_unset=True)
    update_data.update({"updated_by": current_user.id, "updated_at": utcnow()})
    await db.aog_events.update_one({"_id": event_id}, {"$set": update_data})

    return serialize_event(await get_event_or_404(db, event_id))


@router.post("/{event_id}/generate-spend", response_model=AOGEvent)
async def generate_actual_spend(
    event_id: str,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Book the event's labor, parts and external costs as actual spend"""
    event = await get_event_or_404(db, event_id)

    if event.get("linked_actual_spend_id"):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "DUPLICATE_SPEND", "message": "Actual spend already generated for this AOG event"}
        )
    if not event.get("is_budget_affecting"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "NOT_BUDGET_AFFECTING", "message": "AOG event is not marked as budget-affecting"}
        )
    if event.get("budget_clause_id") is None or not event.get("budget_period"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "MISSING_BUDGET_MAPPING", "message": "AOG event must have budget_clause_id and budget_period set"}
        )

    total_cost = round2(sum(event.get(field) or 0 for field in COST_FIELDS))
    if total_cost <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "NO_COSTS", "message": "AOG event has no costs to generate spend from"}
        )

    aircraft = await db.aircraft.find_one({"_id": event["aircraft_id"]}) or {}
    now = utcnow()
    spend = {
        "_id": new_id(),
        "period": event["budget_period"],
        "aircraft_group": aircraft.get("fleet_group"),
        "aircraft_id": event["aircraft_id"],
        "clause_id": event["budget_clause_id"],
        "amount": total_cost,
        "currency": get_settings().default_currency,
        "vendor": None,
        "notes": f"Generated from AOG event {event_id}",
        "updated_by": current_user.id,
        "created_at": now,
        "updated_at": now,
    }
    await db.actual_spend.insert_one(spend)

    await db.aog_events.update_one(
        {"_id": event_id},
        {"$set": {"linked_actual_spend_id": spend["_id"], "updated_by": current_user.id, "updated_at": now}}
    )

    logger.info(f"Actual spend {spend['_id']} ({total_cost}) generated from AOG event {event_id}")
    return serialize_event(await get_event_or_404(db, event_id))
