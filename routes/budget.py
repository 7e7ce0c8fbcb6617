"""
Budget Routes - yearly plans, monthly actual spend and variance analytics
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
from typing import List, Optional
import logging

from database.mongodb import get_database
from models.budget import (
    PERIOD_PATTERN,
    ActualSpend,
    ActualSpendCreate,
    ActualSpendUpdate,
    BudgetPlan,
    BudgetPlanCreate,
    BudgetPlanUpdate,
)
from models.common import utcnow
from models.user import User
from services.auth_deps import get_current_user, require_editor
from services.budget import compute_burn_rate, compute_variance, fiscal_year_periods, period_range, spend_by_period
from services.queries import build_filter, new_id, to_document

router = APIRouter(prefix="/api/budget", tags=["budget"])
logger = logging.getLogger(__name__)


def duplicate_plan(plan) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Budget plan already exists for {plan.fiscal_year} clause {plan.clause_id} ({plan.aircraft_group})"
    )


# ============================================================
# PLANS
# ============================================================

@router.post("/plans", response_model=BudgetPlan, status_code=status.HTTP_201_CREATED)
async def create_budget_plan(
    plan: BudgetPlanCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    existing = await db.budget_plans.find_one({
        "fiscal_year": plan.fiscal_year,
        "clause_id": plan.clause_id,
        "aircraft_group": plan.aircraft_group,
    })
    if existing:
        raise duplicate_plan(plan)

    now = utcnow()
    plan_doc = to_document(plan, _id=new_id(), created_at=now, updated_at=now)
    try:
        await db.budget_plans.insert_one(plan_doc)
    except DuplicateKeyError:
        raise duplicate_plan(plan)

    logger.info(f"Budget plan {plan.fiscal_year}/{plan.clause_id}/{plan.aircraft_group} created by {current_user.email}")
    return BudgetPlan(**plan_doc)


@router.get("/plans", response_model=List[BudgetPlan])
async def list_budget_plans(
    fiscal_year: Optional[int] = None,
    clause_id: Optional[int] = None,
    aircraft_group: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = build_filter(fiscal_year=fiscal_year, clause_id=clause_id, aircraft_group=aircraft_group)
    plans = await db.budget_plans.find(query).sort([("fiscal_year", -1), ("clause_id", 1)]).to_list(length=None)
    return [BudgetPlan(**p) for p in plans]


@router.get("/plans/{plan_id}", response_model=BudgetPlan)
async def get_budget_plan(
    plan_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    plan = await db.budget_plans.find_one({"_id": plan_id})
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget plan not found")
    return BudgetPlan(**plan)


@router.put("/plans/{plan_id}", response_model=BudgetPlan)
async def update_budget_plan(
    plan_id: str,
    plan_update: BudgetPlanUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    update_data = {k: v for k, v in plan_update.model_dump(exclude_unset=True).items() if v is not None}
    update_data["updated_at"] = utcnow()

    result = await db.budget_plans.update_one({"_id": plan_id}, {"$set": update_data})
    if result.matched_count == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget plan not found")

    logger.info(f"Budget plan {plan_id} updated by {current_user.email}")
    return BudgetPlan(**await db.budget_plans.find_one({"_id": plan_id}))


@router.delete("/plans/{plan_id}")
async def delete_budget_plan(
    plan_id: str,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    result = await db.budget_plans.delete_one({"_id": plan_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Budget plan not found")

    logger.info(f"Budget plan {plan_id} deleted by {current_user.email}")
    return {"message": "Budget plan deleted successfully"}


# ============================================================
# ACTUAL SPEND
# ============================================================

@router.post("/actual-spend", response_model=ActualSpend, status_code=status.HTTP_201_CREATED)
async def create_actual_spend(
    spend: ActualSpendCreate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    now = utcnow()
    spend_doc = to_document(spend, _id=new_id(), updated_by=current_user.id, created_at=now, updated_at=now)
    await db.actual_spend.insert_one(spend_doc)

    logger.info(f"Actual spend {spend.amount} {spend.currency} booked to clause {spend.clause_id} for {spend.period}")
    return ActualSpend(**spend_doc)


@router.get("/actual-spend", response_model=List[ActualSpend])
async def list_actual_spend(
    fiscal_year: Optional[int] = None,
    clause_id: Optional[int] = None,
    aircraft_group: Optional[str] = None,
    aircraft_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = build_filter(clause_id=clause_id, aircraft_group=aircraft_group, aircraft_id=aircraft_id)
    if fiscal_year:
        query["period"] = fiscal_year_periods(fiscal_year)

    spends = await db.actual_spend.find(query).sort("period", -1).to_list(length=None)
    return [ActualSpend(**s) for s in spends]


@router.put("/actual-spend/{spend_id}", response_model=ActualSpend)
async def update_actual_spend(
    spend_id: str,
    spend_update: ActualSpendUpdate,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    update_data = {k: v for k, v in spend_update.model_dump(exclude_unset=True).items() if v is not None}
    update_data["updated_by"] = current_user.id
    update_data["updated_at"] = utcnow()

    result = await db.actual_spend.update_one({"_id": spend_id}, {"$set": update_data})
    if result.matched_count == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Actual spend not found")

    logger.info(f"Actual spend {spend_id} updated by {current_user.email}")
    return ActualSpend(**await db.actual_spend.find_one({"_id": spend_id}))


@router.delete("/actual-spend/{spend_id}")
async def delete_actual_spend(
    spend_id: str,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    result = await db.actual_spend.delete_one({"_id": spend_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Actual spend not found")

    # Unlink AOG events that generated this spend
    await db.aog_events.update_many({"linked_actual_spend_id": spend_id}, {"$set": {"linked_actual_spend_id": None}})

    logger.info(f"Actual spend {spend_id} deleted by {current_user.email}")
    return {"message": "Actual spend deleted successfully"}


# ============================================================
# ANALYTICS
# ============================================================

@router.get("/variance")
async def get_budget_variance(
    fiscal_year: int = Query(..., ge=2000, le=2100),
    clause_id: Optional[int] = None,
    aircraft_group: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Planned minus actual per clause and aircraft group"""
    plan_query = build_filter(fiscal_year=fiscal_year, clause_id=clause_id, aircraft_group=aircraft_group)
    spend_query = build_filter(clause_id=clause_id, aircraft_group=aircraft_group)
    spend_query["period"] = fiscal_year_periods(fiscal_year)

    plans = await db.budget_plans.find(plan_query).to_list(length=None)
    spends = await db.actual_spend.find(spend_query).to_list(length=None)
    return compute_variance(plans, spends)


@router.get("/burn-rate")
async def get_burn_rate(
    fiscal_year: int = Query(..., ge=2000, le=2100),
    aircraft_group: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    plan_query = build_filter(fiscal_year=fiscal_year, aircraft_group=aircraft_group)
    spend_query = build_filter(aircraft_group=aircraft_group)
    spend_query["period"] = fiscal_year_periods(fiscal_year)

    total_planned = 0.0
    async for plan in db.budget_plans.find(plan_query, {"planned_amount": 1}):
        total_planned += plan.get("planned_amount") or 0

    spends = await db.actual_spend.find(spend_query).to_list(length=None)
    result = compute_burn_rate(total_planned, spends)
    result.update({"fiscal_year": fiscal_year, "aircraft_group": aircraft_group})
    return result


@router.get("/spend-by-period")
async def get_spend_by_period(
    start_period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    end_period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    aircraft_group: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Total actual spend per month, oldest first"""
    query = build_filter(aircraft_group=aircraft_group)
    query.update(period_range(start_period, end_period))
    spends = await db.actual_spend.find(query).to_list(length=None)
    return spend_by_period(spends)
