"""
Budget Models

Budget plans are yearly amounts per spending clause and aircraft group.
Actual spend is recorded per month (period YYYY-MM).

Collections: budget_plans, actual_spend
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class BudgetPlanBase(BaseModel):
    fiscal_year: int = Field(..., ge=2000, le=2100)
    clause_id: int
    clause_description: str
    aircraft_group: str
    planned_amount: float = Field(..., ge=0)
    currency: str = "USD"


class BudgetPlanCreate(BudgetPlanBase):
    pass


class BudgetPlanUpdate(BaseModel):
    clause_description: Optional[str] = None
    planned_amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None


class BudgetPlan(BudgetPlanBase):
    id: str = Field(alias="_id")
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True


class ActualSpendBase(BaseModel):
    period: str = Field(..., pattern=PERIOD_PATTERN, description="YYYY-MM")
    aircraft_group: Optional[str] = None
    aircraft_id: Optional[str] = None
    clause_id: int
    amount: float = Field(..., ge=0)
    currency: str = "USD"
    vendor: Optional[str] = None
    notes: Optional[str] = None


class ActualSpendCreate(ActualSpendBase):
    pass


class ActualSpendUpdate(BaseModel):
    period: Optional[str] = Field(None, pattern=PERIOD_PATTERN)
    aircraft_group: Optional[str] = None
    clause_id: Optional[int] = None
    amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    vendor: Optional[str] = None
    notes: Optional[str] = None


class ActualSpend(ActualSpendBase):
    id: str = Field(alias="_id")
    updated_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True
