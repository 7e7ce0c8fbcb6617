from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from models.common import UTCDateTime

class Shift(str, Enum):
    MORNING = "Morning"
    EVENING = "Evening"
    NIGHT = "Night"
    OTHER = "Other"

class MaintenanceTaskBase(BaseModel):
    aircraft_id: str
    date: UTCDateTime
    shift: Shift = Shift.OTHER
    task_type: str  # e.g. "Scheduled Maintenance", "A-Check"
    task_description: str

    # Labour
    manpower_count: int = Field(..., ge=0)
    man_hours: float = Field(..., ge=0)

    # Cost
    cost: Optional[float] = Field(None, ge=0)

    # Work Order
    work_order_ref: Optional[str] = None  # wo_number

class MaintenanceTaskCreate(MaintenanceTaskBase):
    pass

class MaintenanceTaskUpdate(BaseModel):
    date: Optional[UTCDateTime] = None
    shift: Optional[Shift] = None
    task_type: Optional[str] = None
    task_description: Optional[str] = None
    manpower_count: Optional[int] = Field(None, ge=0)
    man_hours: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    work_order_ref: Optional[str] = None

class MaintenanceTask(MaintenanceTaskBase):
    id: str = Field(alias="_id")
    updated_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True
