from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from models.common import UTCDateTime

class WorkOrderStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "InProgress"
    CLOSED = "Closed"
    DEFERRED = "Deferred"

class WorkOrderBase(BaseModel):
    wo_number: str
    aircraft_id: str
    description: str
    status: WorkOrderStatus = WorkOrderStatus.OPEN
    date_in: UTCDateTime
    date_out: Optional[UTCDateTime] = None
    due_date: Optional[UTCDateTime] = None
    crs_number: Optional[str] = None  # Certificate of Release to Service
    mr_number: Optional[str] = None   # Material request

class WorkOrderCreate(WorkOrderBase):
    pass

class WorkOrderUpdate(BaseModel):
    description: Optional[str] = None
    status: Optional[WorkOrderStatus] = None
    date_in: Optional[UTCDateTime] = None
    date_out: Optional[UTCDateTime] = None
    due_date: Optional[UTCDateTime] = None
    crs_number: Optional[str] = None
    mr_number: Optional[str] = None

class WorkOrder(WorkOrderBase):
    id: str = Field(alias="_id")
    turnaround_days: Optional[float] = None
    is_overdue: bool = False
    updated_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True
