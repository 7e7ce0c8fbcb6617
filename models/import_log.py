"""
Import Log Model

Records the outcome of every confirmed Excel import, including row-level errors.

Collection: import_logs
"""

from pydantic import BaseModel, Field
from typing import List, Any, Dict
from datetime import datetime
from enum import Enum


class ImportType(str, Enum):
    AIRCRAFT = "aircraft"
    DAILY_STATUS = "daily_status"
    MAINTENANCE_TASKS = "maintenance_tasks"
    AOG_EVENTS = "aog_events"
    WORK_ORDERS = "work_orders"
    DISCREPANCIES = "discrepancies"
    BUDGET = "budget"


class ImportRowError(BaseModel):
    row: int
    message: str


class ImportPreview(BaseModel):
    session_id: str
    import_type: ImportType
    filename: str
    total_rows: int
    valid_count: int
    error_count: int
    valid_rows: List[Dict[str, Any]]
    errors: List[ImportRowError]


class ImportConfirm(BaseModel):
    session_id: str


class ImportResult(BaseModel):
    import_log_id: str
    success_count: int
    error_count: int
    errors: List[ImportRowError]


class ImportLog(BaseModel):
    id: str = Field(alias="_id")
    filename: str
    import_type: ImportType
    row_count: int
    success_count: int
    error_count: int
    errors: List[ImportRowError] = []
    imported_by: str
    created_at: datetime

    class Config:
        populate_by_name = True
