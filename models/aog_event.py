"""
AOG Event Model

An AOG (Aircraft On Ground) event tracks an aircraft grounded pending repair.
Milestone timestamps drive the downtime buckets computed in services.downtime.

Collection: aog_events
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from models.common import UTCDateTime


class ResponsibleParty(str, Enum):
    INTERNAL = "Internal"
    OEM = "OEM"
    CUSTOMS = "Customs"
    FINANCE = "Finance"
    OTHER = "Other"


class AOGCategory(str, Enum):
    AOG = "aog"
    SCHEDULED = "scheduled"
    UNSCHEDULED = "unscheduled"
    MRO = "mro"
    CLEANING = "cleaning"


class AOGWorkflowStatus(str, Enum):
    REPORTED = "REPORTED"
    TROUBLESHOOTING = "TROUBLESHOOTING"
    ISSUE_IDENTIFIED = "ISSUE_IDENTIFIED"
    RESOLVED_NO_PARTS = "RESOLVED_NO_PARTS"
    PART_REQUIRED = "PART_REQUIRED"
    PROCUREMENT_REQUESTED = "PROCUREMENT_REQUESTED"
    FINANCE_APPROVAL_PENDING = "FINANCE_APPROVAL_PENDING"
    ORDER_PLACED = "ORDER_PLACED"
    IN_TRANSIT = "IN_TRANSIT"
    AT_PORT = "AT_PORT"
    CUSTOMS_CLEARANCE = "CUSTOMS_CLEARANCE"
    RECEIVED_IN_STORES = "RECEIVED_IN_STORES"
    ISSUED_TO_MAINTENANCE = "ISSUED_TO_MAINTENANCE"
    INSTALLED_AND_TESTED = "INSTALLED_AND_TESTED"
    ENGINE_RUN_REQUESTED = "ENGINE_RUN_REQUESTED"
    ENGINE_RUN_COMPLETED = "ENGINE_RUN_COMPLETED"
    BACK_IN_SERVICE = "BACK_IN_SERVICE"
    CLOSED = "CLOSED"


class BlockingReason(str, Enum):
    FINANCE = "Finance"
    PORT = "Port"
    CUSTOMS = "Customs"
    VENDOR = "Vendor"
    OPS = "Ops"
    OTHER = "Other"


class PartRequestStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    ORDERED = "ORDERED"
    SHIPPED = "SHIPPED"
    RECEIVED = "RECEIVED"
    ISSUED = "ISSUED"


# ============================================================
# MILESTONES
# ============================================================

class AOGMilestones(BaseModel):
    """Milestone timestamps, in chronological order"""
    reported_at: Optional[UTCDateTime] = None
    procurement_requested_at: Optional[UTCDateTime] = None
    available_at_store_at: Optional[UTCDateTime] = None
    issued_back_at: Optional[UTCDateTime] = None
    installation_complete_at: Optional[UTCDateTime] = None
    test_start_at: Optional[UTCDateTime] = None
    up_and_running_at: Optional[UTCDateTime] = None


class AOGEventBase(AOGMilestones):
    aircraft_id: str
    detected_at: UTCDateTime
    cleared_at: Optional[UTCDateTime] = None
    category: AOGCategory = AOGCategory.AOG
    reason_code: str = Field(..., description="Defect description / reason")
    location: Optional[str] = Field(None, description="ICAO airport code")
    responsible_party: ResponsibleParty = ResponsibleParty.OTHER
    action_taken: str = "See defect description"
    manpower_count: int = Field(default=1, ge=0)
    man_hours: float = Field(default=0.0, ge=0)

    # Costs
    cost_labor: Optional[float] = Field(None, ge=0)
    cost_parts: Optional[float] = Field(None, ge=0)
    cost_external: Optional[float] = Field(None, ge=0)
    internal_cost: float = Field(default=0.0, ge=0)
    external_cost: float = Field(default=0.0, ge=0)


class AOGEventCreate(AOGEventBase):
    pass


class AOGEventUpdate(BaseModel):
    """
    Partial update. For milestone fields an explicit null clears the
    milestone, an omitted field leaves it untouched.
    """
    aircraft_id: Optional[str] = None
    detected_at: Optional[UTCDateTime] = None
    cleared_at: Optional[UTCDateTime] = None
    category: Optional[AOGCategory] = None
    reason_code: Optional[str] = None
    location: Optional[str] = None
    responsible_party: Optional[ResponsibleParty] = None
    action_taken: Optional[str] = None
    manpower_count: Optional[int] = Field(None, ge=0)
    man_hours: Optional[float] = Field(None, ge=0)
    cost_labor: Optional[float] = Field(None, ge=0)
    cost_parts: Optional[float] = Field(None, ge=0)
    cost_external: Optional[float] = Field(None, ge=0)
    internal_cost: Optional[float] = Field(None, ge=0)
    external_cost: Optional[float] = Field(None, ge=0)

    reported_at: Optional[UTCDateTime] = None
    procurement_requested_at: Optional[UTCDateTime] = None
    available_at_store_at: Optional[UTCDateTime] = None
    issued_back_at: Optional[UTCDateTime] = None
    installation_complete_at: Optional[UTCDateTime] = None
    test_start_at: Optional[UTCDateTime] = None
    up_and_running_at: Optional[UTCDateTime] = None


# ============================================================
# WORKFLOW
# ============================================================

class TransitionMetadata(BaseModel):
    part_request_id: Optional[str] = None
    finance_ref: Optional[str] = None
    shipping_ref: Optional[str] = None
    ops_run_ref: Optional[str] = None


class TransitionCreate(BaseModel):
    to_status: AOGWorkflowStatus
    notes: Optional[str] = None
    blocking_reason: Optional[BlockingReason] = None
    metadata: Optional[TransitionMetadata] = None


class StatusHistoryEntry(BaseModel):
    from_status: AOGWorkflowStatus
    to_status: AOGWorkflowStatus
    timestamp: datetime
    actor_id: str
    actor_role: str
    notes: Optional[str] = None
    part_request_id: Optional[str] = None
    finance_ref: Optional[str] = None
    shipping_ref: Optional[str] = None
    ops_run_ref: Optional[str] = None


class MilestoneHistoryEntry(BaseModel):
    milestone: str
    timestamp: datetime
    recorded_at: datetime
    recorded_by: str


class CostAuditEntry(BaseModel):
    field: str
    previous_value: float
    new_value: float
    changed_at: datetime
    changed_by: str
    reason: Optional[str] = None


# ============================================================
# PART REQUESTS
# ============================================================

class PartRequestCreate(BaseModel):
    part_number: str
    part_description: str
    quantity: int = Field(..., ge=1)
    estimated_cost: Optional[float] = Field(None, ge=0)
    actual_cost: Optional[float] = Field(None, ge=0)
    vendor: Optional[str] = None
    requested_date: UTCDateTime


class PartRequestUpdate(BaseModel):
    part_number: Optional[str] = None
    part_description: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)
    estimated_cost: Optional[float] = Field(None, ge=0)
    actual_cost: Optional[float] = Field(None, ge=0)
    vendor: Optional[str] = None
    status: Optional[PartRequestStatus] = None
    invoice_ref: Optional[str] = None
    tracking_number: Optional[str] = None
    eta: Optional[UTCDateTime] = None
    received_date: Optional[UTCDateTime] = None
    issued_date: Optional[UTCDateTime] = None


# ============================================================
# BUDGET INTEGRATION
# ============================================================

class BudgetIntegrationUpdate(BaseModel):
    budget_clause_id: Optional[int] = None
    budget_period: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}$")
    is_budget_affecting: Optional[bool] = None


class AOGEvent(AOGEventBase):
    id: str = Field(alias="_id")
    current_status: AOGWorkflowStatus = AOGWorkflowStatus.REPORTED
    blocking_reason: Optional[BlockingReason] = None
    status_history: List[StatusHistoryEntry] = []
    milestone_history: List[MilestoneHistoryEntry] = []
    cost_audit_trail: List[CostAuditEntry] = []
    part_requests: List[dict] = []

    technical_time_hours: float = 0.0
    procurement_time_hours: float = 0.0
    ops_time_hours: float = 0.0
    total_downtime_hours: float = 0.0
    downtime_hours: Optional[float] = None

    budget_clause_id: Optional[int] = None
    budget_period: Optional[str] = None
    is_budget_affecting: bool = False
    linked_actual_spend_id: Optional[str] = None
    is_legacy: bool = False
    is_imported: bool = False

    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
