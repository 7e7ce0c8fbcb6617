"""
AOG workflow transitions.

Every AOG event moves through a fixed set of statuses. Waiting statuses need
a blocking reason, and reaching a terminal status clears the event.
"""

from typing import Dict, List, Mapping, Optional, Any

from models.aog_event import AOGWorkflowStatus, BlockingReason

S = AOGWorkflowStatus

ALLOWED_TRANSITIONS: Dict[AOGWorkflowStatus, List[AOGWorkflowStatus]] = {
    S.REPORTED: [S.TROUBLESHOOTING],
    S.TROUBLESHOOTING: [S.ISSUE_IDENTIFIED],
    S.ISSUE_IDENTIFIED: [S.RESOLVED_NO_PARTS, S.PART_REQUIRED],
    S.RESOLVED_NO_PARTS: [S.BACK_IN_SERVICE],
    S.PART_REQUIRED: [S.PROCUREMENT_REQUESTED],
    S.PROCUREMENT_REQUESTED: [S.FINANCE_APPROVAL_PENDING],
    S.FINANCE_APPROVAL_PENDING: [S.ORDER_PLACED],
    S.ORDER_PLACED: [S.IN_TRANSIT],
    S.IN_TRANSIT: [S.AT_PORT, S.RECEIVED_IN_STORES],
    S.AT_PORT: [S.CUSTOMS_CLEARANCE],
    S.CUSTOMS_CLEARANCE: [S.RECEIVED_IN_STORES],
    S.RECEIVED_IN_STORES: [S.ISSUED_TO_MAINTENANCE],
    S.ISSUED_TO_MAINTENANCE: [S.INSTALLED_AND_TESTED],
    S.INSTALLED_AND_TESTED: [S.ENGINE_RUN_REQUESTED, S.BACK_IN_SERVICE],
    S.ENGINE_RUN_REQUESTED: [S.ENGINE_RUN_COMPLETED],
    S.ENGINE_RUN_COMPLETED: [S.BACK_IN_SERVICE],
    S.BACK_IN_SERVICE: [S.CLOSED],
    S.CLOSED: [],
}

BLOCKING_STATUSES = (
    S.FINANCE_APPROVAL_PENDING,
    S.AT_PORT,
    S.CUSTOMS_CLEARANCE,
    S.IN_TRANSIT,
)

TERMINAL_STATUSES = (S.BACK_IN_SERVICE, S.CLOSED)


class TransitionError(ValueError):
    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(message)

    def to_detail(self) -> Dict[str, str]:
        return {"code": self.code, "message": str(self)}


def allowed_transitions(current: AOGWorkflowStatus) -> List[AOGWorkflowStatus]:
    return list(ALLOWED_TRANSITIONS.get(current, []))


def requires_blocking_reason(status: AOGWorkflowStatus) -> bool:
    return status in BLOCKING_STATUSES


def validate_transition(
    from_status: AOGWorkflowStatus,
    to_status: AOGWorkflowStatus,
    blocking_reason: Optional[BlockingReason] = None,
) -> None:
    if to_status not in ALLOWED_TRANSITIONS.get(from_status, []):
        raise TransitionError(
            "INVALID_TRANSITION",
            f"Cannot transition from {from_status.value} to {to_status.value}",
        )
    if requires_blocking_reason(to_status) and blocking_reason is None:
        raise TransitionError(
            "BLOCKING_REASON_REQUIRED",
            f"Blocking reason required for status {to_status.value}",
        )


def infer_status(event: Mapping[str, Any]) -> AOGWorkflowStatus:
    """Status of an event, inferred for events created before the workflow"""
    current = event.get("current_status")
    if current:
        return AOGWorkflowStatus(current)
    if event.get("cleared_at") or event.get("up_and_running_at"):
        return S.BACK_IN_SERVICE
    return S.REPORTED
