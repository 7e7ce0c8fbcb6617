"""
Import / Export Routes

Excel imports run in two steps: upload returns a preview held in an
in-memory session, confirm writes the valid rows and records an import log.
"""

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from typing import Any, Dict, List, Optional, Tuple
import logging

from config import get_settings
from database.mongodb import get_database
from models.aircraft import AircraftCreate
from models.aog_event import AOGEventCreate, AOGWorkflowStatus
from models.budget import BudgetPlanCreate
from models.common import start_of_day, utcnow
from models.daily_status import DailyStatusCreate
from models.discrepancy import DiscrepancyCreate
from models.import_log import ImportConfirm, ImportLog, ImportPreview, ImportResult, ImportRowError, ImportType
from models.maintenance import MaintenanceTaskCreate
from models.user import User
from models.work_order import WorkOrderCreate
from routes.aircraft import format_registration, registration_map
from routes.aog_events import new_event_document
from services.auth_deps import get_current_user, require_editor
from services.availability import calculate_fmc_hours, validate_downtime_hours
from services.downtime import MilestoneOrderError
from services.excel_service import (
    ExcelFormatError,
    build_export,
    generate_template,
    list_import_types,
    parse_workbook,
)
from services.import_sessions import ImportSessionStore
from services.queries import new_id, to_document

router = APIRouter(prefix="/api/import", tags=["import"])
export_router = APIRouter(prefix="/api/export", tags=["export"])
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

COLLECTIONS = {
    ImportType.AIRCRAFT: "aircraft",
    ImportType.DAILY_STATUS: "daily_status",
    ImportType.MAINTENANCE_TASKS: "maintenance_tasks",
    ImportType.AOG_EVENTS: "aog_events",
    ImportType.WORK_ORDERS: "work_orders",
    ImportType.DISCREPANCIES: "discrepancies",
    ImportType.BUDGET: "budget_plans",
}

ROW_MODELS = {
    ImportType.AIRCRAFT: AircraftCreate,
    ImportType.DAILY_STATUS: DailyStatusCreate,
    ImportType.MAINTENANCE_TASKS: MaintenanceTaskCreate,
    ImportType.AOG_EVENTS: AOGEventCreate,
    ImportType.WORK_ORDERS: WorkOrderCreate,
    ImportType.DISCREPANCIES: DiscrepancyCreate,
    ImportType.BUDGET: BudgetPlanCreate,
}

sessions = ImportSessionStore(get_settings().import_session_ttl_minutes)


def xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def validation_message(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'row'}: {e['msg']}" for e in error.errors()
    )


def build_row_model(import_type: ImportType, row: Dict[str, Any], aircraft_ids: Dict[str, str]):
    """Validated create model for a parsed row; raises ValueError with a row message"""
    data = {k: v for k, v in row.items() if v is not None}

    if import_type != ImportType.AIRCRAFT and import_type != ImportType.BUDGET:
        registration = format_registration(data.pop("registration"))
        if registration not in aircraft_ids:
            raise ValueError(f"Unknown aircraft registration: {registration}")
        data["aircraft_id"] = aircraft_ids[registration]

    if import_type == ImportType.DAILY_STATUS:
        if not validate_downtime_hours(
            data.get("pos_hours", 24.0),
            data.get("nmcm_s_hours", 0.0),
            data.get("nmcm_u_hours", 0.0),
            data.get("nmcs_hours", 0.0),
        ):
            raise ValueError("Downtime hours exceed POS hours")

    if import_type == ImportType.AOG_EVENTS:
        if data.get("cleared_at") and data["cleared_at"] < data["detected_at"]:
            raise ValueError("Finish date/time is before start date/time")

    if import_type == ImportType.BUDGET:
        data.setdefault("currency", get_settings().default_currency)

    try:
        return ROW_MODELS[import_type](**data)
    except ValidationError as e:
        raise ValueError(validation_message(e))


async def insert_row(db: AsyncIOMotorDatabase, import_type: ImportType, model, user: User) -> None:
    """Write one confirmed row; raises ValueError for conflicts"""
    now = utcnow()
    stamps = {"_id": new_id(), "created_at": now, "updated_at": now}

    if import_type == ImportType.AIRCRAFT:
        registration = format_registration(model.registration)
        if await db.aircraft.find_one({"registration": registration}):
            raise ValueError(f"Aircraft {registration} already exists")
        document = to_document(model, registration=registration, **stamps)

    elif import_type == ImportType.DAILY_STATUS:
        day = start_of_day(model.date)
        if await db.daily_status.find_one({"aircraft_id": model.aircraft_id, "date": day}):
            raise ValueError(f"Status for this aircraft on {day.date()} already exists")
        fmc = model.fmc_hours
        if fmc is None:
            fmc = calculate_fmc_hours(model.pos_hours, model.nmcm_s_hours, model.nmcm_u_hours, model.nmcs_hours or 0)
        document = to_document(model, date=day, fmc_hours=fmc, updated_by=user.id, **stamps)

    elif import_type == ImportType.AOG_EVENTS:
        initial = AOGWorkflowStatus.REPORTED
        if model.cleared_at:
            # Spreadsheet rows carry no milestones; the whole outage is technical time
            initial = AOGWorkflowStatus.BACK_IN_SERVICE
            model = model.model_copy(update={
                "installation_complete_at": model.installation_complete_at or model.cleared_at,
                "up_and_running_at": model.up_and_running_at or model.cleared_at,
            })
        try:
            document = new_event_document(model, user.id, initial)
        except MilestoneOrderError as e:
            raise ValueError(str(e))
        document["is_imported"] = True

    elif import_type == ImportType.WORK_ORDERS:
        if await db.work_orders.find_one({"wo_number": model.wo_number}):
            raise ValueError(f"Work order {model.wo_number} already exists")
        document = to_document(model, updated_by=user.id, **stamps)

    elif import_type == ImportType.BUDGET:
        key = {"fiscal_year": model.fiscal_year, "clause_id": model.clause_id, "aircraft_group": model.aircraft_group}
        if await db.budget_plans.find_one(key):
            raise ValueError(f"Budget plan for {model.fiscal_year} clause {model.clause_id} ({model.aircraft_group}) already exists")
        document = to_document(model, **stamps)

    else:
        document = to_document(model, updated_by=user.id, **stamps)

    try:
        await db[COLLECTIONS[import_type]].insert_one(document)
    except DuplicateKeyError:
        raise ValueError("Duplicate record")


# ============================================================
# IMPORT
# ============================================================

@router.get("/types")
async def get_import_types(current_user: User = Depends(get_current_user)):
    return list_import_types()


@router.get("/template/{import_type}")
async def download_template(
    import_type: ImportType,
    current_user: User = Depends(get_current_user)
):
    return xlsx_response(generate_template(import_type), f"{import_type.value}_template.xlsx")


@router.post("/upload", response_model=ImportPreview)
async def upload_import_file(
    import_type: ImportType = Query(...),
    file: UploadFile = File(...),
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Parse and validate an Excel file without writing anything"""
    filename = file.filename or "upload.xlsx"
    if not filename.lower().endswith((".xlsx", ".xlsm")):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only .xlsx files are supported"
        )

    content = await file.read()
    try:
        parsed = parse_workbook(content, import_type)
    except ExcelFormatError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    aircraft_ids = {reg: aircraft_id for aircraft_id, reg in (await registration_map(db)).items()}

    rows: List[Tuple[int, Any]] = []
    errors = [ImportRowError(**e) for e in parsed.errors]
    for row in parsed.valid_rows:
        row_number = row.pop("_row")
        try:
            rows.append((row_number, build_row_model(import_type, row, aircraft_ids)))
        except ValueError as e:
            errors.append(ImportRowError(row=row_number, message=str(e)))

    errors.sort(key=lambda e: e.row)
    session_id = sessions.create({
        "import_type": import_type,
        "filename": filename,
        "total_rows": parsed.total_rows,
        "rows": rows,
        "errors": errors,
    })

    logger.info(f"Import preview {session_id} ({import_type.value}, {filename}) by {current_user.email}: {len(rows)} valid, {len(errors)} errors")
    return ImportPreview(
        session_id=session_id,
        import_type=import_type,
        filename=filename,
        total_rows=parsed.total_rows,
        valid_count=len(rows),
        error_count=len({e.row for e in errors}),
        valid_rows=[{"row": n, **model.model_dump(mode="json")} for n, model in rows],
        errors=errors,
    )


@router.post("/confirm", response_model=ImportResult)
async def confirm_import(
    confirm: ImportConfirm,
    current_user: User = Depends(require_editor),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Insert the valid rows of a previewed import"""
    session = sessions.pop(confirm.session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Import session not found or expired"
        )

    import_type: ImportType = session["import_type"]
    errors: List[ImportRowError] = list(session["errors"])
    success_count = 0

    for row_number, model in session["rows"]:
        try:
            await insert_row(db, import_type, model, current_user)
            success_count += 1
        except ValueError as e:
            errors.append(ImportRowError(row=row_number, message=str(e)))

    errors.sort(key=lambda e: e.row)
    error_count = len({e.row for e in errors})
    log_doc = {
        "_id": new_id(),
        "filename": session["filename"],
        "import_type": import_type.value,
        "row_count": session["total_rows"],
        "success_count": success_count,
        "error_count": error_count,
        "errors": [e.model_dump() for e in errors],
        "imported_by": current_user.id,
        "created_at": utcnow(),
    }
    await db.import_logs.insert_one(log_doc)

    logger.info(f"Import {log_doc['_id']} ({import_type.value}) by {current_user.email}: {success_count} inserted, {error_count} failed")
    return ImportResult(
        import_log_id=log_doc["_id"],
        success_count=success_count,
        error_count=error_count,
        errors=errors,
    )


@router.get("/history", response_model=List[ImportLog])
async def get_import_history(
    import_type: Optional[ImportType] = None,
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    query = {"import_type": import_type.value} if import_type else {}
    logs = await db.import_logs.find(query).sort("created_at", -1).to_list(length=limit)
    return [ImportLog(**log) for log in logs]


@router.get("/log/{log_id}", response_model=ImportLog)
async def get_import_log(
    log_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    log = await db.import_logs.find_one({"_id": log_id})
    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Import log not found"
        )
    return ImportLog(**log)


# ============================================================
# EXPORT
# ============================================================

@export_router.get("/types")
async def get_export_types(current_user: User = Depends(get_current_user)):
    return [{"type": t["type"], "name": t["name"]} for t in list_import_types()]


@export_router.get("/{export_type}")
async def export_data(
    export_type: ImportType,
    current_user: User = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Download a collection in its import template layout"""
    documents = await db[COLLECTIONS[export_type]].find({}).to_list(length=None)
    registrations = await registration_map(db)

    logger.info(f"Export {export_type.value} ({len(documents)} rows) by {current_user.email}")
    stamp = utcnow().strftime("%Y%m%d")
    return xlsx_response(build_export(export_type, documents, registrations), f"{export_type.value}_{stamp}.xlsx")
