"""
Excel import/export.

Templates, parsing and exports are driven by one column definition per
import type. Row 1 holds the headers; data starts on row 2, and row numbers
reported in errors are spreadsheet row numbers.
"""

from datetime import date, datetime, time, timedelta
from io import BytesIO
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging
import re

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from models.common import to_naive_utc
from models.import_log import ImportType

logger = logging.getLogger(__name__)

EXCEL_EPOCH = datetime(1899, 12, 30)

CATEGORY_LABELS = {
    "AOG": "aog",
    "S-MX": "scheduled",
    "U-MX": "unscheduled",
    "MRO": "mro",
    "CLEANING": "cleaning",
}
CATEGORY_CODES = {value: label for label, value in CATEGORY_LABELS.items()}

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")


class ExcelFormatError(ValueError):
    """The uploaded file cannot be read as an import of the requested type"""


class Column:
    def __init__(
        self,
        header: str,
        key: str,
        type: str = "string",
        required: bool = False,
        enum_values: Optional[List[str]] = None,
        description: str = "",
    ):
        self.header = header
        self.key = key
        self.type = type
        self.required = required
        self.enum_values = enum_values
        self.description = description


REGISTRATION = Column("Aircraft Registration", "registration", required=True, description="e.g. HZ-A42")

TEMPLATES: Dict[ImportType, List[Column]] = {
    ImportType.AIRCRAFT: [
        Column("Registration", "registration", required=True, description="e.g. HZ-A42"),
        Column("Fleet Group", "fleet_group", required=True, description="e.g. AIRBUS A320 FAMILY"),
        Column("Aircraft Type", "aircraft_type", required=True, description="e.g. A340-642 ACJ"),
        Column("MSN", "msn", required=True, description="Manufacturer serial number"),
        Column("Owner", "owner", required=True),
        Column("Manufacture Date", "manufacture_date", "date", required=True, description="YYYY-MM-DD"),
        Column("Engines Count", "engines_count", "integer", required=True, description="1 to 4"),
        Column("Status", "status", "enum", enum_values=["active", "parked", "leased"], description="Default: active"),
    ],
    ImportType.DAILY_STATUS: [
        REGISTRATION,
        Column("Date", "date", "date", required=True, description="YYYY-MM-DD"),
        Column("POS Hours", "pos_hours", "number", required=True, description="Possessed hours (0-24)"),
        Column("NMCM-S Hours", "nmcm_s_hours", "number", required=True, description="Scheduled maintenance downtime"),
        Column("NMCM-U Hours", "nmcm_u_hours", "number", required=True, description="Unscheduled maintenance downtime"),
        Column("NMCS Hours", "nmcs_hours", "number", description="Supply downtime"),
        Column("Notes", "notes"),
    ],
    ImportType.MAINTENANCE_TASKS: [
        REGISTRATION,
        Column("Date", "date", "date", required=True, description="YYYY-MM-DD"),
        Column("Shift", "shift", "enum", required=True, enum_values=["Morning", "Evening", "Night", "Other"]),
        Column("Task Type", "task_type", required=True),
        Column("Task Description", "task_description", required=True),
        Column("Manpower Count", "manpower_count", "integer", required=True),
        Column("Man Hours", "man_hours", "number", required=True),
        Column("Cost", "cost", "number"),
        Column("Work Order Reference", "work_order_ref"),
    ],
    ImportType.AOG_EVENTS: [
        Column("Aircraft", "registration", required=True, description="Aircraft registration"),
        Column("Defect Description", "reason_code", required=True),
        Column("Location", "location", description="ICAO airport code"),
        Column("Category", "category", "enum", required=True, enum_values=list(CATEGORY_LABELS)),
        Column("Start Date", "start_date", "date", required=True, description="YYYY-MM-DD"),
        Column("Start Time", "start_time", "time", required=True, description="HH:MM (24h)"),
        Column("Finish Date", "finish_date", "date", description="Empty while the event is active"),
        Column("Finish Time", "finish_time", "time", description="HH:MM (24h)"),
    ],
    ImportType.WORK_ORDERS: [
        Column("WO Number", "wo_number", required=True),
        REGISTRATION,
        Column("Description", "description", required=True),
        Column("Status", "status", "enum", enum_values=["Open", "InProgress", "Closed", "Deferred"], description="Default: Open"),
        Column("Date In", "date_in", "date", required=True),
        Column("Date Out", "date_out", "date"),
        Column("Due Date", "due_date", "date"),
        Column("CRS Number", "crs_number"),
        Column("MR Number", "mr_number"),
    ],
    ImportType.DISCREPANCIES: [
        REGISTRATION,
        Column("Date Detected", "date_detected", "date", required=True),
        Column("ATA Chapter", "ata_chapter", required=True),
        Column("Discrepancy", "discrepancy_text", required=True),
        Column("Date Corrected", "date_corrected", "date"),
        Column("Corrective Action", "corrective_action"),
        Column("Responsibility", "responsibility", "enum", enum_values=["Internal", "OEM", "Customs", "Finance", "Other"]),
        Column("Downtime Hours", "downtime_hours", "number"),
    ],
    ImportType.BUDGET: [
        Column("Fiscal Year", "fiscal_year", "integer", required=True),
        Column("Clause ID", "clause_id", "integer", required=True),
        Column("Clause Description", "clause_description", required=True),
        Column("Aircraft Group", "aircraft_group", required=True),
        Column("Planned Amount", "planned_amount", "number", required=True),
        Column("Currency", "currency", description="Default: USD"),
    ],
}

TEMPLATE_NAMES = {
    ImportType.AIRCRAFT: "Aircraft Master",
    ImportType.DAILY_STATUS: "Daily Status",
    ImportType.MAINTENANCE_TASKS: "Maintenance Tasks",
    ImportType.AOG_EVENTS: "AOG Events",
    ImportType.WORK_ORDERS: "Work Orders",
    ImportType.DISCREPANCIES: "Discrepancies",
    ImportType.BUDGET: "Budget Plan",
}


def list_import_types() -> List[Dict[str, Any]]:
    return [
        {
            "type": import_type.value,
            "name": TEMPLATE_NAMES[import_type],
            "columns": [
                {
                    "header": c.header,
                    "key": c.key,
                    "type": c.type,
                    "required": c.required,
                    "enum_values": c.enum_values,
                    "description": c.description,
                }
                for c in columns
            ],
        }
        for import_type, columns in TEMPLATES.items()
    ]


# ============================================================
# VALUE PARSING
# ============================================================

def parse_date(value: Any) -> Optional[datetime]:
    """datetime, date, Excel serial number, ISO or DD/MM/YYYY string"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return EXCEL_EPOCH + timedelta(seconds=round(float(value) * 86400))
    if isinstance(value, str):
        text = value.strip()
        for fmt in ("%d/%m/%Y %H:%M", "%d/%m/%Y"):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                pass
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return to_naive_utc(parsed)
    return None


TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_time(value: Any) -> Optional[time]:
    """time, datetime, fraction of a day or HH:MM[:SS] string"""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = round((float(value) % 1) * 86400)
        return (datetime.min + timedelta(seconds=seconds)).time()
    if isinstance(value, str):
        match = TIME_PATTERN.match(value.strip())
        if match:
            hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
            if hour < 24 and minute < 60 and second < 60:
                return time(hour, minute, second)
    return None


def combine_date_time(day: Optional[datetime], at: Optional[time]) -> Optional[datetime]:
    if day is None:
        return None
    if at is None:
        return day
    return datetime.combine(day.date(), at)


def _convert(column: Column, raw: Any) -> Tuple[Any, Optional[str]]:
    """Typed value for a cell, or an error message"""
    if isinstance(raw, str):
        raw = raw.strip()
    if raw is None or raw == "":
        if column.required:
            return None, f"{column.header} is required"
        return None, None

    if column.type == "string":
        if isinstance(raw, float) and raw.is_integer():
            raw = int(raw)
        return str(raw), None

    if column.type in ("number", "integer"):
        try:
            number = float(raw)
        except (TypeError, ValueError):
            return None, f"{column.header} must be a number"
        if column.type == "integer":
            if not number.is_integer():
                return None, f"{column.header} must be a whole number"
            return int(number), None
        return number, None

    if column.type == "date":
        parsed = parse_date(raw)
        if parsed is None:
            return None, f"{column.header} is not a valid date: {raw}"
        return parsed, None

    if column.type == "time":
        parsed = parse_time(raw)
        if parsed is None:
            return None, f"{column.header} is not a valid time: {raw}"
        return parsed, None

    if column.type == "enum":
        text = str(raw)
        for allowed in column.enum_values or []:
            if text.lower() == allowed.lower():
                return allowed, None
        return None, f"{column.header} must be one of: {', '.join(column.enum_values or [])}"

    return raw, None


def _finish_aog_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Combine start/finish date and time into detected_at / cleared_at"""
    row["category"] = CATEGORY_LABELS[row["category"]]
    row["detected_at"] = combine_date_time(row.pop("start_date"), row.pop("start_time"))
    row["cleared_at"] = combine_date_time(row.pop("finish_date"), row.pop("finish_time"))
    return row


# ============================================================
# PARSING
# ============================================================

class ParseResult:
    def __init__(self):
        self.total_rows = 0
        self.valid_rows: List[Dict[str, Any]] = []
        self.errors: List[Dict[str, Any]] = []

    def add_error(self, row: int, message: str):
        self.errors.append({"row": row, "message": message})

    @property
    def error_rows(self) -> int:
        return len({e["row"] for e in self.errors})


def parse_workbook(content: bytes, import_type: ImportType) -> ParseResult:
    """
    Parse the first sheet of an .xlsx upload.

    Raises ExcelFormatError when the file is unreadable or a required
    column is missing; problems with individual rows are collected in the
    result instead.
    """
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ExcelFormatError(f"Could not read Excel file: {e}") from e

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header_row = next(rows, None)
        if header_row is None:
            raise ExcelFormatError("The spreadsheet is empty")

        headers = [str(h).strip().lower() if h is not None else "" for h in header_row]
        columns = TEMPLATES[import_type]
        positions: Dict[str, int] = {}
        for column in columns:
            if column.header.lower() in headers:
                positions[column.key] = headers.index(column.header.lower())
            elif column.required:
                raise ExcelFormatError(f"Missing required column: {column.header}")

        result = ParseResult()
        for row_number, values in enumerate(rows, start=2):
            if values is None or all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
                continue
            result.total_rows += 1

            record: Dict[str, Any] = {}
            row_errors = []
            for column in columns:
                index = positions.get(column.key)
                raw = values[index] if index is not None and index < len(values) else None
                value, error = _convert(column, raw)
                if error:
                    row_errors.append(error)
                record[column.key] = value

            if row_errors:
                for error in row_errors:
                    result.add_error(row_number, error)
                continue

            if import_type == ImportType.AOG_EVENTS:
                record = _finish_aog_row(record)
            record["_row"] = row_number
            result.valid_rows.append(record)
    finally:
        workbook.close()

    logger.info(
        f"Parsed {import_type.value} workbook: {result.total_rows} rows, "
        f"{len(result.valid_rows)} valid, {result.error_rows} with errors"
    )
    return result


# ============================================================
# TEMPLATES AND EXPORT
# ============================================================

def _write_sheet(sheet, columns: List[Column], rows: Iterable[Mapping[str, Any]]):
    for index, column in enumerate(columns, start=1):
        cell = sheet.cell(row=1, column=index, value=column.header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        sheet.column_dimensions[get_column_letter(index)].width = max(14, len(column.header) + 4)
    sheet.freeze_panes = "A2"

    for row in rows:
        sheet.append([row.get(column.key) for column in columns])


def _to_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def generate_template(import_type: ImportType) -> bytes:
    """Empty import sheet plus an instructions sheet describing each column"""
    columns = TEMPLATES[import_type]
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = TEMPLATE_NAMES[import_type][:31]
    _write_sheet(sheet, columns, [])

    instructions = workbook.create_sheet("Instructions")
    instructions.append(["Column", "Required", "Type", "Allowed values", "Description"])
    for cell in instructions[1]:
        cell.font = Font(bold=True)
    for column in columns:
        instructions.append([
            column.header,
            "Yes" if column.required else "No",
            column.type,
            ", ".join(column.enum_values or []),
            column.description,
        ])
    return _to_bytes(workbook)


def export_row(import_type: ImportType, document: Mapping[str, Any], registrations: Mapping[str, str]) -> Dict[str, Any]:
    """Template-keyed row for a stored document"""
    row = dict(document)
    row["registration"] = document.get("registration") or registrations.get(document.get("aircraft_id"), "")

    if import_type == ImportType.AOG_EVENTS:
        detected = document.get("detected_at")
        cleared = document.get("cleared_at")
        row.update({
            "category": CATEGORY_CODES.get(document.get("category"), document.get("category")),
            "start_date": detected.date() if detected else None,
            "start_time": detected.strftime("%H:%M") if detected else None,
            "finish_date": cleared.date() if cleared else None,
            "finish_time": cleared.strftime("%H:%M") if cleared else None,
        })
    return row


def build_export(
    import_type: ImportType,
    documents: Iterable[Mapping[str, Any]],
    registrations: Optional[Mapping[str, str]] = None,
) -> bytes:
    registrations = registrations or {}
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = TEMPLATE_NAMES[import_type][:31]
    _write_sheet(sheet, TEMPLATES[import_type], (export_row(import_type, d, registrations) for d in documents))
    return _to_bytes(workbook)
