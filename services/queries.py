"""Small helpers for building Mongo filters and documents"""

import uuid
from enum import Enum
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


def new_id() -> str:
    return str(uuid.uuid4())


def date_range_query(
    field: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Filter fragment for an inclusive date range, empty when unbounded"""
    if start_date is None and end_date is None:
        return {}
    condition: Dict[str, Any] = {}
    if start_date is not None:
        condition["$gte"] = start_date
    if end_date is not None:
        condition["$lte"] = end_date
    return {field: condition}


def build_filter(**equals: Any) -> Dict[str, Any]:
    """Equality filter ignoring None values"""
    return {key: value for key, value in equals.items() if value is not None}


def enum_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace Enum members with their values so documents store plain strings"""
    return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}


def to_document(model: BaseModel, **extra: Any) -> Dict[str, Any]:
    """Dump a request model into a Mongo document"""
    document = enum_values(model.model_dump())
    document.update(extra)
    return document
