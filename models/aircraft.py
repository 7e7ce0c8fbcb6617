from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from models.common import UTCDateTime

class AircraftStatus(str, Enum):
    ACTIVE = "active"
    PARKED = "parked"
    LEASED = "leased"

class AircraftBase(BaseModel):
    registration: str  # e.g. HZ-A42, always stored upper-case
    fleet_group: str   # e.g. A330, G650ER
    aircraft_type: str
    msn: str           # Manufacturer serial number
    owner: str
    manufacture_date: UTCDateTime
    engines_count: int = Field(..., ge=1, le=4)
    status: AircraftStatus = AircraftStatus.ACTIVE

class AircraftCreate(AircraftBase):
    pass

class AircraftUpdate(BaseModel):
    registration: Optional[str] = None
    fleet_group: Optional[str] = None
    aircraft_type: Optional[str] = None
    msn: Optional[str] = None
    owner: Optional[str] = None
    manufacture_date: Optional[UTCDateTime] = None
    engines_count: Optional[int] = Field(None, ge=1, le=4)
    status: Optional[AircraftStatus] = None

class Aircraft(AircraftBase):
    id: str = Field(alias="_id")
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True
