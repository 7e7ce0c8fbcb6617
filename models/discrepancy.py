from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from models.aog_event import ResponsibleParty
from models.common import UTCDateTime

class DiscrepancyBase(BaseModel):
    aircraft_id: str
    date_detected: UTCDateTime
    ata_chapter: str = Field(..., description="ATA chapter, e.g. 21, 32, 72")
    discrepancy_text: str
    date_corrected: Optional[UTCDateTime] = None
    corrective_action: Optional[str] = None
    responsibility: Optional[ResponsibleParty] = None
    downtime_hours: Optional[float] = Field(None, ge=0)

class DiscrepancyCreate(DiscrepancyBase):
    pass

class DiscrepancyUpdate(BaseModel):
    date_detected: Optional[UTCDateTime] = None
    ata_chapter: Optional[str] = None
    discrepancy_text: Optional[str] = None
    date_corrected: Optional[UTCDateTime] = None
    corrective_action: Optional[str] = None
    responsibility: Optional[ResponsibleParty] = None
    downtime_hours: Optional[float] = Field(None, ge=0)

class Discrepancy(DiscrepancyBase):
    id: str = Field(alias="_id")
    updated_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True
