"""
Daily Status Model

One record per aircraft per day describing how the possessed hours were spent.

Collection: daily_status
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from models.common import UTCDateTime


class DailyStatusBase(BaseModel):
    aircraft_id: str
    date: UTCDateTime
    pos_hours: float = Field(default=24.0, ge=0, le=24, description="Possessed hours")
    fmc_hours: Optional[float] = Field(default=None, ge=0, le=24, description="Fully mission capable hours, derived when omitted")
    nmcm_s_hours: float = Field(default=0.0, ge=0, le=24, description="Not mission capable, scheduled maintenance")
    nmcm_u_hours: float = Field(default=0.0, ge=0, le=24, description="Not mission capable, unscheduled maintenance")
    nmcs_hours: Optional[float] = Field(default=None, ge=0, le=24, description="Not mission capable, supply")
    notes: Optional[str] = None


class DailyStatusCreate(DailyStatusBase):
    pass


class DailyStatusUpdate(BaseModel):
    pos_hours: Optional[float] = Field(None, ge=0, le=24)
    fmc_hours: Optional[float] = Field(None, ge=0, le=24)
    nmcm_s_hours: Optional[float] = Field(None, ge=0, le=24)
    nmcm_u_hours: Optional[float] = Field(None, ge=0, le=24)
    nmcs_hours: Optional[float] = Field(None, ge=0, le=24)
    notes: Optional[str] = None


class DailyStatus(DailyStatusBase):
    id: str = Field(alias="_id")
    fmc_hours: float
    updated_by: str
    created_at: datetime
    updated_at: datetime

    class Config:
        populate_by_name = True
