# schemas/meter.py
from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from app.schemas.base import CamelModel


class LandlordRef(CamelModel):
    id: Optional[str] = None
    phone_number: str
    name: Optional[str] = None
    role: Optional[str] = None


class MeterCounts(CamelModel):
    readings: int = 0
    bills: int = 0


class MeterResponse(CamelModel):
    id: str
    meter_number: str
    plot_number: str
    coordinates: Optional[str] = None
    location: Optional[str] = None
    is_active: bool = True
    kwh_rate: Optional[float] = None
    created_at: Optional[datetime] = None
    landlord: Optional[LandlordRef] = None
    counts: Optional[MeterCounts] = Field(None, alias="_count")


class MeterCreate(CamelModel):
    meter_number: str = Field(..., min_length=1)
    plot_number: str = Field(..., min_length=1)
    landlord_id: str = Field(..., min_length=1)
    coordinates: Optional[str] = None
    location: Optional[str] = None
    kwh_rate: Optional[float] = Field(None, gt=0)


# meterNumber and landlord are immutable after creation
class MeterUpdate(CamelModel):
    plot_number: Optional[str] = None
    coordinates: Optional[str] = None
    location: Optional[str] = None
    is_active: Optional[bool] = None
    kwh_rate: Optional[float] = Field(None, gt=0)

    model_config = ConfigDict(extra="forbid")
