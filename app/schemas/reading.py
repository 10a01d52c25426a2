from datetime import datetime
from typing import Optional

from app.schemas.base import CamelModel
from app.schemas.bill import BillResponse
from app.schemas.meter import LandlordRef


class PersonRef(CamelModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None


class ReadingMeterRef(CamelModel):
    id: Optional[str] = None
    meter_number: str
    plot_number: Optional[str] = None
    landlord: Optional[LandlordRef] = None


class ReadingResponse(CamelModel):
    id: str
    reading: float
    previous_reading: Optional[float] = None
    units_consumed: Optional[float] = None
    reading_date: datetime
    created_at: Optional[datetime] = None
    photo_path: Optional[str] = None
    meter: Optional[ReadingMeterRef] = None
    technician: Optional[PersonRef] = None

    @property
    def consumption(self) -> Optional[float]:
        """Reading minus the previous one, when there is a previous one"""
        if self.units_consumed is not None:
            return self.units_consumed
        if self.previous_reading is None:
            return None
        return self.reading - self.previous_reading


class ReadingCreateResponse(CamelModel):
    reading: ReadingResponse
    bill: Optional[BillResponse] = None
    message: Optional[str] = None


class ReadingResult(CamelModel):
    reading: ReadingResponse
    bill: Optional[BillResponse] = None
    message: str
    hint: Optional[str] = None


class PhotoUpload(CamelModel):
    """Photo evidence attached to a reading"""

    filename: str = "reading.jpg"
    content: bytes
    content_type: str = "image/jpeg"

    @property
    def size(self) -> int:
        return len(self.content)
