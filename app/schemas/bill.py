from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from app.models.bill import BillStatus, PaymentMethod
from app.schemas.base import CamelModel


class BillMeterRef(CamelModel):
    meter_number: str
    plot_number: Optional[str] = None
    location: Optional[str] = None


class BillLandlordRef(CamelModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None


class BillTechnicianRef(CamelModel):
    name: Optional[str] = None


class BillReadingRef(CamelModel):
    reading: float
    previous_reading: Optional[float] = None
    reading_date: Optional[datetime] = None
    technician: Optional[BillTechnicianRef] = None


class BillResponse(CamelModel):
    id: str
    bill_number: str
    units_consumed: float
    rate_per_unit: float
    total_amount: float
    bill_date: Optional[datetime] = None
    due_date: datetime
    status: BillStatus = BillStatus.PENDING
    paid_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    meter: Optional[BillMeterRef] = None
    landlord: Optional[BillLandlordRef] = None
    reading: Optional[BillReadingRef] = None


class BillView(BillResponse):
    """Bill as listed on the dashboard, with the overdue flag derived at render time"""

    is_overdue: bool = False


class BillingSummary(CamelModel):
    total_bills: int = 0
    paid_bills: int = 0
    pending_bills: int = 0
    overdue_bills: int = 0
    total_amount: float = 0.0
    paid_amount: float = 0.0
    pending_amount: float = 0.0


class PaymentDetails(CamelModel):
    payment_method: PaymentMethod = PaymentMethod.MPESA
    payment_reference: str

    @field_validator("payment_reference")
    def validate_reference(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Payment reference is required")
        if len(v) < 3:
            raise ValueError("Payment reference must be at least 3 characters")
        return v


class BillEstimate(CamelModel):
    units_consumed: float
    rate_per_unit: float
    total_amount: float


class KwhRate(CamelModel):
    key: str = "kwh_rate"
    value: float = Field(..., gt=0)
