import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from app.auth.permissions import Capability
from app.client.backend import BackendClient
from app.config import settings
from app.core.concurrency import gather_settled
from app.core.exceptions import AuthenticationError, ConflictError, ValidationError
from app.models.bill import BillStatus, can_transition
from app.schemas.base import PaginatedResponse
from app.schemas.bill import BillEstimate, BillResponse, BillView, BillingSummary, PaymentDetails
from app.schemas.meter import MeterResponse

logger = logging.getLogger(__name__)

BILLS_CACHE = "bills"
SUMMARY_CACHE = "bills_summary"


def is_overdue(due_date: datetime, status: Union[BillStatus, str], now: Optional[datetime] = None) -> bool:
	"""A still pending bill whose due date has passed. Recompute on every render."""
	if BillStatus(status) != BillStatus.PENDING:
		return False
	if now is None:
		now = datetime.now(timezone.utc) if due_date.tzinfo else datetime.now()
	elif (now.tzinfo is None) != (due_date.tzinfo is None):
		# compare naive values as local time
		if due_date.tzinfo is None:
			due_date = due_date.astimezone(timezone.utc)
		else:
			now = now.astimezone(timezone.utc)
	return due_date < now


def bill_total(units_consumed: float, rate_per_unit: float) -> float:
	return round(units_consumed * rate_per_unit, 2)


def estimate_bill(previous_reading: Optional[float], reading: float, rate_per_unit: float) -> Optional[BillEstimate]:
	"""Preview of the bill the backend will generate; None when nothing is consumed"""
	if previous_reading is None:
		return None
	units = reading - previous_reading
	if units <= 0:
		return None
	return BillEstimate(
		units_consumed=units,
		rate_per_unit=rate_per_unit,
		total_amount=bill_total(units, rate_per_unit),
	)


def effective_rate(meter: Optional[MeterResponse], global_rate: float) -> float:
	"""Per-meter tariff when the meter has one, the global default otherwise"""
	if meter is not None and meter.kwh_rate:
		return meter.kwh_rate
	return global_rate


def format_kes(amount: Optional[float]) -> str:
	return f"{settings.CURRENCY} {(amount or 0):,.2f}"


def format_units(value: float) -> str:
	return str(int(value)) if float(value).is_integer() else str(value)


def parse_number(value: Any, message: str) -> float:
	"""Parse a form value as a finite number, raising ValidationError otherwise"""
	if isinstance(value, bool) or value is None:
		raise ValidationError(message)
	try:
		number = float(value.strip() if isinstance(value, str) else value)
	except (TypeError, ValueError):
		raise ValidationError(message)
	if not math.isfinite(number):
		raise ValidationError(message)
	return number


def to_view(bill: BillResponse, now: Optional[datetime] = None) -> BillView:
	return BillView(
		**bill.model_dump(),
		is_overdue=is_overdue(bill.due_date, bill.status, now),
	)


class BillingService:
	def __init__(self, client: BackendClient):
		self.client = client
		self.session = client.session

	async def list_bills(
			self,
			status: Optional[BillStatus] = None,
			landlord_id: Optional[str] = None,
			page: int = 1,
			limit: Optional[int] = None,
	) -> PaginatedResponse[BillView]:
		"""List bills, deriving the overdue flag at listing time"""
		self.session.require(Capability.VIEW_BILLS)
		params = {
			"status": BillStatus(status).value if status else None,
			"landlordId": landlord_id,
			"page": page,
			"limit": limit or settings.BILLS_PAGE_SIZE,
		}
		payload = await self.client.get("/bills", params=params, cache_tag=BILLS_CACHE)
		page_data = PaginatedResponse[BillResponse].model_validate({
			"data": payload.get("bills", []),
			"pagination": payload.get("pagination") or {},
		})
		now = datetime.now(timezone.utc)
		return PaginatedResponse[BillView](
			data=[to_view(bill, now) for bill in page_data.data],
			pagination=page_data.pagination,
		)

	async def get_bill(self, bill_id: str) -> BillView:
		self.session.require(Capability.VIEW_BILLS)
		payload = await self.client.get(f"/bills/{bill_id}")
		return to_view(BillResponse.model_validate(payload["bill"]))

	async def get_summary(self) -> BillingSummary:
		self.session.require(Capability.VIEW_BILLS)
		payload = await self.client.get("/bills/summary", cache_tag=SUMMARY_CACHE)
		return BillingSummary.model_validate(payload.get("summary") or {})

	async def bills_page(self, status: Optional[BillStatus] = None, page: int = 1) -> Dict[str, Any]:
		"""Bills list and billing summary, loaded together; either may fail alone"""
		self.session.require(Capability.VIEW_BILLS)
		results = await gather_settled(
			bills=self.list_bills(status=status, page=page),
			summary=self.get_summary(),
		)
		for result in results.values():
			if isinstance(result.error, AuthenticationError):
				raise result.error

		bills = results["bills"]
		summary = results["summary"]
		return {
			"bills": bills.value.data if bills.ok else [],
			"pagination": bills.value.pagination if bills.ok else None,
			"summary": summary.value_or(None),
			"errors": {name: str(r.error) for name, r in results.items() if not r.ok},
		}

	async def mark_paid(
			self,
			bill: Union[BillResponse, str],
			payment: Optional[PaymentDetails] = None,
	) -> BillResponse:
		"""
		Record payment of a bill. Admin only, checked before any request.

		Paying an already paid bill is an error to surface, never retried.
		"""
		self.session.require(Capability.MARK_BILL_PAID)

		if isinstance(bill, BillResponse):
			if not can_transition(bill.status, BillStatus.PAID):
				raise ConflictError(f"Bill {bill.bill_number} is already paid")
			bill_id = bill.id
		else:
			bill_id = bill
		if not bill_id:
			raise ValidationError("Bill id is required")

		body = payment.model_dump(mode="json", by_alias=True) if payment else None
		payload = await self.client.patch(f"/bills/{bill_id}/pay", json=body)
		self.client.invalidate(BILLS_CACHE, SUMMARY_CACHE)

		paid = BillResponse.model_validate(payload["bill"])
		logger.info(f"Bill {paid.bill_number} marked as paid")
		return paid

	async def update_overdue(self) -> int:
		"""Reclassify pending bills past their due date. Safe to repeat."""
		self.session.require(Capability.UPDATE_OVERDUE)
		payload = await self.client.post("/bills/update-overdue")
		self.client.invalidate(BILLS_CACHE, SUMMARY_CACHE)

		updated = int(payload.get("updatedCount", 0))
		logger.info(f"Overdue reclassification updated {updated} bills")
		return updated

