import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from app.auth.permissions import Capability
from app.client.backend import BackendClient
from app.config import settings
from app.core.concurrency import gather_settled
from app.core.exceptions import AuthenticationError, ValidationError
from app.schemas.auth import UserResponse
from app.schemas.base import PaginatedResponse
from app.schemas.reading import PhotoUpload, ReadingCreateResponse, ReadingResponse, ReadingResult
from app.services.billing_service import (
	BILLS_CACHE,
	SUMMARY_CACHE,
	effective_rate,
	estimate_bill,
	format_kes,
	format_units,
	parse_number,
)
from app.services.meter_service import MeterService, active_meter_count
from app.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

READINGS_CACHE = "readings"


def local_day(moment: datetime) -> date:
	"""Calendar day of a timestamp in the client's local time"""
	if moment.tzinfo is not None:
		moment = moment.astimezone()
	return moment.date()


def readings_today(readings: Iterable[ReadingResponse], today: Optional[date] = None) -> int:
	today = today or date.today()
	return sum(1 for r in readings if local_day(r.reading_date) == today)


def recorded_by(readings: Iterable[ReadingResponse], user: UserResponse) -> list:
	"""Readings whose technician is the given user"""
	return [
		r for r in readings
		if r.technician is not None and r.technician.phone_number == user.phone_number
	]


def validate_reading_input(meter_id: str, reading_value: Any, photo: Optional[PhotoUpload]) -> float:
	if not meter_id:
		raise ValidationError("Please select a meter")
	value = parse_number(reading_value, "Reading must be a valid number")
	if value < 0:
		raise ValidationError("Reading cannot be negative")
	if photo is None or photo.size == 0:
		raise ValidationError("A photo of the meter is required")
	if photo.size > settings.MAX_PHOTO_SIZE:
		limit_mb = settings.MAX_PHOTO_SIZE // (1024 * 1024)
		raise ValidationError(f"Photo must be {limit_mb}MB or smaller")
	return value


def reading_hint(value: float, previous_reading: Optional[float]) -> Optional[str]:
	"""Advisory only; the backend owns the consumption check"""
	if previous_reading is not None and value < previous_reading:
		return f"Reading {format_units(value)} is less than the previous reading {format_units(previous_reading)}"
	return None


class ReadingService:
	def __init__(self, client: BackendClient):
		self.client = client
		self.session = client.session

	async def list_readings(
			self,
			meter_id: Optional[str] = None,
			page: int = 1,
			limit: Optional[int] = None,
	) -> PaginatedResponse[ReadingResponse]:
		self.session.require(Capability.VIEW_READINGS)
		payload = await self.client.get(
			"/readings",
			params={"meterId": meter_id, "page": page, "limit": limit or settings.READINGS_PAGE_SIZE},
			cache_tag=READINGS_CACHE,
		)
		return PaginatedResponse[ReadingResponse].model_validate({
			"data": payload.get("readings", []),
			"pagination": payload.get("pagination") or {},
		})

	async def get_reading(self, reading_id: str) -> ReadingResponse:
		self.session.require(Capability.VIEW_READINGS)
		payload = await self.client.get(f"/readings/{reading_id}")
		return ReadingResponse.model_validate(payload["reading"])

	async def record_reading(
			self,
			meter_id: str,
			reading_value: Any,
			photo: Optional[PhotoUpload],
			previous_reading: Optional[float] = None,
	) -> ReadingResult:
		"""
		Submit a meter reading with its photo.

		The backend computes consumption and returns a bill only when
		consumption is positive. Cached reading and bill lists are dropped.
		"""
		self.session.require(Capability.RECORD_READING)
		value = validate_reading_input(meter_id, reading_value, photo)
		hint = reading_hint(value, previous_reading)

		payload = await self.client.post(
			"/readings",
			data={"meterId": meter_id, "reading": str(value)},
			files={"photo": (photo.filename, photo.content, photo.content_type)},
		)
		self.client.invalidate(READINGS_CACHE, BILLS_CACHE, SUMMARY_CACHE)

		created = ReadingCreateResponse.model_validate(payload)
		if created.bill is not None:
			message = (
				f"Reading recorded successfully! A bill of {format_kes(created.bill.total_amount)} "
				f"has been generated for {format_units(created.bill.units_consumed)} units consumed."
			)
			logger.info(f"Reading {created.reading.id} on meter {meter_id} generated bill {created.bill.bill_number}")
		else:
			message = "Reading recorded successfully!"
			logger.info(f"Reading {created.reading.id} on meter {meter_id} recorded without a bill")

		return ReadingResult(reading=created.reading, bill=created.bill, message=message, hint=hint)

	async def estimate(self, meter_id: str, reading_value: Any) -> Dict[str, Any]:
		"""
		Preview of the bill a reading would produce, shown before submitting.

		Uses the meter's latest reading and its own rate when it has one.
		The backend computes the real bill.
		"""
		self.session.require(Capability.RECORD_READING)
		if not meter_id:
			raise ValidationError("Please select a meter")
		value = parse_number(reading_value, "Reading must be a valid number")

		results = await gather_settled(
			meter=MeterService(self.client).get_meter(meter_id),
			latest=self.list_readings(meter_id=meter_id, limit=1),
			rate=SettingsService(self.client).get_kwh_rate(),
		)
		errors = [r.error for r in results.values() if not r.ok]
		if errors:
			raise next((e for e in errors if isinstance(e, AuthenticationError)), errors[0])

		latest = results["latest"].value.data
		previous = latest[0].reading if latest else None
		rate = effective_rate(results["meter"].value, results["rate"].value)
		return {
			"previousReading": previous,
			"estimate": estimate_bill(previous, value, rate),
			"hint": reading_hint(value, previous),
		}

	async def readings_page(self, meter_id: Optional[str] = None, page: int = 1) -> Dict[str, Any]:
		"""Readings list plus the meters offered in the recording form"""
		self.session.require(Capability.VIEW_READINGS)
		results = await gather_settled(
			readings=self.list_readings(meter_id=meter_id, page=page),
			meters=MeterService(self.client).list_meters(),
		)
		for result in results.values():
			if isinstance(result.error, AuthenticationError):
				raise result.error

		readings = results["readings"].value.data if results["readings"].ok else []
		meters = results["meters"].value_or([])
		return {
			"readings": readings,
			"pagination": results["readings"].value.pagination if results["readings"].ok else None,
			"meters": meters,
			"active_meters": active_meter_count(meters),
			"today_readings": readings_today(readings),
			"errors": {name: str(r.error) for name, r in results.items() if not r.ok},
		}
