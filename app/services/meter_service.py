import logging
from typing import List, Optional

from app.auth.permissions import Capability
from app.client.backend import BackendClient
from app.core.exceptions import ValidationError
from app.schemas.meter import MeterCreate, MeterResponse, MeterUpdate

logger = logging.getLogger(__name__)

METERS_CACHE = "meters"


class MeterService:
	def __init__(self, client: BackendClient):
		self.client = client
		self.session = client.session

	async def list_meters(self, landlord_id: Optional[str] = None) -> List[MeterResponse]:
		"""Meters visible to the session; the backend scopes landlords to their own"""
		self.session.require(Capability.VIEW_METERS)
		payload = await self.client.get(
			"/meters",
			params={"landlordId": landlord_id},
			cache_tag=METERS_CACHE,
		)
		return [MeterResponse.model_validate(m) for m in payload.get("meters", [])]

	async def get_meter(self, meter_id: str) -> MeterResponse:
		self.session.require(Capability.VIEW_METERS)
		payload = await self.client.get(f"/meters/{meter_id}")
		return MeterResponse.model_validate(payload["meter"])

	async def create_meter(self, data: MeterCreate) -> MeterResponse:
		self.session.require(Capability.MANAGE_METERS)
		payload = await self.client.post(
			"/meters",
			json=data.model_dump(by_alias=True, exclude_none=True),
		)
		self.client.invalidate(METERS_CACHE)

		meter = MeterResponse.model_validate(payload["meter"])
		logger.info(f"Meter created: {meter.meter_number} (plot {meter.plot_number})")
		return meter

	async def update_meter(self, meter_id: str, data: MeterUpdate) -> MeterResponse:
		"""meterNumber and landlord cannot change; MeterUpdate does not carry them"""
		self.session.require(Capability.MANAGE_METERS)
		body = data.model_dump(by_alias=True, exclude_unset=True)
		if not body:
			raise ValidationError("Nothing to update")

		payload = await self.client.put(f"/meters/{meter_id}", json=body)
		self.client.invalidate(METERS_CACHE)
		return MeterResponse.model_validate(payload["meter"])


def active_meter_count(meters: List[MeterResponse]) -> int:
	return sum(1 for m in meters if m.is_active)
