import logging
from typing import Any

from app.auth.permissions import Capability
from app.client.backend import BackendClient
from app.config import settings
from app.core.exceptions import BackendUnavailableError, ValidationError
from app.schemas.bill import KwhRate
from app.services.billing_service import parse_number

logger = logging.getLogger(__name__)

INVALID_RATE_MESSAGE = "Enter a valid positive number"


def validate_rate(value: Any) -> float:
	rate = parse_number(value, INVALID_RATE_MESSAGE)
	if rate <= 0:
		raise ValidationError(INVALID_RATE_MESSAGE)
	return rate


class SettingsService:
	"""Global tariff rate. Anyone may read it, only admins may change it."""

	def __init__(self, client: BackendClient):
		self.client = client
		self.session = client.session

	async def get_kwh_rate(self) -> float:
		"""The configured rate, or the default when the backend has none set"""
		self.session.require(Capability.VIEW_SETTINGS)
		payload = await self.client.get("/settings/kwh-rate")
		value = payload.get("value")
		if value is None:
			logger.info(f"No kWh rate configured, using default {settings.DEFAULT_KWH_RATE}")
			return settings.DEFAULT_KWH_RATE
		try:
			return validate_rate(value)
		except ValidationError as e:
			logger.error(f"Backend returned unusable kWh rate {value!r}")
			raise BackendUnavailableError(f"Billing service returned an invalid kWh rate: {value}") from e

	async def update_kwh_rate(self, value: Any, password: str) -> KwhRate:
		"""
		Change the global rate. The admin re-enters their password for this
		write; a mismatch is an authorization failure and keeps the session.
		"""
		user = self.session.require(Capability.UPDATE_SETTINGS)
		rate = validate_rate(value)
		if not password:
			raise ValidationError("Password is required to change the rate")

		payload = await self.client.put(
			"/settings/kwh-rate",
			json={"value": rate, "password": password},
			step_up=True,
		)
		logger.info(f"kWh rate changed to {rate} by {user.phone_number}")
		return KwhRate(key=payload.get("key") or "kwh_rate", value=validate_rate(payload.get("value", rate)))
