import logging
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.auth.permissions import Capability, quick_actions
from app.client.backend import BackendClient
from app.core.concurrency import Settled, gather_settled
from app.core.exceptions import AuthenticationError
from app.models.user import UserRole
from app.monitoring.metrics import dashboard_source_failures
from app.schemas.auth import UserResponse
from app.schemas.bill import BillingSummary
from app.services.billing_service import BillingService
from app.services.meter_service import MeterService
from app.services.reading_service import ReadingService, readings_today, recorded_by
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


class DashboardSummary(BaseModel):
	role: UserRole
	display_name: str
	total_users: int = 0
	total_meters: int = 0
	total_readings: int = 0
	total_bills: int = 0
	paid_bills: int = 0
	pending_bills: int = 0
	total_amount: float = 0.0
	my_readings: int = 0
	today_readings: int = 0
	billing_summary: Optional[BillingSummary] = None
	quick_actions: List[Dict[str, str]] = Field(default_factory=list)
	failed_sources: List[str] = Field(default_factory=list)


class SummaryService:
	"""
	Per-role dashboard counts.

	Every source is fetched concurrently and failures are isolated: a
	failed source leaves its counts at zero instead of failing the page.
	An authentication failure still propagates once everything settled.
	"""

	def __init__(self, client: BackendClient):
		self.client = client
		self.session = client.session

	async def load(self, today: Optional[date] = None) -> DashboardSummary:
		user = self.session.require(Capability.VIEW_DASHBOARD)

		results = await gather_settled(**self._sources(user))
		for name, result in results.items():
			if isinstance(result.error, AuthenticationError):
				raise result.error
			if not result.ok:
				dashboard_source_failures.labels(source=name).inc()

		summary = aggregate(user, results, today=today)
		if summary.failed_sources:
			logger.warning(f"Dashboard for {user.phone_number} degraded, failed: {summary.failed_sources}")
		return summary

	def _sources(self, user: UserResponse) -> dict:
		meters = MeterService(self.client)
		billing = BillingService(self.client)
		readings = ReadingService(self.client)

		if user.role == UserRole.ADMIN:
			return {
				"meters": meters.list_meters(),
				"users": UserService(self.client).list_users(),
				"summary": billing.get_summary(),
				"readings": readings.list_readings(),
			}
		if user.role == UserRole.LANDLORD:
			return {
				"meters": meters.list_meters(landlord_id=user.id),
				"summary": billing.get_summary(),
			}
		return {
			"readings": readings.list_readings(),
			"meters": meters.list_meters(),
		}


def aggregate(user: UserResponse, results: Dict[str, Settled], today: Optional[date] = None) -> DashboardSummary:
	"""Merge whichever sources succeeded into the role's summary"""
	summary = DashboardSummary(
		role=user.role,
		display_name=user.display_name,
		quick_actions=quick_actions(user),
		failed_sources=sorted(name for name, r in results.items() if not r.ok),
	)

	meters = results.get("meters")
	if meters is not None and meters.ok:
		summary.total_meters = len(meters.value)

	users = results.get("users")
	if users is not None and users.ok:
		summary.total_users = len(users.value)

	billing = results.get("summary")
	if billing is not None and billing.ok:
		summary.billing_summary = billing.value
		summary.total_bills = billing.value.total_bills
		summary.paid_bills = billing.value.paid_bills
		summary.pending_bills = billing.value.pending_bills
		summary.total_amount = billing.value.total_amount

	readings = results.get("readings")
	if readings is not None and readings.ok:
		page = readings.value
		summary.total_readings = page.total
		if user.role == UserRole.TECHNICIAN:
			# the backend already scopes technicians to their own readings
			own = recorded_by(page.data, user) if any(r.technician for r in page.data) else page.data
			summary.my_readings = page.total if len(own) == len(page.data) else len(own)
			summary.today_readings = readings_today(own, today)

	return summary
