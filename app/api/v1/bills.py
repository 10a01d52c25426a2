import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from app.auth.dependencies import get_backend_client, require_capability, require_route
from app.auth.permissions import Capability
from app.client.backend import BackendClient
from app.models.bill import BillStatus
from app.schemas.bill import PaymentDetails
from app.services.billing_service import BillingService

router = APIRouter(dependencies=[Depends(require_route("/bills"))])
logger = logging.getLogger(__name__)


@router.get("/")
async def list_bills(
		status: Optional[BillStatus] = None,
		page: int = Query(1, ge=1),
		client: BackendClient = Depends(get_backend_client)
):
	"""Bills with their summary; overdue flags are computed per listing"""
	return await BillingService(client).bills_page(status=status, page=page)


@router.get("/{bill_id}")
async def get_bill(
		bill_id: str,
		client: BackendClient = Depends(get_backend_client)
):
	return {"bill": await BillingService(client).get_bill(bill_id)}


@router.patch("/{bill_id}/pay", dependencies=[Depends(require_capability(Capability.MARK_BILL_PAID))])
async def mark_bill_paid(
		bill_id: str,
		payment: Optional[PaymentDetails] = Body(None),
		client: BackendClient = Depends(get_backend_client)
):
	bill = await BillingService(client).mark_paid(bill_id, payment)
	return {"message": "Bill marked as paid", "bill": bill}


@router.post("/update-overdue", dependencies=[Depends(require_capability(Capability.UPDATE_OVERDUE))])
async def update_overdue(client: BackendClient = Depends(get_backend_client)):
	updated = await BillingService(client).update_overdue()
	return {
		"message": f"Updated {updated} overdue bills successfully!",
		"updatedCount": updated,
	}
