from fastapi import APIRouter, Depends

from app.auth.dependencies import get_backend_client, require_route
from app.client.backend import BackendClient
from app.services.summary_service import DashboardSummary, SummaryService

router = APIRouter(dependencies=[Depends(require_route("/dashboard"))])


@router.get("/", response_model=DashboardSummary)
async def dashboard(client: BackendClient = Depends(get_backend_client)):
	"""Role specific summary cards and quick actions"""
	return await SummaryService(client).load()
