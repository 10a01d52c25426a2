from typing import Any

from fastapi import APIRouter, Depends

from app.auth.dependencies import get_backend_client, require_capability, require_route
from app.auth.permissions import Capability
from app.client.backend import BackendClient
from app.schemas.base import CamelModel
from app.services.settings_service import SettingsService

router = APIRouter(dependencies=[Depends(require_route("/settings"))])


class UpdateKwhRateRequest(CamelModel):
	value: Any = None
	password: str = ""


@router.get("/kwh-rate")
async def get_kwh_rate(client: BackendClient = Depends(get_backend_client)):
	return {"key": "kwh_rate", "value": await SettingsService(client).get_kwh_rate()}


@router.put("/kwh-rate", dependencies=[Depends(require_capability(Capability.UPDATE_SETTINGS))])
async def update_kwh_rate(
		body: UpdateKwhRateRequest,
		client: BackendClient = Depends(get_backend_client)
):
	"""Change the global rate; the admin must re-enter their password"""
	rate = await SettingsService(client).update_kwh_rate(body.value, body.password)
	return {"message": "kWh rate updated", "key": rate.key, "value": rate.value}
