import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from app.auth.dependencies import get_backend_client, require_route
from app.client.backend import BackendClient
from app.schemas.meter import MeterCreate, MeterUpdate
from app.services.meter_service import MeterService, active_meter_count

router = APIRouter(dependencies=[Depends(require_route("/meters"))])
logger = logging.getLogger(__name__)


@router.get("/")
async def list_meters(
        landlord_id: Optional[str] = None,
        client: BackendClient = Depends(get_backend_client)
):
    """List meters, optionally for one landlord"""
    meters = await MeterService(client).list_meters(landlord_id=landlord_id)
    return {
        "meters": meters,
        "total": len(meters),
        "active": active_meter_count(meters),
    }


@router.get("/{meter_id}")
async def get_meter(
        meter_id: str,
        client: BackendClient = Depends(get_backend_client)
):
    return {"meter": await MeterService(client).get_meter(meter_id)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_meter(
        body: MeterCreate,
        client: BackendClient = Depends(get_backend_client)
):
    """Create a meter for a landlord, with an optional per-meter kWh rate"""
    return {"meter": await MeterService(client).create_meter(body)}


@router.put("/{meter_id}")
async def update_meter(
        meter_id: str,
        body: MeterUpdate,
        client: BackendClient = Depends(get_backend_client)
):
    """Update a meter. Meter number and landlord are immutable."""
    return {"meter": await MeterService(client).update_meter(meter_id, body)}
