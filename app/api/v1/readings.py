import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from app.auth.dependencies import get_backend_client, require_route
from app.client.backend import BackendClient
from app.config import settings
from app.schemas.reading import PhotoUpload, ReadingResult
from app.services.reading_service import ReadingService

router = APIRouter(dependencies=[Depends(require_route("/readings"))])
logger = logging.getLogger(__name__)


@router.get("/")
async def list_readings(
		page: int = Query(1, ge=1),
		meter_id: Optional[str] = None,
		client: BackendClient = Depends(get_backend_client)
):
	"""Readings page: readings, meters for the form and today's count"""
	return await ReadingService(client).readings_page(meter_id=meter_id, page=page)


@router.get("/estimate")
async def estimate_reading(
		meter_id: str = Query("", alias="meterId"),
		reading: str = Query(""),
		client: BackendClient = Depends(get_backend_client)
):
	"""Advisory bill preview for a reading that has not been submitted yet"""
	return await ReadingService(client).estimate(meter_id, reading)


@router.get("/{reading_id}")
async def get_reading(
		reading_id: str,
		client: BackendClient = Depends(get_backend_client)
):
	return {"reading": await ReadingService(client).get_reading(reading_id)}


@router.post("/", response_model=ReadingResult, status_code=status.HTTP_201_CREATED)
async def create_reading(
		meter_id: str = Form("", alias="meterId"),
		reading: str = Form("", alias="reading"),
		previous_reading: Optional[float] = Form(None, alias="previousReading"),
		photo: Optional[UploadFile] = File(None),
		client: BackendClient = Depends(get_backend_client)
):
	"""Record a reading with its photo; a bill comes back when units were consumed"""
	upload = None
	if photo is not None:
		# one byte past the cap is enough to reject it
		content = await photo.read(settings.MAX_PHOTO_SIZE + 1)
		upload = PhotoUpload(
			filename=photo.filename or "reading.jpg",
			content=content,
			content_type=photo.content_type or "application/octet-stream",
		)

	return await ReadingService(client).record_reading(
		meter_id, reading, upload, previous_reading=previous_reading
	)
