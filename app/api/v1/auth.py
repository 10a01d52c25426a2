import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import get_backend_client, get_current_user, get_session_context
from app.auth.permissions import visible_routes
from app.auth.session import SessionContext
from app.client.backend import BackendClient
from app.schemas.auth import LoginRequest, UserResponse
from app.services.auth_service import AuthService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/login")
async def login_entry(session: SessionContext = Depends(get_session_context)):
	"""Login entry point; every expired session is redirected here"""
	return {
		"authenticated": session.is_authenticated,
		"message": "Please log in",
		"fields": ["phoneNumber", "password"],
	}


@router.post("/login")
async def login(
		request: LoginRequest,
		client: BackendClient = Depends(get_backend_client)
):
	"""Login against the billing backend and open a dashboard session."""
	user = await AuthService(client).login(request.phone_number, request.password)
	return {
		"user": user,
		"routes": visible_routes(user),
	}


@router.post("/logout")
async def logout(client: BackendClient = Depends(get_backend_client)):
	"""Logout; always succeeds"""
	AuthService(client).logout()
	return {"message": "Successfully logged out"}


@router.get("/me")
async def get_current_user_info(current_user: UserResponse = Depends(get_current_user)):
	"""Get current user information"""
	return {
		"user": current_user,
		"routes": visible_routes(current_user),
	}
