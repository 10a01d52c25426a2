from typing import AsyncGenerator, Iterable, Optional

import httpx
from fastapi import Depends, Request

from app.auth.permissions import Capability, ROUTE_ROLES, can, has_role
from app.auth.session import SessionContext
from app.client.backend import BackendClient
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.models.user import UserRole
from app.schemas.auth import UserResponse


def get_session_context(request: Request) -> SessionContext:
	"""Session bound to the signed session cookie of this request"""
	return SessionContext(request.session)


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
	"""Transport used to reach the backend; overridden in tests"""
	return None


async def get_backend_client(
		session: SessionContext = Depends(get_session_context),
		transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> AsyncGenerator[BackendClient, None]:
	async with BackendClient(session, transport=transport) as client:
		yield client


async def get_current_user(session: SessionContext = Depends(get_session_context)) -> UserResponse:
	"""Get current authenticated user"""
	user = session.current_user()
	if user is None:
		raise AuthenticationError("Login required")
	return user


def require_role(roles: Iterable[UserRole]):
	"""Role-based access control dependency"""
	allowed = frozenset(roles)

	async def role_checker(current_user: UserResponse = Depends(get_current_user)) -> UserResponse:
		if not has_role(current_user, allowed):
			raise AuthorizationError(
				f"Insufficient permissions. Required roles: {sorted(r.value for r in allowed)}"
			)
		return current_user
	return role_checker


def require_route(route: str):
	"""Gate a dashboard page with the central route table"""
	return require_role(ROUTE_ROLES[route])


def require_capability(capability: Capability):
	async def capability_checker(current_user: UserResponse = Depends(get_current_user)) -> UserResponse:
		if not can(current_user, capability):
			raise AuthorizationError()
		return current_user
	return capability_checker
