from typing import Any, Optional

import httpx
from fastapi import status


class DashboardError(Exception):
	"""Base error surfaced to the dashboard user"""

	status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
	default_message: str = "Unexpected error"

	def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
		self.message = message or self.default_message
		if status_code is not None:
			self.status_code = status_code
		super().__init__(self.message)


class ValidationError(DashboardError):
	status_code = status.HTTP_400_BAD_REQUEST
	default_message = "Invalid input"


class AuthenticationError(DashboardError):
	"""Missing, invalid or expired credential. Forces a logout."""

	status_code = status.HTTP_401_UNAUTHORIZED
	default_message = "Session expired, please log in again"


class InvalidCredentialsError(AuthenticationError):
	"""Login attempt rejected. There is no session to tear down."""

	default_message = "Invalid phone number or password"


class AuthorizationError(DashboardError):
	status_code = status.HTTP_403_FORBIDDEN
	default_message = "You do not have permission to perform this action"


class NotFoundError(DashboardError):
	status_code = status.HTTP_404_NOT_FOUND
	default_message = "Not found"


class ConflictError(DashboardError):
	status_code = status.HTTP_409_CONFLICT
	default_message = "Conflict"


class BackendUnavailableError(DashboardError):
	status_code = status.HTTP_502_BAD_GATEWAY
	default_message = "Billing service unavailable"


_STATUS_ERRORS = {
	status.HTTP_400_BAD_REQUEST: ValidationError,
	status.HTTP_401_UNAUTHORIZED: AuthenticationError,
	status.HTTP_403_FORBIDDEN: AuthorizationError,
	status.HTTP_404_NOT_FOUND: NotFoundError,
	status.HTTP_409_CONFLICT: ConflictError,
	422: ValidationError,
}


def extract_message(payload: Any) -> Optional[str]:
	"""Pull the human readable message out of a backend error body"""
	if isinstance(payload, str):
		return payload or None
	if not isinstance(payload, dict):
		return None

	for key in ("error", "message", "detail"):
		value = payload.get(key)
		if isinstance(value, str) and value:
			return value

	errors = payload.get("errors")
	if isinstance(errors, list) and errors:
		first = errors[0]
		if isinstance(first, dict) and first.get("message"):
			return first["message"]
	return None


def error_from_response(response: httpx.Response) -> DashboardError:
	"""Map a failed backend response onto the error taxonomy"""
	try:
		payload = response.json()
	except ValueError:
		payload = response.text

	message = extract_message(payload)
	error_cls = _STATUS_ERRORS.get(response.status_code, BackendUnavailableError)
	if error_cls is BackendUnavailableError:
		return BackendUnavailableError(message)
	return error_cls(message)
