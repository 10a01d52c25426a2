import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from app.client.backend import BackendClient
from app.core.exceptions import ValidationError
from app.schemas.auth import LoginRequest, LoginResponse, UserResponse

logger = logging.getLogger(__name__)


class AuthService:
	"""Login and logout against the backend for one SessionContext"""

	def __init__(self, client: BackendClient):
		self.client = client
		self.session = client.session

	async def login(self, identifier: str, secret: str) -> UserResponse:
		"""Exchange phone number and password for a session"""
		try:
			credentials = LoginRequest(phone_number=(identifier or "").strip(), password=secret or "")
		except PydanticValidationError:
			raise ValidationError("Phone number and password are required")

		# a new login always replaces whatever session was there
		self.session.logout()
		payload = await self.client.post(
			"/auth/login",
			json=credentials.model_dump(by_alias=True),
			login=True,
		)
		response = LoginResponse.model_validate(payload)
		self.session.establish(response.user, response.token)

		logger.info(f"User logged in: {response.user.phone_number}")
		return response.user

	def logout(self) -> None:
		user = self.session.current_user()
		self.session.logout()
		if user:
			logger.info(f"User logged out: {user.phone_number}")

	def current_user(self) -> Optional[UserResponse]:
		return self.session.current_user()
