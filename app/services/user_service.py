import logging
from typing import List, Optional

from app.auth.permissions import Capability
from app.client.backend import BackendClient
from app.core.exceptions import ValidationError
from app.models.user import UserRole
from app.schemas.auth import (
	CreateUserRequest,
	CreateUserResponse,
	ResetPasswordResponse,
	UpdateUserRequest,
	UserResponse,
)

logger = logging.getLogger(__name__)

USERS_CACHE = "users"


class UserService:
	"""Admin user management. Cascades on delete belong to the backend."""

	def __init__(self, client: BackendClient):
		self.client = client
		self.session = client.session

	async def list_users(self, role: Optional[UserRole] = None) -> List[UserResponse]:
		self.session.require(Capability.MANAGE_USERS)
		payload = await self.client.get("/auth/users", cache_tag=USERS_CACHE)
		users = [UserResponse.model_validate(u) for u in payload.get("users", [])]
		if role is not None:
			users = [u for u in users if u.role == role]
		return users

	async def list_landlords(self) -> List[UserResponse]:
		return await self.list_users(role=UserRole.LANDLORD)

	async def create_user(self, data: CreateUserRequest) -> CreateUserResponse:
		"""Create a user; the backend generates a password when none is given"""
		self.session.require(Capability.MANAGE_USERS)
		payload = await self.client.post(
			"/auth/users",
			json=data.model_dump(by_alias=True, exclude_none=True, mode="json"),
		)
		self.client.invalidate(USERS_CACHE)

		created = CreateUserResponse.model_validate(payload)
		logger.info(f"User created: {created.user.phone_number} ({created.user.role.value})")
		return created

	async def update_user(self, user_id: str, data: UpdateUserRequest) -> UserResponse:
		"""Only name and role can change"""
		self.session.require(Capability.MANAGE_USERS)
		body = data.model_dump(by_alias=True, exclude_unset=True, mode="json")
		if not body:
			raise ValidationError("Nothing to update")

		payload = await self.client.put(f"/auth/users/{user_id}", json=body)
		self.client.invalidate(USERS_CACHE)
		return UserResponse.model_validate(payload["user"])

	async def delete_user(self, user_id: str) -> None:
		current = self.session.require(Capability.MANAGE_USERS)
		if current.id == user_id:
			raise ValidationError("An administrator cannot delete their own account")

		await self.client.delete(f"/auth/users/{user_id}")
		self.client.invalidate(USERS_CACHE)
		logger.info(f"User deleted (ID: {user_id})")

	async def reset_password(self, user_id: str) -> str:
		"""Returns the newly generated password to hand over to the user"""
		self.session.require(Capability.MANAGE_USERS)
		payload = await self.client.post(f"/auth/users/{user_id}/reset-password")
		return ResetPasswordResponse.model_validate(payload).new_password
