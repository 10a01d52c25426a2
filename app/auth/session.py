import logging
from typing import Any, MutableMapping, Optional

from app.auth.permissions import Capability, can
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.monitoring.metrics import session_teardowns
from app.schemas.auth import UserResponse

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
USER_KEY = "user_data"


class SessionContext:
	"""
	The one authenticated identity of a client context.

	State lives in an injected mapping: the signed cookie session of the
	dashboard request, or a plain dict for scripts and tests. Created by
	login, torn down by logout or by any authentication failure.
	"""

	def __init__(self, store: Optional[MutableMapping[str, Any]] = None):
		self._store = store if store is not None else {}

	@property
	def token(self) -> Optional[str]:
		return self._store.get(TOKEN_KEY)

	@property
	def is_authenticated(self) -> bool:
		return bool(self.token) and self._store.get(USER_KEY) is not None

	def establish(self, user: UserResponse, token: str) -> None:
		self._store[TOKEN_KEY] = token
		self._store[USER_KEY] = user.model_dump(mode="json", by_alias=True)
		logger.info(f"Session established for {user.phone_number} ({user.role.value})")

	def current_user(self) -> Optional[UserResponse]:
		if not self.token:
			return None
		data = self._store.get(USER_KEY)
		if data is None:
			return None
		return UserResponse.model_validate(data)

	def logout(self) -> None:
		"""Clear the session. Never fails."""
		self._store.pop(TOKEN_KEY, None)
		self._store.pop(USER_KEY, None)

	def teardown(self, reason: str) -> bool:
		"""
		Drop the credential after an authentication failure.

		Returns False when the session was already gone so that concurrent
		requests failing on the same expired token report it only once.
		"""
		if TOKEN_KEY not in self._store and USER_KEY not in self._store:
			return False
		self.logout()
		session_teardowns.inc()
		logger.warning(f"Session torn down: {reason}")
		return True

	def require(self, capability: Capability) -> UserResponse:
		user = self.current_user()
		if user is None:
			raise AuthenticationError("Login required")
		if not can(user, capability):
			logger.warning(f"Denied {capability.value} for role {user.role.value}")
			raise AuthorizationError()
		return user
