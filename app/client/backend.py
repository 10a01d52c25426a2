import logging
import time
from typing import Any, Dict, Optional, Tuple

import httpx

from app.auth.session import SessionContext
from app.config import settings
from app.core.exceptions import (
	AuthenticationError,
	AuthorizationError,
	BackendUnavailableError,
	InvalidCredentialsError,
	error_from_response,
)
from app.middleware.request_id import current_request_id
from app.monitoring.metrics import backend_requests, backend_request_duration

logger = logging.getLogger(__name__)

# cheap authenticated read used to tell a wrong step-up password from a dead token
TOKEN_CHECK_PATH = "/settings/kwh-rate"


class BackendClient:
	"""
	HTTP client for the billing backend bound to one SessionContext.

	Attaches the bearer credential to every call and applies the global
	rule: any 401 tears the session down before the error propagates.
	GET responses can be cached per resource tag until a mutation
	invalidates that tag.
	"""

	def __init__(
			self,
			session: SessionContext,
			base_url: Optional[str] = None,
			transport: Optional[httpx.AsyncBaseTransport] = None,
			timeout: Optional[float] = None,
	):
		self.session = session
		self._cache: Dict[Tuple[str, str, Tuple], Any] = {}
		self._client = httpx.AsyncClient(
			base_url=base_url or settings.BACKEND_API_URL,
			timeout=timeout or settings.BACKEND_TIMEOUT_SECONDS,
			transport=transport,
			headers={"Accept": "application/json"},
			event_hooks={"request": [self._attach_headers]},
		)

	async def __aenter__(self) -> "BackendClient":
		return self

	async def __aexit__(self, *exc_info) -> None:
		await self.aclose()

	async def aclose(self) -> None:
		await self._client.aclose()

	async def _attach_headers(self, request: httpx.Request) -> None:
		token = self.session.token
		if token:
			request.headers["Authorization"] = f"Bearer {token}"
		request_id = current_request_id()
		if request_id:
			request.headers["X-Request-ID"] = request_id

	async def request(
			self,
			method: str,
			path: str,
			*,
			params: Optional[Dict[str, Any]] = None,
			json: Any = None,
			data: Optional[Dict[str, Any]] = None,
			files: Optional[Dict[str, Any]] = None,
			login: bool = False,
			step_up: bool = False,
	) -> Any:
		"""
		Send one request and return the decoded JSON body.

		``login`` marks the credential exchange itself: a 401 there means
		bad credentials, not an expired session. ``step_up`` marks calls
		that carry a re-entered password: a 401 there is a permission
		failure and the session survives, unless the token itself no
		longer works.
		"""
		if params:
			params = {k: v for k, v in params.items() if v is not None and v != ""}

		start_time = time.time()
		try:
			response = await self._client.request(
				method, path, params=params, json=json, data=data, files=files
			)
		except httpx.HTTPError as e:
			backend_requests.labels(method=method, status="error").inc()
			logger.error(f"Backend {method} {path} failed: {e!r}")
			raise BackendUnavailableError() from e
		finally:
			backend_request_duration.labels(method=method).observe(time.time() - start_time)

		backend_requests.labels(method=method, status=response.status_code).inc()
		logger.debug(f"Backend {method} {path} -> {response.status_code}")

		if response.is_success:
			if not response.content:
				return {}
			try:
				return response.json()
			except ValueError as e:
				logger.error(f"Backend {method} {path} returned a non JSON body")
				raise BackendUnavailableError() from e

		error = error_from_response(response)
		if isinstance(error, AuthenticationError):
			server_message = error.message if error.message != error.default_message else None
			if login:
				raise InvalidCredentialsError(server_message)
			if step_up and await self._token_accepted():
				raise AuthorizationError(server_message or "Incorrect password")
			self.session.teardown(f"{method} {path} returned 401")
			raise error

		logger.info(f"Backend {method} {path} rejected ({response.status_code}): {error.message}")
		raise error

	async def _token_accepted(self) -> bool:
		"""Whether the backend still accepts the session token"""
		try:
			response = await self._client.get(TOKEN_CHECK_PATH)
		except httpx.HTTPError as e:
			raise BackendUnavailableError() from e
		return response.status_code != 401

	async def get(self, path: str, params: Optional[Dict[str, Any]] = None, cache_tag: Optional[str] = None) -> Any:
		if cache_tag is None:
			return await self.request("GET", path, params=params)

		key = (cache_tag, path, tuple(sorted((params or {}).items())))
		if key not in self._cache:
			self._cache[key] = await self.request("GET", path, params=params)
		return self._cache[key]

	async def post(self, path: str, **kwargs) -> Any:
		return await self.request("POST", path, **kwargs)

	async def put(self, path: str, **kwargs) -> Any:
		return await self.request("PUT", path, **kwargs)

	async def patch(self, path: str, **kwargs) -> Any:
		return await self.request("PATCH", path, **kwargs)

	async def delete(self, path: str, **kwargs) -> Any:
		return await self.request("DELETE", path, **kwargs)

	def invalidate(self, *tags: str) -> None:
		"""Forget cached GET responses for the given resource tags"""
		for key in [k for k in self._cache if k[0] in tags]:
			del self._cache[key]
