from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
import logging
import json
import time
from datetime import datetime, timezone

from app.auth.session import USER_KEY
from app.middleware.request_id import get_request_id

logger = logging.getLogger(__name__)

# health probes and metric scrapes are not logged
QUIET_PATHS = {"/health", "/internal/metrics"}
SLOW_REQUEST_SECONDS = 1.0


class LoggingMiddleware(BaseHTTPMiddleware):
	"""One JSON line per dashboard request, tagged with the session user"""

	async def dispatch(self, request: Request, call_next):
		start_time = time.time()

		response = await call_next(request)
		if request.url.path in QUIET_PATHS:
			return response

		duration = time.time() - start_time

		log_dict = {
			"timestamp": datetime.now(timezone.utc).isoformat(),
			"level": "INFO",
			"request_id": get_request_id(),
			"method": request.method,
			"path": request.url.path,
			"query_params": dict(request.query_params),
			"client_host": request.client.host if request.client else None,
			"user_agent": request.headers.get("user-agent"),
			"status_code": response.status_code,
			"duration_seconds": round(duration, 3),
		}

		# Add user info if the session middleware ran
		if "session" in request.scope:
			user = request.session.get(USER_KEY)
			if user:
				log_dict["user_id"] = user.get("id")
				log_dict["role"] = user.get("role")

		if response.status_code >= 400:
			log_dict["level"] = "WARNING" if response.status_code < 500 else "ERROR"

		# Log as JSON for structured logging systems
		logger.info(json.dumps(log_dict))

		if duration > SLOW_REQUEST_SECONDS:
			logger.warning(f"Slow dashboard request: {request.method} {request.url.path} took {duration:.2f}s")

		return response
