from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter
from fastapi.responses import Response

router = APIRouter()

# Define metrics
request_count = Counter(
	'http_requests_total',
	'Total HTTP requests',
	['method', 'endpoint', 'status']
)

request_duration = Histogram(
	'http_request_duration_seconds',
	'HTTP request duration',
	['method', 'endpoint'],
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

active_requests = Gauge(
	'http_requests_active',
	'Number of active HTTP requests'
)

backend_requests = Counter(
	'backend_requests_total',
	'Calls made to the billing backend',
	['method', 'status']
)

backend_request_duration = Histogram(
	'backend_request_duration_seconds',
	'Billing backend call duration',
	['method'],
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0)
)

session_teardowns = Counter(
	'session_teardowns_total',
	'Sessions cleared after an authentication failure'
)

dashboard_source_failures = Counter(
	'dashboard_source_failures_total',
	'Dashboard data sources that failed while others succeeded',
	['source']
)


@router.get("/metrics")
async def metrics():
	"""Prometheus metrics endpoint"""
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
