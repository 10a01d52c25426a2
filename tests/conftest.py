import itertools
import json
import re
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from app.auth.dependencies import get_http_transport
from app.auth.session import SessionContext
from app.client.backend import BackendClient
from app.main import app
from app.services.auth_service import AuthService

BACKEND_URL = "http://backend.test/api"

ADMIN_PHONE = "0700000001"
TECHNICIAN_PHONE = "0700000002"
LANDLORD_PHONE = "0700000003"
PASSWORDS = {
	ADMIN_PHONE: "adminpass123",
	TECHNICIAN_PHONE: "techpass123",
	LANDLORD_PHONE: "landlordpass123",
}


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
	return moment.isoformat().replace("+00:00", "Z")


class FakeBackend:
	"""
	In-memory billing backend behind httpx.MockTransport.

	Owns the rules the dashboard only displays: consumption, bill
	creation, overdue reclassification and step-up password checks.
	"""

	def __init__(self):
		self._ids = itertools.count(1)
		self.rate = 25.0
		self.requests: List[httpx.Request] = []
		self.failures: Dict[str, int] = {}
		self.users: Dict[str, dict] = {}
		self.passwords: Dict[str, str] = {}
		self.tokens: Dict[str, str] = {}
		self.meters: Dict[str, dict] = {}
		self.readings: List[dict] = []
		self.bills: Dict[str, dict] = {}

		for phone, role, name in (
				(ADMIN_PHONE, "ADMIN", "Admin User"),
				(TECHNICIAN_PHONE, "TECHNICIAN", "Tech User"),
				(LANDLORD_PHONE, "LANDLORD", None),
		):
			self.add_user(phone, role, name, PASSWORDS[phone])

		self.meter = self.add_meter("MTR-001", "PLOT-7", self.user_by_phone(LANDLORD_PHONE)["id"], initial_reading=800)

	# ---- seeding helpers -------------------------------------------------

	def next_id(self, prefix: str) -> str:
		return f"{prefix}-{next(self._ids)}"

	def add_user(self, phone: str, role: str, name: Optional[str], password: str) -> dict:
		user = {
			"id": self.next_id("user"),
			"phoneNumber": phone,
			"role": role,
			"name": name,
			"createdAt": _iso(_now()),
		}
		self.users[user["id"]] = user
		self.passwords[user["id"]] = password
		return user

	def user_by_phone(self, phone: str) -> dict:
		return next(u for u in self.users.values() if u["phoneNumber"] == phone)

	def add_meter(self, number: str, plot: str, landlord_id: str, initial_reading: Optional[float] = None,
				  kwh_rate: Optional[float] = None, is_active: bool = True) -> dict:
		landlord = self.users[landlord_id]
		meter = {
			"id": self.next_id("meter"),
			"meterNumber": number,
			"plotNumber": plot,
			"isActive": is_active,
			"kwhRate": kwh_rate,
			"createdAt": _iso(_now()),
			"landlord": {k: landlord[k] for k in ("id", "phoneNumber", "name", "role")},
			"_count": {"readings": 0, "bills": 0},
		}
		self.meters[meter["id"]] = meter
		if initial_reading is not None:
			self._add_reading(meter, initial_reading, None, self.user_by_phone(TECHNICIAN_PHONE), _now() - timedelta(days=30))
		return meter

	def add_bill(self, meter: dict, units: float, due_date: datetime, status: str = "PENDING") -> dict:
		bill = {
			"id": self.next_id("bill"),
			"billNumber": f"BILL-{len(self.bills) + 1:05d}",
			"unitsConsumed": units,
			"ratePerUnit": self.rate,
			"totalAmount": round(units * self.rate, 2),
			"billDate": _iso(_now()),
			"dueDate": _iso(due_date),
			"status": status,
			"paidDate": _iso(_now()) if status == "PAID" else None,
			"createdAt": _iso(_now()),
			"meter": {"meterNumber": meter["meterNumber"], "plotNumber": meter["plotNumber"]},
			"landlord": {"name": meter["landlord"]["name"], "phoneNumber": meter["landlord"]["phoneNumber"]},
			"landlordId": meter["landlord"]["id"],
		}
		self.bills[bill["id"]] = bill
		meter["_count"]["bills"] += 1
		return bill

	def _add_reading(self, meter: dict, value: float, previous: Optional[float], technician: dict,
					 when: Optional[datetime] = None) -> dict:
		reading = {
			"id": self.next_id("reading"),
			"reading": value,
			"previousReading": previous,
			"unitsConsumed": value - previous if previous is not None else None,
			"readingDate": _iso(when or _now()),
			"createdAt": _iso(when or _now()),
			"photoPath": "uploads/readings/photo.jpg",
			"meterId": meter["id"],
			"meter": {
				"id": meter["id"],
				"meterNumber": meter["meterNumber"],
				"plotNumber": meter["plotNumber"],
				"landlord": {"name": meter["landlord"]["name"], "phoneNumber": meter["landlord"]["phoneNumber"]},
			},
			"technician": {"name": technician["name"], "phoneNumber": technician["phoneNumber"]},
		}
		self.readings.append(reading)
		meter["_count"]["readings"] += 1
		return reading

	def calls(self, method: str, path: str) -> int:
		return sum(1 for r in self.requests if r.method == method and r.url.path == f"/api{path}")

	# ---- transport -------------------------------------------------------

	def handle(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		path = request.url.path[len("/api"):]

		if path in self.failures:
			return httpx.Response(self.failures[path], json={"error": "Simulated failure"})

		if path == "/auth/login" and request.method == "POST":
			return self._login(json.loads(request.content))

		user = self._authenticate(request)
		if user is None:
			return httpx.Response(401, json={"error": "Invalid or expired token"})

		for method, pattern, handler in self._routes():
			match = re.fullmatch(pattern, path)
			if match and request.method == method:
				return handler(request, user, *match.groups())
		return httpx.Response(404, json={"error": "Route not found"})

	def _routes(self):
		return [
			("GET", r"/auth/users", self._list_users),
			("POST", r"/auth/users", self._create_user),
			("PUT", r"/auth/users/([^/]+)", self._update_user),
			("DELETE", r"/auth/users/([^/]+)", self._delete_user),
			("POST", r"/auth/users/([^/]+)/reset-password", self._reset_password),
			("GET", r"/meters", self._list_meters),
			("POST", r"/meters", self._create_meter),
			("GET", r"/meters/([^/]+)", self._get_meter),
			("PUT", r"/meters/([^/]+)", self._update_meter),
			("GET", r"/readings", self._list_readings),
			("POST", r"/readings", self._create_reading),
			("GET", r"/bills", self._list_bills),
			("GET", r"/bills/summary", self._summary),
			("POST", r"/bills/update-overdue", self._update_overdue),
			("PATCH", r"/bills/([^/]+)/pay", self._pay),
			("GET", r"/bills/([^/]+)", self._get_bill),
			("GET", r"/settings/kwh-rate", self._get_rate),
			("PUT", r"/settings/kwh-rate", self._put_rate),
		]

	def _authenticate(self, request: httpx.Request) -> Optional[dict]:
		header = request.headers.get("Authorization", "")
		if not header.startswith("Bearer "):
			return None
		user_id = self.tokens.get(header[len("Bearer "):])
		return self.users.get(user_id) if user_id else None

	def expire_tokens(self) -> None:
		self.tokens.clear()

	@staticmethod
	def _forbidden() -> httpx.Response:
		return httpx.Response(403, json={"error": "Insufficient permissions"})

	def _login(self, body: dict) -> httpx.Response:
		user = next((u for u in self.users.values() if u["phoneNumber"] == body.get("phoneNumber")), None)
		if user is None or self.passwords[user["id"]] != body.get("password"):
			return httpx.Response(401, json={"error": "Invalid credentials"})
		token = f"token-{user['id']}-{next(self._ids)}"
		self.tokens[token] = user["id"]
		return httpx.Response(200, json={"message": "Login successful", "user": user, "token": token})

	def _list_users(self, request, user):
		if user["role"] != "ADMIN":
			return self._forbidden()
		return httpx.Response(200, json={"users": list(self.users.values())})

	def _create_user(self, request, user):
		if user["role"] != "ADMIN":
			return self._forbidden()
		body = json.loads(request.content)
		if any(u["phoneNumber"] == body["phoneNumber"] for u in self.users.values()):
			return httpx.Response(409, json={"error": "User with this phone number already exists"})
		password = body.get("password")
		created = self.add_user(body["phoneNumber"], body["role"], body.get("name"), password or "gen-pass-123")
		payload = {"message": "User created successfully", "user": created}
		if not password:
			payload["generatedPassword"] = "gen-pass-123"
		return httpx.Response(201, json=payload)

	def _update_user(self, request, user, user_id):
		target = self.users.get(user_id)
		if target is None:
			return httpx.Response(404, json={"error": "User not found"})
		target.update(json.loads(request.content))
		return httpx.Response(200, json={"message": "User updated", "user": target})

	def _delete_user(self, request, user, user_id):
		if self.users.pop(user_id, None) is None:
			return httpx.Response(404, json={"error": "User not found"})
		return httpx.Response(200, json={"message": "User deleted"})

	def _reset_password(self, request, user, user_id):
		self.passwords[user_id] = "reset-456"
		return httpx.Response(200, json={"message": "Password reset", "newPassword": "reset-456", "user": self.users[user_id]})

	def _list_meters(self, request, user):
		params = parse_qs(request.url.query.decode())
		meters = list(self.meters.values())
		landlord_id = params.get("landlordId", [None])[0]
		if user["role"] == "LANDLORD":
			landlord_id = user["id"]
		if landlord_id:
			meters = [m for m in meters if m["landlord"]["id"] == landlord_id]
		return httpx.Response(200, json={"meters": meters})

	def _get_meter(self, request, user, meter_id):
		meter = self.meters.get(meter_id)
		if meter is None:
			return httpx.Response(404, json={"error": "Meter not found"})
		return httpx.Response(200, json={"meter": meter})

	def _create_meter(self, request, user):
		body = json.loads(request.content)
		if any(m["meterNumber"] == body["meterNumber"] for m in self.meters.values()):
			return httpx.Response(409, json={"error": "Meter number already exists"})
		meter = self.add_meter(body["meterNumber"], body["plotNumber"], body["landlordId"], kwh_rate=body.get("kwhRate"))
		meter["location"] = body.get("location")
		meter["coordinates"] = body.get("coordinates")
		return httpx.Response(201, json={"message": "Meter created", "meter": meter})

	def _update_meter(self, request, user, meter_id):
		meter = self.meters[meter_id]
		meter.update(json.loads(request.content))
		return httpx.Response(200, json={"message": "Meter updated", "meter": meter})

	def _list_readings(self, request, user):
		readings = list(reversed(self.readings))
		if user["role"] == "TECHNICIAN":
			readings = [r for r in readings if r["technician"]["phoneNumber"] == user["phoneNumber"]]
		params = parse_qs(request.url.query.decode())
		if "meterId" in params:
			readings = [r for r in readings if r["meterId"] == params["meterId"][0]]
		limit = int(params.get("limit", ["20"])[0])
		return httpx.Response(200, json={
			"readings": readings[:limit],
			"pagination": {"page": 1, "limit": limit, "total": len(readings), "pages": 1},
		})

	def _create_reading(self, request, user):
		if user["role"] not in ("ADMIN", "TECHNICIAN"):
			return self._forbidden()
		body = request.content
		fields = dict(re.findall(rb'name="(meterId|reading)"\r\n\r\n(.*?)\r\n', body))
		if b'name="photo"' not in body:
			return httpx.Response(400, json={"error": "Photo is required"})
		meter = self.meters.get(fields[b"meterId"].decode())
		if meter is None:
			return httpx.Response(404, json={"error": "Meter not found"})
		value = float(fields[b"reading"])
		previous = next((r["reading"] for r in reversed(self.readings) if r["meterId"] == meter["id"]), None)
		if previous is not None and value < previous:
			return httpx.Response(400, json={"error": "Reading cannot be less than previous reading"})

		reading = self._add_reading(meter, value, previous, user)
		payload = {"message": "Reading recorded", "reading": reading}
		if reading["unitsConsumed"]:
			rate = meter.get("kwhRate") or self.rate
			bill = self.add_bill(meter, reading["unitsConsumed"], _now() + timedelta(days=14))
			bill["ratePerUnit"] = rate
			bill["totalAmount"] = round(reading["unitsConsumed"] * rate, 2)
			bill["reading"] = {"reading": value, "previousReading": previous, "readingDate": reading["readingDate"]}
			payload["bill"] = bill
		return httpx.Response(201, json=payload)

	def _visible_bills(self, user) -> List[dict]:
		bills = list(self.bills.values())
		if user["role"] == "LANDLORD":
			bills = [b for b in bills if b["landlordId"] == user["id"]]
		return bills

	def _list_bills(self, request, user):
		if user["role"] == "TECHNICIAN":
			return self._forbidden()
		params = parse_qs(request.url.query.decode())
		bills = self._visible_bills(user)
		if "status" in params:
			bills = [b for b in bills if b["status"] == params["status"][0]]
		return httpx.Response(200, json={
			"bills": bills,
			"pagination": {"page": 1, "limit": 20, "total": len(bills), "pages": 1},
		})

	def _get_bill(self, request, user, bill_id):
		bill = self.bills.get(bill_id)
		if bill is None:
			return httpx.Response(404, json={"error": "Bill not found"})
		return httpx.Response(200, json={"bill": bill})

	def _summary(self, request, user):
		bills = self._visible_bills(user)

		def total(status=None):
			return round(sum(b["totalAmount"] for b in bills if status is None or b["status"] == status), 2)

		return httpx.Response(200, json={"summary": {
			"totalBills": len(bills),
			"paidBills": sum(1 for b in bills if b["status"] == "PAID"),
			"pendingBills": sum(1 for b in bills if b["status"] == "PENDING"),
			"overdueBills": sum(1 for b in bills if b["status"] == "OVERDUE"),
			"totalAmount": total(),
			"paidAmount": total("PAID"),
			"pendingAmount": total("PENDING"),
		}})

	def _pay(self, request, user, bill_id):
		if user["role"] != "ADMIN":
			return self._forbidden()
		bill = self.bills.get(bill_id)
		if bill is None:
			return httpx.Response(404, json={"error": "Bill not found"})
		if bill["status"] == "PAID":
			return httpx.Response(400, json={"error": "Bill is already paid"})
		bill["status"] = "PAID"
		bill["paidDate"] = _iso(_now())
		if request.content:
			bill["payment"] = json.loads(request.content)
		return httpx.Response(200, json={"message": "Bill marked as paid", "bill": bill})

	def _update_overdue(self, request, user):
		if user["role"] != "ADMIN":
			return self._forbidden()
		count = 0
		for bill in self.bills.values():
			due = datetime.fromisoformat(bill["dueDate"].replace("Z", "+00:00"))
			if bill["status"] == "PENDING" and due < _now():
				bill["status"] = "OVERDUE"
				count += 1
		return httpx.Response(200, json={"message": f"Updated {count} bills", "updatedCount": count})

	def _get_rate(self, request, user):
		return httpx.Response(200, json={"key": "kwh_rate", "value": f"{self.rate:.2f}"})

	def _put_rate(self, request, user):
		if user["role"] != "ADMIN":
			return self._forbidden()
		body = json.loads(request.content)
		if body.get("password") != self.passwords[user["id"]]:
			return httpx.Response(401, json={"error": "Invalid password"})
		self.rate = float(body["value"])
		return httpx.Response(200, json={"message": "Rate updated", "key": "kwh_rate", "value": f"{self.rate:.2f}"})


@pytest.fixture
def backend() -> FakeBackend:
	return FakeBackend()


@pytest.fixture
def transport(backend: FakeBackend) -> httpx.MockTransport:
	return httpx.MockTransport(backend.handle)


@pytest.fixture
def session() -> SessionContext:
	return SessionContext()


@pytest.fixture
async def api_client(session: SessionContext, transport: httpx.MockTransport) -> AsyncGenerator[BackendClient, None]:
	"""Backend client bound to a fresh, unauthenticated session"""
	async with BackendClient(session, base_url=BACKEND_URL, transport=transport) as client:
		yield client


@pytest.fixture
def login_as(api_client: BackendClient):
	"""Log the shared session in as the given seeded phone number"""
	async def _login(phone: str):
		return await AuthService(api_client).login(phone, PASSWORDS[phone])
	return _login


@pytest.fixture
async def admin_client(api_client: BackendClient, login_as) -> BackendClient:
	await login_as(ADMIN_PHONE)
	return api_client


@pytest.fixture
async def technician_client(api_client: BackendClient, login_as) -> BackendClient:
	await login_as(TECHNICIAN_PHONE)
	return api_client


@pytest.fixture
async def landlord_client(api_client: BackendClient, login_as) -> BackendClient:
	await login_as(LANDLORD_PHONE)
	return api_client


@pytest.fixture
async def client(transport: httpx.MockTransport, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
	"""Dashboard test client talking to the fake backend"""
	monkeypatch.setattr("app.client.backend.settings.BACKEND_API_URL", BACKEND_URL)
	app.dependency_overrides[get_http_transport] = lambda: transport

	# https so the secure session cookie is sent back
	async with AsyncClient(transport=ASGITransport(app=app), base_url="https://dashboard.test") as client:
		yield client

	app.dependency_overrides.clear()


@pytest.fixture
def web_login(client: AsyncClient):
	async def _login(phone: str):
		response = await client.post("/login", json={"phoneNumber": phone, "password": PASSWORDS[phone]})
		assert response.status_code == 200
		return response.json()["user"]
	return _login
