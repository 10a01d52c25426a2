import enum
from typing import Dict, FrozenSet, Iterable, List, Optional

from app.models.user import UserRole
from app.schemas.auth import UserResponse


class Capability(str, enum.Enum):
	VIEW_DASHBOARD = "view_dashboard"
	MANAGE_USERS = "manage_users"
	MANAGE_METERS = "manage_meters"
	VIEW_METERS = "view_meters"
	VIEW_READINGS = "view_readings"
	RECORD_READING = "record_reading"
	VIEW_BILLS = "view_bills"
	MARK_BILL_PAID = "mark_bill_paid"
	UPDATE_OVERDUE = "update_overdue"
	VIEW_SETTINGS = "view_settings"
	UPDATE_SETTINGS = "update_settings"


ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
	UserRole.ADMIN: frozenset(Capability),
	UserRole.TECHNICIAN: frozenset({
		Capability.VIEW_DASHBOARD,
		Capability.VIEW_METERS,
		Capability.VIEW_READINGS,
		Capability.RECORD_READING,
		Capability.VIEW_SETTINGS,
	}),
	UserRole.LANDLORD: frozenset({
		Capability.VIEW_DASHBOARD,
		Capability.VIEW_METERS,
		Capability.VIEW_BILLS,
		Capability.VIEW_SETTINGS,
	}),
}

ALL_ROLES: FrozenSet[UserRole] = frozenset(UserRole)

# Dashboard pages and the roles allowed to open them
ROUTE_ROLES: Dict[str, FrozenSet[UserRole]] = {
	"/dashboard": ALL_ROLES,
	"/users": frozenset({UserRole.ADMIN}),
	"/meters": frozenset({UserRole.ADMIN}),
	"/readings": frozenset({UserRole.ADMIN, UserRole.TECHNICIAN}),
	"/bills": frozenset({UserRole.ADMIN, UserRole.LANDLORD}),
	"/settings": ALL_ROLES,
}

# Quick actions offered on the dashboard, in display order
QUICK_ACTIONS: Dict[UserRole, List[Dict[str, str]]] = {
	UserRole.ADMIN: [
		{"label": "Manage Meters", "route": "/meters"},
		{"label": "Manage Users", "route": "/users"},
		{"label": "View All Bills", "route": "/bills"},
	],
	UserRole.TECHNICIAN: [
		{"label": "Record Readings", "route": "/readings"},
		{"label": "View My Readings", "route": "/readings"},
	],
	UserRole.LANDLORD: [
		{"label": "View My Bills", "route": "/bills"},
	],
}


def has_role(user: Optional[UserResponse], allowed_roles: Iterable[UserRole]) -> bool:
	"""UX gate only; the backend re-checks every call"""
	if user is None:
		return False
	return user.role in set(allowed_roles)


def capabilities_for(role: Optional[UserRole]) -> FrozenSet[Capability]:
	if role is None:
		return frozenset()
	return ROLE_CAPABILITIES.get(UserRole(role), frozenset())


def can(user: Optional[UserResponse], capability: Capability) -> bool:
	if user is None:
		return False
	return capability in capabilities_for(user.role)


def visible_routes(user: Optional[UserResponse]) -> List[str]:
	return [route for route, roles in ROUTE_ROLES.items() if has_role(user, roles)]


def quick_actions(user: Optional[UserResponse]) -> List[Dict[str, str]]:
	if user is None:
		return []
	return [
		action for action in QUICK_ACTIONS.get(user.role, [])
		if has_role(user, ROUTE_ROLES[action["route"]])
	]
