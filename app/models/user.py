import enum


class UserRole(str, enum.Enum):
	ADMIN = "ADMIN"
	TECHNICIAN = "TECHNICIAN"
	LANDLORD = "LANDLORD"
