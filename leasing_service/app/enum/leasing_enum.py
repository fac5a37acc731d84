from enum import Enum


class LeaseStatus(str, Enum):
    active = "active"
    expired = "expired"
    cancelled = "cancelled"


class CallerRole(str, Enum):
    admin = "admin"
    manager = "manager"
    employee = "employee"


class LeaseEvent(str, Enum):
    created = "lease_created"
    updated = "lease_updated"
    cancelled = "lease_cancelled"
    expired = "lease_expired"


class LocalStatus(str, Enum):
    available = "available"
    occupied = "occupied"
    maintenance = "maintenance"
