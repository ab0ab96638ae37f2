"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import APPOINTMENT_STATUSES
from ...shared.validators import validate_phone


class AppointmentLine(BaseModel):
    """A service to book; usePackage=False charges full price even if credits exist"""

    serviceId: int
    usePackage: bool = True


class AppointmentCreate(BaseModel):
    professionalId: int
    customerName: str
    customerPhone: str
    appointmentDate: datetime
    services: list[AppointmentLine]
    notes: Optional[str] = None
    force: bool = False

    @field_validator("customerName")
    @classmethod
    def validate_customer_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Customer name is required")
        return v.strip()

    @field_validator("customerPhone")
    @classmethod
    def validate_customer_phone(cls, v):
        return validate_phone(v)

    @field_validator("services")
    @classmethod
    def validate_services(cls, v):
        if not v:
            raise ValueError("Select at least one service")
        return v


class AppointmentUpdate(BaseModel):
    """Reschedule or edit an appointment; only the given fields change"""

    professionalId: Optional[int] = None
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    appointmentDate: Optional[datetime] = None
    notes: Optional[str] = None
    force: bool = False

    @field_validator("customerPhone")
    @classmethod
    def validate_customer_phone(cls, v):
        if v:
            return validate_phone(v)
        return v


class StatusUpdate(BaseModel):
    status: str
    # Needed when reopening a cancelled or completed slot that is now taken
    force: bool = False

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in APPOINTMENT_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(APPOINTMENT_STATUSES)}")
        return v


class BatchDeleteRequest(BaseModel):
    appointmentIds: list[int]


class ConflictCheckRequest(BaseModel):
    professionalId: int
    appointmentDate: datetime
    serviceIds: list[int] = []
    excludeAppointmentId: Optional[int] = None


class ConflictItem(BaseModel):
    id: int
    customerName: str
    start: datetime
    end: datetime
    status: str


class ConflictCheckResponse(BaseModel):
    hasConflict: bool
    conflicts: list[ConflictItem]
    proposedStart: datetime
    proposedEnd: datetime


class AppointmentLineResponse(BaseModel):
    id: int
    serviceId: int
    serviceName: Optional[str] = None
    durationMinutes: Optional[int] = None
    price: float
    usedPackageSession: bool
    customerPackageId: Optional[int] = None


class AppointmentResponse(BaseModel):
    id: int
    professionalId: int
    professionalName: Optional[str] = None
    customerName: str
    customerPhone: str
    appointmentDate: datetime
    endDate: datetime
    durationMinutes: int
    status: str
    totalPrice: float
    notes: Optional[str] = None
    overriddenConflict: bool
    services: list[AppointmentLineResponse]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    start: datetime
    end: datetime
    available: bool


class CalendarDayResponse(BaseModel):
    date: date
    count: int


class DashboardStats(BaseModel):
    totalAppointments: int
    realizedRevenue: float
    projectedRevenue: float
    activeProfessionals: int
    activeServices: int
