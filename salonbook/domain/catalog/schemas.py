"""Catalog domain schemas - services, professionals and professional login"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_percentage

# Matches the scheduling overlap window
MAX_SERVICE_DURATION_MINUTES = 24 * 60


class ServiceCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price: float
    durationMinutes: Optional[int] = 30
    defaultCommission: float = 0
    active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Service name is required")
        return v.strip()

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v < 0:
            raise ValueError("Price cannot be negative")
        return v

    @field_validator("durationMinutes")
    @classmethod
    def validate_duration(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Duration must be positive")
        if v is not None and v > MAX_SERVICE_DURATION_MINUTES:
            raise ValueError("Duration cannot exceed 24 hours")
        return v

    @field_validator("defaultCommission")
    @classmethod
    def validate_commission(cls, v):
        return validate_percentage(v)


class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    durationMinutes: Optional[int] = None
    defaultCommission: Optional[float] = None
    active: Optional[bool] = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v

    @field_validator("durationMinutes")
    @classmethod
    def validate_duration(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Duration must be positive")
        if v is not None and v > MAX_SERVICE_DURATION_MINUTES:
            raise ValueError("Duration cannot exceed 24 hours")
        return v

    @field_validator("defaultCommission")
    @classmethod
    def validate_commission(cls, v):
        return validate_percentage(v)


class ServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    durationMinutes: Optional[int] = None
    defaultCommission: float
    active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceAssignment(BaseModel):
    """Commission None means: use the service's default commission"""

    serviceId: int
    commission: Optional[float] = None

    @field_validator("commission")
    @classmethod
    def validate_commission(cls, v):
        return validate_percentage(v)


class ProfessionalCreate(BaseModel):
    name: str
    specialty: Optional[str] = None
    active: bool = True
    email: Optional[str] = None
    password: Optional[str] = None
    services: list[ServiceAssignment] = []

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Professional name is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if v is not None and len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v


class ProfessionalUpdate(BaseModel):
    name: Optional[str] = None
    specialty: Optional[str] = None
    active: Optional[bool] = None


class CredentialsUpdate(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v


class AssignmentsUpdate(BaseModel):
    services: list[ServiceAssignment]


class AssignmentResponse(BaseModel):
    serviceId: int
    serviceName: Optional[str] = None
    commission: float


class ProfessionalResponse(BaseModel):
    id: int
    name: str
    specialty: Optional[str] = None
    active: bool
    email: Optional[str] = None
    hasLogin: bool
    services: list[AssignmentResponse]
    created_at: Optional[datetime] = None


class BatchDeleteRequest(BaseModel):
    ids: list[int]


class ProfessionalLoginRequest(BaseModel):
    email: str
    password: str


class ProfessionalLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    professional: ProfessionalResponse
