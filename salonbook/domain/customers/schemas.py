"""Customer domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_phone


class CustomerCreate(BaseModel):
    name: str
    phone: str
    professionalId: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Customer name is required")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v):
        return validate_phone(v)


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    professionalId: Optional[int] = None

    @field_validator("phone")
    @classmethod
    def validate_phone_field(cls, v):
        if v:
            return validate_phone(v)
        return v


class CustomerResponse(BaseModel):
    id: int
    name: str
    phone: str
    professionalId: Optional[int] = None
    professionalName: Optional[str] = None
    activePackages: int = 0
    created_at: Optional[datetime] = None


class BatchDeleteRequest(BaseModel):
    customerIds: list[int]
