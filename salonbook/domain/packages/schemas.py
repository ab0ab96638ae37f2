"""Package domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class PackageItem(BaseModel):
    """One service inside a package bundle"""

    serviceId: int
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v):
        if v < 1:
            raise ValueError("Quantity must be at least 1")
        return v


def _validate_items(items: Optional[list[PackageItem]]) -> Optional[list[PackageItem]]:
    if items is None:
        return items
    if not items:
        raise ValueError("A package needs at least one service")
    service_ids = [item.serviceId for item in items]
    if len(service_ids) != len(set(service_ids)):
        raise ValueError("Each service can appear only once in a package")
    return items


class PackageCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price: float
    expiresAfterDays: Optional[int] = None
    active: bool = True
    services: list[PackageItem]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Package name is required")
        return v.strip()

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v < 0:
            raise ValueError("Price cannot be negative")
        return v

    @field_validator("expiresAfterDays")
    @classmethod
    def validate_expiry(cls, v):
        if v is not None and v < 1:
            raise ValueError("Expiry must be at least 1 day")
        return v

    @field_validator("services")
    @classmethod
    def validate_services(cls, v):
        return _validate_items(v)


class PackageUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    expiresAfterDays: Optional[int] = None
    active: Optional[bool] = None
    services: Optional[list[PackageItem]] = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v

    @field_validator("expiresAfterDays")
    @classmethod
    def validate_expiry(cls, v):
        if v is not None and v < 1:
            raise ValueError("Expiry must be at least 1 day")
        return v

    @field_validator("services")
    @classmethod
    def validate_services(cls, v):
        return _validate_items(v)


class PackageItemResponse(BaseModel):
    serviceId: int
    serviceName: Optional[str] = None
    quantity: int


class PackageResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    expiresAfterDays: Optional[int] = None
    active: bool
    services: list[PackageItemResponse]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PurchaseRequest(BaseModel):
    """Sell one or more packages to a customer in one go"""

    customerId: int
    packageIds: list[int]
    paid: bool = True
    purchaseDate: Optional[datetime] = None

    @field_validator("packageIds")
    @classmethod
    def validate_package_ids(cls, v):
        if not v:
            raise ValueError("Select at least one package")
        return v


class RenewRequest(BaseModel):
    paid: bool = True


class PaidUpdate(BaseModel):
    paid: bool


class BalanceResponse(BaseModel):
    serviceId: int
    serviceName: Optional[str] = None
    sessionsRemaining: int


class CustomerPackageResponse(BaseModel):
    id: int
    customerId: int
    packageId: int
    packageName: Optional[str] = None
    paid: bool
    purchaseDate: datetime
    expirationDate: Optional[datetime] = None
    isExpired: bool
    isValid: bool
    balances: list[BalanceResponse]


class PackageSaleResponse(BaseModel):
    id: int
    customerId: int
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    packageId: int
    packageName: Optional[str] = None
    price: float
    paid: bool
    purchaseDate: datetime
    expirationDate: Optional[datetime] = None
