"""Package router - FastAPI endpoints for packages and customer credits"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal, get_current_user
from ...database import get_db
from ...models import CustomerPackage, Package, User
from ...utils.dates import utcnow
from .schemas import (
    BalanceResponse,
    CustomerPackageResponse,
    PackageCreate,
    PackageItemResponse,
    PackageResponse,
    PackageSaleResponse,
    PackageUpdate,
    PaidUpdate,
    PurchaseRequest,
    RenewRequest,
)
from .service import PackageService, is_expired, is_valid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packages", tags=["Packages"])


def get_package_service(db: Session = Depends(get_db)) -> PackageService:
    """Dependency injection for PackageService"""
    return PackageService(db)


def _package_response(package: Package) -> PackageResponse:
    return PackageResponse(
        id=package.id,
        name=package.name,
        description=package.description,
        price=package.price,
        expiresAfterDays=package.expires_after_days,
        active=package.active,
        services=[
            PackageItemResponse(
                serviceId=item.service_id,
                serviceName=item.service.name if item.service else None,
                quantity=item.quantity,
            )
            for item in package.services
        ],
        created_at=package.created_at,
    )


def _customer_package_response(customer_package: CustomerPackage) -> CustomerPackageResponse:
    now = utcnow()
    return CustomerPackageResponse(
        id=customer_package.id,
        customerId=customer_package.customer_id,
        packageId=customer_package.package_id,
        packageName=customer_package.package.name if customer_package.package else None,
        paid=customer_package.paid,
        purchaseDate=customer_package.purchase_date,
        expirationDate=customer_package.expiration_date,
        isExpired=is_expired(customer_package, now),
        isValid=is_valid(customer_package, now),
        balances=[
            BalanceResponse(
                serviceId=balance.service_id,
                serviceName=balance.service.name if balance.service else None,
                sessionsRemaining=balance.sessions_remaining,
            )
            for balance in customer_package.balances
        ],
    )


# ============================================================================
# PACKAGE CATALOGUE
# ============================================================================


@router.get("", response_model=list[PackageResponse])
async def get_packages(
    active_only: bool = Query(False, alias="activeOnly"),
    principal: Principal = Depends(get_current_principal),
    service: PackageService = Depends(get_package_service),
):
    """List packages (professionals read the catalogue to sell packages)"""
    return [_package_response(p) for p in service.get_packages(principal.user, active_only)]


@router.get("/sales", response_model=list[PackageSaleResponse])
async def get_package_sales(
    current_user: User = Depends(get_current_user),
    service: PackageService = Depends(get_package_service),
):
    """Paid package sales, newest first"""
    return [
        PackageSaleResponse(
            id=sale.id,
            customerId=sale.customer_id,
            customerName=sale.customer.name if sale.customer else None,
            customerPhone=sale.customer.phone if sale.customer else None,
            packageId=sale.package_id,
            packageName=sale.package.name if sale.package else None,
            price=sale.package.price if sale.package else 0,
            paid=sale.paid,
            purchaseDate=sale.purchase_date,
            expirationDate=sale.expiration_date,
        )
        for sale in service.get_sales(current_user)
    ]


@router.get("/{package_id}", response_model=PackageResponse)
async def get_package(
    package_id: int,
    principal: Principal = Depends(get_current_principal),
    service: PackageService = Depends(get_package_service),
):
    return _package_response(service.get_package(package_id, principal.user))


@router.post("", response_model=PackageResponse)
async def create_package(
    data: PackageCreate,
    current_user: User = Depends(get_current_user),
    service: PackageService = Depends(get_package_service),
):
    """Create a package bundle"""
    return _package_response(service.create_package(data, current_user))


@router.patch("/{package_id}", response_model=PackageResponse)
async def update_package(
    package_id: int,
    data: PackageUpdate,
    current_user: User = Depends(get_current_user),
    service: PackageService = Depends(get_package_service),
):
    return _package_response(service.update_package(package_id, data, current_user))


@router.delete("/{package_id}")
async def delete_package(
    package_id: int,
    current_user: User = Depends(get_current_user),
    service: PackageService = Depends(get_package_service),
):
    """Delete a package that was never sold"""
    return service.delete_package(package_id, current_user)


# ============================================================================
# CUSTOMER PACKAGES (PURCHASES AND BALANCES)
# ============================================================================


@router.get("/customers/{customer_id}", response_model=list[CustomerPackageResponse])
async def get_customer_packages(
    customer_id: int,
    principal: Principal = Depends(get_current_principal),
    service: PackageService = Depends(get_package_service),
):
    """A customer's purchased packages with remaining sessions"""
    return [
        _customer_package_response(cp)
        for cp in service.get_customer_packages(customer_id, principal.user_id)
    ]


@router.post("/purchase", response_model=list[CustomerPackageResponse])
async def purchase_packages(
    data: PurchaseRequest,
    principal: Principal = Depends(get_current_principal),
    service: PackageService = Depends(get_package_service),
):
    """Sell one or more packages to a customer"""
    purchased = service.purchase(data, principal.user)
    return [_customer_package_response(cp) for cp in purchased]


@router.post("/customer-packages/{customer_package_id}/renew", response_model=CustomerPackageResponse)
async def renew_customer_package(
    customer_package_id: int,
    data: RenewRequest,
    principal: Principal = Depends(get_current_principal),
    service: PackageService = Depends(get_package_service),
):
    """Sell the same package again to the same customer"""
    return _customer_package_response(
        service.renew(customer_package_id, principal.user, paid=data.paid)
    )


@router.patch("/customer-packages/{customer_package_id}/paid", response_model=CustomerPackageResponse)
async def set_customer_package_paid(
    customer_package_id: int,
    data: PaidUpdate,
    current_user: User = Depends(get_current_user),
    service: PackageService = Depends(get_package_service),
):
    return _customer_package_response(
        service.set_paid(customer_package_id, data.paid, current_user)
    )


@router.delete("/customer-packages/{customer_package_id}")
async def delete_customer_package(
    customer_package_id: int,
    current_user: User = Depends(get_current_user),
    service: PackageService = Depends(get_package_service),
):
    return service.delete_customer_package(customer_package_id, current_user)
