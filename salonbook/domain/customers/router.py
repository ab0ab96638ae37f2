"""Customer router - FastAPI endpoints for customer operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal
from ...database import get_db
from ...models import Customer
from ...utils.dates import utcnow
from ..packages.service import is_valid
from .schemas import BatchDeleteRequest, CustomerCreate, CustomerResponse, CustomerUpdate
from .service import CustomerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["Customers"])


def get_customer_service(db: Session = Depends(get_db)) -> CustomerService:
    """Dependency injection for CustomerService"""
    return CustomerService(db)


def customer_response(customer: Customer) -> CustomerResponse:
    now = utcnow()
    return CustomerResponse(
        id=customer.id,
        name=customer.name,
        phone=customer.phone,
        professionalId=customer.professional_id,
        professionalName=customer.professional.name if customer.professional else None,
        activePackages=sum(1 for cp in customer.packages if cp.paid and is_valid(cp, now)),
        created_at=customer.created_at,
    )


@router.get("", response_model=list[CustomerResponse])
async def get_customers(
    search: Optional[str] = Query(None, description="Name or phone contains"),
    principal: Principal = Depends(get_current_principal),
    service: CustomerService = Depends(get_customer_service),
):
    return [customer_response(c) for c in service.get_customers(principal, search)]


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    principal: Principal = Depends(get_current_principal),
    service: CustomerService = Depends(get_customer_service),
):
    return customer_response(service.get_customer(customer_id, principal))


@router.post("", response_model=CustomerResponse)
async def create_customer(
    data: CustomerCreate,
    principal: Principal = Depends(get_current_principal),
    service: CustomerService = Depends(get_customer_service),
):
    return customer_response(service.create_customer(data, principal))


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    principal: Principal = Depends(get_current_principal),
    service: CustomerService = Depends(get_customer_service),
):
    return customer_response(service.update_customer(customer_id, data, principal))


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    principal: Principal = Depends(get_current_principal),
    service: CustomerService = Depends(get_customer_service),
):
    return service.delete_customer(customer_id, principal)


@router.post("/batch-delete")
async def batch_delete_customers(
    data: BatchDeleteRequest,
    principal: Principal = Depends(get_current_principal),
    service: CustomerService = Depends(get_customer_service),
):
    """Batch delete multiple customers"""
    return service.batch_delete_customers(data.customerIds, principal)
