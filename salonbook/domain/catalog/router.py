"""Catalog router - FastAPI endpoints for services, professionals and professional login"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal, get_current_user
from ...database import get_db
from ...models import Professional, Service, User
from ...rate_limiter import rate_limit_professional_login
from .schemas import (
    AssignmentResponse,
    AssignmentsUpdate,
    BatchDeleteRequest,
    CredentialsUpdate,
    ProfessionalCreate,
    ProfessionalLoginRequest,
    ProfessionalLoginResponse,
    ProfessionalResponse,
    ProfessionalUpdate,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
)
from .service import CatalogService, effective_commission

logger = logging.getLogger(__name__)

services_router = APIRouter(prefix="/services", tags=["Services"])
professionals_router = APIRouter(prefix="/professionals", tags=["Professionals"])
auth_router = APIRouter(prefix="/auth", tags=["Authentication"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db)


def service_response(service: Service) -> ServiceResponse:
    return ServiceResponse(
        id=service.id,
        name=service.name,
        description=service.description,
        price=service.price,
        durationMinutes=service.duration_minutes,
        defaultCommission=service.default_commission,
        active=service.active,
        created_at=service.created_at,
    )


def professional_response(professional: Professional) -> ProfessionalResponse:
    return ProfessionalResponse(
        id=professional.id,
        name=professional.name,
        specialty=professional.specialty,
        active=professional.active,
        email=professional.email,
        hasLogin=bool(professional.email and professional.password_hash),
        services=[
            AssignmentResponse(
                serviceId=a.service_id,
                serviceName=a.service.name if a.service else None,
                commission=effective_commission(a),
            )
            for a in professional.service_assignments
        ],
        created_at=professional.created_at,
    )


# ============================================================================
# SERVICES
# ============================================================================


@services_router.get("", response_model=list[ServiceResponse])
async def get_services(
    active_only: bool = Query(False, alias="activeOnly"),
    principal: Principal = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service),
):
    """List services (professionals need them to book)"""
    return [service_response(s) for s in service.get_services(principal.user, active_only)]


@services_router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: int,
    principal: Principal = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service),
):
    return service_response(service.get_service(service_id, principal.user))


@services_router.post("", response_model=ServiceResponse)
async def create_service(
    data: ServiceCreate,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return service_response(service.create_service(data, current_user))


@services_router.patch("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return service_response(service.update_service(service_id, data, current_user))


@services_router.delete("/{service_id}")
async def delete_service(
    service_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.delete_service(service_id, current_user)


# ============================================================================
# PROFESSIONALS
# ============================================================================


@professionals_router.get("", response_model=list[ProfessionalResponse])
async def get_professionals(
    active_only: bool = Query(False, alias="activeOnly"),
    principal: Principal = Depends(get_current_principal),
    service: CatalogService = Depends(get_catalog_service),
):
    return [
        professional_response(p) for p in service.get_professionals(principal.user, active_only)
    ]


@professionals_router.get("/{professional_id}", response_model=ProfessionalResponse)
async def get_professional(
    professional_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return professional_response(service.get_professional(professional_id, current_user))


@professionals_router.post("", response_model=ProfessionalResponse)
async def create_professional(
    data: ProfessionalCreate,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    """Create a professional, optionally with login credentials and services"""
    return professional_response(service.create_professional(data, current_user))


@professionals_router.patch("/{professional_id}", response_model=ProfessionalResponse)
async def update_professional(
    professional_id: int,
    data: ProfessionalUpdate,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return professional_response(service.update_professional(professional_id, data, current_user))


@professionals_router.post("/{professional_id}/toggle-active", response_model=ProfessionalResponse)
async def toggle_professional_active(
    professional_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return professional_response(service.toggle_active(professional_id, current_user))


@professionals_router.put("/{professional_id}/credentials", response_model=ProfessionalResponse)
async def update_professional_credentials(
    professional_id: int,
    data: CredentialsUpdate,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    """Set the email and password a professional logs in with"""
    return professional_response(service.update_credentials(professional_id, data, current_user))


@professionals_router.put("/{professional_id}/services", response_model=ProfessionalResponse)
async def update_professional_services(
    professional_id: int,
    data: AssignmentsUpdate,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    """Replace the services a professional performs and their commissions"""
    return professional_response(
        service.update_assignments(professional_id, data.services, current_user)
    )


@professionals_router.delete("/{professional_id}")
async def delete_professional(
    professional_id: int,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    return service.delete_professional(professional_id, current_user)


@professionals_router.post("/batch-delete")
async def batch_delete_professionals(
    data: BatchDeleteRequest,
    current_user: User = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
):
    """Batch delete professionals; ones with appointments are skipped"""
    return service.batch_delete_professionals(data.ids, current_user)


# ============================================================================
# AUTH
# ============================================================================


@auth_router.post("/professional/login", response_model=ProfessionalLoginResponse)
async def professional_login(
    data: ProfessionalLoginRequest,
    _: None = Depends(rate_limit_professional_login),
    service: CatalogService = Depends(get_catalog_service),
):
    """Email/password login for the professional dashboard"""
    token, professional = service.login_professional(data.email, data.password)
    return ProfessionalLoginResponse(
        access_token=token, professional=professional_response(professional)
    )


@auth_router.get("/me")
async def get_me(principal: Principal = Depends(get_current_principal)):
    """Who is logged in: the salon owner or one of their professionals"""
    user = principal.user
    return {
        "role": "owner" if principal.is_owner else "professional",
        "userId": user.id,
        "email": user.email,
        "businessName": user.business_name,
        "professionalId": principal.professional_id,
        "professionalName": principal.professional.name if principal.professional else None,
    }
