"""Catalog service - Business logic for services and professionals"""

import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import ConflictError, NotFoundError, ValidationError
from ...models import Professional, Service, User
from ...security_utils import create_professional_token, hash_password, verify_password
from .repository import CatalogRepository
from .schemas import (
    CredentialsUpdate,
    ProfessionalCreate,
    ProfessionalUpdate,
    ServiceAssignment,
    ServiceCreate,
    ServiceUpdate,
)

logger = logging.getLogger(__name__)


def effective_commission(assignment) -> float:
    """Professional override, else the service default"""
    if assignment.commission is not None:
        return assignment.commission
    return assignment.service.default_commission if assignment.service else 0


class CatalogService:
    """Service layer for the salon catalogue: services and professionals"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CatalogRepository()

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    def get_services(self, user: User, active_only: bool = False) -> list[Service]:
        return self.repo.get_services(self.db, user.id, active_only)

    def get_service(self, service_id: int, user: User) -> Service:
        service = self.repo.get_service_by_id(self.db, service_id, user.id)
        if not service:
            raise NotFoundError("Service not found")
        return service

    def create_service(self, data: ServiceCreate, user: User) -> Service:
        logger.info(f"📥 Creating service '{data.name}' for user_id: {user.id}")
        return self.repo.create_service(
            self.db,
            user.id,
            name=data.name,
            description=data.description,
            price=data.price,
            duration_minutes=data.durationMinutes,
            default_commission=data.defaultCommission,
            active=data.active,
        )

    def update_service(self, service_id: int, data: ServiceUpdate, user: User) -> Service:
        service = self.get_service(service_id, user)
        return self.repo.update_fields(
            self.db,
            service,
            name=data.name.strip() if data.name else None,
            description=data.description,
            price=data.price,
            duration_minutes=data.durationMinutes,
            default_commission=data.defaultCommission,
            active=data.active,
        )

    def delete_service(self, service_id: int, user: User) -> dict:
        service = self.get_service(service_id, user)
        if self.repo.service_in_use(self.db, service.id):
            raise ConflictError(
                "This service is used by appointments or packages. Deactivate it instead.",
                action="deactivate",
            )
        self.repo.delete_service(self.db, service)
        logger.info(f"🗑️ Service {service_id} deleted by user {user.id}")
        return {"message": "Service deleted"}

    # ------------------------------------------------------------------
    # Professionals
    # ------------------------------------------------------------------

    def get_professionals(self, user: User, active_only: bool = False) -> list[Professional]:
        return self.repo.get_professionals(self.db, user.id, active_only)

    def get_professional(self, professional_id: int, user: User) -> Professional:
        professional = self.repo.get_professional_by_id(self.db, professional_id, user.id)
        if not professional:
            raise NotFoundError("Professional not found")
        return professional

    def _assignment_rows(
        self, assignments: list[ServiceAssignment], user: User
    ) -> list[tuple[int, float]]:
        service_ids = [a.serviceId for a in assignments]
        if len(service_ids) != len(set(service_ids)):
            raise ValidationError("Each service can be assigned only once", field="services")
        services = {s.id: s for s in self.repo.get_services_by_ids(self.db, service_ids, user.id)}
        missing = [sid for sid in service_ids if sid not in services]
        if missing:
            raise ValidationError(f"Unknown service(s): {missing}", field="services")
        # New assignments start from the service's default commission
        return [
            (
                a.serviceId,
                a.commission if a.commission is not None else services[a.serviceId].default_commission,
            )
            for a in assignments
        ]

    def _check_email_available(self, email: str, professional_id: int = None) -> None:
        existing = self.repo.get_professional_by_email(self.db, email)
        if existing and existing.id != professional_id:
            raise ValidationError("This email is already used by another professional", field="email")

    def create_professional(self, data: ProfessionalCreate, user: User) -> Professional:
        logger.info(f"📥 Creating professional '{data.name}' for user_id: {user.id}")
        if bool(data.email) != bool(data.password):
            raise ValidationError("Email and password must be set together", field="email")
        if data.email:
            self._check_email_available(data.email)
        assignments = self._assignment_rows(data.services, user)

        professional = self.repo.create_professional(
            self.db,
            user.id,
            name=data.name,
            specialty=data.specialty,
            active=data.active,
            email=data.email,
            password_hash=hash_password(data.password) if data.password else None,
        )
        if assignments:
            professional = self.repo.replace_assignments(self.db, professional, assignments)
        return professional

    def update_professional(
        self, professional_id: int, data: ProfessionalUpdate, user: User
    ) -> Professional:
        professional = self.get_professional(professional_id, user)
        return self.repo.update_fields(
            self.db,
            professional,
            name=data.name.strip() if data.name else None,
            specialty=data.specialty,
            active=data.active,
        )

    def toggle_active(self, professional_id: int, user: User) -> Professional:
        professional = self.get_professional(professional_id, user)
        professional.active = not professional.active
        self.db.commit()
        self.db.refresh(professional)
        logger.info(f"🔄 Professional {professional_id} active={professional.active}")
        return professional

    def update_credentials(
        self, professional_id: int, data: CredentialsUpdate, user: User
    ) -> Professional:
        professional = self.get_professional(professional_id, user)
        self._check_email_available(data.email, professional.id)
        professional.email = data.email
        professional.password_hash = hash_password(data.password)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError(
                "This email is already used by another professional", field="email"
            ) from e
        self.db.refresh(professional)
        logger.info(f"🔐 Login credentials updated for professional {professional_id}")
        return professional

    def update_assignments(
        self, professional_id: int, assignments: list[ServiceAssignment], user: User
    ) -> Professional:
        professional = self.get_professional(professional_id, user)
        rows = self._assignment_rows(assignments, user)
        return self.repo.replace_assignments(self.db, professional, rows)

    def delete_professional(self, professional_id: int, user: User) -> dict:
        professional = self.get_professional(professional_id, user)
        if self.repo.has_appointments(self.db, professional.id):
            raise ConflictError(
                "This professional has appointments. Deactivate them instead.",
                action="deactivate",
            )
        self.repo.delete_professional(self.db, professional)
        return {"message": "Professional deleted"}

    def batch_delete_professionals(self, professional_ids: list[int], user: User) -> dict:
        if not professional_ids:
            raise ValidationError("No professional IDs provided", field="ids")

        deleted_count = 0
        skipped = []
        for professional_id in professional_ids:
            professional = self.repo.get_professional_by_id(self.db, professional_id, user.id)
            if not professional:
                continue
            if self.repo.has_appointments(self.db, professional.id):
                skipped.append(professional.id)
                continue
            self.repo.delete_professional(self.db, professional)
            deleted_count += 1

        logger.info(f"✅ User {user.id} deleted {deleted_count} professional(s)")
        return {
            "message": f"Successfully deleted {deleted_count} professional(s)",
            "deletedCount": deleted_count,
            "skippedIds": skipped,
        }

    # ------------------------------------------------------------------
    # Professional login
    # ------------------------------------------------------------------

    def login_professional(self, email: str, password: str) -> tuple[str, Professional]:
        """Check a professional's credentials and issue a session token"""
        professional = self.repo.get_professional_by_email(self.db, email.strip())
        if not professional or not verify_password(password, professional.password_hash):
            logger.warning(f"⚠️ Failed professional login for {email}")
            raise HTTPException(status_code=401, detail="Invalid email or password")
        if not professional.active:
            raise HTTPException(status_code=403, detail="This professional account is inactive")

        logger.info(f"✅ Professional {professional.id} logged in")
        return create_professional_token(professional.id, professional.user_id), professional
