"""Catalog repository - Database operations for services and professionals"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import (
    Appointment,
    AppointmentService,
    PackageService,
    Professional,
    ProfessionalService,
    Service,
)


class CatalogRepository:
    """Repository for service and professional database operations"""

    # Services
    @staticmethod
    def get_services(db: Session, user_id: int, active_only: bool = False) -> list[Service]:
        query = db.query(Service).filter(Service.user_id == user_id)
        if active_only:
            query = query.filter(Service.active.is_(True))
        return query.order_by(Service.name).all()

    @staticmethod
    def get_service_by_id(db: Session, service_id: int, user_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id, Service.user_id == user_id).first()

    @staticmethod
    def get_services_by_ids(db: Session, service_ids: list[int], user_id: int) -> list[Service]:
        if not service_ids:
            return []
        return (
            db.query(Service)
            .filter(Service.id.in_(service_ids), Service.user_id == user_id)
            .all()
        )

    @staticmethod
    def create_service(db: Session, user_id: int, **service_data) -> Service:
        service = Service(user_id=user_id, **service_data)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def update_fields(db: Session, obj, **updates):
        for key, value in updates.items():
            if value is not None and hasattr(obj, key):
                setattr(obj, key, value)
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def service_in_use(db: Session, service_id: int) -> bool:
        """A service referenced by bookings or package bundles cannot be deleted"""
        booked = (
            db.query(func.count(AppointmentService.id))
            .filter(AppointmentService.service_id == service_id)
            .scalar()
        )
        bundled = (
            db.query(func.count(PackageService.id))
            .filter(PackageService.service_id == service_id)
            .scalar()
        )
        return bool(booked or bundled)

    @staticmethod
    def delete_service(db: Session, service: Service) -> None:
        db.query(ProfessionalService).filter(ProfessionalService.service_id == service.id).delete(
            synchronize_session=False
        )
        db.delete(service)
        db.commit()

    # Professionals
    @staticmethod
    def get_professionals(db: Session, user_id: int, active_only: bool = False) -> list[Professional]:
        query = (
            db.query(Professional)
            .options(joinedload(Professional.service_assignments).joinedload(ProfessionalService.service))
            .filter(Professional.user_id == user_id)
        )
        if active_only:
            query = query.filter(Professional.active.is_(True))
        return query.order_by(Professional.name).all()

    @staticmethod
    def get_professional_by_id(db: Session, professional_id: int, user_id: int) -> Optional[Professional]:
        return (
            db.query(Professional)
            .filter(Professional.id == professional_id, Professional.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_professional_by_email(db: Session, email: str) -> Optional[Professional]:
        return db.query(Professional).filter(func.lower(Professional.email) == email.lower()).first()

    @staticmethod
    def create_professional(db: Session, user_id: int, **professional_data) -> Professional:
        professional = Professional(user_id=user_id, **professional_data)
        db.add(professional)
        db.commit()
        db.refresh(professional)
        return professional

    @staticmethod
    def has_appointments(db: Session, professional_id: int) -> bool:
        count = (
            db.query(func.count(Appointment.id))
            .filter(Appointment.professional_id == professional_id)
            .scalar()
        )
        return bool(count)

    @staticmethod
    def delete_professional(db: Session, professional: Professional) -> None:
        db.delete(professional)
        db.commit()

    @staticmethod
    def replace_assignments(
        db: Session, professional: Professional, assignments: list[tuple[int, Optional[float]]]
    ) -> Professional:
        """Replace the (service, commission) list of a professional"""
        professional.service_assignments.clear()
        db.flush()
        professional.service_assignments.extend(
            ProfessionalService(service_id=service_id, commission=commission)
            for service_id, commission in assignments
        )
        db.commit()
        db.refresh(professional)
        return professional
