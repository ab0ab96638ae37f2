"""Report repository - Aggregate queries over sales, appointments and commissions"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import (
    Appointment,
    AppointmentService,
    CustomerPackage,
    Package,
    Professional,
    ProfessionalCommission,
)


class ReportRepository:
    """Repository for report queries; every range is [start, end)"""

    @staticmethod
    def package_sales(db: Session, user_id: int, start: datetime, end: datetime) -> tuple[int, float]:
        """(count, revenue) of paid packages purchased in the range"""
        count, total = (
            db.query(func.count(CustomerPackage.id), func.coalesce(func.sum(Package.price), 0))
            .join(Package, CustomerPackage.package_id == Package.id)
            .filter(
                CustomerPackage.user_id == user_id,
                CustomerPackage.paid.is_(True),
                CustomerPackage.purchase_date >= start,
                CustomerPackage.purchase_date < end,
            )
            .one()
        )
        return int(count or 0), float(total or 0)

    @staticmethod
    def completed_appointments(
        db: Session, user_id: int, start: datetime, end: datetime
    ) -> tuple[int, float]:
        """(count, revenue) of completed appointments in the range"""
        count, total = (
            db.query(func.count(Appointment.id), func.coalesce(func.sum(Appointment.total_price), 0))
            .filter(
                Appointment.user_id == user_id,
                Appointment.status == "completed",
                Appointment.appointment_date >= start,
                Appointment.appointment_date < end,
            )
            .one()
        )
        return int(count or 0), float(total or 0)

    @staticmethod
    def commissions_total(db: Session, user_id: int, start: datetime, end: datetime) -> float:
        total = (
            db.query(func.coalesce(func.sum(ProfessionalCommission.commission_amount), 0))
            .filter(
                ProfessionalCommission.user_id == user_id,
                ProfessionalCommission.paid_at >= start,
                ProfessionalCommission.paid_at < end,
            )
            .scalar()
        )
        return float(total or 0)

    @staticmethod
    def commission_rows(
        db: Session,
        user_id: int,
        start: datetime,
        end: datetime,
        professional_id: Optional[int] = None,
    ) -> list[ProfessionalCommission]:
        query = (
            db.query(ProfessionalCommission)
            .options(
                joinedload(ProfessionalCommission.appointment_service).joinedload(
                    AppointmentService.service
                )
            )
            .filter(
                ProfessionalCommission.user_id == user_id,
                ProfessionalCommission.paid_at >= start,
                ProfessionalCommission.paid_at < end,
            )
        )
        if professional_id:
            query = query.filter(ProfessionalCommission.professional_id == professional_id)
        return query.order_by(ProfessionalCommission.paid_at).all()

    @staticmethod
    def professionals_by_id(db: Session, user_id: int) -> dict[int, Professional]:
        return {
            p.id: p for p in db.query(Professional).filter(Professional.user_id == user_id).all()
        }

    @staticmethod
    def appointments_in_range(
        db: Session, user_id: int, start: datetime, end: datetime, professional_id: Optional[int] = None
    ) -> list[Appointment]:
        query = (
            db.query(Appointment)
            .options(
                joinedload(Appointment.services).joinedload(AppointmentService.service),
                joinedload(Appointment.professional),
            )
            .filter(
                Appointment.user_id == user_id,
                Appointment.appointment_date >= start,
                Appointment.appointment_date < end,
            )
        )
        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)
        return query.order_by(Appointment.appointment_date).all()
