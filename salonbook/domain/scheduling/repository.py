"""Scheduling repository - Database operations for appointments"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import (
    BLOCKING_STATUSES,
    Appointment,
    AppointmentService,
    Customer,
    CustomerPackage,
    Package,
    Professional,
    ProfessionalCommission,
    ProfessionalService,
    Service,
)

# No appointment lasts longer than this; bounds the overlap query window
MAX_APPOINTMENT_SPAN = timedelta(hours=24)


class SchedulingRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def _with_lines(query):
        return query.options(
            joinedload(Appointment.services).joinedload(AppointmentService.service),
            joinedload(Appointment.professional),
        )

    @staticmethod
    def get_professional(db: Session, professional_id: int, user_id: int) -> Optional[Professional]:
        return (
            db.query(Professional)
            .filter(Professional.id == professional_id, Professional.user_id == user_id)
            .first()
        )

    @staticmethod
    def lock_professional(db: Session, professional_id: int, user_id: int) -> Optional[Professional]:
        """SELECT ... FOR UPDATE on the professional; serialises their bookings"""
        return (
            db.query(Professional)
            .filter(Professional.id == professional_id, Professional.user_id == user_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def get_services(db: Session, service_ids: list[int], user_id: int) -> list[Service]:
        if not service_ids:
            return []
        return (
            db.query(Service)
            .filter(Service.id.in_(service_ids), Service.user_id == user_id)
            .all()
        )

    @staticmethod
    def get_blocking_appointments(
        db: Session, professional_id: int, window_start: datetime, window_end: datetime
    ) -> list[Appointment]:
        """Pending/confirmed appointments of a professional that could touch the window"""
        query = db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.status.in_(BLOCKING_STATUSES),
            Appointment.appointment_date < window_end,
            Appointment.appointment_date >= window_start - MAX_APPOINTMENT_SPAN,
        )
        return SchedulingRepository._with_lines(query).order_by(Appointment.appointment_date).all()

    @staticmethod
    def get_appointment(db: Session, appointment_id: int, user_id: int) -> Optional[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.id == appointment_id, Appointment.user_id == user_id
        )
        return SchedulingRepository._with_lines(query).first()

    @staticmethod
    def search_appointments(
        db: Session,
        user_id: int,
        professional_id: Optional[int] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(Appointment.user_id == user_id)

        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)
        if status:
            query = query.filter(Appointment.status == status)
        if start:
            query = query.filter(Appointment.appointment_date >= start)
        if end:
            query = query.filter(Appointment.appointment_date < end)
        if customer_name:
            query = query.filter(Appointment.customer_name.ilike(f"%{customer_name}%"))
        if customer_phone:
            query = query.filter(Appointment.customer_phone.ilike(f"%{customer_phone}%"))

        return (
            SchedulingRepository._with_lines(query)
            .order_by(Appointment.appointment_date)
            .all()
        )

    @staticmethod
    def get_appointments_by_ids(db: Session, appointment_ids: list[int], user_id: int) -> list[Appointment]:
        query = db.query(Appointment).filter(
            Appointment.id.in_(appointment_ids), Appointment.user_id == user_id
        )
        return SchedulingRepository._with_lines(query).all()

    @staticmethod
    def count_by_day(
        db: Session, user_id: int, start: datetime, end: datetime, professional_id: Optional[int] = None
    ) -> list[tuple]:
        """(day, count) pairs for a calendar range"""
        day = func.date(Appointment.appointment_date)
        query = db.query(day, func.count(Appointment.id)).filter(
            Appointment.user_id == user_id,
            Appointment.appointment_date >= start,
            Appointment.appointment_date < end,
        )
        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)
        return query.group_by(day).order_by(day).all()

    # Customers
    @staticmethod
    def get_customer_by_phone(db: Session, user_id: int, phone: str) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.user_id == user_id, Customer.phone == phone)
            .first()
        )

    @staticmethod
    def add_customer(db: Session, user_id: int, name: str, phone: str, professional_id: int) -> Customer:
        customer = Customer(user_id=user_id, name=name, phone=phone, professional_id=professional_id)
        db.add(customer)
        db.flush()
        return customer

    # Commissions
    @staticmethod
    def get_commission_percentage(
        db: Session, professional_id: int, service: Service
    ) -> float:
        """Per-professional commission, falling back to the service default"""
        assignment = (
            db.query(ProfessionalService)
            .filter(
                ProfessionalService.professional_id == professional_id,
                ProfessionalService.service_id == service.id,
            )
            .first()
        )
        if assignment and assignment.commission is not None:
            return assignment.commission
        return service.default_commission or 0

    @staticmethod
    def delete_commissions(db: Session, appointment_id: int) -> int:
        return (
            db.query(ProfessionalCommission)
            .filter(ProfessionalCommission.appointment_id == appointment_id)
            .delete(synchronize_session=False)
        )

    @staticmethod
    def delete_appointments(db: Session, appointments: list[Appointment]) -> int:
        for appointment in appointments:
            SchedulingRepository.delete_commissions(db, appointment.id)
            db.delete(appointment)
        return len(appointments)

    # Dashboard
    @staticmethod
    def count_active(db: Session, model, user_id: int) -> int:
        return (
            db.query(func.count(model.id))
            .filter(model.user_id == user_id, model.active.is_(True))
            .scalar()
        )

    @staticmethod
    def sum_appointment_revenue(
        db: Session, user_id: int, statuses: tuple, professional_id: Optional[int] = None
    ) -> float:
        query = db.query(func.coalesce(func.sum(Appointment.total_price), 0)).filter(
            Appointment.user_id == user_id, Appointment.status.in_(statuses)
        )
        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)
        return float(query.scalar() or 0)

    @staticmethod
    def count_appointments(db: Session, user_id: int, professional_id: Optional[int] = None) -> int:
        query = db.query(func.count(Appointment.id)).filter(Appointment.user_id == user_id)
        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)
        return query.scalar()

    @staticmethod
    def sum_paid_package_revenue(db: Session, user_id: int) -> float:
        total = (
            db.query(func.coalesce(func.sum(Package.price), 0))
            .select_from(CustomerPackage)
            .join(Package, CustomerPackage.package_id == Package.id)
            .filter(CustomerPackage.user_id == user_id, CustomerPackage.paid.is_(True))
            .scalar()
        )
        return float(total or 0)
