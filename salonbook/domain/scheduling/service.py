"""Scheduling service - Business logic for appointments"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...auth import Principal
from ...exceptions import AppointmentConflictError, NotFoundError, ValidationError
from ...models import (
    BLOCKING_STATUSES,
    Appointment,
    AppointmentService,
    Customer,
    Professional,
    ProfessionalCommission,
    Service,
)
from ...retry import run_in_transaction
from ...utils.dates import day_bounds, month_bounds, to_utc_naive, utcnow
from ..packages.service import PackageService
from .overlap import (
    appointment_window,
    blocks_calendar,
    find_conflicts,
    slot_availability,
    total_duration,
)
from .repository import MAX_APPOINTMENT_SPAN, SchedulingRepository
from .schemas import AppointmentCreate, AppointmentUpdate

logger = logging.getLogger(__name__)


def conflict_summary(appointment: Appointment) -> dict:
    start, end = appointment_window(appointment)
    return {
        "id": appointment.id,
        "customerName": appointment.customer_name,
        "start": start,
        "end": end,
        "status": appointment.status,
    }


class SchedulingService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()
        self.packages = PackageService(db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _scoped_professional_id(principal: Principal, requested: Optional[int]) -> Optional[int]:
        """Professionals can only act on their own calendar"""
        if principal.is_owner:
            return requested
        if requested is not None and requested != principal.professional_id:
            raise HTTPException(
                status_code=403, detail="You can only manage your own appointments"
            )
        return principal.professional_id

    def _get_active_professional(self, professional_id: int, user_id: int) -> Professional:
        professional = self.repo.get_professional(self.db, professional_id, user_id)
        if not professional or not professional.active:
            raise ValidationError("Professional not found or inactive", field="professionalId")
        return professional

    def _load_services(self, service_ids: list[int], user_id: int) -> dict[int, Service]:
        services = {s.id: s for s in self.repo.get_services(self.db, list(set(service_ids)), user_id)}
        missing = sorted({sid for sid in service_ids if sid not in services})
        if missing:
            raise ValidationError(f"Unknown service(s): {missing}", field="services")
        inactive = [s.name for s in services.values() if not s.active]
        if inactive:
            raise ValidationError(f"Inactive service(s): {', '.join(inactive)}", field="services")
        return services

    @staticmethod
    def _check_duration(duration: int) -> int:
        if timedelta(minutes=duration) > MAX_APPOINTMENT_SPAN:
            raise ValidationError(
                "An appointment cannot last longer than 24 hours", field="services"
            )
        return duration

    def _conflicts_for(
        self,
        professional_id: int,
        start: datetime,
        duration: int,
        exclude_appointment_id: Optional[int] = None,
    ) -> list[Appointment]:
        end = start + timedelta(minutes=duration)
        existing = self.repo.get_blocking_appointments(self.db, professional_id, start, end)
        return find_conflicts(start, duration, existing, exclude_appointment_id)

    def _raise_conflict(self, conflicts: list[Appointment], start: datetime, duration: int):
        logger.info(
            f"⚠️ Booking at {start.isoformat()} overlaps {len(conflicts)} appointment(s)"
        )
        summaries = []
        for appointment in conflicts:
            summary = conflict_summary(appointment)
            summary["start"] = summary["start"].isoformat()
            summary["end"] = summary["end"].isoformat()
            summaries.append(summary)
        raise AppointmentConflictError(summaries, start, start + timedelta(minutes=duration))

    def _upsert_customer(
        self, user_id: int, name: str, phone: str, professional_id: int
    ) -> Customer:
        customer = self.repo.get_customer_by_phone(self.db, user_id, phone)
        if customer:
            customer.name = name
            customer.professional_id = professional_id
            return customer
        logger.info(f"🆕 New customer from booking: {phone}")
        return self.repo.add_customer(self.db, user_id, name, phone, professional_id)

    def _refund_credits(self, appointment: Appointment) -> None:
        """Give package sessions back; refunded lines are then charged full price"""
        changed = False
        for line in appointment.services:
            if line.used_package_session:
                self.packages.refund_line(line)
                line.price = line.service.price if line.service else 0
                changed = True
        if changed:
            appointment.total_price = sum(line.price for line in appointment.services)

    def _write_commissions(self, appointment: Appointment) -> None:
        paid_at = utcnow()
        for line in appointment.services:
            service = line.service
            # Sessions paid by a package still earn commission on the catalog price
            base = service.price if line.used_package_session else line.price
            percentage = self.repo.get_commission_percentage(
                self.db, appointment.professional_id, service
            )
            self.db.add(
                ProfessionalCommission(
                    user_id=appointment.user_id,
                    professional_id=appointment.professional_id,
                    appointment_id=appointment.id,
                    appointment_service_id=line.id,
                    service_price=base,
                    commission_percentage=percentage,
                    commission_amount=round(base * percentage / 100, 2),
                    paid_at=paid_at,
                )
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int, principal: Principal) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id, principal.user_id)
        if not appointment or (
            not principal.is_owner and appointment.professional_id != principal.professional_id
        ):
            raise NotFoundError("Appointment not found")
        return appointment

    def list_appointments(
        self,
        principal: Principal,
        status: Optional[str] = None,
        professional_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        day: Optional[date] = None,
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> list[Appointment]:
        """List and search appointments; `day` wins over an explicit range"""
        professional_id = self._scoped_professional_id(principal, professional_id)
        if day:
            start, end = day_bounds(day)
        return self.repo.search_appointments(
            self.db,
            principal.user_id,
            professional_id=professional_id,
            status=status,
            start=to_utc_naive(start),
            end=to_utc_naive(end),
            customer_name=customer_name.strip() if customer_name else None,
            customer_phone="".join(ch for ch in customer_phone if ch.isdigit()) if customer_phone else None,
        )

    def check_conflicts(
        self,
        principal: Principal,
        professional_id: int,
        appointment_date: datetime,
        service_ids: list[int],
        exclude_appointment_id: Optional[int] = None,
    ) -> dict:
        """Dry-run overlap check for the booking form"""
        professional_id = self._scoped_professional_id(principal, professional_id)
        services = self._load_services(service_ids, principal.user_id) if service_ids else {}
        duration = self._check_duration(
            total_duration(services[sid].duration_minutes for sid in service_ids)
        )
        start = to_utc_naive(appointment_date)
        conflicts = self._conflicts_for(professional_id, start, duration, exclude_appointment_id)
        return {
            "hasConflict": bool(conflicts),
            "conflicts": [conflict_summary(a) for a in conflicts],
            "proposedStart": start,
            "proposedEnd": start + timedelta(minutes=duration),
        }

    def get_availability(
        self,
        principal: Principal,
        professional_id: int,
        day: date,
        service_ids: list[int],
        exclude_appointment_id: Optional[int] = None,
    ) -> list[dict]:
        professional_id = self._scoped_professional_id(principal, professional_id)
        services = self._load_services(service_ids, principal.user_id) if service_ids else {}
        duration = self._check_duration(
            total_duration(services[sid].duration_minutes for sid in service_ids)
        )
        day_start, day_end = day_bounds(day)
        existing = self.repo.get_blocking_appointments(
            self.db, professional_id, day_start, day_end + timedelta(minutes=duration)
        )
        return slot_availability(day, duration, existing, exclude_appointment_id)

    def get_calendar(self, principal: Principal, year: int, month: int) -> list[dict]:
        """Appointment count per day of a month"""
        if month < 1 or month > 12:
            raise ValidationError("Month must be between 1 and 12", field="month")
        start, end = month_bounds(year, month)
        rows = self.repo.count_by_day(
            self.db, principal.user_id, start, end, self._scoped_professional_id(principal, None)
        )
        # func.date() yields a date on PostgreSQL and an ISO string on SQLite
        return [
            {"date": d if isinstance(d, date) else date.fromisoformat(str(d)), "count": count}
            for d, count in rows
        ]

    def get_stats(self, principal: Principal) -> dict:
        user_id = principal.user_id
        professional_id = self._scoped_professional_id(principal, None)

        completed = self.repo.sum_appointment_revenue(
            self.db, user_id, ("completed",), professional_id
        )
        projected = self.repo.sum_appointment_revenue(
            self.db, user_id, BLOCKING_STATUSES + ("completed",), professional_id
        )
        packages = 0.0 if professional_id else self.repo.sum_paid_package_revenue(self.db, user_id)

        return {
            "totalAppointments": self.repo.count_appointments(self.db, user_id, professional_id),
            "realizedRevenue": round(completed + packages, 2),
            "projectedRevenue": round(projected + packages, 2),
            "activeProfessionals": self.repo.count_active(self.db, Professional, user_id),
            "activeServices": self.repo.count_active(self.db, Service, user_id),
        }

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_appointment(self, data: AppointmentCreate, principal: Principal) -> Appointment:
        """
        Book an appointment in one transaction.

        The professional row is locked first so concurrent bookings for the
        same professional run the overlap check one after another. Package
        credits are consumed per line with a conditional UPDATE; a line with
        no credit left is charged the service's full price.
        """
        user_id = principal.user_id
        professional_id = self._scoped_professional_id(principal, data.professionalId)
        self._get_active_professional(professional_id, user_id)
        services = self._load_services([line.serviceId for line in data.services], user_id)

        start = to_utc_naive(data.appointmentDate)
        duration = self._check_duration(
            total_duration(services[line.serviceId].duration_minutes for line in data.services)
        )

        logger.info(
            f"📥 Booking for professional {professional_id} at {start.isoformat()} "
            f"({duration} min, force={data.force})"
        )

        def _create(db: Session) -> Appointment:
            self.repo.lock_professional(db, professional_id, user_id)

            conflicts = self._conflicts_for(professional_id, start, duration)
            if conflicts and not data.force:
                self._raise_conflict(conflicts, start, duration)

            customer = self._upsert_customer(
                user_id, data.customerName, data.customerPhone, professional_id
            )

            appointment = Appointment(
                user_id=user_id,
                professional_id=professional_id,
                customer_name=data.customerName,
                customer_phone=data.customerPhone,
                appointment_date=start,
                status="pending",
                notes=data.notes,
                overridden_conflict=bool(conflicts),
            )
            for line in data.services:
                service = services[line.serviceId]
                customer_package_id = None
                if line.usePackage:
                    customer_package_id = self.packages.consume_credit(
                        user_id, customer.id, service.id
                    )
                appointment.services.append(
                    AppointmentService(
                        service_id=service.id,
                        price=0 if customer_package_id else service.price,
                        used_package_session=customer_package_id is not None,
                        customer_package_id=customer_package_id,
                    )
                )
            appointment.total_price = sum(line.price for line in appointment.services)

            db.add(appointment)
            db.flush()
            return appointment

        appointment = run_in_transaction(self.db, _create)
        if appointment.overridden_conflict:
            logger.warning(f"⚠️ Appointment {appointment.id} booked over a conflict (forced)")
        logger.info(f"✅ Appointment {appointment.id} created, total {appointment.total_price}")
        return appointment

    def update_appointment(
        self, appointment_id: int, data: AppointmentUpdate, principal: Principal
    ) -> Appointment:
        """Edit or reschedule; moving a live booking re-runs the overlap check"""
        appointment = self.get_appointment(appointment_id, principal)
        user_id = principal.user_id

        professional_id = appointment.professional_id
        if data.professionalId is not None:
            professional_id = self._scoped_professional_id(principal, data.professionalId)
            self._get_active_professional(professional_id, user_id)
        start = (
            to_utc_naive(data.appointmentDate)
            if data.appointmentDate is not None
            else appointment.appointment_date
        )

        def _update(db: Session) -> Appointment:
            moved = (
                professional_id != appointment.professional_id
                or start != appointment.appointment_date
            )
            if moved and blocks_calendar(appointment):
                self.repo.lock_professional(db, professional_id, user_id)
                _, end = appointment_window(appointment)
                duration = int((end - appointment.appointment_date).total_seconds() // 60)
                conflicts = self._conflicts_for(professional_id, start, duration, appointment.id)
                if conflicts and not data.force:
                    self._raise_conflict(conflicts, start, duration)
                appointment.overridden_conflict = bool(conflicts)

            reassigned = professional_id != appointment.professional_id
            appointment.professional_id = professional_id
            if reassigned and appointment.status == "completed":
                # Commission follows the professional who did the work
                self.repo.delete_commissions(db, appointment.id)
                db.flush()
                self._write_commissions(appointment)

            appointment.appointment_date = start
            if data.customerName is not None:
                appointment.customer_name = data.customerName.strip()
            if data.customerPhone is not None:
                appointment.customer_phone = data.customerPhone
            if data.notes is not None:
                appointment.notes = data.notes
            return appointment

        appointment = run_in_transaction(self.db, _update)
        logger.info(f"✅ Appointment {appointment.id} updated")
        return appointment

    def update_status(
        self, appointment_id: int, status: str, principal: Principal, force: bool = False
    ) -> Appointment:
        """
        Move an appointment through pending/confirmed/completed/cancelled.

        Entering completed records commissions and leaving it removes them.
        Cancelling gives consumed package sessions back.
        """
        appointment = self.get_appointment(appointment_id, principal)
        previous = appointment.status
        if previous == status:
            return appointment

        def _change(db: Session) -> Appointment:
            if status in BLOCKING_STATUSES and previous not in BLOCKING_STATUSES:
                # Reopening a slot: it may have been booked in the meantime
                self.repo.lock_professional(db, appointment.professional_id, appointment.user_id)
                start, end = appointment_window(appointment)
                duration = int((end - start).total_seconds() // 60)
                conflicts = self._conflicts_for(
                    appointment.professional_id, start, duration, appointment.id
                )
                if conflicts and not force:
                    self._raise_conflict(conflicts, start, duration)
                appointment.overridden_conflict = bool(conflicts)

            if previous == "completed":
                self.repo.delete_commissions(db, appointment.id)
            if status == "cancelled":
                self._refund_credits(appointment)

            appointment.status = status
            if status == "completed":
                db.flush()
                self._write_commissions(appointment)
            return appointment

        appointment = run_in_transaction(self.db, _change)
        logger.info(f"🔄 Appointment {appointment.id} status {previous} -> {status}")
        return appointment

    def delete_appointment(self, appointment_id: int, principal: Principal) -> dict:
        appointment = self.get_appointment(appointment_id, principal)

        def _delete(db: Session) -> None:
            self._refund_credits(appointment)
            self.repo.delete_appointments(db, [appointment])

        run_in_transaction(self.db, _delete)
        logger.info(f"🗑️ Appointment {appointment_id} deleted")
        return {"message": "Appointment deleted"}

    def batch_delete_appointments(self, appointment_ids: list[int], principal: Principal) -> dict:
        if not appointment_ids:
            raise ValidationError("No appointment IDs provided", field="appointmentIds")

        appointments = [
            a
            for a in self.repo.get_appointments_by_ids(self.db, appointment_ids, principal.user_id)
            if principal.is_owner or a.professional_id == principal.professional_id
        ]

        def _delete(db: Session) -> int:
            for appointment in appointments:
                self._refund_credits(appointment)
            return self.repo.delete_appointments(db, appointments)

        deleted_count = run_in_transaction(self.db, _delete)
        logger.info(f"✅ User {principal.user_id} deleted {deleted_count} appointment(s)")
        return {
            "message": f"Successfully deleted {deleted_count} appointment(s)",
            "deletedCount": deleted_count,
        }
