"""Scheduling router - FastAPI endpoints for appointments"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal
from ...database import get_db
from ...models import Appointment
from .overlap import appointment_window
from .schemas import (
    AppointmentCreate,
    AppointmentLineResponse,
    AppointmentResponse,
    AppointmentUpdate,
    BatchDeleteRequest,
    CalendarDayResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
    DashboardStats,
    SlotResponse,
    StatusUpdate,
)
from .service import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db)


def appointment_response(appointment: Appointment) -> AppointmentResponse:
    start, end = appointment_window(appointment)
    return AppointmentResponse(
        id=appointment.id,
        professionalId=appointment.professional_id,
        professionalName=appointment.professional.name if appointment.professional else None,
        customerName=appointment.customer_name,
        customerPhone=appointment.customer_phone,
        appointmentDate=start,
        endDate=end,
        durationMinutes=int((end - start).total_seconds() // 60),
        status=appointment.status,
        totalPrice=appointment.total_price,
        notes=appointment.notes,
        overriddenConflict=appointment.overridden_conflict,
        services=[
            AppointmentLineResponse(
                id=line.id,
                serviceId=line.service_id,
                serviceName=line.service.name if line.service else None,
                durationMinutes=line.service.duration_minutes if line.service else None,
                price=line.price,
                usedPackageSession=line.used_package_session,
                customerPackageId=line.customer_package_id,
            )
            for line in appointment.services
        ],
        created_at=appointment.created_at,
    )


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    status: Optional[str] = Query(None),
    professional_id: Optional[int] = Query(None, alias="professionalId"),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    day: Optional[date] = Query(None),
    customer_name: Optional[str] = Query(None, alias="customerName"),
    customer_phone: Optional[str] = Query(None, alias="customerPhone"),
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """List and search appointments"""
    appointments = service.list_appointments(
        principal,
        status=status,
        professional_id=professional_id,
        start=start,
        end=end,
        day=day,
        customer_name=customer_name,
        customer_phone=customer_phone,
    )
    return [appointment_response(a) for a in appointments]


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Dashboard counters and revenue"""
    return service.get_stats(principal)


@router.get("/calendar", response_model=list[CalendarDayResponse])
async def get_calendar(
    year: int = Query(...),
    month: int = Query(...),
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Appointment count per day for the month view"""
    return service.get_calendar(principal, year, month)


@router.get("/availability", response_model=list[SlotResponse])
async def get_availability(
    professional_id: int = Query(..., alias="professionalId"),
    day: date = Query(..., alias="date"),
    service_ids: list[int] = Query([], alias="serviceIds"),
    exclude_appointment_id: Optional[int] = Query(None, alias="excludeAppointmentId"),
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Bookable slots of a day for the given services"""
    return service.get_availability(
        principal, professional_id, day, service_ids, exclude_appointment_id
    )


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    data: ConflictCheckRequest,
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Dry-run the overlap check without booking"""
    return service.check_conflicts(
        principal,
        data.professionalId,
        data.appointmentDate,
        data.serviceIds,
        data.excludeAppointmentId,
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return appointment_response(service.get_appointment(appointment_id, principal))


# ============================================================================
# COMMANDS
# ============================================================================


@router.post("", response_model=AppointmentResponse)
async def create_appointment(
    data: AppointmentCreate,
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """
    Book an appointment.

    Returns 409 with the conflicting appointments when the slot is taken;
    resend with force=true to book anyway.
    """
    return appointment_response(service.create_appointment(data, principal))


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Edit or reschedule an appointment"""
    return appointment_response(service.update_appointment(appointment_id, data, principal))


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: StatusUpdate,
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return appointment_response(
        service.update_status(appointment_id, data.status, principal, force=data.force)
    )


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.delete_appointment(appointment_id, principal)


@router.post("/batch-delete")
async def batch_delete_appointments(
    data: BatchDeleteRequest,
    principal: Principal = Depends(get_current_principal),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Batch delete multiple appointments"""
    return service.batch_delete_appointments(data.appointmentIds, principal)
