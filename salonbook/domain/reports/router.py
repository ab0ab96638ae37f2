"""Report router - FastAPI endpoints for revenue and commission reports"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal, get_current_user
from ...database import get_db
from ...models import User
from .schemas import CommissionReport, FinancialReport
from .service import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


def get_report_service(db: Session = Depends(get_db)) -> ReportService:
    """Dependency injection for ReportService"""
    return ReportService(db)


@router.get("/overview", response_model=FinancialReport)
async def get_overview(
    start: datetime = Query(...),
    end: datetime = Query(...),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """Revenue for an arbitrary period"""
    return service.financial_report(current_user, start, end)


@router.get("/daily", response_model=FinancialReport)
async def get_daily_report(
    day: date = Query(..., alias="date"),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return service.daily_report(current_user, day)


@router.get("/monthly", response_model=FinancialReport)
async def get_monthly_report(
    year: int = Query(...),
    month: int = Query(...),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return service.monthly_report(current_user, year, month)


@router.get("/commissions", response_model=CommissionReport)
async def get_commission_report(
    start: datetime = Query(...),
    end: datetime = Query(...),
    professional_id: Optional[int] = Query(None, alias="professionalId"),
    principal: Principal = Depends(get_current_principal),
    service: ReportService = Depends(get_report_service),
):
    """Commissions per professional; professionals only get their own"""
    return service.commission_report(principal, start, end, professional_id)


@router.get("/export")
async def export_appointments_csv(
    start: datetime = Query(...),
    end: datetime = Query(...),
    principal: Principal = Depends(get_current_principal),
    service: ReportService = Depends(get_report_service),
):
    """Export appointments of a period as CSV"""
    return service.export_appointments_csv(principal, start, end)
