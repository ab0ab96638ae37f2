"""Report domain schemas"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class FinancialReport(BaseModel):
    periodStart: datetime
    periodEnd: datetime
    packagesRevenue: float
    servicesRevenue: float
    totalRevenue: float
    commissionsCost: float
    netRevenue: float
    packagesCount: int
    servicesCount: int


class CommissionDay(BaseModel):
    date: date
    servicesCount: int
    servicesValue: float
    commission: float


class ProfessionalCommissionReport(BaseModel):
    professionalId: int
    professionalName: Optional[str] = None
    servicesCount: int
    servicesValue: float
    totalCommission: float
    days: list[CommissionDay]


class CommissionReport(BaseModel):
    periodStart: datetime
    periodEnd: datetime
    totalCommission: float
    professionals: list[ProfessionalCommissionReport]
