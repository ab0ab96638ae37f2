"""Report service - Revenue, commission and export reports"""

import csv
import logging
from collections import defaultdict
from datetime import date, datetime
from io import StringIO
from typing import Optional

from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...auth import Principal
from ...exceptions import ValidationError
from ...models import User
from ...utils.dates import day_bounds, month_bounds, to_utc_naive
from ..scheduling.overlap import appointment_window
from .repository import ReportRepository

logger = logging.getLogger(__name__)


def _check_range(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    start, end = to_utc_naive(start), to_utc_naive(end)
    if end <= start:
        raise ValidationError("End must be after start", field="end")
    return start, end


class ReportService:
    """Service layer for reports"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReportRepository()

    def financial_report(self, user: User, start: datetime, end: datetime) -> dict:
        """
        Revenue for a period.

        Packages count when paid and purchased in the period, services when the
        appointment was completed in the period, commissions by the date they
        were recorded.
        """
        start, end = _check_range(start, end)
        packages_count, packages_revenue = self.repo.package_sales(self.db, user.id, start, end)
        services_count, services_revenue = self.repo.completed_appointments(
            self.db, user.id, start, end
        )
        commissions = self.repo.commissions_total(self.db, user.id, start, end)
        total = packages_revenue + services_revenue

        return {
            "periodStart": start,
            "periodEnd": end,
            "packagesRevenue": round(packages_revenue, 2),
            "servicesRevenue": round(services_revenue, 2),
            "totalRevenue": round(total, 2),
            "commissionsCost": round(commissions, 2),
            "netRevenue": round(total - commissions, 2),
            "packagesCount": packages_count,
            "servicesCount": services_count,
        }

    def daily_report(self, user: User, day: date) -> dict:
        return self.financial_report(user, *day_bounds(day))

    def monthly_report(self, user: User, year: int, month: int) -> dict:
        if month < 1 or month > 12:
            raise ValidationError("Month must be between 1 and 12", field="month")
        return self.financial_report(user, *month_bounds(year, month))

    def commission_report(
        self,
        principal: Principal,
        start: datetime,
        end: datetime,
        professional_id: Optional[int] = None,
    ) -> dict:
        """Commission totals per professional with a per-day breakdown"""
        start, end = _check_range(start, end)
        if not principal.is_owner:
            if professional_id is not None and professional_id != principal.professional_id:
                raise HTTPException(status_code=403, detail="You can only see your own commissions")
            professional_id = principal.professional_id

        rows = self.repo.commission_rows(self.db, principal.user_id, start, end, professional_id)
        professionals = self.repo.professionals_by_id(self.db, principal.user_id)

        per_professional: dict[int, dict[date, dict]] = defaultdict(
            lambda: defaultdict(lambda: {"servicesCount": 0, "servicesValue": 0.0, "commission": 0.0})
        )
        for row in rows:
            day = per_professional[row.professional_id][row.paid_at.date()]
            day["servicesCount"] += 1
            day["servicesValue"] += row.service_price
            day["commission"] += row.commission_amount

        reports = []
        for pid, days in per_professional.items():
            day_list = [
                {
                    "date": d,
                    "servicesCount": v["servicesCount"],
                    "servicesValue": round(v["servicesValue"], 2),
                    "commission": round(v["commission"], 2),
                }
                for d, v in sorted(days.items())
            ]
            professional = professionals.get(pid)
            reports.append(
                {
                    "professionalId": pid,
                    "professionalName": professional.name if professional else None,
                    "servicesCount": sum(d["servicesCount"] for d in day_list),
                    "servicesValue": round(sum(d["servicesValue"] for d in day_list), 2),
                    "totalCommission": round(sum(d["commission"] for d in day_list), 2),
                    "days": day_list,
                }
            )
        reports.sort(key=lambda r: r["professionalName"] or "")

        return {
            "periodStart": start,
            "periodEnd": end,
            "totalCommission": round(sum(r["totalCommission"] for r in reports), 2),
            "professionals": reports,
        }

    def export_appointments_csv(
        self, principal: Principal, start: datetime, end: datetime
    ) -> StreamingResponse:
        """Export the appointments of a period as CSV"""
        start, end = _check_range(start, end)
        logger.info(f"📊 CSV export requested by user {principal.user_id}")

        appointments = self.repo.appointments_in_range(
            self.db, principal.user_id, start, end, principal.professional_id
        )

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(
            [
                "ID",
                "Date",
                "End",
                "Professional",
                "Customer",
                "Phone",
                "Services",
                "Package Sessions",
                "Status",
                "Total",
                "Notes",
            ]
        )
        for appointment in appointments:
            appt_start, appt_end = appointment_window(appointment)
            writer.writerow(
                [
                    appointment.id,
                    appt_start.strftime("%Y-%m-%d %H:%M"),
                    appt_end.strftime("%H:%M"),
                    appointment.professional.name if appointment.professional else "",
                    appointment.customer_name,
                    appointment.customer_phone,
                    "; ".join(line.service.name for line in appointment.services if line.service),
                    sum(1 for line in appointment.services if line.used_package_session),
                    appointment.status,
                    f"{appointment.total_price:.2f}",
                    appointment.notes or "",
                ]
            )

        output.seek(0)
        filename = f"appointments_{start.strftime('%Y%m%d')}_{end.strftime('%Y%m%d')}.csv"
        logger.info(f"✅ CSV export successful: {filename} ({len(appointments)} appointments)")

        return StreamingResponse(
            iter([output.getvalue()]),
            media_type="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Cache-Control": "no-cache",
            },
        )
