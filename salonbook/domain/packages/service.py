"""Package service - Business logic for packages and session credits"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import ConflictError, NotFoundError, ValidationError
from ...models import AppointmentService, CustomerPackage, Package, User
from ...retry import run_in_transaction
from ...utils.dates import to_utc_naive, utcnow
from .repository import PackageRepository
from .schemas import PackageCreate, PackageUpdate, PurchaseRequest

logger = logging.getLogger(__name__)


def is_expired(customer_package: CustomerPackage, now: datetime) -> bool:
    return customer_package.expiration_date is not None and customer_package.expiration_date <= now


def is_valid(customer_package: CustomerPackage, now: datetime) -> bool:
    """A purchased package can pay for sessions while unexpired with credits left"""
    if is_expired(customer_package, now):
        return False
    return any(balance.sessions_remaining > 0 for balance in customer_package.balances)


class PackageService:
    """Service layer for package business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PackageRepository()

    # ------------------------------------------------------------------
    # Catalogue
    # ------------------------------------------------------------------

    def get_packages(self, user: User, active_only: bool = False) -> list[Package]:
        return self.repo.get_packages(self.db, user.id, active_only)

    def get_package(self, package_id: int, user: User) -> Package:
        package = self.repo.get_package_by_id(self.db, package_id, user.id)
        if not package:
            raise NotFoundError("Package not found")
        return package

    def _check_services(self, user: User, service_ids: list[int]) -> None:
        found = {s.id for s in self.repo.get_services_by_ids(self.db, service_ids, user.id)}
        missing = [sid for sid in service_ids if sid not in found]
        if missing:
            raise ValidationError(f"Unknown service(s): {missing}", field="services")

    def create_package(self, data: PackageCreate, user: User) -> Package:
        logger.info(f"📥 Creating package '{data.name}' for user_id: {user.id}")
        items = [(item.serviceId, item.quantity) for item in data.services]
        self._check_services(user, [sid for sid, _ in items])

        return self.repo.create_package(
            self.db,
            user.id,
            items,
            name=data.name,
            description=data.description,
            price=data.price,
            expires_after_days=data.expiresAfterDays,
            active=data.active,
        )

    def update_package(self, package_id: int, data: PackageUpdate, user: User) -> Package:
        package = self.get_package(package_id, user)

        items = None
        if data.services is not None:
            items = [(item.serviceId, item.quantity) for item in data.services]
            self._check_services(user, [sid for sid, _ in items])

        updates = {
            "name": data.name,
            "description": data.description,
            "price": data.price,
            "expires_after_days": data.expiresAfterDays,
            "active": data.active,
        }
        return self.repo.update_package(self.db, package, items, **updates)

    def delete_package(self, package_id: int, user: User) -> dict:
        package = self.get_package(package_id, user)

        # Sold packages carry customer balances; they can only be deactivated
        if self.repo.count_sales(self.db, package.id):
            raise ConflictError(
                "This package has already been sold. Deactivate it instead.",
                action="deactivate",
            )

        self.repo.delete_package(self.db, package)
        logger.info(f"🗑️ Package {package_id} deleted by user {user.id}")
        return {"message": "Package deleted"}

    def get_sales(self, user: User) -> list[CustomerPackage]:
        return self.repo.get_package_sales(self.db, user.id)

    # ------------------------------------------------------------------
    # Customer packages
    # ------------------------------------------------------------------

    def get_customer_packages(self, customer_id: int, user_id: int) -> list[CustomerPackage]:
        if not self.repo.get_customer(self.db, customer_id, user_id):
            raise NotFoundError("Customer not found")
        return self.repo.get_customer_packages(self.db, user_id, customer_id)

    def purchase(self, data: PurchaseRequest, user: User) -> list[CustomerPackage]:
        """Sell one or more packages to a customer in a single transaction"""
        customer = self.repo.get_customer(self.db, data.customerId, user.id)
        if not customer:
            raise NotFoundError("Customer not found")

        packages = []
        for package_id in data.packageIds:
            package = self.repo.get_package_by_id(self.db, package_id, user.id)
            if not package:
                raise ValidationError(f"Package {package_id} not found", field="packageIds")
            if not package.active:
                raise ValidationError(f"Package '{package.name}' is inactive", field="packageIds")
            packages.append(package)

        purchased_at = to_utc_naive(data.purchaseDate) or utcnow()

        def _purchase(db: Session) -> list[CustomerPackage]:
            return [
                self.repo.add_customer_package(
                    db, user.id, customer.id, package, purchased_at, paid=data.paid
                )
                for package in packages
            ]

        purchased = run_in_transaction(self.db, _purchase)
        logger.info(
            f"✅ Sold {len(purchased)} package(s) to customer {customer.id} (user {user.id})"
        )
        return purchased

    def renew(self, customer_package_id: int, user: User, paid: bool = True) -> CustomerPackage:
        """Buy the same package again for the same customer, with fresh balances"""
        previous = self.repo.get_customer_package(self.db, customer_package_id, user.id)
        if not previous:
            raise NotFoundError("Customer package not found")

        package = self.get_package(previous.package_id, user)
        if not package.active:
            raise ValidationError(f"Package '{package.name}' is inactive", field="packageId")

        renewed = run_in_transaction(
            self.db,
            lambda db: self.repo.add_customer_package(
                db, user.id, previous.customer_id, package, utcnow(), paid=paid
            ),
        )
        logger.info(f"🔄 Renewed package {package.id} for customer {previous.customer_id}")
        return renewed

    def set_paid(self, customer_package_id: int, paid: bool, user: User) -> CustomerPackage:
        customer_package = self.repo.get_customer_package(self.db, customer_package_id, user.id)
        if not customer_package:
            raise NotFoundError("Customer package not found")
        customer_package.paid = paid
        self.db.commit()
        self.db.refresh(customer_package)
        return customer_package

    def delete_customer_package(self, customer_package_id: int, user: User) -> dict:
        customer_package = self.repo.get_customer_package(self.db, customer_package_id, user.id)
        if not customer_package:
            raise NotFoundError("Customer package not found")
        self.repo.delete_customer_package(self.db, customer_package)
        return {"message": "Customer package deleted"}

    # ------------------------------------------------------------------
    # Credit ledger (runs inside the caller's transaction, never commits)
    # ------------------------------------------------------------------

    def consume_credit(
        self, user_id: int, customer_id: int, service_id: int, now: Optional[datetime] = None
    ) -> Optional[int]:
        """
        Spend one session of `service_id` from the customer's packages.

        Returns the id of the customer package that paid, or None when no
        credit was available (the caller charges full price).
        """
        now = now or utcnow()
        for source in self.repo.get_credit_sources(self.db, user_id, customer_id, service_id, now):
            if self.repo.consume_credit(self.db, source.customer_package_id, service_id):
                logger.info(
                    f"🎟️ Consumed 1 session of service {service_id} "
                    f"from customer package {source.customer_package_id}"
                )
                return source.customer_package_id
            # Lost a race on this row; try the next source
            logger.debug(f"Credit row {source.id} already drained, trying next source")
        return None

    def refund_line(self, line: AppointmentService) -> bool:
        """Return the session a line consumed to its package, if it still exists"""
        if not line.used_package_session or not line.customer_package_id:
            return False
        refunded = self.repo.refund_credit(self.db, line.customer_package_id, line.service_id)
        if refunded:
            logger.info(
                f"↩️ Refunded 1 session of service {line.service_id} "
                f"to customer package {line.customer_package_id}"
            )
        else:
            logger.warning(
                f"⚠️ Could not refund line {line.id}: customer package "
                f"{line.customer_package_id} no longer exists"
            )
        line.used_package_session = False
        line.customer_package_id = None
        return refunded
