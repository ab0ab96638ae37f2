"""Package repository - Database operations for packages and the credit ledger"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session, joinedload

from ...models import (
    Customer,
    CustomerPackage,
    CustomerPackageService,
    Package,
    PackageService,
    Service,
)


class PackageRepository:
    """Repository for package catalogue and credit ledger operations"""

    # Package catalogue
    @staticmethod
    def get_packages(db: Session, user_id: int, active_only: bool = False) -> list[Package]:
        """Get all packages for a user"""
        query = (
            db.query(Package)
            .options(joinedload(Package.services).joinedload(PackageService.service))
            .filter(Package.user_id == user_id)
        )
        if active_only:
            query = query.filter(Package.active.is_(True))
        return query.order_by(Package.name).all()

    @staticmethod
    def get_package_by_id(db: Session, package_id: int, user_id: int) -> Optional[Package]:
        return (
            db.query(Package)
            .filter(Package.id == package_id, Package.user_id == user_id)
            .first()
        )

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
    def create_package(
        db: Session, user_id: int, items: list[tuple[int, int]], **package_data
    ) -> Package:
        """Create a package and its (service, quantity) bundle"""
        package = Package(user_id=user_id, **package_data)
        package.services = [
            PackageService(service_id=service_id, quantity=quantity)
            for service_id, quantity in items
        ]
        db.add(package)
        db.commit()
        db.refresh(package)
        return package

    @staticmethod
    def update_package(
        db: Session, package: Package, items: Optional[list[tuple[int, int]]] = None, **updates
    ) -> Package:
        """Update package fields; replace the bundle when items are given"""
        for key, value in updates.items():
            if value is not None and hasattr(package, key):
                setattr(package, key, value)

        if items is not None:
            package.services.clear()
            db.flush()
            package.services.extend(
                PackageService(service_id=service_id, quantity=quantity)
                for service_id, quantity in items
            )

        db.commit()
        db.refresh(package)
        return package

    @staticmethod
    def count_sales(db: Session, package_id: int) -> int:
        return (
            db.query(func.count(CustomerPackage.id))
            .filter(CustomerPackage.package_id == package_id)
            .scalar()
        )

    @staticmethod
    def delete_package(db: Session, package: Package) -> None:
        db.delete(package)
        db.commit()

    @staticmethod
    def get_package_sales(db: Session, user_id: int) -> list[CustomerPackage]:
        """Paid customer packages, newest first"""
        return (
            db.query(CustomerPackage)
            .options(joinedload(CustomerPackage.customer), joinedload(CustomerPackage.package))
            .filter(CustomerPackage.user_id == user_id, CustomerPackage.paid.is_(True))
            .order_by(CustomerPackage.purchase_date.desc())
            .all()
        )

    # Customer packages
    @staticmethod
    def get_customer(db: Session, customer_id: int, user_id: int) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.id == customer_id, Customer.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_customer_packages(db: Session, user_id: int, customer_id: int) -> list[CustomerPackage]:
        return (
            db.query(CustomerPackage)
            .options(
                joinedload(CustomerPackage.package),
                joinedload(CustomerPackage.balances).joinedload(CustomerPackageService.service),
            )
            .filter(CustomerPackage.user_id == user_id, CustomerPackage.customer_id == customer_id)
            .order_by(CustomerPackage.purchase_date.desc())
            .all()
        )

    @staticmethod
    def get_customer_package(
        db: Session, customer_package_id: int, user_id: int
    ) -> Optional[CustomerPackage]:
        return (
            db.query(CustomerPackage)
            .filter(CustomerPackage.id == customer_package_id, CustomerPackage.user_id == user_id)
            .first()
        )

    @staticmethod
    def add_customer_package(
        db: Session, user_id: int, customer_id: int, package: Package, purchased_at: datetime, paid: bool = True
    ) -> CustomerPackage:
        """
        Stage a purchase: one CustomerPackage plus one ledger row per bundled
        service, each starting at the bundle quantity. Caller commits.
        """
        expiration_date = None
        if package.expires_after_days:
            expiration_date = purchased_at + timedelta(days=package.expires_after_days)

        customer_package = CustomerPackage(
            user_id=user_id,
            customer_id=customer_id,
            package_id=package.id,
            paid=paid,
            purchase_date=purchased_at,
            expiration_date=expiration_date,
        )
        customer_package.balances = [
            CustomerPackageService(service_id=item.service_id, sessions_remaining=item.quantity)
            for item in package.services
        ]
        db.add(customer_package)
        db.flush()
        return customer_package

    @staticmethod
    def delete_customer_package(db: Session, customer_package: CustomerPackage) -> None:
        db.delete(customer_package)
        db.commit()

    # Credit ledger
    @staticmethod
    def get_credit_sources(
        db: Session, user_id: int, customer_id: int, service_id: int, now: datetime
    ) -> list[CustomerPackageService]:
        """
        Ledger rows that can pay for one session of `service_id`: paid,
        unexpired and with sessions left. Soonest-expiring first, packages
        without expiry last, then oldest purchase.
        """
        return (
            db.query(CustomerPackageService)
            .join(CustomerPackage, CustomerPackageService.customer_package_id == CustomerPackage.id)
            .filter(
                CustomerPackage.user_id == user_id,
                CustomerPackage.customer_id == customer_id,
                CustomerPackage.paid.is_(True),
                or_(CustomerPackage.expiration_date.is_(None), CustomerPackage.expiration_date > now),
                CustomerPackageService.service_id == service_id,
                CustomerPackageService.sessions_remaining > 0,
            )
            .order_by(
                CustomerPackage.expiration_date.is_(None),
                CustomerPackage.expiration_date,
                CustomerPackage.purchase_date,
                CustomerPackage.id,
            )
            .all()
        )

    @staticmethod
    def consume_credit(db: Session, customer_package_id: int, service_id: int) -> bool:
        """
        Take one session off a ledger row in a single conditional UPDATE.

        Returns False when the row had no sessions left (or lost the race to
        a concurrent booking); the balance can never go below zero.
        """
        result = db.execute(
            update(CustomerPackageService)
            .where(
                CustomerPackageService.customer_package_id == customer_package_id,
                CustomerPackageService.service_id == service_id,
                CustomerPackageService.sessions_remaining > 0,
            )
            .values(
                sessions_remaining=CustomerPackageService.sessions_remaining - 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def refund_credit(db: Session, customer_package_id: int, service_id: int) -> bool:
        """Give a consumed session back; False if the ledger row is gone"""
        result = db.execute(
            update(CustomerPackageService)
            .where(
                CustomerPackageService.customer_package_id == customer_package_id,
                CustomerPackageService.service_id == service_id,
            )
            .values(
                sessions_remaining=CustomerPackageService.sessions_remaining + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
