"""Customer service - Business logic for customer operations"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import Principal
from ...exceptions import NotFoundError, ValidationError
from ...models import Customer, Professional
from .repository import CustomerRepository
from .schemas import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)


class CustomerService:
    """Service layer for customer business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CustomerRepository()

    def _check_professional(self, professional_id: Optional[int], user_id: int) -> None:
        if professional_id is None:
            return
        exists = (
            self.db.query(Professional.id)
            .filter(Professional.id == professional_id, Professional.user_id == user_id)
            .first()
        )
        if not exists:
            raise ValidationError("Professional not found", field="professionalId")

    def _check_phone_available(self, user_id: int, phone: str, customer_id: Optional[int] = None):
        existing = self.repo.get_customer_by_phone(self.db, user_id, phone)
        if existing and existing.id != customer_id:
            raise ValidationError(
                f"A customer with phone {phone} already exists ({existing.name})", field="phone"
            )

    def get_customers(self, principal: Principal, search: Optional[str] = None) -> list[Customer]:
        """Owners see every customer, professionals only the ones assigned to them"""
        return self.repo.get_customers(
            self.db,
            principal.user_id,
            professional_id=principal.professional_id,
            search=search.strip() if search else None,
        )

    def get_customer(self, customer_id: int, principal: Principal) -> Customer:
        customer = self.repo.get_customer_by_id(self.db, customer_id, principal.user_id)
        if not customer or (
            not principal.is_owner and customer.professional_id != principal.professional_id
        ):
            raise NotFoundError("Customer not found")
        return customer

    def create_customer(self, data: CustomerCreate, principal: Principal) -> Customer:
        logger.info(f"📥 Creating customer for user_id: {principal.user_id}")
        professional_id = data.professionalId if principal.is_owner else principal.professional_id
        self._check_professional(professional_id, principal.user_id)
        self._check_phone_available(principal.user_id, data.phone)

        return self.repo.create_customer(
            self.db,
            principal.user_id,
            name=data.name,
            phone=data.phone,
            professional_id=professional_id,
        )

    def update_customer(self, customer_id: int, data: CustomerUpdate, principal: Principal) -> Customer:
        customer = self.get_customer(customer_id, principal)

        updates = {}
        if data.name is not None:
            updates["name"] = data.name.strip()
        if data.phone is not None:
            self._check_phone_available(principal.user_id, data.phone, customer.id)
            updates["phone"] = data.phone
        if data.professionalId is not None and principal.is_owner:
            self._check_professional(data.professionalId, principal.user_id)
            updates["professional_id"] = data.professionalId

        return self.repo.update_customer(self.db, customer, **updates)

    def delete_customer(self, customer_id: int, principal: Principal) -> dict:
        """Delete a customer together with their purchased packages"""
        customer = self.get_customer(customer_id, principal)
        self.repo.delete_customer(self.db, customer)
        logger.info(f"🗑️ Customer {customer_id} deleted")
        return {"message": "Customer deleted"}

    def batch_delete_customers(self, customer_ids: list[int], principal: Principal) -> dict:
        if not customer_ids:
            raise ValidationError("No customer IDs provided", field="customerIds")

        deleted_count = 0
        for customer_id in customer_ids:
            customer = self.repo.get_customer_by_id(self.db, customer_id, principal.user_id)
            if not customer:
                continue
            if not principal.is_owner and customer.professional_id != principal.professional_id:
                continue
            self.repo.delete_customer(self.db, customer)
            deleted_count += 1

        logger.info(f"✅ User {principal.user_id} deleted {deleted_count} customer(s)")
        return {
            "message": f"Successfully deleted {deleted_count} customer(s)",
            "deletedCount": deleted_count,
        }
