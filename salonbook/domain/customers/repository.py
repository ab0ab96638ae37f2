"""Customer repository - Database operations for customers"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import Customer, CustomerPackage


class CustomerRepository:
    """Repository for customer database operations"""

    @staticmethod
    def get_customers(
        db: Session,
        user_id: int,
        professional_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> list[Customer]:
        query = (
            db.query(Customer)
            .options(
                joinedload(Customer.professional),
                joinedload(Customer.packages).joinedload(CustomerPackage.balances),
            )
            .filter(Customer.user_id == user_id)
        )
        if professional_id:
            query = query.filter(Customer.professional_id == professional_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
        return query.order_by(Customer.name).all()

    @staticmethod
    def get_customer_by_id(db: Session, customer_id: int, user_id: int) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.id == customer_id, Customer.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_customer_by_phone(db: Session, user_id: int, phone: str) -> Optional[Customer]:
        return (
            db.query(Customer)
            .filter(Customer.user_id == user_id, Customer.phone == phone)
            .first()
        )

    @staticmethod
    def create_customer(db: Session, user_id: int, **customer_data) -> Customer:
        customer = Customer(user_id=user_id, **customer_data)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def update_customer(db: Session, customer: Customer, **updates) -> Customer:
        for key, value in updates.items():
            if value is not None and hasattr(customer, key):
                setattr(customer, key, value)
        db.commit()
        db.refresh(customer)
        return customer

    @staticmethod
    def delete_customer(db: Session, customer: Customer) -> None:
        db.delete(customer)
        db.commit()
