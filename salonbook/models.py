from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

APPOINTMENT_STATUSES = ("pending", "confirmed", "completed", "cancelled")

# Statuses whose time window blocks the professional's calendar
BLOCKING_STATUSES = ("pending", "confirmed")


class User(Base):
    """Salon owner. Every other row is scoped to one user (the tenant)."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    auth_uid = Column(String(255), unique=True, index=True, nullable=False)  # Supabase `sub`
    email = Column(String(255), unique=True, index=True, nullable=False)
    business_name = Column(String(255), nullable=True)
    whatsapp_connected = Column(Boolean, default=False, nullable=False)
    whatsapp_number = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    professionals = relationship("Professional", back_populates="user")


class Professional(Base):
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    specialty = Column(String(255), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    # Login credentials for the professional dashboard
    email = Column(String(255), unique=True, nullable=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(50), default="professional", nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="professionals")
    service_assignments = relationship(
        "ProfessionalService", back_populates="professional", cascade="all, delete-orphan"
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=True, default=30)
    default_commission = Column(Float, nullable=False, default=0)  # percentage 0-100
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class ProfessionalService(Base):
    """Which services a professional performs, with their commission percentage"""

    __tablename__ = "professional_services"
    __table_args__ = (UniqueConstraint("professional_id", "service_id"),)

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    commission = Column(Float, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    professional = relationship("Professional", back_populates="service_assignments")
    service = relationship("Service")


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("user_id", "phone"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    professional = relationship("Professional")
    packages = relationship(
        "CustomerPackage", back_populates="customer", cascade="all, delete-orphan"
    )


class Package(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    expires_after_days = Column(Integer, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    services = relationship(
        "PackageService", back_populates="package", cascade="all, delete-orphan"
    )


class PackageService(Base):
    __tablename__ = "package_services"
    __table_args__ = (
        UniqueConstraint("package_id", "service_id"),
        CheckConstraint("quantity > 0", name="ck_package_services_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, server_default=func.now())

    package = relationship("Package", back_populates="services")
    service = relationship("Service")


class CustomerPackage(Base):
    """A package bought by one customer"""

    __tablename__ = "customer_packages"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False)
    paid = Column(Boolean, default=True, nullable=False)
    purchase_date = Column(DateTime, nullable=False)
    expiration_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="packages")
    package = relationship("Package")
    balances = relationship(
        "CustomerPackageService", back_populates="customer_package", cascade="all, delete-orphan"
    )


class CustomerPackageService(Base):
    """Credit ledger row: sessions left for one service of one purchased package"""

    __tablename__ = "customer_package_services"
    __table_args__ = (
        UniqueConstraint("customer_package_id", "service_id"),
        CheckConstraint(
            "sessions_remaining >= 0", name="ck_customer_package_services_non_negative"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_package_id = Column(
        Integer, ForeignKey("customer_packages.id", ondelete="CASCADE"), nullable=False
    )
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    sessions_remaining = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer_package = relationship("CustomerPackage", back_populates="balances")
    service = relationship("Service")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)
    appointment_date = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), default="pending", nullable=False)
    total_price = Column(Float, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    # Set when the booking was force-confirmed over an overlap
    overridden_conflict = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    professional = relationship("Professional")
    services = relationship(
        "AppointmentService", back_populates="appointment", cascade="all, delete-orphan"
    )


class AppointmentService(Base):
    __tablename__ = "appointment_services"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    price = Column(Float, default=0, nullable=False)
    used_package_session = Column(Boolean, default=False, nullable=False)
    # Ledger the credit came from, so it can be refunded
    customer_package_id = Column(
        Integer, ForeignKey("customer_packages.id", ondelete="SET NULL"), nullable=True
    )

    appointment = relationship("Appointment", back_populates="services")
    service = relationship("Service")


class ProfessionalCommission(Base):
    """Commission owed for one completed appointment service line"""

    __tablename__ = "professional_commissions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    appointment_service_id = Column(
        Integer, ForeignKey("appointment_services.id", ondelete="CASCADE"), nullable=False
    )
    service_price = Column(Float, nullable=False)
    commission_percentage = Column(Float, nullable=False)
    commission_amount = Column(Float, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    appointment_service = relationship("AppointmentService")
