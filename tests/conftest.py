import base64
import os
from datetime import datetime, timedelta, timezone

# Settings are read at import time, so they have to be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["ENCRYPTION_KEY_BASE64"] = base64.b64encode(b"k" * 32).decode()
os.environ["PROFESSIONAL_JWT_SECRET"] = "test-professional-secret"
os.environ["SUPABASE_JWT_SECRET"] = "test-supabase-secret"
os.environ["OPENAI_API_KEY"] = ""
os.environ["WHATSAPP_WEBHOOK_TOKEN"] = ""
os.environ["RETRY_BASE_DELAY"] = "0"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt as jose_jwt  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from salonbook import models_whatsapp  # noqa: E402,F401
from salonbook.database import Base, get_db  # noqa: E402
from salonbook.domain.messaging.session_store import (  # noqa: E402
    InMemorySessionStore,
    get_session_store,
)
from salonbook.main import app  # noqa: E402
from salonbook.models import (  # noqa: E402
    Customer,
    Package,
    PackageService,
    Professional,
    ProfessionalService,
    Service,
    User,
)
from salonbook.domain.packages.repository import PackageRepository  # noqa: E402
from salonbook.rate_limiter import (  # noqa: E402
    rate_limit_professional_login,
    rate_limit_webhook,
)
from salonbook.security_utils import create_professional_token, hash_password  # noqa: E402
from salonbook.utils.dates import utcnow  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def client(session_factory, session_store):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[rate_limit_professional_login] = no_rate_limit
    app.dependency_overrides[rate_limit_webhook] = no_rate_limit
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================================
# SEED HELPERS
# ============================================================================


def owner_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user.auth_uid,
        "email": user.email,
        "aud": "authenticated",
        "iat": now,
        "exp": now + timedelta(hours=1),
    }
    return jose_jwt.encode(claims, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner(db) -> User:
    user = User(auth_uid="owner-1", email="owner@salon.test", business_name="Salão Teste")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def owner_headers(owner) -> dict:
    return bearer(owner_token(owner))


def make_professional(db, user, name="Ana", email=None, password=None, active=True):
    professional = Professional(
        user_id=user.id,
        name=name,
        active=active,
        email=email,
        password_hash=hash_password(password) if password else None,
    )
    db.add(professional)
    db.commit()
    db.refresh(professional)
    return professional


def professional_headers(professional) -> dict:
    return bearer(create_professional_token(professional.id, professional.user_id))


def make_service(db, user, name="Corte", price=50.0, duration=30, commission=10.0, active=True):
    service = Service(
        user_id=user.id,
        name=name,
        price=price,
        duration_minutes=duration,
        default_commission=commission,
        active=active,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def assign(db, professional, service, commission=None):
    assignment = ProfessionalService(
        professional_id=professional.id, service_id=service.id, commission=commission
    )
    db.add(assignment)
    db.commit()
    return assignment


def make_customer(db, user, name="Maria", phone="5511999990000"):
    customer = Customer(user_id=user.id, name=name, phone=phone)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def make_package(db, user, items, name="Pacote", price=100.0, expires_after_days=None):
    package = Package(
        user_id=user.id, name=name, price=price, expires_after_days=expires_after_days
    )
    package.services = [
        PackageService(service_id=service.id, quantity=quantity) for service, quantity in items
    ]
    db.add(package)
    db.commit()
    db.refresh(package)
    return package


def sell_package(db, user, customer, package, paid=True, purchased_at=None):
    customer_package = PackageRepository.add_customer_package(
        db, user.id, customer.id, package, purchased_at or utcnow(), paid=paid
    )
    db.commit()
    db.refresh(customer_package)
    return customer_package


def booking(professional, service_ids, when, phone="5511999990000", name="Maria", **extra):
    body = {
        "professionalId": professional.id,
        "customerName": name,
        "customerPhone": phone,
        "appointmentDate": when.isoformat(),
        "services": [{"serviceId": sid} for sid in service_ids],
    }
    body.update(extra)
    return body
