import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("SITE_URL", "https://frontend.local")
os.environ.setdefault("EMAIL_RATE_LIMIT", "1000 per 1 second")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ADMIN_EMAIL", "platform@example.com")

import re  # noqa: E402
from collections.abc import Generator  # noqa: E402
from dataclasses import dataclass, field  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import StaticPool, create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from voluntold.core.database import Base, get_db  # noqa: E402
from voluntold.core.security import create_access  # noqa: E402
from voluntold.main import app  # noqa: E402
from voluntold.models.tenants import Role, Tenant, UserProfile  # noqa: E402
from voluntold.services.authorization import ActingContext, SessionPrincipal  # noqa: E402
from voluntold.services.email_service import (  # noqa: E402
    EmailDeliveryError,
    get_email_dispatcher,
)
from voluntold.services.email_throttle import SendThrottle, get_send_throttle  # noqa: E402

LINK_RE = re.compile(r"https://frontend\.local/[^\s\"<>]+")


@dataclass
class SentEmail:
    to_email: str
    subject: str
    html: str
    text: str

    @property
    def links(self) -> list[str]:
        return LINK_RE.findall(self.text)


@dataclass
class RecordingDispatcher:
    sent: list[SentEmail] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)
    fail_all: bool = False

    def send(self, to_email, subject, html, text, *, from_email=None) -> str:
        if self.fail_all or to_email in self.fail_for:
            raise EmailDeliveryError(f"simulated failure for {to_email}")
        self.sent.append(SentEmail(to_email, subject, html, text))
        return f"<msg-{len(self.sent)}@voluntold.test>"

    def to(self, email: str) -> list[SentEmail]:
        return [m for m in self.sent if m.to_email == email]


def raw_token_from(link: str) -> str:
    return link.split("?", 1)[0].rsplit("/", 1)[-1]


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session]:
    connection = engine.connect()
    trans = connection.begin()

    TestingSessionLocal = sessionmaker(
        bind=connection, autoflush=False, expire_on_commit=False, future=True
    )
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        trans.rollback()
        connection.close()


@pytest.fixture
def second_session(db_session) -> Generator[Session]:
    """Another session on the test transaction, standing in for a concurrent request."""
    session = Session(
        bind=db_session.connection(), autoflush=False, expire_on_commit=False
    )
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def throttle() -> SendThrottle:
    return SendThrottle("1000 per 1 second", sleep=lambda _: None)


@pytest.fixture
def client(db_session, dispatcher, throttle) -> Generator[TestClient]:
    # Override FastAPI's get_db to use our testing session
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_email_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_send_throttle] = lambda: throttle
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_tenant(db: Session, name: str, slug: str) -> Tenant:
    tenant = Tenant(name=name, slug=slug)
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


def make_profile(
    db: Session,
    email: str,
    tenant: Tenant | None,
    role: Role = Role.member,
    first_name: str = "",
    last_name: str = "",
) -> UserProfile:
    profile = UserProfile(
        email=email,
        tenant_id=tenant.id if tenant else None,
        first_name=first_name,
        last_name=last_name,
        role=role.value,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def tenant(db_session) -> Tenant:
    return make_tenant(db_session, "Riverside Lions", "riverside-lions")


@pytest.fixture
def other_tenant(db_session) -> Tenant:
    return make_tenant(db_session, "Hilltop Rotary", "hilltop-rotary")


@pytest.fixture
def admin(db_session, tenant) -> UserProfile:
    return make_profile(
        db_session, "admin@example.com", tenant, Role.tenant_admin, "Alex", "Admin"
    )


@pytest.fixture
def super_admin(db_session) -> UserProfile:
    return make_profile(
        db_session, "root@example.com", None, Role.super_admin, "Sam", "Super"
    )


@pytest.fixture
def member(db_session, tenant) -> UserProfile:
    return make_profile(
        db_session, "member@example.com", tenant, Role.member, "Morgan", "Member"
    )


@pytest.fixture
def admin_actor(admin) -> ActingContext:
    return SessionPrincipal.from_profile(admin).acting_context()


@pytest.fixture
def admin_client(client, admin) -> tuple[TestClient, UserProfile]:
    token = create_access(str(admin.id), admin.role, admin.tenant_id)
    client.cookies.set("access_token", token, path="/")
    return client, admin


@pytest.fixture
def super_client(client, super_admin) -> tuple[TestClient, UserProfile]:
    token = create_access(str(super_admin.id), super_admin.role)
    client.cookies.set("access_token", token, path="/")
    return client, super_admin
