# Shared fixtures: an in-memory SQLite ticket store, one user per role and a
# clock the tests move by hand.
# Run: pytest -v

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import helpdesk.models  # noqa: F401  (registers tables)
from helpdesk.models import TicketPriority, User, UserRole
from helpdesk.services.ticket_lifecycle import TicketLifecycleService
from helpdesk.services.ticket_store import TicketStore
from helpdesk.services.user_directory import UserDirectory

T0 = datetime(2024, 3, 1, 9, 0, 0)


class FakeClock:
    """Callable clock frozen at a given instant until advanced."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_user(session: Session, role: UserRole, **overrides) -> User:
    fields = {"email": f"{role.value}-{uuid4().hex[:8]}@example.com", "role": role}
    fields.update(overrides)
    user = User(**fields)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def customer(session):
    return make_user(session, UserRole.CUSTOMER, email="customer@example.com")


@pytest.fixture
def other_customer(session):
    return make_user(session, UserRole.CUSTOMER, email="other.customer@example.com")


@pytest.fixture
def agent(session):
    return make_user(session, UserRole.AGENT, email="agent@example.com")


@pytest.fixture
def other_agent(session):
    return make_user(session, UserRole.AGENT, email="other.agent@example.com")


@pytest.fixture
def admin(session):
    return make_user(session, UserRole.ADMIN, email="admin@example.com")


@pytest.fixture
def store(session, clock):
    return TicketStore(session, clock=clock)


@pytest.fixture
def directory(session):
    return UserDirectory(session)


@pytest.fixture
def service(store, directory, clock):
    return TicketLifecycleService(store, directory, clock=clock)


@pytest.fixture
def open_ticket(service, customer):
    return service.create_ticket(
        "Printer on fire", "Third floor printer is smoking", TicketPriority.HIGH, customer.id
    )
