import os
import tempfile
from datetime import date, time

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["STORAGE_DIR"] = tempfile.mkdtemp(prefix="guardops-test-")
os.environ["TZ_DEFAULT"] = "Africa/Nairobi"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from guardops.auth.security import create_access_token
from guardops.db import Base, get_db
from guardops.main import app
from guardops.models.models import Client, Guard, Location, Schedule, Shift, IncidentCategory
from guardops.services.users import build_user, ensure_roles


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    ensure_roles(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class Factory:
    """Builds rows directly through the session for test setup."""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def user(self, role: str = "admin", username: str = None, password: str = "secret123", active: bool = True):
        n = self._next()
        user = build_user(
            self.db,
            username=username or f"{role}{n}",
            password=password,
            role_name=role,
            first_name="Test",
            last_name=f"User{n}",
            active=active,
        )
        self.db.commit()
        return user

    def headers(self, user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    def guard(self, user=None, status: str = "active"):
        user = user or self.user("guard")
        n = self._next()
        guard = Guard(
            user_id=user.id,
            guard_code=f"G-2024-{n:03d}",
            national_id=f"NID{n:05d}",
            position="Guard",
            status=status,
        )
        self.db.add(guard)
        self.db.commit()
        return guard

    def client(self, name: str = "Acme Corp", status: str = "active"):
        c = Client(
            name=name,
            address="1 Main Street",
            contact_person="Jane Doe",
            contact_phone="555-0100",
            contact_email="jane@example.com",
            contract_start=date(2024, 1, 1),
            contract_end=date(2024, 12, 31),
            status=status,
        )
        self.db.add(c)
        self.db.commit()
        return c

    def location(self, client=None, name: str = None, status: str = "active", latitude=-1.2921, longitude=36.8219):
        client = client or self.client()
        loc = Location(
            client_id=client.id,
            name=name or f"Site {self._next()}",
            address="Kenyatta Avenue",
            latitude=latitude,
            longitude=longitude,
            status=status,
        )
        self.db.add(loc)
        self.db.commit()
        return loc

    def shift(self, name: str, start: time, end: time):
        s = Shift(name=name, start_time=start, end_time=end)
        self.db.add(s)
        self.db.commit()
        return s

    def schedule(self, guard, location, shift, day: date, status: str = "scheduled"):
        s = Schedule(guard_id=guard.id, location_id=location.id, shift_id=shift.id, date=day, status=status)
        self.db.add(s)
        self.db.commit()
        return s

    def category(self, name: str = "Theft", priority: str = "high"):
        c = IncidentCategory(name=name, description=f"{name} incidents", priority=priority)
        self.db.add(c)
        self.db.commit()
        return c


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def admin(factory):
    return factory.user("admin", username="admin")


@pytest.fixture
def admin_headers(factory, admin):
    return factory.headers(admin)


@pytest.fixture
def morning(factory):
    return factory.shift("Morning", time(6, 0), time(14, 0))


@pytest.fixture
def night(factory):
    return factory.shift("Night", time(22, 0), time(6, 0))
