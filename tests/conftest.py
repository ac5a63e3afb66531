"""
Shared fixtures: a fresh SQLite file per test, role seed, and small factories
for packages, users, reservations and logged-in clients.
"""
from datetime import date, datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db
from models.package import Package
from models.reservation import Reservation, PatientInfo, PENDING
from models.user import User, Role
from security.password import hash_password
from services.identifiers import generate_reservation_number
from services.reservations import compute_amounts
from services.slot_calendar import weekday_index
from utils.seed import seed_roles

PASSWORD = "password123"


def open_day(days_ahead: int = 3, start: date = None) -> date:
    """First Monday..Saturday at least `days_ahead` days after `start`."""
    day = (start or date.today()) + timedelta(days=days_ahead)
    while weekday_index(day) == 0:
        day += timedelta(days=1)
    return day


@pytest.fixture
def app(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = "test-secret"
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "test.db")
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}
        SEED_ROLES_ON_STARTUP = False
        BCRYPT_ROUNDS = 4
        STRIPE_SECRET_KEY = "sk_test_dummy"
        STRIPE_WEBHOOK_SECRET = "whsec_dummy"
        LOG_LEVEL = "WARNING"

    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        seed_roles()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def booking_day():
    return open_day(3)


@pytest.fixture
def patient():
    return PatientInfo(name="Hong Gildong", phone="010-1234-5678", birth_date=date(1985, 3, 2), gender="male")


@pytest.fixture
def make_package(app):
    def _make(**overrides):
        data = {
            "name": "Basic Checkup",
            "description": "Blood panel and imaging",
            "category": "basic",
            "price": 150000,
            "discount_price": 120000,
            "duration": 90,
            "max_reservations_per_slot": 3,
        }
        data.update(overrides)
        pkg = Package(**data)
        db.session.add(pkg)
        db.session.commit()
        return pkg
    return _make


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(email=None, roles=("CUSTOMER",)):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(PASSWORD),
            name=f"User {counter['n']}",
        )
        for name in roles:
            user.roles.append(Role.query.filter_by(name=name).one())
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_reservation(app, patient):
    """Insert a row directly, skipping admission checks."""
    def _make(package, user, day, time="10:00", status=PENDING, created_at=None):
        total, discount, final = compute_amounts(package)
        r = Reservation(
            reservation_number=generate_reservation_number(),
            user_id=user.id,
            package_id=package.id,
            reservation_date=day,
            reservation_time=time,
            patient=patient,
            total_amount=total,
            discount_amount=discount,
            final_amount=final,
            status=status,
            created_at=created_at or datetime.utcnow(),
        )
        db.session.add(r)
        db.session.commit()
        return r
    return _make


@pytest.fixture
def login(app):
    def _login(user):
        client = app.test_client()
        resp = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
        assert resp.status_code == 200
        return client
    return _login


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", roles=("ADMIN",))
