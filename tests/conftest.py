import os

# Settings dibaca waktu import, jadi env harus di-set sebelum import repair_tracker
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-repair-tracker")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from sqlalchemy.pool import StaticPool

from repair_tracker.database import Base, make_engine, make_session_factory
from repair_tracker.events import EventBus, SessionState
from repair_tracker.models import RepairOrder, User


@pytest.fixture
async def engine():
    engine = make_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def session_state(event_bus):
    state = SessionState("test-session", event_bus)
    yield state
    state.close()


@pytest.fixture
def email_config():
    return {
        'smtp_host': 'localhost',
        'smtp_port': 587,
        'smtp_username': None,
        'smtp_password': None,
        'smtp_use_tls': False,
        'smtp_from': 'repairs@genthrust.net',
        'app_url': 'https://tracker.genthrust.net',
        'followup_fallback_email': 'quotes@genthrust.net',
    }


@pytest.fixture
async def user(db_session):
    user = User(email="ops@genthrust.net", name="Ops User")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def order_factory(db_session):
    """Buat RepairOrder langsung di database."""
    async def create(ro_number, **fields):
        fields.setdefault('shop_name', 'Acme Aero')
        fields.setdefault('part', 'Fuel Pump')
        fields.setdefault('current_status', 'WAITING QUOTE')
        order = RepairOrder(ro_number=ro_number, **fields)
        db_session.add(order)
        await db_session.commit()
        return order
    return create
