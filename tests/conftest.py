from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from branchboard.auth.security import create_access_token
from branchboard.db import Base, get_db
from branchboard.main import create_app
from branchboard.services.clock import CivilClock
from branchboard.services.daily_progress import DailyProgressAggregator
from branchboard.services.lifecycle import TaskLifecycle
from branchboard.services.module_ledger import ModuleStatusLedger
from branchboard.services.repository import Repository
from branchboard.services.users import UserService


# 2025-06-10 08:31 in Berlin (CEST, UTC+2)
FIXED_NOW = datetime(2025, 6, 10, 6, 31, tzinfo=timezone.utc)
TODAY = "2025-06-10"


class FrozenTime:
    def __init__(self, value: datetime) -> None:
        self.value = value

    def __call__(self) -> datetime:
        return self.value

    def set_local(self, clock: CivilClock, *args) -> None:
        self.value = clock.tz.localize(datetime(*args)).astimezone(timezone.utc)

    def shift(self, **kwargs) -> None:
        self.value = self.value + timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.events = []

    def __call__(self, category: str) -> None:
        self.events.append(category)


@pytest.fixture
def frozen():
    return FrozenTime(FIXED_NOW)


@pytest.fixture
def clock(frozen):
    return CivilClock("Europe/Berlin", now=frozen)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def repo(db, clock):
    return Repository(db, clock)


@pytest.fixture
def ledger(repo):
    return ModuleStatusLedger(repo)


@pytest.fixture
def lifecycle(repo, ledger, notifier):
    return TaskLifecycle(repo, ledger, notifier)


@pytest.fixture
def aggregator(repo, ledger, clock):
    return DailyProgressAggregator(repo, ledger, clock)


@pytest.fixture
def users(repo, notifier):
    return UserService(repo, notifier)


@pytest.fixture
def branch_manager(users):
    return users.seed_branch_manager("4266", "BM")


@pytest.fixture
def app(session_factory, clock):
    application = create_app(enable_metrics=False, enable_scheduler=False)
    application.state.clock = clock

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = _get_db
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


def auth_header(user) -> dict:
    token = create_access_token(user.id, roles=list(user.roles or []), is_admin=user.is_admin)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(branch_manager):
    return auth_header(branch_manager)
