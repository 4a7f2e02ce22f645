"""
Test configuration and shared fixtures for the admin panel test suite.

Uses an in-memory SQLite database shared through a StaticPool. Tables are
created before and dropped after each test, so every test starts from an
empty database.
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from admin_panel.auth.dependencies import get_current_user
from admin_panel.auth.policies import PolicyRegistry
from admin_panel.core.database import Base, get_db
from admin_panel.resources.registry import AdminPanel, get_admin_panel
from admin_panel.services.cache_service import ResourceCacheService
from admin_panel.services.cache_store import MemoryCacheStore
from admin_panel.services.observer_service import ObserverRegistry

# Import test models so they're registered with SQLAlchemy metadata
from tests.utils import TEST_RESOURCES, ProductPolicy, make_user


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Provide a database session on freshly created tables."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cache_store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def panel(cache_store: MemoryCacheStore) -> AdminPanel:
    """A panel with the test resources registered and no policy guessing."""
    admin = AdminPanel(
        policy_registry=PolicyRegistry(policy_module=None),
        observer_registry=ObserverRegistry(observer_module=None),
        cache_service=ResourceCacheService(cache_store),
    )
    admin.register(*TEST_RESOURCES)
    admin.bind_policy(TEST_RESOURCES[0], ProductPolicy)
    return admin


@pytest.fixture
def admin_user():
    return make_user(["admin"])


@pytest.fixture
def viewer_user():
    return make_user(["viewer"], user_id="2")


@pytest.fixture
def client(db_session: Session, panel: AdminPanel, admin_user) -> Generator[TestClient, None, None]:
    """Test client authenticated as an admin, bound to the test session and panel."""
    from admin_panel.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_admin_panel] = lambda: panel
    app.dependency_overrides[get_current_user] = lambda: admin_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def api_prefix() -> str:
    from admin_panel.core.config import ADMIN_PANEL_PATH
    return f"{ADMIN_PANEL_PATH}/api/resources"
