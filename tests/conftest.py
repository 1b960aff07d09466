"""Pytest configuration and shared fixtures."""

from typing import Callable

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from app.config import settings
from app.models.project_models import NotificationRule, Project, Threshold, TriggerType
from app.models.store_models import SecretRecord  # noqa: F401
from app.storage.repositories import ProjectRepository, RuleRepository
from app.storage.secret_store import SecretStore

PROVIDER_DOMAIN = "example-host.co"
PROJECT_URL = f"https://abcd1234.{PROVIDER_DOMAIN}"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Deterministic, fast upstream settings for every test."""
    monkeypatch.setattr(settings, "provider_domain", PROVIDER_DOMAIN)
    monkeypatch.setattr(settings, "management_base_url", f"https://api.{PROVIDER_DOMAIN}")
    monkeypatch.setattr(settings, "retry_base_delay", 0.0)
    monkeypatch.setattr(settings, "max_retries", 2)
    monkeypatch.setattr(settings, "source_timeout_seconds", 5.0)
    monkeypatch.setattr(settings, "activity_limit", 10)
    yield settings


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
def store(engine):
    return SecretStore(engine, "test-passphrase")


@pytest.fixture
def projects(store):
    return ProjectRepository(store)


@pytest.fixture
def rules(store):
    return RuleRepository(store)


@pytest.fixture
def make_project() -> Callable[..., Project]:
    def _make(**overrides) -> Project:
        data = dict(
            name="Demo",
            project_ref="abcd1234",
            url=PROJECT_URL,
            credential="k1",
        )
        data.update(overrides)
        return Project(**data)

    return _make


@pytest.fixture
def make_rule() -> Callable[..., NotificationRule]:
    def _make(**overrides) -> NotificationRule:
        data = dict(
            project_id="p1",
            name="New signups",
            trigger_type=TriggerType.NEW_USER,
            message="Someone signed up",
        )
        data.update(overrides)
        return NotificationRule(**data)

    return _make


@pytest.fixture
def threshold_rule(make_rule):
    return make_rule(
        name="CPU high",
        trigger_type=TriggerType.THRESHOLD,
        threshold=Threshold(metric="cpu", value=80),
        message="CPU above 80%",
    )


@pytest.fixture
def mock_http():
    """Build an AsyncClient whose requests are answered by ``handler``."""
    def _make(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make
