from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ops_pilot.api.main import create_app
from ops_pilot.config.settings import Settings
from ops_pilot.runtime import OpsRuntime, build_runtime
from support import EmptyMailbox, make_settings


@pytest.fixture(autouse=True)
def _no_ambient_openai_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPS_PILOT_OPENAI_API_KEY", raising=False)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def runtime(settings: Settings) -> OpsRuntime:
    return build_runtime(settings, gmail_client=EmptyMailbox())


@pytest.fixture
def client(runtime: OpsRuntime):
    app = create_app(runtime=runtime)
    with TestClient(app) as test_client:
        yield test_client
