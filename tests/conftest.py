"""
Pytest will auto-discover this file. It defines the fixtures shared by the
opponent, broker, and web tests; the fakes themselves live in tests/fakes.py.
"""

import pytest

from opponents.broker import MoveBroker
from opponents.engine_process import EngineProcessAdapter
from tests.fakes import FakeEngine, RemoteService, make_remote


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def engine_adapter(fake_engine: FakeEngine) -> EngineProcessAdapter:
    return EngineProcessAdapter(engine=fake_engine, timeout_s=5.0)


@pytest.fixture
def remote_service() -> RemoteService:
    return RemoteService()


@pytest.fixture
def broker(engine_adapter: EngineProcessAdapter, remote_service: RemoteService) -> MoveBroker:
    return MoveBroker(engine_adapter, make_remote(remote_service, engine_adapter.evaluate_only))
