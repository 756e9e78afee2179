"""Shared fixtures: no real USB, no real settle waits."""
import io
from unittest.mock import MagicMock

import pytest
from fakes import FakeBackend, FakeHandle

from fadertest import fader_test
from fadertest.reporter import ConsoleReporter
from fadertest.session_registry import SessionRegistry


@pytest.fixture(autouse=True)
def settle_clock(monkeypatch):
    """Replace the orchestrator's clock so settle waits return immediately."""
    fake_time = MagicMock()
    monkeypatch.setattr(fader_test, 'time', fake_time)
    monkeypatch.delenv('FADERTEST_SETTLE_MS', raising=False)
    return fake_time


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def handle():
    return FakeHandle()


@pytest.fixture
def registry(backend):
    return SessionRegistry(backend=backend)


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def reporter(output):
    return ConsoleReporter(stream=output, colour=False)


@pytest.fixture
def full_device(backend, handle, registry):
    """A discovered Full-class device backed by *handle*."""
    backend.add(handle)
    return registry.discover()[0]
