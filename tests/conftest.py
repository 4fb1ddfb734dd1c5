"""Shared fixtures for the gateway test suite.

FakeEngine stands in for the Selenium WhatsApp client so the lifecycle can be
driven headlessly: tests fire 'qr' / 'ready' / ... events by hand.
"""

import os

import pytest

import config
from media import SentMessage


class FakeEngine:
    def __init__(self, session_id, data_path, factory):
        self.session_id = session_id
        self.data_path = data_path
        self.factory = factory
        self.listeners = {}
        self.initialized = False
        self.destroy_called = False
        self.sent = []

    def on(self, event, callback):
        self.listeners.setdefault(event, []).append(callback)

    def emit(self, event, *args):
        for callback in self.listeners.get(event, []):
            callback(*args)

    def initialize(self):
        if self.factory.fail_init:
            raise RuntimeError("browser failed to start")
        self.initialized = True

    def destroy(self):
        self.destroy_called = True
        if self.factory.fail_destroy:
            raise RuntimeError("browser already gone")

    def send_message(self, chat_id, content, caption=None):
        if self.factory.send_error:
            raise self.factory.send_error
        self.sent.append((chat_id, content, caption))
        return SentMessage(f"true_{chat_id}_MSG{len(self.sent)}", chat_id)


class FakeEngineFactory:
    def __init__(self):
        self.created = []
        self.fail_init = False
        self.fail_destroy = False
        self.send_error = None

    def __call__(self, session_id, data_path):
        engine = FakeEngine(session_id, data_path, self)
        self.created.append(engine)
        return engine

    @property
    def last(self):
        return self.created[-1]

    def live(self):
        return [e for e in self.created if not e.destroy_called]


@pytest.fixture(autouse=True)
def gateway_dirs(tmp_path, monkeypatch):
    """Points the sessions folder and audit log at a temp dir for every test."""
    sessions = tmp_path / "sessions"
    logs = tmp_path / "logs"
    monkeypatch.setattr(config, "SESSIONS_ROOT", str(sessions))
    monkeypatch.setattr(config, "LOG_DIR", str(logs))
    monkeypatch.setattr(config, "LOG_FILE", str(logs / "requests.log"))
    return tmp_path


@pytest.fixture
def engine_factory():
    return FakeEngineFactory()


@pytest.fixture
def controller(engine_factory):
    from session_controller import SessionController

    return SessionController(engine_factory)


@pytest.fixture
def read_log():
    def _read():
        if not os.path.exists(config.LOG_FILE):
            return ""
        with open(config.LOG_FILE, encoding="utf-8") as f:
            return f.read()

    return _read
