"""Shared pytest fixtures for the splitcheck test suite."""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from splitcheck.config import _ENV_FIELDS, get_settings
from splitcheck.models.receipt import ReceiptData, ReceiptItem
from splitcheck.server.app import create_app

_SERVER_ENV = (
    "SPLITCHECK_SERVER_HOST",
    "SPLITCHECK_SERVER_PORT",
    "SPLITCHECK_SERVER_DURATION",
    "RELOAD",
)
ISOLATED_ENV = (*_ENV_FIELDS, *_SERVER_ENV)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep developer .env files and exported credentials out of every test."""

    monkeypatch.chdir(tmp_path)
    for key in ISOLATED_ENV:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def app() -> Generator[FastAPI, None, None]:
    """Create a new FastAPI app instance for each test and reset overrides."""

    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> TestClient:
    """Return a test client bound to the FastAPI app."""

    return TestClient(app)


@pytest.fixture()
def sample_receipt() -> ReceiptData:
    return ReceiptData(
        items=[ReceiptItem(name="Coffee", price=4.50)],
        subtotal=4.50,
        total=4.86,
        raw="Coffee $4.50",
    )


class StubProvider:
    """Provider double recording every call it receives."""

    def __init__(
        self,
        name: str,
        result: ReceiptData | None = None,
        error: BaseException | None = None,
        calls: list[str] | None = None,
    ) -> None:
        self.name = name
        self._result = result
        self._error = error
        self.calls = calls if calls is not None else []
        self.images: list[bytes] = []

    async def extract_receipt(self, image: bytes) -> ReceiptData:
        self.calls.append(self.name)
        self.images.append(image)
        if self._error is not None:
            raise self._error
        assert self._result is not None
        return self._result

    @property
    def call_count(self) -> int:
        return len(self.images)


@pytest.fixture()
def stub_provider_cls():
    return StubProvider
