from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import asyncio
import pytest

import debtflow.persistence as persistence
from debtflow.config import UploadSettings

FIXED_NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)

FAST_SETTINGS = UploadSettings(
    progress_interval=0.01,
    validation_delay=0.05,
    auto_reset_delay=0.1,
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from real config files and shared stores."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DEBTFLOW_CONFIG", str(tmp_path / "no-config.yaml"))
    for var in ("DEBTFLOW_API_URL", "DEBTFLOW_API_TOKEN", "DEBTFLOW_STATE_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(persistence, "_store_instance", None)


class FakeTransport:
    """Scriptable stand-in for the analytics API."""

    def __init__(
        self,
        response: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
        last_upload: Optional[datetime] = None,
        lookup_error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.response = response if response is not None else {"inserted": 0, "errors": []}
        self.error = error
        self.last_upload = last_upload
        self.lookup_error = lookup_error
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[tuple] = []
        self.lookups: List[str] = []

    async def _respond(self) -> Dict[str, Any]:
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response

    async def upload_tickets(self, file, organization=None):
        self.calls.append(("tickets", file.name, organization, False))
        return await self._respond()

    async def upload_usage(self, file, organization, force=False):
        self.calls.append(("usage", file.name, organization, force))
        return await self._respond()

    async def last_upload_date(self, organization):
        self.lookups.append(organization)
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.last_upload


@pytest.fixture
def make_transport():
    return FakeTransport


@pytest.fixture
def fast_settings():
    return FAST_SETTINGS.model_copy()


@pytest.fixture
def fixed_now():
    return FIXED_NOW
