"""Shared fixtures for changeresponse tests."""

from typing import Any

import pytest
from starlette.datastructures import MutableHeaders

from changeresponse.config import ChangeResponseConfig, OverrideRule, clear_config_instance


class RecordingWriter:
    """ResponseWriter that records what the engine emits."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.status: int | None = None
        self.headers = MutableHeaders()
        self.body = b""

    async def start(self, status: int, headers: MutableHeaders) -> None:
        self.calls.append("start")
        self.status = status
        self.headers = MutableHeaders(raw=list(headers.raw))

    async def write(self, body: bytes) -> None:
        self.calls.append("write")
        self.body += body


@pytest.fixture
def writer() -> RecordingWriter:
    """Create a recording response writer."""
    return RecordingWriter()


@pytest.fixture
def make_config():
    """Build a ChangeResponseConfig from rule dicts using config-file keys."""

    def _make(*rules: dict[str, Any], debug: bool = False, name: str = "test-plugin") -> ChangeResponseConfig:
        return ChangeResponseConfig(
            overrides=[OverrideRule.model_validate(r) for r in rules],
            debug=debug,
            name=name,
        )

    return _make


@pytest.fixture(autouse=True)
def cleanup():
    """Clean up the global config between tests."""
    clear_config_instance()
    yield
    clear_config_instance()
