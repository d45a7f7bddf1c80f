"""Shared fixtures for the serpharvest test suite.

No test touches the network: sessions come from ``fake_session_factory`` and
fetchers are plain functions defined per test.
"""

from __future__ import annotations

import random
from unittest.mock import MagicMock

import pytest

from config import HarvestConfig
from sink import OutputSink


@pytest.fixture()
def harvest_config() -> HarvestConfig:
    return HarvestConfig(
        proxy_gate="gate.example.net:7777",
        proxy_user="user",
        proxy_pass="secret",
        proxy_country="us",
        max_pages=5,
        concurrency=4,
    )


@pytest.fixture()
def user_agents() -> list:
    return ["UA-1", "UA-2", "UA-3"]


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def output_path(tmp_path):
    return tmp_path / "urls.txt"


@pytest.fixture()
def sink(output_path) -> OutputSink:
    return OutputSink(output_path)


@pytest.fixture()
def fake_session_factory() -> MagicMock:
    """Stands in for ``proxy.create_session``; returns a fresh mock session per call."""
    return MagicMock(side_effect=lambda gateway, identity, timeout=30: MagicMock())


@pytest.fixture()
def read_output():
    """Return a reader giving the output file's lines, empty when it was never created."""

    def _read(path) -> list:
        if not path.exists():
            return []
        return path.read_text(encoding="utf-8").splitlines()

    return _read
