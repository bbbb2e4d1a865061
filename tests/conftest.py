"""Pytest configuration for test isolation.

``spend_analysis.config.Settings.from_env`` reads ``SPEND_ANALYSIS_*``
variables, and a developer shell or a local ``.env`` may carry values that
change batch sizes or row limits under test. An autouse fixture clears them
so every test starts from the documented defaults. ``OPENAI_API_KEY`` is set
to a dummy value so nothing accidentally reaches the real API without a stub.
"""

from __future__ import annotations

import os

import pytest

_ENV_PREFIX = "SPEND_ANALYSIS_"


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "test-key-not-used")
