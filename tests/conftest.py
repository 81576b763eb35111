"""Shared test fixtures for the retryify test suite."""

from __future__ import annotations

import pytest

from helpers import RecordingMetricsHook


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()
