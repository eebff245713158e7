"""
Integration Test Configuration

Shared fixtures for integration tests.
When running in CI environment (CI=true), slow tests are automatically skipped.
"""

import os

import pytest

from ivy_guide.models.config import SessionParams, TimingConfig


@pytest.fixture
def is_ci_environment() -> bool:
    """
    Detect if tests are running in CI environment.

    Returns:
        True if CI environment variable is set to 'true'
    """
    return os.getenv("CI", "").lower() == "true"


@pytest.fixture(autouse=True)
def skip_slow_tests_in_ci(request, is_ci_environment):
    """
    Automatically skip slow integration tests when running in CI.

    Args:
        request: pytest request fixture
        is_ci_environment: Fixture indicating CI environment
    """
    if is_ci_environment and request.node.get_closest_marker("slow"):
        pytest.skip("Skipping slow test in CI environment")


@pytest.fixture
def fast_params() -> SessionParams:
    """Session parameters with timings shrunk so a whole session runs in under a second."""
    return SessionParams(
        timing=TimingConfig(
            utterance_pause_s=0.05,
            session_duration_s=300,
            timer_tick_s=0.01,
            evaluation_display_delay_s=0.0,
            fallback_ms_per_char=0.1,
        )
    )
