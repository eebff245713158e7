"""
Unit tests for the session countdown.
"""

import asyncio

import pytest

from ivy_guide.utils.session_timer import SessionTimer

TICK_S = 0.01


@pytest.mark.asyncio
async def test_counts_down_and_expires_once():
    """Test that the timer ticks to zero and calls on_expire exactly once."""
    # Arrange
    ticks = []
    expired = []
    timer = SessionTimer(
        duration_s=3,
        on_expire=lambda: expired.append(True),
        on_tick=ticks.append,
        tick_s=TICK_S,
    )

    # Act
    timer.start()
    await asyncio.sleep(TICK_S * 10)

    # Assert
    assert ticks == [2, 1, 0]
    assert expired == [True]
    assert timer.expired
    assert not timer.running


@pytest.mark.asyncio
async def test_start_is_idempotent():
    """Test that a second start does not create a second countdown."""
    # Arrange
    ticks = []
    timer = SessionTimer(duration_s=2, on_expire=lambda: None, on_tick=ticks.append, tick_s=TICK_S)

    # Act
    timer.start()
    timer.start()
    await asyncio.sleep(TICK_S * 8)

    # Assert
    assert ticks == [1, 0]


@pytest.mark.asyncio
async def test_pauses_while_inactive():
    """Test that ticks only count while is_active holds."""
    # Arrange
    active = {"value": False}
    ticks = []
    timer = SessionTimer(
        duration_s=5,
        on_expire=lambda: None,
        on_tick=ticks.append,
        is_active=lambda: active["value"],
        tick_s=TICK_S,
    )

    # Act
    timer.start()
    await asyncio.sleep(TICK_S * 5)

    # Assert
    assert ticks == []
    assert timer.remaining == 5
    timer.cancel()


@pytest.mark.asyncio
async def test_cancel_prevents_expiry():
    """Test that a cancelled timer never fires."""
    # Arrange
    expired = []
    timer = SessionTimer(duration_s=2, on_expire=lambda: expired.append(True), tick_s=TICK_S)
    timer.start()

    # Act
    timer.cancel()
    await asyncio.sleep(TICK_S * 6)

    # Assert
    assert expired == []
    assert not timer.running
