from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from custom_components.then_more.countdown import CountdownHandle, HassCountdown
from custom_components.then_more.exceptions import StaleTimerHandle


@pytest.fixture
def call_later():
    with patch("custom_components.then_more.countdown.async_call_later") as call_later:
        call_later.return_value = MagicMock()
        yield call_later


def test_schedule_after_arms_call_later(call_later) -> None:
    hass = MagicMock()

    HassCountdown(hass).schedule_after(15, AsyncMock())

    assert call_later.call_args.args[:2] == (hass, 15)


def test_negative_delay_fires_as_soon_as_possible(call_later) -> None:
    HassCountdown(MagicMock()).schedule_after(-3, AsyncMock())

    assert call_later.call_args.args[1] == 0


async def test_firing_runs_callback_with_handle(call_later) -> None:
    callback = AsyncMock()
    handle = HassCountdown(MagicMock()).schedule_after(5, callback)
    fire = call_later.call_args.args[2]

    await fire(None)

    callback.assert_awaited_once_with(handle)
    assert handle.fired
    with pytest.raises(StaleTimerHandle):
        handle.cancel()


async def test_cancel_prevents_firing(call_later) -> None:
    callback = AsyncMock()
    handle = HassCountdown(MagicMock()).schedule_after(5, callback)
    fire = call_later.call_args.args[2]

    handle.cancel()
    await fire(None)

    call_later.return_value.assert_called_once_with()
    callback.assert_not_awaited()


def test_cancel_twice_raises_stale_handle() -> None:
    handle = CountdownHandle()
    unsub = MagicMock()
    handle.bind(unsub)

    handle.cancel()
    with pytest.raises(StaleTimerHandle):
        handle.cancel()

    unsub.assert_called_once_with()
    assert not handle.active
