import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Awaitable, Callable, Optional

from homeassistant.core import CALLBACK_TYPE, HomeAssistant
from homeassistant.helpers.event import async_call_later

from .exceptions import StaleTimerHandle

_LOGGER = logging.getLogger(__name__)


class CountdownHandle:
    """Reference to a pending countdown callback."""

    def __init__(self):
        self._unsub: Optional[CALLBACK_TYPE] = None
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def bind(self, unsub: CALLBACK_TYPE) -> None:
        self._unsub = unsub

    def mark_fired(self) -> bool:
        """Flag the countdown as firing; False when it was cancelled first."""
        if self.cancelled:
            return False
        self.fired = True
        self._unsub = None
        return True

    def cancel(self) -> None:
        """Stop the countdown from firing.

        Raises StaleTimerHandle when the countdown already fired or was
        cancelled before.
        """
        if not self.active:
            raise StaleTimerHandle("Countdown already fired or cancelled")
        self.cancelled = True
        if self._unsub:
            self._unsub()
            self._unsub = None


CountdownCallback = Callable[[CountdownHandle], Awaitable[None]]


class Countdown(ABC):
    """Schedules one-shot callbacks after a delay."""

    @abstractmethod
    def schedule_after(self, delay: float, callback: CountdownCallback) -> CountdownHandle:
        """Run callback(handle) after delay seconds; non-positive delays fire as soon as possible."""


class HassCountdown(Countdown):
    """Countdown backed by the Home Assistant event loop."""

    def __init__(self, hass: HomeAssistant):
        self.hass = hass

    def schedule_after(self, delay: float, callback: CountdownCallback) -> CountdownHandle:
        handle = CountdownHandle()

        async def _async_fire(now: datetime) -> None:
            if not handle.mark_fired():
                _LOGGER.debug("Countdown fired after cancellation, ignoring")
                return
            await callback(handle)

        handle.bind(async_call_later(self.hass, max(delay, 0), _async_fire))
        return handle
