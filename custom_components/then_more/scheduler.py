import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Callable, Dict, Optional

from homeassistant.util import dt as dt_util

from .actuator import DeviceActuator, WatcherHandle
from .const import (
    CAPABILITY_ONOFF,
    REASON_CANCELLED,
    REASON_EXPIRED,
    REASON_MANUAL_OFF,
    REASON_SHUTDOWN,
)
from .countdown import Countdown, CountdownCallback, CountdownHandle
from .exceptions import StaleTimerHandle, ThenMoreError
from .models import TimerAction, TimerEntry, TimerEvent, TimerEventKind
from .notifier import EventNotifier
from .registry import TimerRegistry

_LOGGER = logging.getLogger(__name__)


class DeviceTimerScheduler:
    """Switch devices on for a while, then off again or back to their previous value.

    Every mutation for a device (trigger, expiry, cancel, manual switch-off)
    runs under that device's lock, so actuator calls awaited in between can
    never interleave two changes to the same timer.
    """

    def __init__(
        self,
        actuator: DeviceActuator,
        countdown: Countdown,
        notifier: EventNotifier,
        registry: Optional[TimerRegistry] = None,
        now: Callable[[], datetime] = dt_util.utcnow,
    ):
        self.actuator = actuator
        self.countdown = countdown
        self.notifier = notifier
        self.registry = registry if registry is not None else TimerRegistry()
        self._now = now
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def _lock(self, device_id: str) -> AsyncIterator[None]:
        """Hold the device's lock; it is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(device_id, asyncio.Lock())
        self._lock_users[device_id] = self._lock_users.get(device_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[device_id] -= 1
            if not self._lock_users[device_id]:
                del self._lock_users[device_id]
                del self._locks[device_id]

    def is_timer_running(self, device_id: str) -> bool:
        return device_id in self.registry

    def export(self) -> Dict[str, Dict[str, Any]]:
        return self.registry.export()

    async def async_trigger(
        self,
        device_id: str,
        action: TimerAction,
        duration: float,
        ignore_when_on: bool = False,
        overrule_longer_timeouts: bool = False,
        restore: bool = False,
    ) -> bool:
        """Apply an action and (re)arm the countdown that undoes it.

        Returns False, without side effects, when the device is already on
        and no rule asks to act anyway.
        """
        async with self._lock(device_id):
            now = self._now()
            expiry = now + timedelta(seconds=duration)
            existing = self.registry.get(device_id)

            if not await self._async_should_act(device_id, existing, expiry, ignore_when_on, overrule_longer_timeouts):
                _LOGGER.debug("%s is already on, leaving it as it is", device_id)
                return False

            if existing is not None:
                _LOGGER.info("Resetting timer for %s", device_id)
                self._release_countdown(existing.handle)
                watcher = existing.watcher
                # the restore value belongs to the capability it was read from
                restore_value = existing.restore_value
                restore_capability = existing.restore_capability
                created_at = existing.created_at
            else:
                restore_value = None
                restore_capability = None
                if restore and await self.actuator.async_get_value(device_id, CAPABILITY_ONOFF):
                    restore_value = await self.actuator.async_get_value(device_id, action.capability)
                    restore_capability = action.capability

                _LOGGER.info("Setting %s of %s to %s", action.capability, device_id, action.value)
                await self.actuator.async_set_value(device_id, action.capability, action.value)
                watcher = await self._async_watch_manual_off(device_id)
                created_at = now

            handle = self.countdown.schedule_after(
                duration, self._expiry_callback(device_id, restore_capability, restore_value)
            )
            self.registry.put(
                TimerEntry(
                    device_id=device_id,
                    capability=action.capability,
                    target_value=action.value,
                    expiry=expiry,
                    handle=handle,
                    watcher=watcher,
                    restore_value=restore_value,
                    restore_capability=restore_capability,
                    created_at=created_at,
                )
            )
            _LOGGER.info("Timer for %s runs until %s", device_id, expiry.isoformat())
            self._notify(
                TimerEventKind.STARTED,
                device_id,
                capability=action.capability,
                value=action.value,
                old_value=restore_value,
            )
            return True

    async def async_cancel_timer(self, device_id: str, reason: str = REASON_CANCELLED) -> bool:
        """Stop a pending timer without touching the device.

        Returns whether a timer was running.
        """
        async with self._lock(device_id):
            entry = self.registry.get(device_id)
            if entry is None:
                return False
            _LOGGER.info("Cancelling timer for %s (%s)", device_id, reason)
            self._remove_entry(entry, reason)
            return True

    async def async_shutdown(self) -> None:
        """Cancel all pending timers, e.g. when the integration unloads."""
        for device_id in self.registry.device_ids():
            await self.async_cancel_timer(device_id, REASON_SHUTDOWN)

    async def _async_should_act(
        self,
        device_id: str,
        existing: Optional[TimerEntry],
        expiry: datetime,
        ignore_when_on: bool,
        overrule_longer_timeouts: bool,
    ) -> bool:
        if ignore_when_on:
            return True
        if existing is not None and (overrule_longer_timeouts or expiry > existing.expiry):
            return True
        return not await self.actuator.async_get_value(device_id, CAPABILITY_ONOFF)

    async def _async_watch_manual_off(self, device_id: str) -> WatcherHandle:
        watcher: Optional[WatcherHandle] = None

        async def _async_on_change(is_on: Any) -> None:
            if is_on:
                return
            async with self._lock(device_id):
                entry = self.registry.get(device_id)
                # a late notification from an earlier subscription
                if entry is None or entry.watcher is not watcher:
                    return
                _LOGGER.info("%s was switched off manually, dropping its timer", device_id)
                self._remove_entry(entry, REASON_MANUAL_OFF)

        watcher = await self.actuator.async_subscribe(device_id, CAPABILITY_ONOFF, _async_on_change)
        return watcher

    def _expiry_callback(
        self, device_id: str, restore_capability: Optional[str], restore_value: Any
    ) -> CountdownCallback:
        async def _async_expired(handle: CountdownHandle) -> None:
            async with self._lock(device_id):
                entry = self.registry.get(device_id)
                if entry is None or entry.handle is not handle:
                    _LOGGER.debug("Timer for %s was replaced or cancelled before it fired", device_id)
                    return

                self._release_watcher(entry.watcher)
                try:
                    if restore_value is None:
                        _LOGGER.info("Turning %s off after delay", device_id)
                        await self.actuator.async_set_value(device_id, CAPABILITY_ONOFF, False)
                    else:
                        _LOGGER.info(
                            "Restoring %s of %s to %s after delay", restore_capability, device_id, restore_value
                        )
                        await self.actuator.async_set_value(device_id, restore_capability, restore_value)
                except ThenMoreError as err:
                    _LOGGER.error("Failed to end timer for %s: %s", device_id, err)
                finally:
                    # the countdown is spent whatever happened to the device
                    self.registry.remove(device_id)
                    self._notify(TimerEventKind.DELETED, device_id, reason=REASON_EXPIRED)

        return _async_expired

    def _remove_entry(self, entry: TimerEntry, reason: str) -> None:
        self._release_countdown(entry.handle)
        self._release_watcher(entry.watcher)
        self.registry.remove(entry.device_id)
        self._notify(TimerEventKind.DELETED, entry.device_id, reason=reason)

    @staticmethod
    def _release_countdown(handle: CountdownHandle) -> None:
        try:
            handle.cancel()
        except StaleTimerHandle as err:
            _LOGGER.debug("Ignoring stale countdown: %s", err)

    @staticmethod
    def _release_watcher(watcher: WatcherHandle) -> None:
        try:
            watcher.unsubscribe()
        except StaleTimerHandle as err:
            _LOGGER.debug("Ignoring stale watcher: %s", err)

    def _notify(self, kind: TimerEventKind, device_id: str, **details: Any) -> None:
        self.notifier.notify(TimerEvent(kind=kind, device=device_id, timers=self.registry.export(), **details))
