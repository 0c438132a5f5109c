import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from custom_components.then_more.actuator import ChangeCallback, DeviceActuator, WatcherHandle
from custom_components.then_more.countdown import Countdown, CountdownCallback, CountdownHandle
from custom_components.then_more.exceptions import CapabilityUnsupported, DeviceUnavailable
from custom_components.then_more.models import TimerEvent, TimerEventKind
from custom_components.then_more.notifier import EventNotifier
from custom_components.then_more.scheduler import DeviceTimerScheduler


class FakeActuator(DeviceActuator):
    """In-memory devices; change notifications are delivered as tasks, like Home Assistant does."""

    def __init__(self):
        self.values: dict[str, dict[str, Any]] = {}
        self.writes: list[tuple[str, str, Any]] = []
        self.unavailable: set[str] = set()
        self.subscriptions: list[tuple[WatcherHandle, ChangeCallback]] = []
        self._tasks: list[asyncio.Task] = []

    def add_device(self, device_id: str, on: bool = False, dim: int | None = None) -> None:
        self.values[device_id] = {"onoff": on}
        if dim is not None:
            self.values[device_id]["dim"] = dim

    def has_capability(self, device_id: str, capability: str) -> bool:
        return capability in self.values.get(device_id, {})

    def _check(self, device_id: str, capability: str) -> None:
        if device_id in self.unavailable:
            raise DeviceUnavailable(device_id)
        if not self.has_capability(device_id, capability):
            raise CapabilityUnsupported(device_id, capability)

    async def async_get_value(self, device_id: str, capability: str) -> Any:
        self._check(device_id, capability)
        await asyncio.sleep(0)
        return self.values[device_id][capability]

    async def async_set_value(self, device_id: str, capability: str, value: Any) -> None:
        self._check(device_id, capability)
        await asyncio.sleep(0)
        self.writes.append((device_id, capability, value))
        self._apply(device_id, capability, value)

    async def async_subscribe(self, device_id: str, capability: str, on_change: ChangeCallback) -> WatcherHandle:
        self._check(device_id, capability)
        watcher = WatcherHandle(device_id, capability, lambda: None)
        self.subscriptions.append((watcher, on_change))
        return watcher

    def active_watchers(self, device_id: str) -> list[WatcherHandle]:
        return [watcher for watcher, _ in self.subscriptions if watcher.device_id == device_id and watcher.active]

    def _apply(self, device_id: str, capability: str, value: Any) -> None:
        values = self.values[device_id]
        was_on = values["onoff"]
        values[capability] = value
        if capability == "dim":
            values["onoff"] = value > 0
        if values["onoff"] != was_on:
            for watcher, on_change in self.subscriptions:
                if watcher.active and watcher.device_id == device_id:
                    self._tasks.append(asyncio.ensure_future(on_change(values["onoff"])))

    async def switch_manually(self, device_id: str, on: bool) -> None:
        """Change a device outside the scheduler and wait for the notifications."""
        self._apply(device_id, "onoff", on)
        await self.drain()

    async def drain(self) -> None:
        while self._tasks:
            tasks, self._tasks = self._tasks, []
            await asyncio.gather(*tasks)


class FakeCountdown(Countdown):
    """Countdown whose callbacks only run when a test fires them."""

    def __init__(self):
        self.scheduled: list[tuple[float, CountdownHandle, CountdownCallback]] = []

    def schedule_after(self, delay: float, callback: CountdownCallback) -> CountdownHandle:
        handle = CountdownHandle()
        handle.bind(lambda: None)
        self.scheduled.append((delay, handle, callback))
        return handle

    @property
    def pending(self) -> list[CountdownHandle]:
        return [handle for _, handle, _ in self.scheduled if handle.active]

    async def fire_all(self) -> None:
        for _, handle, callback in list(self.scheduled):
            if handle.active and handle.mark_fired():
                await callback(handle)


class RecordingNotifier(EventNotifier):
    def __init__(self):
        self.events: list[TimerEvent] = []

    def notify(self, event: TimerEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[TimerEventKind]:
        return [event.kind for event in self.events]


class FakeClock:
    def __init__(self):
        self.current = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def actuator() -> FakeActuator:
    fake = FakeActuator()
    fake.add_device("light.hallway", on=False, dim=0)
    fake.add_device("switch.fan", on=False)
    return fake


@pytest.fixture
def countdown() -> FakeCountdown:
    return FakeCountdown()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(actuator, countdown, notifier, clock) -> DeviceTimerScheduler:
    return DeviceTimerScheduler(actuator, countdown, notifier, now=clock)
