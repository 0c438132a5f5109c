import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from homeassistant.components.light import (
    ATTR_BRIGHTNESS,
    ATTR_BRIGHTNESS_PCT,
    ATTR_SUPPORTED_COLOR_MODES,
    brightness_supported,
)
from homeassistant.const import (
    ATTR_ENTITY_ID,
    SERVICE_TURN_OFF,
    SERVICE_TURN_ON,
    STATE_ON,
    STATE_UNAVAILABLE,
    STATE_UNKNOWN,
)
from homeassistant.core import CALLBACK_TYPE, Event, HomeAssistant, State, callback, split_entity_id, valid_entity_id
from homeassistant.exceptions import HomeAssistantError, ServiceNotFound
from homeassistant.helpers.event import async_track_state_change_event

from .const import CAPABILITY_DIM, CAPABILITY_ONOFF, DIM_DOMAIN, ONOFF_DOMAINS
from .exceptions import CapabilityUnsupported, DeviceUnavailable, StaleTimerHandle

_LOGGER = logging.getLogger(__name__)

ChangeCallback = Callable[[Any], Awaitable[None]]


class WatcherHandle:
    """Subscription to value changes of one device capability."""

    def __init__(self, device_id: str, capability: str, unsub: CALLBACK_TYPE):
        self.device_id = device_id
        self.capability = capability
        self._unsub: Optional[CALLBACK_TYPE] = unsub

    @property
    def active(self) -> bool:
        return self._unsub is not None

    def unsubscribe(self) -> None:
        if self._unsub is None:
            raise StaleTimerHandle(f"Watcher for {self.device_id} was already released")
        unsub, self._unsub = self._unsub, None
        unsub()


class DeviceActuator(ABC):
    """Reads, writes and watches capability values of devices."""

    @abstractmethod
    def has_capability(self, device_id: str, capability: str) -> bool:
        """Return whether the device exposes a settable capability; never raises."""

    @abstractmethod
    async def async_get_value(self, device_id: str, capability: str) -> Any:
        """Read the current value of a capability."""

    @abstractmethod
    async def async_set_value(self, device_id: str, capability: str, value: Any) -> None:
        """Write a capability value."""

    @abstractmethod
    async def async_subscribe(self, device_id: str, capability: str, on_change: ChangeCallback) -> WatcherHandle:
        """Call on_change(new_value) whenever the capability value changes."""


def _brightness_to_pct(brightness: Optional[float]) -> int:
    if not brightness:
        return 0
    return round(brightness / 255 * 100)


class HassDeviceActuator(DeviceActuator):
    """DeviceActuator backed by Home Assistant entities and services.

    ``onoff`` maps to the entity's on/off state and its domain's turn_on /
    turn_off services. ``dim`` is a brightness percentage (0-100) of a light.
    """

    def __init__(self, hass: HomeAssistant):
        self.hass = hass

    def has_capability(self, device_id: str, capability: str) -> bool:
        if not valid_entity_id(device_id):
            return False
        domain, _ = split_entity_id(device_id)

        if capability == CAPABILITY_ONOFF:
            return domain in ONOFF_DOMAINS
        if capability == CAPABILITY_DIM:
            if domain != DIM_DOMAIN:
                return False
            state = self.hass.states.get(device_id)
            return state is not None and brightness_supported(state.attributes.get(ATTR_SUPPORTED_COLOR_MODES))
        return False

    def _ensure_capability(self, device_id: str, capability: str) -> None:
        if not self.has_capability(device_id, capability):
            raise CapabilityUnsupported(device_id, capability)

    def _get_state(self, device_id: str) -> State:
        state = self.hass.states.get(device_id)
        if state is None:
            raise DeviceUnavailable(device_id, "unknown to Home Assistant")
        if state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
            raise DeviceUnavailable(device_id, state.state)
        return state

    @staticmethod
    def _read(state: State, capability: str) -> Any:
        if capability == CAPABILITY_ONOFF:
            return state.state == STATE_ON
        return _brightness_to_pct(state.attributes.get(ATTR_BRIGHTNESS))

    async def async_get_value(self, device_id: str, capability: str) -> Any:
        self._ensure_capability(device_id, capability)
        return self._read(self._get_state(device_id), capability)

    async def async_set_value(self, device_id: str, capability: str, value: Any) -> None:
        self._ensure_capability(device_id, capability)
        self._get_state(device_id)

        service_data = {ATTR_ENTITY_ID: device_id}
        if capability == CAPABILITY_ONOFF:
            domain, _ = split_entity_id(device_id)
            service = SERVICE_TURN_ON if value else SERVICE_TURN_OFF
        else:
            domain = DIM_DOMAIN
            service = SERVICE_TURN_ON
            service_data[ATTR_BRIGHTNESS_PCT] = value

        _LOGGER.debug("Calling %s.%s for %s", domain, service, device_id)
        try:
            await self.hass.services.async_call(domain, service, service_data, blocking=True)
        except ServiceNotFound as err:
            raise CapabilityUnsupported(device_id, capability) from err
        except HomeAssistantError as err:
            raise DeviceUnavailable(device_id, f"not responding ({err})") from err

    async def async_subscribe(self, device_id: str, capability: str, on_change: ChangeCallback) -> WatcherHandle:
        self._ensure_capability(device_id, capability)

        @callback
        def _async_state_changed(event: Event) -> None:
            new_state = event.data.get("new_state")
            if new_state is None or new_state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
                return
            new_value = self._read(new_state, capability)

            old_state = event.data.get("old_state")
            if old_state is not None and self._read(old_state, capability) == new_value:
                # attribute-only change
                return
            self.hass.async_create_task(on_change(new_value))

        unsub = async_track_state_change_event(self.hass, [device_id], _async_state_changed)
        return WatcherHandle(device_id, capability, unsub)
