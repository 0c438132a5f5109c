import logging
from typing import Iterable

from homeassistant.components.binary_sensor import BinarySensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import Event, HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import BINARY_SENSOR, DEVICE, DOMAIN, EVENT_TIMER_DELETED, EVENT_TIMER_STARTED
from .scheduler import DeviceTimerScheduler

_LOGGER = logging.getLogger(__name__)


class TimerRunningBinarySensor(BinarySensorEntity):
    """On while a timer is running for one device; usable as an automation condition."""
    _attr_should_poll = False
    _attr_has_entity_name = True
    _attr_icon = "mdi:timer-sand"

    def __init__(self, entry_id: str, scheduler: DeviceTimerScheduler, device_id: str):
        self._scheduler = scheduler
        self._device_id = device_id

        object_id = device_id.replace(".", "_")
        self._attr_unique_id = f"{entry_id}_{object_id}_timer"
        self.entity_id = f"{BINARY_SENSOR}.{DOMAIN}_{object_id}_timer"
        self._attr_name = f"Timer {device_id}"
        self._attr_extra_state_attributes = {DEVICE: device_id}

    @property
    def is_on(self) -> bool:
        return self._scheduler.is_timer_running(self._device_id)

    async def async_added_to_hass(self):
        @callback
        def _async_on_timer_changed(event: Event):
            if event.data.get(DEVICE) == self._device_id:
                self.async_write_ha_state()

        for event_type in (EVENT_TIMER_STARTED, EVENT_TIMER_DELETED):
            self.async_on_remove(self.hass.bus.async_listen(event_type, _async_on_timer_changed))


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback
) -> None:
    """Add a timer sensor the first time a device gets a timer."""
    scheduler: DeviceTimerScheduler = hass.data[DOMAIN][entry.entry_id]
    known: set[str] = set()

    @callback
    def _async_add_sensors(device_ids: Iterable[str]) -> None:
        new_ids = [device_id for device_id in device_ids if device_id not in known]
        if not new_ids:
            return
        known.update(new_ids)
        _LOGGER.debug("Adding timer sensors for %s", ", ".join(new_ids))
        async_add_entities([TimerRunningBinarySensor(entry.entry_id, scheduler, device_id) for device_id in new_ids])

    @callback
    def _async_on_timer_started(event: Event):
        _async_add_sensors([event.data[DEVICE]])

    _async_add_sensors(scheduler.registry.device_ids())
    entry.async_on_unload(hass.bus.async_listen(EVENT_TIMER_STARTED, _async_on_timer_started))
