import logging

from homeassistant.components.sensor import SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import Event, HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, EVENT_TIMER_DELETED, EVENT_TIMER_STARTED, SENSOR, TIMERS
from .scheduler import DeviceTimerScheduler

_LOGGER = logging.getLogger(__name__)


class ActiveTimersSensor(SensorEntity):
    """Number of running timers, with the timers themselves as attributes."""
    _attr_should_poll = False
    _attr_has_entity_name = True
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_icon = "mdi:timer-outline"

    def __init__(self, entry_id: str, scheduler: DeviceTimerScheduler):
        self._scheduler = scheduler

        self._attr_unique_id = f"{entry_id}_active_timers"
        self.entity_id = f"{SENSOR}.{DOMAIN}_active_timers"
        self._attr_name = "Active timers"
        self._update(scheduler.export())

    @callback
    def _update(self, timers) -> None:
        self._attr_native_value = len(timers)
        self._attr_extra_state_attributes = {TIMERS: timers}

    async def async_added_to_hass(self):
        """Called when the entity is added to Home Assistant."""

        @callback
        def _async_on_timers_changed(event: Event):
            self._update(event.data.get(TIMERS, {}))
            self.async_write_ha_state()

        # Register the listeners and ensure they are cleaned up automatically
        for event_type in (EVENT_TIMER_STARTED, EVENT_TIMER_DELETED):
            self.async_on_remove(self.hass.bus.async_listen(event_type, _async_on_timers_changed))


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback
) -> None:
    """Set up the active timers sensor."""
    # Retrieve the scheduler we stored in __init__.py
    scheduler: DeviceTimerScheduler = hass.data[DOMAIN][entry.entry_id]

    async_add_entities([ActiveTimersSensor(entry.entry_id, scheduler)])
