import logging

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import ATTR_ENTITY_ID
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.helpers import config_validation as cv

from .actuator import HassDeviceActuator
from .const import (
    ATTR_BRIGHTNESS_LEVEL,
    ATTR_CAPABILITY,
    ATTR_IGNORE_WHEN_ON,
    ATTR_OVERRULE_LONGER_TIMEOUTS,
    ATTR_QUERY,
    ATTR_RESTORE,
    ATTR_TIME_ON,
    BINARY_SENSOR,
    CAPABILITIES,
    CAPABILITY_DIM,
    CAPABILITY_ONOFF,
    DOMAIN,
    SENSOR,
    SERVICE_CANCEL_TIMER,
    SERVICE_DIM_FOR,
    SERVICE_IS_TIMER_RUNNING,
    SERVICE_SEARCH_DEVICES,
    SERVICE_TURN_ON_FOR,
)
from .countdown import HassCountdown
from .devices import async_list_devices, filter_devices
from .models import TimerAction
from .notifier import HassEventNotifier
from .scheduler import DeviceTimerScheduler

_LOGGER = logging.getLogger(__name__)

TURN_ON_FOR_SCHEMA = vol.Schema({
    vol.Required(ATTR_ENTITY_ID): cv.entity_id,
    vol.Required(ATTR_TIME_ON): vol.All(vol.Coerce(int), vol.Range(min=0)),
    vol.Optional(ATTR_IGNORE_WHEN_ON, default=False): cv.boolean,
    vol.Optional(ATTR_OVERRULE_LONGER_TIMEOUTS, default=False): cv.boolean,
    vol.Optional(ATTR_RESTORE, default=False): cv.boolean,
})

DIM_FOR_SCHEMA = TURN_ON_FOR_SCHEMA.extend({
    vol.Required(ATTR_BRIGHTNESS_LEVEL): vol.All(vol.Coerce(int), vol.Range(min=0, max=100)),
})

ENTITY_SCHEMA = vol.Schema({
    vol.Required(ATTR_ENTITY_ID): cv.entity_id,
})

SEARCH_DEVICES_SCHEMA = vol.Schema({
    vol.Optional(ATTR_QUERY, default=""): cv.string,
    vol.Optional(ATTR_CAPABILITY, default=CAPABILITY_ONOFF): vol.In(CAPABILITIES),
})

PLATFORMS = [BINARY_SENSOR, SENSOR]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    actuator = HassDeviceActuator(hass)
    scheduler = DeviceTimerScheduler(actuator, HassCountdown(hass), HassEventNotifier(hass))

    # store the scheduler in hass.data so sensor.py can access it
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = scheduler

    async def _async_run_timer(call: ServiceCall, action: TimerAction) -> None:
        await scheduler.async_trigger(
            call.data[ATTR_ENTITY_ID],
            action,
            call.data[ATTR_TIME_ON],
            ignore_when_on=call.data[ATTR_IGNORE_WHEN_ON],
            overrule_longer_timeouts=call.data[ATTR_OVERRULE_LONGER_TIMEOUTS],
            restore=call.data[ATTR_RESTORE],
        )

    async def async_turn_on_for(call: ServiceCall) -> None:
        """Turn a device on, and off again after time_on seconds."""
        await _async_run_timer(call, TimerAction(CAPABILITY_ONOFF, True))

    async def async_dim_for(call: ServiceCall) -> None:
        """Dim a light to brightness_level, and turn it off after time_on seconds."""
        await _async_run_timer(call, TimerAction(CAPABILITY_DIM, call.data[ATTR_BRIGHTNESS_LEVEL]))

    async def async_cancel_timer(call: ServiceCall) -> None:
        entity_id = call.data[ATTR_ENTITY_ID]
        if not await scheduler.async_cancel_timer(entity_id):
            _LOGGER.warning("No running timer for %s", entity_id)

    async def async_is_timer_running(call: ServiceCall) -> ServiceResponse:
        return {"running": scheduler.is_timer_running(call.data[ATTR_ENTITY_ID])}

    async def async_search_devices(call: ServiceCall) -> ServiceResponse:
        devices = async_list_devices(hass, actuator, call.data[ATTR_CAPABILITY])
        return {"devices": [device.to_dict() for device in filter_devices(devices, call.data[ATTR_QUERY])]}

    # Register services
    hass.services.async_register(DOMAIN, SERVICE_TURN_ON_FOR, async_turn_on_for, schema=TURN_ON_FOR_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_DIM_FOR, async_dim_for, schema=DIM_FOR_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_CANCEL_TIMER, async_cancel_timer, schema=ENTITY_SCHEMA)
    hass.services.async_register(
        DOMAIN,
        SERVICE_IS_TIMER_RUNNING,
        async_is_timer_running,
        schema=ENTITY_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SEARCH_DEVICES,
        async_search_devices,
        schema=SEARCH_DEVICES_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )

    # Forward the config entry to the sensor platforms, which will set up the entities
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        scheduler: DeviceTimerScheduler = hass.data[DOMAIN].pop(entry.entry_id)
        # timers are in-memory only, drop them without touching the devices
        await scheduler.async_shutdown()

        for service in (
            SERVICE_TURN_ON_FOR,
            SERVICE_DIM_FOR,
            SERVICE_CANCEL_TIMER,
            SERVICE_IS_TIMER_RUNNING,
            SERVICE_SEARCH_DEVICES,
        ):
            hass.services.async_remove(DOMAIN, service)

    return unload_ok
