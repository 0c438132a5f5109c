from homeassistant.exceptions import HomeAssistantError


class ThenMoreError(HomeAssistantError):
    """Base error for the Then More integration."""


class DeviceUnavailable(ThenMoreError):
    """The device could not be read or written."""

    def __init__(self, device_id: str, detail: str = "unavailable"):
        super().__init__(f"Device {device_id} is {detail}")
        self.device_id = device_id


class CapabilityUnsupported(ThenMoreError):
    """The device does not expose the requested capability."""

    def __init__(self, device_id: str, capability: str):
        super().__init__(f"Device {device_id} does not support capability '{capability}'")
        self.device_id = device_id
        self.capability = capability


class StaleTimerHandle(ThenMoreError):
    """A countdown or watcher handle was released more than once."""
