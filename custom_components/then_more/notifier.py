import logging
from abc import ABC, abstractmethod

from homeassistant.core import HomeAssistant, callback

from .models import TimerEvent

_LOGGER = logging.getLogger(__name__)


class EventNotifier(ABC):
    """Publishes timer lifecycle events."""

    @abstractmethod
    def notify(self, event: TimerEvent) -> None:
        """Publish a timer event."""


class HassEventNotifier(EventNotifier):
    """Fires timer events on the Home Assistant event bus."""

    def __init__(self, hass: HomeAssistant):
        self.hass = hass

    @callback
    def notify(self, event: TimerEvent) -> None:
        _LOGGER.debug("Firing %s for %s", event.event_type, event.device)
        self.hass.bus.async_fire(event.event_type, event.as_dict())
