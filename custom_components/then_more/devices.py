from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers import area_registry as ar
from homeassistant.helpers import device_registry as dr
from homeassistant.helpers import entity_registry as er

from .actuator import DeviceActuator


@dataclass(frozen=True)
class DeviceMatch:
    entity_id: str
    name: str
    zone: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"entity_id": self.entity_id, "name": self.name, "zone": self.zone}


def filter_devices(devices: Iterable[DeviceMatch], query: str) -> List[DeviceMatch]:
    """Keep devices whose name or zone contains the query, ignoring case."""
    needle = query.lower()
    return [
        device
        for device in devices
        if needle in device.name.lower() or needle in device.zone.lower()
    ]


@callback
def async_list_devices(hass: HomeAssistant, actuator: DeviceActuator, capability: str) -> List[DeviceMatch]:
    """List entities exposing a capability, with the name of their area."""
    entity_registry = er.async_get(hass)
    device_registry = dr.async_get(hass)
    area_registry = ar.async_get(hass)

    devices = []
    for state in hass.states.async_all():
        if not actuator.has_capability(state.entity_id, capability):
            continue

        area_id: Optional[str] = None
        if (entry := entity_registry.async_get(state.entity_id)) is not None:
            area_id = entry.area_id
            # entities inherit the area of their device
            if area_id is None and entry.device_id:
                if (device := device_registry.async_get(entry.device_id)) is not None:
                    area_id = device.area_id

        area = area_registry.async_get_area(area_id) if area_id else None
        devices.append(DeviceMatch(state.entity_id, state.name, area.name if area else ""))

    return sorted(devices, key=lambda device: device.name.lower())
