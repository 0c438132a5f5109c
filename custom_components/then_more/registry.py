from typing import Any, Dict, Iterator, List, Optional

from .models import TimerEntry


class TimerRegistry:
    """In-memory map of device id to its active timer.

    The registry does no locking of its own; the scheduler serializes access
    per device.
    """

    def __init__(self):
        self._entries: Dict[str, TimerEntry] = {}

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TimerEntry]:
        return iter(list(self._entries.values()))

    def get(self, device_id: str) -> Optional[TimerEntry]:
        return self._entries.get(device_id)

    def put(self, entry: TimerEntry) -> None:
        """Store an entry, replacing any existing one for the same device."""
        self._entries[entry.device_id] = entry

    def remove(self, device_id: str) -> Optional[TimerEntry]:
        """Remove and return the entry for a device; absent keys are ignored."""
        return self._entries.pop(device_id, None)

    def device_ids(self) -> List[str]:
        return list(self._entries)

    def export(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of all active timers for reporting."""
        return {device_id: entry.to_dict() for device_id, entry in self._entries.items()}
