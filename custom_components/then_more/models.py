from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from homeassistant.util import dt as dt_util

from .const import (
    CAPABILITY,
    CREATED_AT,
    DEVICE,
    EVENT_TIMER_DELETED,
    EVENT_TIMER_STARTED,
    OFF_TIME,
    OLD_VALUE,
    TIMERS,
    VALUE,
)

if TYPE_CHECKING:
    from .actuator import WatcherHandle
    from .countdown import CountdownHandle


@dataclass(frozen=True)
class TimerAction:
    """The capability value applied when a timer starts."""
    capability: str
    value: Any


@dataclass
class TimerEntry:
    device_id: str                                # entity_id of the controlled device
    capability: str                               # capability set by the triggering action
    target_value: Any                             # value applied when the timer started
    expiry: datetime                              # when the off/restore action runs
    handle: CountdownHandle = field(repr=False)   # pending countdown, used to cancel it
    watcher: WatcherHandle = field(repr=False)    # on/off subscription detecting manual switch-off
    restore_value: Any = None                     # value to reapply at expiry, None turns the device off
    restore_capability: Optional[str] = None      # capability restore_value was read from
    created_at: datetime = field(default_factory=dt_util.utcnow)

    @property
    def restores(self) -> bool:
        return self.restore_value is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the exported snapshot form, without scheduling handles"""
        return {
            DEVICE: self.device_id,
            OFF_TIME: self.expiry.isoformat(),
            CAPABILITY: self.capability,
            VALUE: self.target_value,
            OLD_VALUE: self.restore_value,
            CREATED_AT: self.created_at.isoformat(),
        }


class TimerEventKind(str, Enum):
    STARTED = "started"
    DELETED = "deleted"


@dataclass(frozen=True)
class TimerEvent:
    """Realtime notification about a timer starting or being deleted."""
    kind: TimerEventKind
    device: str
    timers: Dict[str, Dict[str, Any]]
    capability: Optional[str] = None
    value: Any = None
    old_value: Any = None
    reason: Optional[str] = None

    @property
    def event_type(self) -> str:
        if self.kind is TimerEventKind.STARTED:
            return EVENT_TIMER_STARTED
        return EVENT_TIMER_DELETED

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {DEVICE: self.device, TIMERS: self.timers}
        if self.kind is TimerEventKind.STARTED:
            data[CAPABILITY] = self.capability
            data[VALUE] = self.value
            data[OLD_VALUE] = self.old_value
        else:
            data["reason"] = self.reason
        return data
