from unittest.mock import MagicMock

from custom_components.then_more.sensor import ActiveTimersSensor


def test_sensor_reports_running_timers() -> None:
    scheduler = MagicMock()
    scheduler.export.return_value = {"switch.fan": {"device": "switch.fan"}}

    sensor = ActiveTimersSensor("entry-1", scheduler)

    assert sensor.entity_id == "sensor.then_more_active_timers"
    assert sensor.unique_id == "entry-1_active_timers"
    assert sensor.native_value == 1
    assert sensor.extra_state_attributes == {"timers": {"switch.fan": {"device": "switch.fan"}}}


def test_sensor_update_replaces_snapshot() -> None:
    scheduler = MagicMock()
    scheduler.export.return_value = {"switch.fan": {"device": "switch.fan"}}
    sensor = ActiveTimersSensor("entry-1", scheduler)

    sensor._update({})

    assert sensor.native_value == 0
    assert sensor.extra_state_attributes == {"timers": {}}
