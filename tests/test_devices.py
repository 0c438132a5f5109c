from custom_components.then_more.devices import DeviceMatch, filter_devices

DEVICES = [
    DeviceMatch("light.ceiling", "Ceiling Light", "Living Room"),
    DeviceMatch("light.desk", "Desk Lamp", "Office"),
    DeviceMatch("switch.fan", "Fan", ""),
]


def test_filter_matches_name_ignoring_case() -> None:
    assert filter_devices(DEVICES, "LAMP") == [DEVICES[1]]


def test_filter_matches_zone() -> None:
    assert filter_devices(DEVICES, "living") == [DEVICES[0]]


def test_empty_query_matches_everything() -> None:
    assert filter_devices(DEVICES, "") == DEVICES


def test_no_match() -> None:
    assert filter_devices(DEVICES, "garage") == []


def test_to_dict() -> None:
    assert DEVICES[1].to_dict() == {"entity_id": "light.desk", "name": "Desk Lamp", "zone": "Office"}
