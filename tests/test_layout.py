from services.layout import LocationRegistry, build_locations, location_code
from services.pick_planner import route_sort_key


def test_default_layout_builds_expected_faces():
    registry = LocationRegistry()

    codes = [loc["location_code"] for loc in registry]

    assert len(registry) == 31
    assert "A-04-F" in codes
    assert "A-04-B" not in codes
    assert "C-05-F" in codes
    assert "C-05-B" not in codes
    assert "B-04-B" in codes
    assert len(registry.receivable()) == 24


def test_audio_row_is_never_receivable():
    registry = LocationRegistry()

    audio = registry.in_row("D")

    assert audio
    assert all(loc["capacity"] == 0 for loc in audio)
    assert all(loc["row"] != "D" for loc in registry.receivable())
    assert registry.find("A", 1, "F")["capacity"] == 160


def test_walk_order_sorts_back_before_front():
    registry = LocationRegistry()

    walk = [loc["location_code"] for loc in registry.walk_order()]

    assert walk[:4] == ["A-01-B", "A-01-F", "A-02-B", "A-02-F"]
    assert walk.index("A-04-F") < walk.index("B-01-B")


def test_pick_route_order_is_distinct_from_walk_order():
    registry = LocationRegistry()

    route = [loc["location_code"] for loc in sorted(registry.receivable(), key=route_sort_key)]

    assert route[:2] == ["A-01-F", "A-01-B"]
    assert route[route.index("A-04-F") + 1] == "B-04-F"
    assert route[route.index("B-01-B") + 1] == "C-01-F"


def test_find_normalizes_row_bay_and_side():
    registry = LocationRegistry()

    location = registry.find("b", "02", "front")

    assert location["location_code"] == "B-02-F"
    assert registry.find("Z", 1, "F") is None
    assert registry.find("A", "x", "F") is None
    assert registry.get("not-a-number") is None


def test_custom_rows_config_and_location_code_padding():
    locations = build_locations({"A": {"bays": 2, "audio": False, "endcaps": [2]}})

    assert [loc["location_code"] for loc in locations] == ["A-01-F", "A-01-B", "A-02-F"]
    assert location_code("C", 12, "B") == "C-12-B"
