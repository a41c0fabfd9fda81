import pytest

from factories import client_row, driver_row, order_row, stop_row
from src.app.models.domain import Client, Stop
from src.app.services.routing import hydration


@pytest.fixture
def monday(fake_db):
    fake_db.tables["drivers"] = [
        driver_row("d0", "Driver 0", sequence=0),
        driver_row("d1", "Driver 1", stop_ids=["s3"], color="grey"),
    ]
    fake_db.tables["routes"] = []
    fake_db.tables["clients"] = [
        client_row("c1", "Ann", "One", address="1 Live St", lat=40.7, lng=-74.0, assigned_driver_id="d0"),
        client_row("c2", "Ben", "Two"),
        client_row("c3", "Cal", "Three"),
        client_row("c4", "Dee", "Four", paused=True, assigned_driver_id="d0"),
        client_row("c5", "Eve", "Five", assigned_driver_id="d1"),
    ]
    fake_db.tables["stops"] = [
        stop_row("s1", "c1", address="old address", order_id="u1"),
        stop_row("s2", "c2"),
        stop_row("s3", "c3", completed=True),
        stop_row("s4", "c4", assigned_driver_id="d0"),
        stop_row("s5", "c5", assigned_driver_id="d0"),
    ]
    fake_db.tables["driver_route_order"] = [{"driver_id": "d0", "client_id": "c1", "position": 0}]
    fake_db.tables["upcoming_orders"] = [order_row("u1", "c1", status="scheduled", order_number=501)]
    fake_db.tables["orders"] = [
        order_row("u1", "c1", order_number=1),
        order_row("o3-old", "c3", order_number=30, created_at="2026-01-01T00:00:00+00:00"),
        order_row("o3-new", "c3", status="cancelled", order_number=31, created_at="2026-01-05T00:00:00+00:00"),
    ]
    return fake_db


def test_merge_prefers_live_client_fields() -> None:
    stop = Stop(id="s", day="monday", client_id="c", name="Old Name", address="Old St", city="Oldtown", lat=1.0, lng=2.0)
    client = Client(id="c", first_name="New", last_name="Name", address="New St", city="", lat=3.0, lng=None)

    merged = hydration.merge_stop_with_client(stop, client)

    assert merged["name"] == "New Name"
    assert merged["address"] == "New St"
    assert merged["city"] == "Oldtown"
    assert (merged["lat"], merged["lng"]) == (3.0, 2.0)


def test_merge_without_client_uses_snapshot() -> None:
    stop = Stop(id="s", day="monday", name="", address="Old St", dislikes=" nuts ")

    merged = hydration.merge_stop_with_client(stop, None)

    assert merged["name"] == "(Unnamed)"
    assert merged["address"] == "Old St"
    assert merged["dislikes"] == "nuts"


def test_routes_for_day_resolves_each_representation(monday) -> None:
    result = hydration.get_routes_for_day("monday", light=True)

    assert not result.degraded
    routes = {route["driverId"]: route for route in result.value["routes"]}
    assert list(routes) == ["d0", "d1"]
    assert routes["d0"]["stopIds"] == ["s1"]
    # s5's client belongs to d1 even though the stop row still names d0
    assert routes["d1"]["stopIds"] == ["s3", "s5"]
    assert routes["d1"]["totalStops"] == 2
    assert routes["d1"]["completedStops"] == 1
    assert routes["d1"]["color"] == "#ff7f0e"
    assert [stop["id"] for stop in result.value["unrouted"]] == ["s2"]
    assert result.value["usersWithoutStops"] == []


def test_routes_for_day_hydrates_live_fields_and_orders(monday) -> None:
    result = hydration.get_routes_for_day("monday", light=True)
    routes = {route["driverId"]: route for route in result.value["routes"]}

    [first] = routes["d0"]["stops"]
    assert first["name"] == "Ann One"
    assert first["address"] == "1 Live St"
    assert first["assigned_driver_id"] == "d0"
    assert first["orderNumber"] == 501
    assert first["orderStatus"] == "scheduled"

    third = routes["d1"]["stops"][0]
    assert third["orderId"] == "o3-old"
    assert third["orderNumber"] == 30


def test_paused_clients_are_hidden_everywhere(monday) -> None:
    result = hydration.get_routes_for_day("monday", light=True)

    shown = [stop["id"] for route in result.value["routes"] for stop in route["stops"]]
    shown += [stop["id"] for stop in result.value["unrouted"]]
    assert "s4" not in shown


def test_a_stop_is_never_on_two_routes(monday) -> None:
    monday.tables["drivers"].append(driver_row("d2", "Driver 2", stop_ids=["s3", "s2"]))

    result = hydration.get_routes_for_day("monday", light=True)

    claimed = [sid for route in result.value["routes"] for sid in route["stopIds"]]
    assert len(claimed) == len(set(claimed))
    routes = {route["driverId"]: route for route in result.value["routes"]}
    assert routes["d2"]["stopIds"] == ["s2"]
    assert result.value["unrouted"] == []


def test_full_view_reconciles_missing_stops_first(monday) -> None:
    monday.tables["clients"] += [client_row("c6", "Fay", "Six"), client_row("c7", "Gus", "Seven", delivery=False)]
    monday.tables["orders"].append(order_row("o6", "c6", delivery_day="monday"))

    result = hydration.get_routes_for_day("monday")

    reasons = {entry["clientId"]: entry["reason"] for entry in result.value["usersWithoutStops"]}
    assert reasons == {"c6": "creating stop now", "c7": "delivery off"}
    unrouted = [stop["userId"] for stop in result.value["unrouted"]]
    assert sorted(unrouted) == ["c2", "c6"]


def test_delivery_date_includes_undated_stops_of_the_day(monday) -> None:
    monday.tables["stops"] += [
        stop_row("s6", "c2", delivery_date="2026-02-16T00:00:00+00:00"),
        stop_row("s7", "c3", delivery_date="2026-02-23"),
    ]

    result = hydration.get_routes_for_day("monday", delivery_date="2026-02-16")

    unrouted = {stop["id"]: stop for stop in result.value["unrouted"]}
    assert set(unrouted) == {"s2", "s6"}
    assert unrouted["s6"]["delivery_date"] == "2026-02-16"


def test_failed_reads_degrade_to_empty_payload(monday) -> None:
    monday.failing.add("stops")

    result = hydration.get_routes_for_day("monday", light=True)

    assert result.degraded
    assert "stops" in result.error
    assert result.value == {"routes": [], "unrouted": [], "usersWithoutStops": []}


def test_summaries_skip_drivers_without_stops(monday) -> None:
    monday.tables["drivers"].append(driver_row("d9", "Driver 9"))

    result = hydration.get_route_summaries("monday")

    assert [summary["id"] for summary in result.value] == ["d0", "d1"]
    assert result.value[1] == {
        "id": "d1",
        "name": "Driver 1",
        "color": "#ff7f0e",
        "stopIds": ["s3", "s5"],
        "totalStops": 2,
        "completedStops": 1,
    }


def test_stops_for_one_driver_and_for_the_day(monday) -> None:
    driver_stops = hydration.get_stops("d1", "monday")
    day_stops = hydration.get_stops(None, "monday")

    assert [stop["id"] for stop in driver_stops.value] == ["s3", "s5"]
    assert [stop["id"] for stop in day_stops.value] == ["s1", "s3", "s5", "s2"]
    assert hydration.get_stops("unknown", "monday").value == []


def test_failed_summaries_are_marked_degraded(monday) -> None:
    monday.failing.add("drivers")

    result = hydration.get_route_summaries("monday")

    assert result.degraded
    assert result.value == []


def test_routes_table_row_backs_a_driver_without_stop_ids(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d1", "Driver 1")]
    fake_db.tables["routes"] = [{"id": "d1", "name": "Route 1", "color": None, "stop_ids": '["s2", "s1"]'}]
    fake_db.tables["clients"] = [client_row("c1", "Ann"), client_row("c2", "Ben")]
    fake_db.tables["stops"] = [stop_row("s1", "c1"), stop_row("s2", "c2")]

    result = hydration.get_routes_for_day("monday", light=True)

    [route] = result.value["routes"]
    assert route["driverId"] == "d1"
    assert route["stopIds"] == ["s2", "s1"]
    assert result.value["unrouted"] == []


def test_route_order_rows_beat_stop_ids_for_unassigned_stops(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d1", "Driver 1", stop_ids=["s1", "s2"])]
    fake_db.tables["clients"] = [client_row("c1", "Ann"), client_row("c2", "Ben")]
    fake_db.tables["stops"] = [stop_row("s1", "c1"), stop_row("s2", "c2")]
    fake_db.tables["driver_route_order"] = [
        {"driver_id": "d1", "client_id": "c2", "position": 0},
        {"driver_id": "d1", "client_id": "c1", "position": 1},
    ]

    result = hydration.get_routes_for_day("monday", light=True)

    assert result.value["routes"][0]["stopIds"] == ["s2", "s1"]


def test_day_view_lists_all_day_drivers_and_legacy_routes(fake_db) -> None:
    fake_db.tables["drivers"] = [
        driver_row("m1", "Driver 1"),
        driver_row("a0", "Driver 0", day="all"),
        driver_row("t1", "Driver 5", day="tuesday"),
    ]
    fake_db.tables["routes"] = [{"id": "r1", "name": "Route A", "color": None, "stop_ids": []}]

    drivers = hydration.load_day_view("monday").drivers

    assert [d.id for d in drivers] == ["a0", "m1", "r1"]
    assert drivers[-1].legacy


def test_dated_stops_use_the_order_for_their_delivery_date(fake_db) -> None:
    fake_db.tables["clients"] = [client_row("c1", "Ann")]
    fake_db.tables["stops"] = [
        stop_row("s1", "c1", delivery_date="2026-02-16T00:00:00+00:00"),
        stop_row("s2", "c1"),
    ]
    fake_db.tables["orders"] = [
        order_row(
            "o16", "c1", order_number=16, scheduled_delivery_date="2026-02-16",
            created_at="2026-02-01T00:00:00+00:00",
        ),
        order_row(
            "o23", "c1", order_number=23, scheduled_delivery_date="2026-02-23",
            created_at="2026-02-08T00:00:00+00:00",
        ),
    ]

    result = hydration.get_stops(None, "monday", "2026-02-16")

    by_id = {stop["id"]: stop for stop in result.value}
    assert by_id["s1"]["orderId"] == "o16"
    assert by_id["s1"]["orderNumber"] == 16
    assert by_id["s2"]["orderId"] == "o23"


def test_direct_order_without_number_yields_to_the_dated_order(fake_db) -> None:
    fake_db.tables["clients"] = [client_row("c1", "Ann")]
    fake_db.tables["stops"] = [stop_row("s1", "c1", order_id="u1", delivery_date="2026-02-16")]
    fake_db.tables["upcoming_orders"] = [order_row("u1", "c1", status="scheduled", scheduled_delivery_date="2026-02-16")]
    fake_db.tables["orders"] = [order_row("o1", "c1", order_number=77, scheduled_delivery_date="2026-02-16")]

    [stop] = hydration.get_stops(None, "monday", "2026-02-16").value

    assert stop["orderId"] == "o1"
    assert stop["orderNumber"] == 77
