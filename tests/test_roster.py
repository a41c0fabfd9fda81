import pytest

from factories import driver_row, stop_row
from src.app.models.domain import Driver, sort_drivers
from src.app.services.routing import roster, runs
from src.app.services.routing.errors import (
    DriverNotFoundError,
    ProtectedDriverError,
    RouteRunNotFoundError,
    StopNotFoundError,
)


def test_sort_drivers_by_sequence_with_unnumbered_last() -> None:
    drivers = [
        Driver(id="x", name="Helper"),
        Driver(id="b", name="Driver 10", sequence=10),
        Driver(id="a", name="Driver 2", sequence=2),
        Driver(id="y", name="Spare"),
        Driver(id="z", name="Driver 0", sequence=0),
    ]

    assert [d.id for d in sort_drivers(drivers)] == ["z", "a", "b", "x", "y"]


def test_display_color_replaces_grey() -> None:
    assert roster.display_color(Driver(id="a", name="A", color="#abcdef"), 3) == "#abcdef"
    assert roster.display_color(Driver(id="a", name="A", color="Grey"), 1) == "#ff7f0e"
    assert roster.display_color(Driver(id="a", name="A", color=None), 15) == "#1f77b4"


def test_first_added_driver_is_driver_zero(fake_db) -> None:
    driver, run_id = roster.add_driver("monday")

    assert driver.name == "Driver 0"
    assert driver.sequence == 0
    assert fake_db.tables["drivers"][0]["day"] == "monday"
    [run] = fake_db.tables["route_runs"]
    assert run["id"] == run_id
    assert run["snapshot"] == [{"driverId": driver.id, "driverName": "Driver 0", "color": driver.color, "stopIds": []}]


def test_add_driver_takes_next_sequence(fake_db) -> None:
    fake_db.tables["drivers"] = [
        driver_row("d0", "Driver 0", sequence=0),
        driver_row("d3", "Driver 3"),
        driver_row("other", "Driver 9", day="tuesday"),
    ]

    driver, _ = roster.add_driver("monday")

    assert (driver.name, driver.sequence) == ("Driver 4", 4)
    assert driver.color == roster.palette_color(4)


def test_driver_zero_cannot_be_removed(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d0", "Driver 0", stop_ids=["s1"])]

    with pytest.raises(ProtectedDriverError):
        roster.remove_driver("d0", "monday")
    assert len(fake_db.tables["drivers"]) == 1


def test_remove_unknown_driver(fake_db) -> None:
    with pytest.raises(DriverNotFoundError):
        roster.remove_driver("nope", "monday")


def test_remove_driver_unassigns_its_stops(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d0", "Driver 0"), driver_row("d1", "Driver 1", stop_ids=["s1"])]
    fake_db.tables["stops"] = [
        stop_row("s1", "c1", assigned_driver_id="d1"),
        stop_row("s2", "c2", assigned_driver_id="d1"),
        stop_row("s3", "c3", assigned_driver_id="d0"),
    ]

    driver, unassigned = roster.remove_driver("d1", "monday")

    assert driver.name == "Driver 1"
    assert unassigned == 2
    assert [row["id"] for row in fake_db.tables["drivers"]] == ["d0"]
    assert {row["id"]: row["assigned_driver_id"] for row in fake_db.tables["stops"]} == {
        "s1": None,
        "s2": None,
        "s3": "d0",
    }


def test_generate_deals_stops_evenly_and_records_a_run(fake_db) -> None:
    fake_db.tables["stops"] = [stop_row(f"s{i}", f"c{i}") for i in range(5)]

    result = roster.generate_drivers("monday", 2)

    assert [d.name for d in result.drivers] == ["Driver 0", "Driver 1"]
    assert [d.stop_ids for d in result.drivers] == [["s0", "s1", "s2"], ["s3", "s4"]]
    assert result.stops_assigned == 5
    owners = {row["id"]: row["assigned_driver_id"] for row in fake_db.tables["stops"]}
    assert owners == {"s0": result.drivers[0].id, "s1": result.drivers[0].id, "s2": result.drivers[0].id,
                      "s3": result.drivers[1].id, "s4": result.drivers[1].id}
    order = sorted(
        (row["driver_id"], row["position"], row["client_id"]) for row in fake_db.tables["driver_route_order"]
    )
    assert [(pos, cid) for did, pos, cid in order if did == result.drivers[1].id] == [(0, "c3"), (1, "c4")]
    [run] = fake_db.tables["route_runs"]
    assert run["id"] == result.run_id
    assert [entry["stopIds"] for entry in run["snapshot"]] == [["s0", "s1", "s2"], ["s3", "s4"]]


def test_generate_keeps_surplus_drivers_with_cleared_stops(fake_db) -> None:
    fake_db.tables["drivers"] = [
        driver_row("d0", "Driver 0", stop_ids=["s0"]),
        driver_row("d0-copy", "driver 0", stop_ids=[]),
        driver_row("d1", "Driver 1", stop_ids=["s1"]),
        driver_row("d2", "Driver 2", stop_ids=["s2"]),
    ]
    fake_db.tables["driver_route_order"] = [{"driver_id": "d2", "client_id": "c2", "position": 0}]
    fake_db.tables["stops"] = [stop_row(f"s{i}", f"c{i}") for i in range(3)]

    result = roster.generate_drivers("monday", 2)

    assert [d.id for d in result.drivers] == ["d0", "d1"]
    drivers = {row["id"]: row for row in fake_db.tables["drivers"]}
    assert set(drivers) == {"d0", "d1", "d2"}
    assert drivers["d2"]["stop_ids"] == []
    assert drivers["d0"]["stop_ids"] == ["s0", "s1"]
    assert not [row for row in fake_db.tables["driver_route_order"] if row["driver_id"] == "d2"]


def test_generate_rejects_non_positive_count(fake_db) -> None:
    with pytest.raises(ValueError):
        roster.generate_drivers("monday", 0)


def test_save_current_and_list_runs(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d1", "Driver 1", stop_ids=["s9"]), driver_row("d0", "Driver 0")]

    first = runs.snapshot_day("monday")
    second = runs.snapshot_day("monday")

    assert [entry.driver_id for entry in first.snapshot] == ["d0", "d1"]
    listed = runs.list_runs("monday")
    assert {run["id"] for run in listed} == {first.id, second.id}
    assert listed[0]["createdAt"] >= listed[1]["createdAt"]
    assert runs.list_runs("friday") == []


@pytest.mark.parametrize("name", ["Driver 0", "driver  0", "Driver 05"])
def test_any_driver_zero_name_is_protected(fake_db, name) -> None:
    fake_db.tables["drivers"] = [driver_row("d5", name, sequence=5)]

    with pytest.raises(ProtectedDriverError):
        roster.remove_driver("d5", "monday")
    assert len(fake_db.tables["drivers"]) == 1


def test_rename_driver_keeps_sequence_in_step(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d0", "Driver 0", sequence=0), driver_row("d1", "Driver 1", sequence=1)]

    assert roster.rename_driver("d1", 7) == ("Driver 1", "Driver 7")

    row = fake_db.tables["drivers"][1]
    assert (row["name"], row["sequence"]) == ("Driver 7", 7)


def test_rename_driver_rejections(fake_db) -> None:
    fake_db.tables["drivers"] = [
        driver_row("d0", "Driver 0", sequence=0),
        driver_row("d1", "Driver 1", sequence=1),
        driver_row("d2", "Driver 2", sequence=2),
    ]

    with pytest.raises(ProtectedDriverError):
        roster.rename_driver("d0", 3)
    with pytest.raises(ValueError, match="already exists"):
        roster.rename_driver("d1", 2)
    with pytest.raises(ValueError):
        roster.rename_driver("d1", -1)
    with pytest.raises(DriverNotFoundError):
        roster.rename_driver("ghost", 4)
    assert roster.rename_driver("d0", 0) == ("Driver 0", "Driver 0")


def test_set_driver_color_validates_hex(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d1", "Driver 1")]

    assert roster.set_driver_color("d1", " #F00 ") == "#F00"
    assert fake_db.tables["drivers"][0]["color"] == "#F00"
    for bad in ("", "red", "#12345", "123456"):
        with pytest.raises(ValueError):
            roster.set_driver_color("d1", bad)
    with pytest.raises(DriverNotFoundError):
        roster.set_driver_color("ghost", "#abcdef")


def test_reset_driver_clears_stops_and_optionally_proof(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d1", "Driver 1", stop_ids=["s1", "s2"])]
    fake_db.tables["stops"] = [
        stop_row("s1", "c1", assigned_driver_id="d1", completed=True, proof_url="https://proof/1"),
        stop_row("s2", "c2", assigned_driver_id="d1"),
    ]

    assert roster.reset_driver("d1", "monday") == 2
    assert fake_db.tables["drivers"][0]["stop_ids"] == []
    assert [row["assigned_driver_id"] for row in fake_db.tables["stops"]] == [None, None]
    assert fake_db.tables["stops"][0]["proof_url"] == "https://proof/1"

    fake_db.tables["drivers"][0]["stop_ids"] = ["s1"]
    assert roster.reset_driver("d1", "monday", clear_proof=True) == 1
    assert fake_db.tables["stops"][0]["proof_url"] is None
    assert fake_db.tables["stops"][0]["completed"] is False
    with pytest.raises(DriverNotFoundError):
        roster.reset_driver("d1", "friday")


def test_reassign_stop_moves_it_between_drivers(fake_db) -> None:
    fake_db.tables["drivers"] = [
        driver_row("d1", "Driver 1", stop_ids=["s1", "s2"]),
        driver_row("d2", "Driver 2", stop_ids=["s3"]),
    ]
    fake_db.tables["stops"] = [stop_row("s1", "c1"), stop_row("s2", "c2"), stop_row("s3", "c3")]
    fake_db.tables["driver_route_order"] = [
        {"driver_id": "d1", "client_id": "c1", "position": 0},
        {"driver_id": "d1", "client_id": "c2", "position": 1},
    ]

    stop = roster.reassign_stop("d2", "monday", client_id="c2")

    assert stop.id == "s2"
    drivers = {row["id"]: row["stop_ids"] for row in fake_db.tables["drivers"]}
    assert drivers == {"d1": ["s1"], "d2": ["s3", "s2"]}
    assert fake_db.tables["stops"][1]["assigned_driver_id"] == "d2"
    assert sorted((row["driver_id"], row["client_id"]) for row in fake_db.tables["driver_route_order"]) == [
        ("d1", "c1"),
        ("d2", "c2"),
    ]


def test_reassign_stop_errors(fake_db) -> None:
    fake_db.tables["drivers"] = [driver_row("d1", "Driver 1")]
    fake_db.tables["stops"] = [stop_row("s1", "c1")]

    with pytest.raises(StopNotFoundError):
        roster.reassign_stop("d1", "tuesday", stop_id="s1")
    with pytest.raises(DriverNotFoundError):
        roster.reassign_stop("d9", "monday", stop_id="s1")


def test_apply_run_restores_the_snapshot(fake_db) -> None:
    fake_db.tables["drivers"] = [
        driver_row("d0", "Driver 0", sequence=0),
        driver_row("d1", "Driver 1", stop_ids=["s1", "s2"]),
    ]
    fake_db.tables["stops"] = [stop_row("s1", "c1"), stop_row("s2", "c2")]
    saved = runs.snapshot_day("monday")

    fake_db.tables["drivers"][1]["stop_ids"] = []
    fake_db.tables["drivers"].append(driver_row("d2", "Driver 2", stop_ids=["s2"]))
    fake_db.tables["drivers"] = [row for row in fake_db.tables["drivers"] if row["id"] != "d0"]

    applied = runs.apply_run(saved.id)

    assert applied.id == saved.id
    drivers = {row["id"]: row for row in fake_db.tables["drivers"]}
    assert drivers["d1"]["stop_ids"] == ["s1", "s2"]
    assert drivers["d2"]["stop_ids"] == []
    assert drivers["d0"]["name"] == "Driver 0"
    assert drivers["d0"]["sequence"] == 0
    assert [row["assigned_driver_id"] for row in fake_db.tables["stops"]] == ["d1", "d1"]
    assert sorted((row["position"], row["client_id"]) for row in fake_db.tables["driver_route_order"]) == [
        (0, "c1"),
        (1, "c2"),
    ]
    with pytest.raises(RouteRunNotFoundError):
        runs.apply_run("missing")
