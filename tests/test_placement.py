import random

from catan_server.engine.session import Session
from catan_server.engine.state import PLACE_ROAD
from tests.harness.engine import GameDriver
from tests.scenarios.utils import roll_to_build, run_setup_snake


def _started(players=3, seed=1):
    s = Session("TEST01", rng=random.Random(seed))
    for i in range(players):
        assert s.add_player(f"p{i}", f"P{i}").success
    assert s.start_game("p0").success
    return s


def test_road_choices_after_initial_settlement():
    s = _started()
    assert s.place_building("p0", "settlement", "10-2").success
    assert s.state.turn_phase == PLACE_ROAD
    assert s.valid_placements("p0") == {"vertices": [], "edges": ["10-1", "10-2"]}


def test_initial_road_must_touch_new_settlement():
    s = _started()
    s.place_building("p0", "settlement", "10-2")
    res = s.place_building("p0", "road", "11-0")
    assert not res.success and res.code == "invalid_placement"
    assert s.place_building("p0", "road", "10-1").success
    assert s.state.current_player.id == "p1"


def test_initial_settlement_spots_respect_distance_rule():
    s = _started()
    before = s.valid_placements("p0")["vertices"]
    assert "10-2" in before and len(before) == 19 * 6

    s.place_building("p0", "settlement", "10-2")
    s.place_building("p0", "road", "10-2")
    spots = s.valid_placements("p1")["vertices"]
    assert "10-2" not in spots
    assert "10-1" not in spots and "10-3" not in spots
    assert "10-4" in spots

    res = s.place_building("p1", "settlement", "10-3")
    assert not res.success and res.code == "invalid_placement"


def test_initial_placement_rejects_wrong_building():
    s = _started()
    res = s.place_building("p0", "road", "10-2")
    assert res.code == "wrong_phase"
    res = s.place_building("p0", "city", "10-2")
    assert res.code == "wrong_phase"
    s.place_building("p0", "settlement", "10-2")
    res = s.place_building("p0", "settlement", "12-0")
    assert res.code == "wrong_phase"


def test_settlement_on_water_or_unknown_vertex_rejected():
    s = _started()
    assert s.place_building("p0", "settlement", "0-0").code == "invalid_placement"
    assert s.place_building("p0", "settlement", "banana").code == "invalid_placement"
    assert s.place_building("p0", "tower", "10-0").code == "invalid"


def test_valid_placements_empty_outside_play():
    s = Session("TEST02", rng=random.Random(1))
    s.add_player("p0", "A")
    assert s.valid_placements("p0") == {"vertices": [], "edges": []}
    s2 = _started()
    assert s2.valid_placements("nobody") == {"vertices": [], "edges": []}


def test_main_game_roads_extend_own_network():
    driver = GameDriver(3)
    run_setup_snake(driver)
    pid = driver.current_pid
    roll_to_build(driver, pid)
    topo = driver.game.board.topology

    edges = driver.session.valid_placements(pid)["edges"]
    assert edges
    for eid in edges:
        assert eid not in driver.game.occupied_e
        touching = topo.edge_vertices[eid]
        owned = any(
            (driver.game.occupied_v.get(v) and driver.game.occupied_v[v].owner_id == pid)
            or any(
                driver.game.occupied_e.get(e) and driver.game.occupied_e[e].owner_id == pid
                for e in topo.vertex_edges[v]
            )
            for v in touching
        )
        assert owned


def test_main_game_settlement_needs_own_road():
    driver = GameDriver(4)
    run_setup_snake(driver)
    pid = driver.current_pid
    roll_to_build(driver, pid)
    driver.apply_action({"type": "grant_resources", "pid": pid, "res": {"wood": 1, "brick": 1, "wheat": 1, "sheep": 1}})

    unconnected = next(
        v for v in driver.legal_settlement_vertices(pid, initial=True)
        if v not in driver.legal_settlement_vertices(pid, initial=False)
    )
    res = driver.session.place_building(pid, "settlement", unconnected)
    assert not res.success and res.code == "invalid_placement"
    assert driver.player(pid).total_cards >= 4


def test_valid_placements_recomputed_after_each_build():
    driver = GameDriver(7)
    run_setup_snake(driver)
    pid = driver.current_pid
    roll_to_build(driver, pid)
    driver.apply_action({"type": "grant_resources", "pid": pid, "res": {"wood": 2, "brick": 2}})

    first = driver.session.valid_placements(pid)["edges"]
    assert driver.session.place_building(pid, "road", first[0]).success
    second = driver.session.valid_placements(pid)["edges"]
    assert first[0] not in second


def test_nothing_offered_outside_build_phase():
    driver = GameDriver(8)
    run_setup_snake(driver)
    pid = driver.current_pid
    empty = {"vertices": [], "edges": []}

    assert driver.session.valid_placements(pid) == empty
    assert driver.session.roll_dice(pid, [3, 4]).success
    assert driver.session.valid_placements(pid) == empty
    assert driver.session.move_robber(pid, 12).success
    assert driver.session.valid_placements(pid)["edges"]

    other = next(p for p in driver.pids if p != pid)
    assert driver.session.valid_placements(other) == empty


def test_offered_road_is_accepted():
    driver = GameDriver(9)
    run_setup_snake(driver)
    pid = driver.current_pid
    roll_to_build(driver, pid)
    driver.apply_action({"type": "grant_resources", "pid": pid, "res": {"wood": 1, "brick": 1}})

    offered = driver.session.valid_placements(pid)["edges"]
    res = driver.session.place_building(pid, "road", offered[-1])
    assert res.success, res.to_dict()
