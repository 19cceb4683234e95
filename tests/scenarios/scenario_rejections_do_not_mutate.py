from __future__ import annotations

from typing import Any, Dict

from tests.harness.engine import GameDriver
from tests.scenarios.utils import roll_to_build, run_setup_snake


def _rejected(driver: GameDriver, action: Dict[str, Any], code: str) -> None:
    before = driver.state_dict()
    res = driver.apply_action(action)
    driver.steps.append(dict(action))
    if res.get("ok", True):
        driver.fail("illegal action accepted", kind="assertion", details={"action": action})
    if res.get("error") != code:
        driver.fail("wrong rejection code", kind="assertion", details={"action": action, "expected": code, "actual": res.get("error")})
    if driver.state_dict() != before:
        driver.fail("rejected action mutated state", kind="assertion", details={"action": action})


def run(driver: GameDriver) -> Dict[str, Any]:
    g = driver.game
    run_setup_snake(driver)
    p0, p1 = driver.pids[0], driver.pids[1]
    land = next(t.id for t in g.tiles if t.produces and t.id != g.robber_tile)

    _rejected(driver, {"type": "roll", "pid": p1, "roll": 8}, "not_your_turn")
    _rejected(driver, {"type": "roll", "pid": "ghost", "roll": 8}, "player_not_found")
    _rejected(driver, {"type": "end_turn", "pid": p0}, "wrong_phase")
    _rejected(driver, {"type": "move_robber", "pid": p0, "tile": land}, "wrong_phase")
    _rejected(driver, {"type": "place_road", "pid": p0, "eid": g.board.topology.edges[0]}, "wrong_phase")
    _rejected(driver, {"type": "start", "pid": p0}, "already_started")
    _rejected(driver, {"type": "roll", "pid": p0, "dice": [0, 7]}, "invalid")

    roll_to_build(driver, p0)
    _rejected(driver, {"type": "roll", "pid": p0, "roll": 8}, "wrong_phase")

    # empty hand
    for r in list(driver.player(p0).resources):
        driver.player(p0).total_cards -= driver.player(p0).resources[r]
        driver.player(p0).resources[r] = 0
    _rejected(driver, {"type": "place_road", "pid": p0, "eid": g.board.topology.edges[0]}, "insufficient_resources")

    driver.do({"type": "grant_resources", "pid": p0, "res": {"wood": 2, "brick": 2, "wheat": 3, "sheep": 1, "ore": 3}})
    taken = next(iter(g.occupied_v))
    others = next(v for v, b in g.occupied_v.items() if b.owner_id != p0)
    _rejected(driver, {"type": "place_settlement", "pid": p0, "vid": taken}, "invalid_placement")
    _rejected(driver, {"type": "place_city", "pid": p0, "vid": others}, "invalid_placement")
    _rejected(driver, {"type": "place_road", "pid": p0, "eid": "999-9"}, "invalid_placement")
    _rejected(driver, {"type": "place_road", "pid": p0, "eid": next(iter(g.occupied_e))}, "invalid_placement")
    _rejected(driver, {"type": "end_turn", "pid": p1}, "not_your_turn")

    return {
        "steps": driver.steps,
        "summary": driver.snapshot(),
    }
