from __future__ import annotations

from typing import Any, Dict, List

from catan_server.engine.state import FINISHED, RulesConfig
from tests.harness.engine import GameDriver
from tests.scenarios.utils import roll_to_build, run_setup_snake

RULES = RulesConfig(lock_after_finish=True)


def _own_tiles(driver: GameDriver) -> Dict[str, List[int]]:
    # p0 keeps two tiles to itself so it has room to expand
    land = [t.id for t in driver.game.tiles if t.produces]
    plan = {driver.pids[0]: land[:2]}
    for i, pid in enumerate(driver.pids[1:]):
        plan[pid] = [land[2 + i]]
    return plan


def run(driver: GameDriver) -> Dict[str, Any]:
    g = driver.game
    plan = _own_tiles(driver)

    def choose(drv: GameDriver, pid: str, legal: List[str]) -> str:
        placed = len(g.settlement_placements.get(pid, []))
        tiles = plan[pid]
        tile_id = tiles[placed % len(tiles)]
        corner = 0 if placed < len(tiles) else 3
        vid = f"{tile_id}-{corner}"
        if vid not in legal:
            drv.fail("planned setup vertex is not legal", kind="assertion", details={"pid": pid, "vid": vid})
        return vid

    run_setup_snake(driver, choose=choose)

    pid = driver.pids[0]
    p = driver.player(pid)
    roll_to_build(driver, pid)
    driver.do({"type": "grant_resources", "pid": pid, "res": {"wood": 30, "brick": 30, "wheat": 30, "sheep": 30, "ore": 30}})

    target = g.rules.target_vp
    for _ in range(60):
        if p.victory_points >= target - 1:
            break
        verts = driver.legal_settlement_vertices(pid, initial=False)
        if verts:
            res = driver.do({"type": "place_settlement", "pid": pid, "vid": verts[0]})
        elif driver.legal_road_edges(pid):
            res = driver.do({"type": "place_road", "pid": pid, "eid": driver.legal_road_edges(pid)[0]})
        elif driver.legal_city_vertices(pid):
            res = driver.do({"type": "place_city", "pid": pid, "vid": driver.legal_city_vertices(pid)[0]})
        else:
            driver.fail("ran out of building options", kind="assertion", details=driver.snapshot())
        if not res.get("ok"):
            driver.fail("build failed", kind="assertion", details=res)
        if g.game_phase == FINISHED:
            driver.fail("game finished before the winning city", kind="assertion", details=driver.snapshot())

    cities = driver.legal_city_vertices(pid)
    if p.victory_points != target - 1 or not cities:
        driver.fail("could not set up winning city", kind="assertion", details=driver.snapshot())
    res = driver.do({"type": "place_city", "pid": pid, "vid": cities[0]})
    if not res.get("ok"):
        driver.fail("winning city failed", kind="assertion", details=res)
    if not any(ev.get("type") == "game_won" for ev in res.get("events", [])):
        driver.fail("no game_won event", kind="assertion", details=res)

    if g.game_phase != FINISHED or g.winner_id != pid:
        driver.fail("game_over state missing", kind="assertion", details=driver.snapshot())

    action = {"type": "end_turn", "pid": pid}
    driver.steps.append(dict(action))
    res = driver.apply_action(action)
    if res.get("ok") or res.get("error") != "game_over":
        driver.fail("action allowed after game over", kind="assertion", details=res)
    if driver.session.valid_placements(pid) != {"vertices": [], "edges": []}:
        driver.fail("placements offered after game over", kind="assertion")

    return {
        "steps": driver.steps,
        "summary": driver.snapshot(),
    }
