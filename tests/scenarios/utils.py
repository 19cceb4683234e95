from __future__ import annotations

from typing import Callable, Dict, List, Optional

from catan_server.engine.board_geom import parse_site_id
from catan_server.engine.state import CITY, INITIAL_PLACEMENT, SETTLEMENT
from tests.harness.engine import GameDriver

Chooser = Callable[[GameDriver, str, List[str]], str]


def random_choice(driver: GameDriver, pid: str, legal: List[str]) -> str:
    return driver.rng.choice(legal)


def start(driver: GameDriver) -> None:
    res = driver.do({"type": "start", "pid": driver.pids[0]})
    if not res.get("ok"):
        driver.fail("start failed", kind="assertion", details=res)


def run_setup_snake(driver: GameDriver, choose: Optional[Chooser] = None) -> List[str]:
    """Start the game and play both initial placement rounds; returns the seat order used."""
    g = driver.game
    choose = choose or random_choice
    start(driver)

    order: List[str] = []
    while g.game_phase == INITIAL_PLACEMENT:
        pid = driver.current_pid
        order.append(pid)
        legal = driver.legal_settlement_vertices(pid, initial=True)
        if not legal:
            driver.fail("no legal settlement in setup", kind="assertion")
        chosen_vid = choose(driver, pid, legal)
        res = driver.do({"type": "place_settlement", "pid": pid, "vid": chosen_vid})
        if not res.get("ok"):
            driver.fail("setup settlement failed", kind="assertion", details=res)

        edges = driver.legal_road_edges(pid, anchor_vid=chosen_vid)
        if not edges:
            driver.fail("no legal road in setup", kind="assertion")
        res = driver.do({"type": "place_road", "pid": pid, "eid": edges[0]})
        if not res.get("ok"):
            driver.fail("setup road failed", kind="assertion", details=res)
    return order


def roll_to_build(driver: GameDriver, pid: str, dice=(1, 2)) -> None:
    res = driver.do({"type": "roll", "pid": pid, "dice": list(dice)})
    if not res.get("ok"):
        driver.fail("roll failed", kind="assertion", details=res)


def expected_payouts(driver: GameDriver, roll: int) -> Dict[str, Dict[str, int]]:
    """Payout for ``roll`` computed from the board, independent of the engine."""
    g = driver.game
    out: Dict[str, Dict[str, int]] = {}
    for vid, b in g.occupied_v.items():
        tile_id, _corner = parse_site_id(vid)
        t = g.tiles[tile_id]
        if t.number != roll or tile_id == g.robber_tile or t.type in ("desert", "water"):
            continue
        amount = 2 if b.type == CITY else 1 if b.type == SETTLEMENT else 0
        per = out.setdefault(b.owner_id, {})
        per[t.type] = per.get(t.type, 0) + amount
    return out


def resource_deltas(before: Dict[str, Dict[str, int]], driver: GameDriver) -> Dict[str, Dict[str, int]]:
    out: Dict[str, Dict[str, int]] = {}
    for p in driver.game.players:
        for r, q in p.resources.items():
            d = q - before[p.id].get(r, 0)
            if d:
                out.setdefault(p.id, {})[r] = d
    return out


def hands(driver: GameDriver) -> Dict[str, Dict[str, int]]:
    return {p.id: dict(p.resources) for p in driver.game.players}
