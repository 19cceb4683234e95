from __future__ import annotations

from typing import Dict, List, Optional

from catan_server.engine.board_geom import site_id, CORNERS
from catan_server.engine.state import (
    BUILD,
    CITY,
    FINISHED,
    INITIAL_PLACEMENT,
    PLACE_ROAD,
    PLACE_SETTLEMENT,
    PLAYING,
    ROAD,
    SETTLEMENT,
    Building,
    GameState,
    PlayerState,
)


class RuleError(Exception):
    def __init__(self, code: str, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}


class ValidationError(RuleError):
    """The command is well-formed but not legal right now."""


class StructuralError(RuleError):
    """The command references a player, game or site that does not exist."""


def _is_settled(b: Optional[Building]) -> bool:
    return b is not None and b.type in (SETTLEMENT, CITY)


def _owns_road(g: GameState, eid: str, pid: str) -> bool:
    b = g.occupied_e.get(eid)
    return b is not None and b.type == ROAD and b.owner_id == pid


def can_place_settlement(g: GameState, pid: str, vid: str, initial: bool) -> bool:
    topo = g.board.topology
    if not topo.has_vertex(vid):
        return False
    if vid in g.occupied_v:
        return False
    for nb in topo.vertex_neighbors[vid]:
        if _is_settled(g.occupied_v.get(nb)):
            return False
    if initial:
        return True
    return any(_owns_road(g, e, pid) for e in topo.vertex_edges[vid])


def can_place_road(g: GameState, pid: str, eid: str, anchor_vid: Optional[str] = None) -> bool:
    topo = g.board.topology
    if not topo.has_edge(eid):
        return False
    if eid in g.occupied_e:
        return False
    if anchor_vid is not None:
        return eid in topo.vertex_edges.get(anchor_vid, ())
    for v in topo.edge_vertices[eid]:
        b = g.occupied_v.get(v)
        if b is not None and b.owner_id == pid:
            return True
        if any(_owns_road(g, e, pid) for e in topo.vertex_edges.get(v, ())):
            return True
    return False


def can_upgrade_city(g: GameState, pid: str, vid: str) -> bool:
    b = g.occupied_v.get(vid) if isinstance(vid, str) else None
    return b is not None and b.type == SETTLEMENT and b.owner_id == pid


def can_pay(p: PlayerState, cost: Dict[str, int]) -> bool:
    return all(p.resources.get(r, 0) >= q for r, q in cost.items())


def last_initial_settlement(g: GameState, pid: str) -> Optional[str]:
    placed = g.settlement_placements.get(pid) or []
    return placed[-1] if placed else None


def valid_placements(g: GameState, pid: str) -> Dict[str, List[str]]:
    """Legal settlement vertices and road edges for ``pid`` right now.

    Empty unless ``pid`` is the acting player in an initial placement step or in the
    build phase, so every listed site is accepted by ``place_building``.
    Always recomputed from the current occupancy; nothing is cached between calls.
    """
    empty: Dict[str, List[str]] = {"vertices": [], "edges": []}
    if g.player(pid) is None or g.status != PLAYING:
        return empty
    if g.game_phase == FINISHED and g.rules.lock_after_finish:
        return empty
    current = g.current_player
    if current is None or current.id != pid:
        return empty

    topo = g.board.topology
    if g.game_phase == INITIAL_PLACEMENT:
        if g.turn_phase == PLACE_SETTLEMENT:
            return {
                "vertices": [v for v in topo.vertices if can_place_settlement(g, pid, v, initial=True)],
                "edges": [],
            }
        if g.turn_phase == PLACE_ROAD:
            anchor = last_initial_settlement(g, pid)
            if anchor is None:
                return empty
            return {
                "vertices": [],
                "edges": [e for e in topo.vertex_edges.get(anchor, ()) if can_place_road(g, pid, e, anchor_vid=anchor)],
            }
        return empty

    if g.turn_phase != BUILD:
        return empty
    return {
        "vertices": [v for v in topo.vertices if can_place_settlement(g, pid, v, initial=False)],
        "edges": [e for e in topo.edges if can_place_road(g, pid, e)],
    }


def distribute_for_roll(g: GameState, roll: int) -> Dict[str, Dict[str, int]]:
    """Pay every settlement and city on tiles numbered ``roll``.

    Returns the payout per player id and resource.
    """
    payouts: Dict[str, Dict[str, int]] = {}
    for t in g.tiles:
        if t.number != roll or t.id == g.robber_tile or not t.produces:
            continue
        for corner in range(CORNERS):
            b = g.occupied_v.get(site_id(t.id, corner))
            if not _is_settled(b):
                continue
            owner = g.player(b.owner_id)
            if owner is None:
                continue
            amount = 2 if b.type == CITY else 1
            owner.gain(t.type, amount)
            got = payouts.setdefault(owner.id, {})
            got[t.type] = got.get(t.type, 0) + amount
    return payouts


def grant_initial_resources(g: GameState, pid: str, vid: str) -> Dict[str, int]:
    player = g.player(pid)
    granted: Dict[str, int] = {}
    if player is None:
        return granted
    for tile_id in g.board.topology.vertex_tiles.get(vid, ()):
        t = g.board.tile(tile_id)
        if t is None or not t.produces:
            continue
        player.gain(t.type, 1)
        granted[t.type] = granted.get(t.type, 0) + 1
    return granted


def check_win(g: GameState) -> Optional[PlayerState]:
    if g.game_phase == FINISHED:
        return None
    for p in g.players:
        if p.victory_points >= g.rules.target_vp:
            g.game_phase = FINISHED
            g.winner_id = p.id
            g.add_log(f"{p.name} wins with {p.victory_points} victory points!")
            return p
    return None
