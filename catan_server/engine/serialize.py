from __future__ import annotations

from typing import Any, Dict

from catan_server.engine.state import Building, GameState, PlayerState, Tile


def tile_to_dict(t: Tile) -> Dict[str, Any]:
    return {"id": t.id, "type": t.type, "number": t.number, "row": t.row, "col": t.col}


def building_to_dict(b: Building) -> Dict[str, Any]:
    return {"type": b.type, "playerId": b.owner_id, "playerColor": b.owner_color}


def player_to_dict(p: PlayerState) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "color": p.color,
        "resources": dict(p.resources),
        "totalCards": p.total_cards,
        "victoryPoints": p.victory_points,
        "roads": p.roads,
        "settlements": p.settlements,
        "cities": p.cities,
        "knights": p.knights,
        "hasLongestRoad": p.has_longest_road,
        "hasLargestArmy": p.has_largest_army,
        "developmentCards": list(p.development_cards),
    }


def to_dict(g: GameState) -> Dict[str, Any]:
    """Full ``gameState`` snapshot broadcast after every accepted command."""
    return {
        "id": g.id,
        "players": [player_to_dict(p) for p in g.players],
        "currentPlayerIndex": g.current_player_index,
        "board": [tile_to_dict(t) for t in g.tiles],
        "dice": list(g.dice),
        "robberPosition": g.robber_tile,
        "gameLog": list(g.log),
        "turnPhase": g.turn_phase,
        "gameState": g.status,
        "gamePhase": g.game_phase,
        "winner": g.winner_id,
        "buildings": {
            "vertices": {vid: building_to_dict(b) for vid, b in g.occupied_v.items()},
            "edges": {eid: building_to_dict(b) for eid, b in g.occupied_e.items()},
        },
        "initialPlacementRound": g.initial_placement_round,
        "chatMessages": [dict(m) for m in g.chat_messages],
    }


def summary(g: GameState) -> Dict[str, Any]:
    return {
        "id": g.id,
        "players": len(g.players),
        "maxPlayers": g.rules.max_players,
        "state": g.status,
        "phase": g.game_phase,
    }
