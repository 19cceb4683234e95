from __future__ import annotations

import random
from typing import Any, Dict, List, Optional, Sequence

from catan_server.engine.rules import (
    StructuralError,
    ValidationError,
    can_pay,
    can_place_road,
    can_place_settlement,
    can_upgrade_city,
    check_win,
    distribute_for_roll,
    grant_initial_resources,
    last_initial_settlement,
)
from catan_server.engine.state import (
    BUILD,
    BUILDING_TYPES,
    CITY,
    COST,
    FINISHED,
    INITIAL_PLACEMENT,
    LOBBY,
    MAIN_GAME,
    PLACE_ROAD,
    PLACE_SETTLEMENT,
    PLAYING,
    ROAD,
    ROBBER,
    ROLL,
    SETTLEMENT,
    Building,
    GameState,
    PlayerState,
)

Event = Dict[str, Any]


def require_member(g: GameState, pid: str) -> PlayerState:
    player = g.player(pid)
    if player is None:
        raise StructuralError("player_not_found", "Player not found")
    return player


def require_turn(g: GameState, pid: str, *phases: str) -> PlayerState:
    """Guard shared by every turn-scoped action: seat, turn ownership, phase."""
    player = require_member(g, pid)
    if g.status != PLAYING:
        raise ValidationError("wrong_phase", "Game has not started")
    if g.game_phase == FINISHED and g.rules.lock_after_finish:
        raise ValidationError("game_over", "Game is finished")
    current = g.current_player
    if current is None or current.id != pid:
        raise ValidationError("not_your_turn", "Not your turn")
    if phases and g.turn_phase not in phases:
        raise ValidationError("wrong_phase", f"Cannot do that during {g.turn_phase}")
    return player


def _check_supply(g: GameState, player: PlayerState, btype: str) -> None:
    limits = {
        ROAD: (g.rules.max_roads, player.roads),
        SETTLEMENT: (g.rules.max_settlements, player.settlements),
        CITY: (g.rules.max_cities, player.cities),
    }
    cap, used = limits[btype]
    if cap is not None and used >= cap:
        raise ValidationError("piece_limit", f"No {btype}s left in supply")


def start_game(g: GameState, pid: str) -> List[Event]:
    require_member(g, pid)
    if g.status != LOBBY:
        raise ValidationError("already_started", "Game already started")
    if len(g.players) < g.rules.min_players:
        raise ValidationError(
            "not_enough_players",
            f"Need at least {g.rules.min_players} players to start",
        )

    g.status = PLAYING
    g.game_phase = INITIAL_PLACEMENT
    g.turn_phase = PLACE_SETTLEMENT
    g.initial_placement_round = 1
    g.current_player_index = 0
    g.add_log(f"Game started! {g.players[0].name} places first settlement.")
    return [{"type": "game_started", "players": len(g.players)}]


def advance_initial_placement(g: GameState) -> None:
    """Snake draft: forward in round 1, backward in round 2, then main game."""
    n = len(g.players)
    if g.initial_placement_round == 1:
        g.current_player_index += 1
        if g.current_player_index >= n:
            g.initial_placement_round = 2
            g.current_player_index = n - 1
    else:
        g.current_player_index -= 1
        if g.current_player_index < 0:
            g.game_phase = MAIN_GAME
            g.turn_phase = ROLL
            g.current_player_index = 0
            g.add_log("Initial placement complete! Main game begins.")
            return

    g.turn_phase = PLACE_SETTLEMENT
    current = g.current_player
    if current is not None:
        g.add_log(f"{current.name}'s turn to place settlement (Round {g.initial_placement_round})")


def _place_initial(g: GameState, player: PlayerState, btype: str, position: str) -> List[Event]:
    if btype == SETTLEMENT:
        if g.turn_phase != PLACE_SETTLEMENT:
            raise ValidationError("wrong_phase", "Place a road next")
        if not can_place_settlement(g, player.id, position, initial=True):
            raise ValidationError("invalid_placement", "Invalid settlement placement")
        _check_supply(g, player, SETTLEMENT)

        g.occupied_v[position] = Building(SETTLEMENT, player.id, player.color)
        player.settlements += 1
        player.victory_points += 1
        g.settlement_placements.setdefault(player.id, []).append(position)
        events: List[Event] = [{"type": "place_settlement", "pid": player.id, "position": position}]
        g.add_log(f"{player.name} placed a settlement")

        if g.initial_placement_round == 2:
            granted = grant_initial_resources(g, player.id, position)
            g.add_log(f"{player.name} received initial resources")
            events.append({"type": "initial_resources", "pid": player.id, "granted": granted})

        g.turn_phase = PLACE_ROAD
        check_win(g)
        return events

    if btype == ROAD:
        if g.turn_phase != PLACE_ROAD:
            raise ValidationError("wrong_phase", "Place a settlement first")
        anchor = last_initial_settlement(g, player.id)
        if anchor is None or not can_place_road(g, player.id, position, anchor_vid=anchor):
            raise ValidationError("invalid_placement", "Invalid road placement")
        _check_supply(g, player, ROAD)

        g.occupied_e[position] = Building(ROAD, player.id, player.color)
        player.roads += 1
        g.add_log(f"{player.name} placed a road")
        advance_initial_placement(g)
        return [{"type": "place_road", "pid": player.id, "position": position}]

    raise ValidationError("wrong_phase", "Cities cannot be placed during initial placement")


def _place_main(g: GameState, player: PlayerState, btype: str, position: str) -> List[Event]:
    if g.turn_phase != BUILD:
        raise ValidationError("wrong_phase", f"Cannot build during {g.turn_phase}")
    cost = COST[btype]
    if not can_pay(player, cost):
        raise ValidationError("insufficient_resources", "Not enough resources")

    if btype == SETTLEMENT:
        legal = can_place_settlement(g, player.id, position, initial=False)
        message = "Invalid settlement placement"
    elif btype == ROAD:
        legal = can_place_road(g, player.id, position)
        message = "Invalid road placement"
    else:
        legal = can_upgrade_city(g, player.id, position)
        message = "Can only upgrade your own settlements to cities"
    if not legal:
        raise ValidationError("invalid_placement", message)
    _check_supply(g, player, btype)

    player.spend(cost)
    building = Building(btype, player.id, player.color)
    if btype == ROAD:
        g.occupied_e[position] = building
        player.roads += 1
    elif btype == SETTLEMENT:
        g.occupied_v[position] = building
        player.settlements += 1
        player.victory_points += 1
    else:
        # same vertex id, the settlement is replaced in place
        g.occupied_v[position] = building
        player.settlements -= 1
        player.cities += 1
        player.victory_points += 1

    g.add_log(f"{player.name} built a {btype}")
    events: List[Event] = [{"type": f"place_{btype}", "pid": player.id, "position": position, "paid": dict(cost)}]
    winner = check_win(g)
    if winner is not None:
        events.append({"type": "game_won", "pid": winner.id, "victory_points": winner.victory_points})
    return events


def place_building(g: GameState, pid: str, btype: str, position: str) -> List[Event]:
    if btype not in BUILDING_TYPES:
        raise ValidationError("invalid", "Invalid building type")
    player = require_turn(g, pid)
    if not isinstance(position, str):
        raise ValidationError("invalid_placement", "Position must be a vertex or edge id")
    if g.game_phase == INITIAL_PLACEMENT:
        return _place_initial(g, player, btype, position)
    return _place_main(g, player, btype, position)


def roll_dice(
    g: GameState,
    pid: str,
    rng: Optional[random.Random] = None,
    dice: Optional[Sequence[int]] = None,
) -> List[Event]:
    player = require_turn(g, pid, ROLL)
    if dice is not None:
        if not isinstance(dice, (list, tuple)) or len(dice) != 2 or not all(isinstance(d, int) and 1 <= d <= 6 for d in dice):
            raise ValidationError("invalid", "Dice must be two values in 1..6")
        rolled = [int(dice[0]), int(dice[1])]
    else:
        rng = rng or random.Random()
        rolled = [rng.randint(1, 6), rng.randint(1, 6)]
    total = rolled[0] + rolled[1]

    g.dice = rolled
    g.add_log(f"{player.name} rolled {total} ({rolled[0]}, {rolled[1]})")
    events: List[Event] = [{"type": "roll", "pid": pid, "dice": list(rolled), "total": total}]

    if total == 7:
        g.turn_phase = ROBBER
        g.add_log("Robber activated! Move the robber.")
        return events

    payouts = distribute_for_roll(g, total)
    g.add_log(f"Resources distributed for roll {total}")
    g.turn_phase = BUILD
    events.append({"type": "distribute", "roll": total, "payouts": payouts})
    return events


def move_robber(g: GameState, pid: str, tile_id: Any) -> List[Event]:
    player = require_turn(g, pid, ROBBER)
    tile = g.board.tile(tile_id) if isinstance(tile_id, int) and not isinstance(tile_id, bool) else None
    if tile is None or not tile.is_land:
        raise ValidationError("invalid_placement", "Invalid robber placement")

    g.robber_tile = tile.id
    g.turn_phase = BUILD
    g.add_log(f"{player.name} moved the robber")
    return [{"type": "move_robber", "pid": pid, "tile": tile.id}]


def end_turn(g: GameState, pid: str) -> List[Event]:
    player = require_turn(g, pid, BUILD)

    g.add_log(f"{player.name}'s turn ended")
    g.current_player_index = (g.current_player_index + 1) % len(g.players)
    g.turn_phase = ROLL
    return [{"type": "end_turn", "pid": pid, "next": g.players[g.current_player_index].id}]


def apply_cmd(
    g: GameState,
    pid: str,
    cmd: Dict[str, Any],
    rng: Optional[random.Random] = None,
) -> List[Event]:
    """Validate and apply one game command, returning engine events.

    Raises RuleError before any mutation when the command is not legal.
    """
    ctype = cmd.get("type")
    if not isinstance(ctype, str):
        raise ValidationError("invalid", "cmd.type required")

    if ctype == "startGame":
        return start_game(g, pid)
    if ctype == "placeBuilding":
        return place_building(g, pid, cmd.get("buildingType"), cmd.get("position"))
    if ctype == "rollDice":
        return roll_dice(g, pid, rng=rng, dice=cmd.get("dice"))
    if ctype == "moveRobber":
        return move_robber(g, pid, cmd.get("tileId"))
    if ctype == "endTurn":
        return end_turn(g, pid)

    raise ValidationError("invalid", f"Unknown cmd: {ctype}")
