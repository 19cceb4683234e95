from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from catan_server.engine import serialize
from catan_server.engine.maps import build_board_state, desert_tile_id
from catan_server.engine.rules import RuleError, StructuralError, ValidationError, valid_placements
from catan_server.engine.state import (
    FINISHED,
    INITIAL_PLACEMENT,
    LOBBY,
    PLAYER_COLORS,
    PLAYING,
    ROLL,
    GameState,
    PlayerState,
    RulesConfig,
)
from catan_server.engine.turns import advance_initial_placement, apply_cmd

MAX_NAME_LEN = 24
MAX_CHAT_LEN = 500


@dataclass
class CommandResult:
    success: bool
    message: str = ""
    code: Optional[str] = None
    events: List[Dict[str, Any]] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, events: Optional[List[Dict[str, Any]]] = None, **data: Any) -> "CommandResult":
        return cls(success=True, events=events or [], data=data)

    @classmethod
    def fail(cls, err: RuleError) -> "CommandResult":
        return cls(success=False, message=err.message, code=err.code)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.code:
            out["code"] = self.code
        return out


class Session:
    """One game: board, seated players and turn state, mutated only through commands.

    Every mutator holds ``lock`` for its whole validate-then-apply run, so commands
    against the same session never interleave even when called from several threads.
    Rule violations come back as failed ``CommandResult`` values, never as exceptions.
    """

    def __init__(
        self,
        session_id: str,
        rules: Optional[RulesConfig] = None,
        rng: Optional[random.Random] = None,
        chat_limit: int = 100,
    ):
        self.rng = rng or random.Random()
        self.lock = threading.RLock()
        self.chat_limit = chat_limit
        self._next_chat_id = 1

        rules = rules or RulesConfig()
        if rules.max_players > len(PLAYER_COLORS):
            raise ValueError(f"max_players cannot exceed {len(PLAYER_COLORS)}")

        board = build_board_state(self.rng)
        self.state = GameState(
            id=session_id,
            board=board,
            rules=rules,
            robber_tile=desert_tile_id(board.tiles),
        )

    @property
    def id(self) -> str:
        return self.state.id

    @property
    def players(self) -> List[PlayerState]:
        return self.state.players

    def is_empty(self) -> bool:
        return not self.state.players

    def add_player(self, pid: str, name: str) -> CommandResult:
        with self.lock:
            g = self.state
            if len(g.players) >= g.rules.max_players:
                return CommandResult.fail(ValidationError("game_full", "Game is full"))
            if g.status != LOBBY:
                return CommandResult.fail(ValidationError("already_started", "Game already started"))
            if g.player(pid) is not None:
                return CommandResult.fail(ValidationError("invalid", "Already seated in this game"))

            name = (str(name or "").strip() or "Player")[:MAX_NAME_LEN]
            used = {p.color for p in g.players}
            color = next(c for c in PLAYER_COLORS if c not in used)
            player = PlayerState(id=pid, name=name, color=color)
            g.players.append(player)
            g.add_log(f"{name} joined the game")
            return CommandResult.ok([{"type": "player_joined", "pid": pid}], player=player)

    def remove_player(self, pid: str) -> CommandResult:
        """Unseat ``pid``; if they were acting, the turn passes on with a fresh phase.

        Their buildings stay on the board. The seat order shifts so the pointer keeps
        naming the same player when someone else leaves.
        """
        with self.lock:
            g = self.state
            player = g.player(pid)
            if player is None:
                return CommandResult.fail(StructuralError("player_not_found", "Player not found"))
            seat = g.players.index(player)
            acting = g.status == PLAYING and g.current_player_index == seat

            g.players.remove(player)
            g.settlement_placements.pop(pid, None)
            g.add_log(f"{player.name} left the game")

            if not g.players:
                g.current_player_index = 0
            elif acting:
                self._pass_turn_from(seat)
            else:
                if seat < g.current_player_index:
                    g.current_player_index -= 1
                if g.current_player_index >= len(g.players):
                    g.current_player_index = 0
            return CommandResult.ok([{"type": "player_left", "pid": pid}])

    def _pass_turn_from(self, seat: int) -> None:
        g = self.state
        if g.game_phase == FINISHED and g.rules.lock_after_finish:
            g.current_player_index = min(seat, len(g.players) - 1)
            return
        if g.game_phase == INITIAL_PLACEMENT:
            # point at the seat before the vacated one in draft direction, then advance
            g.current_player_index = seat - 1 if g.initial_placement_round == 1 else seat
            advance_initial_placement(g)
            return
        g.current_player_index = seat if seat < len(g.players) else 0
        g.turn_phase = ROLL
        current = g.current_player
        g.add_log(f"{current.name}'s turn to roll")

    def dispatch(self, pid: str, cmd: Dict[str, Any]) -> CommandResult:
        with self.lock:
            try:
                events = apply_cmd(self.state, pid, cmd, rng=self.rng)
            except RuleError as err:
                return CommandResult.fail(err)
            return CommandResult.ok(events)

    def start_game(self, pid: str) -> CommandResult:
        return self.dispatch(pid, {"type": "startGame"})

    def place_building(self, pid: str, building_type: str, position: str) -> CommandResult:
        return self.dispatch(pid, {"type": "placeBuilding", "buildingType": building_type, "position": position})

    def roll_dice(self, pid: str, dice: Optional[Sequence[int]] = None) -> CommandResult:
        cmd: Dict[str, Any] = {"type": "rollDice"}
        if dice is not None:
            cmd["dice"] = list(dice)
        return self.dispatch(pid, cmd)

    def move_robber(self, pid: str, tile_id: int) -> CommandResult:
        return self.dispatch(pid, {"type": "moveRobber", "tileId": tile_id})

    def end_turn(self, pid: str) -> CommandResult:
        return self.dispatch(pid, {"type": "endTurn"})

    def post_chat(self, pid: str, message: str) -> CommandResult:
        with self.lock:
            player = self.state.player(pid)
            if player is None:
                return CommandResult.fail(StructuralError("player_not_found", "Player not found"))
            text = str(message or "").strip()
            if not text:
                return CommandResult.fail(ValidationError("invalid", "Empty chat message"))

            entry = {
                "id": self._next_chat_id,
                "playerId": pid,
                "playerName": player.name,
                "message": text[:MAX_CHAT_LEN],
                "timestamp": datetime.now().strftime("%H:%M:%S"),
            }
            self._next_chat_id += 1
            chat = self.state.chat_messages
            chat.append(entry)
            if len(chat) > self.chat_limit:
                del chat[: len(chat) - self.chat_limit]
            return CommandResult.ok(message=entry)

    def valid_placements(self, pid: str) -> Dict[str, List[str]]:
        with self.lock:
            return valid_placements(self.state, pid)

    def next_actor(self) -> Optional[str]:
        """Id of the player who must act next, or None outside of play."""
        with self.lock:
            g = self.state
            if g.status != PLAYING:
                return None
            if g.game_phase == FINISHED and g.rules.lock_after_finish:
                return None
            current = g.current_player
            return current.id if current else None

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            return serialize.to_dict(self.state)

    def summary(self) -> Dict[str, Any]:
        with self.lock:
            return serialize.summary(self.state)
