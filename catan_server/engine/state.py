from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Deque, Dict, List, Optional

if TYPE_CHECKING:
    from catan_server.engine.board_geom import Topology


RESOURCES = ["wood", "brick", "wheat", "sheep", "ore"]
TILE_TYPES = RESOURCES + ["desert", "water"]

ROAD = "road"
SETTLEMENT = "settlement"
CITY = "city"
BUILDING_TYPES = [ROAD, SETTLEMENT, CITY]

COST = {
    ROAD: {"wood": 1, "brick": 1},
    SETTLEMENT: {"wood": 1, "brick": 1, "wheat": 1, "sheep": 1},
    CITY: {"wheat": 2, "ore": 3},
}

PLAYER_COLORS = ["#e74c3c", "#3498db", "#2ecc71", "#f39c12", "#9b59b6", "#34495e"]

# game phases
INITIAL_PLACEMENT = "initial_placement"
MAIN_GAME = "main_game"
FINISHED = "finished"

# turn phases
WAITING = "waiting"
PLACE_SETTLEMENT = "place_settlement"
PLACE_ROAD = "place_road"
ROLL = "roll"
BUILD = "build"
ROBBER = "robber"

# session status
LOBBY = "lobby"
PLAYING = "playing"

LOG_LIMIT = 20


@dataclass(frozen=True)
class Tile:
    id: int
    type: str
    number: Optional[int]
    row: int
    col: int

    @property
    def is_land(self) -> bool:
        return self.type != "water"

    @property
    def produces(self) -> bool:
        return self.type in RESOURCES


@dataclass(frozen=True)
class Building:
    type: str
    owner_id: str
    owner_color: str


@dataclass
class PlayerState:
    id: str
    name: str
    color: str
    resources: Dict[str, int] = field(default_factory=lambda: {r: 0 for r in RESOURCES})
    total_cards: int = 0
    victory_points: int = 0
    roads: int = 0
    settlements: int = 0
    cities: int = 0
    knights: int = 0
    has_longest_road: bool = False
    has_largest_army: bool = False
    development_cards: List[str] = field(default_factory=list)

    def gain(self, resource: str, qty: int) -> None:
        self.resources[resource] = self.resources.get(resource, 0) + qty
        self.total_cards += qty

    def spend(self, cost: Dict[str, int]) -> None:
        for r, q in cost.items():
            self.resources[r] -= q
            self.total_cards -= q


@dataclass
class RulesConfig:
    target_vp: int = 10
    min_players: int = 3
    max_players: int = 6
    # None means uncapped
    max_roads: Optional[int] = None
    max_settlements: Optional[int] = None
    max_cities: Optional[int] = None
    lock_after_finish: bool = False


@dataclass
class BoardState:
    tiles: List[Tile]
    topology: "Topology"
    occupied_v: Dict[str, Building] = field(default_factory=dict)
    occupied_e: Dict[str, Building] = field(default_factory=dict)

    def tile(self, tile_id: int) -> Optional[Tile]:
        if 0 <= tile_id < len(self.tiles) and self.tiles[tile_id].id == tile_id:
            return self.tiles[tile_id]
        return next((t for t in self.tiles if t.id == tile_id), None)


@dataclass
class GameState:
    id: str
    board: BoardState
    rules: RulesConfig = field(default_factory=RulesConfig)
    players: List[PlayerState] = field(default_factory=list)

    status: str = LOBBY
    current_player_index: int = 0
    dice: List[int] = field(default_factory=lambda: [1, 1])
    robber_tile: int = 0
    game_phase: str = INITIAL_PLACEMENT
    turn_phase: str = WAITING
    initial_placement_round: int = 1
    settlement_placements: Dict[str, List[str]] = field(default_factory=dict)
    winner_id: Optional[str] = None

    log: Deque[str] = field(default_factory=lambda: deque(maxlen=LOG_LIMIT))
    chat_messages: List[dict] = field(default_factory=list)

    def player(self, pid: str) -> Optional[PlayerState]:
        return next((p for p in self.players if p.id == pid), None)

    @property
    def current_player(self) -> Optional[PlayerState]:
        if 0 <= self.current_player_index < len(self.players):
            return self.players[self.current_player_index]
        return None

    def add_log(self, message: str) -> None:
        self.log.append(f"{datetime.now().strftime('%H:%M:%S')}: {message}")

    @property
    def tiles(self) -> List[Tile]:
        return self.board.tiles

    @property
    def occupied_v(self) -> Dict[str, Building]:
        return self.board.occupied_v

    @property
    def occupied_e(self) -> Dict[str, Building]:
        return self.board.occupied_e
