from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

from catan_server.engine.board_geom import build_topology
from catan_server.engine.state import RESOURCES, BoardState, Tile


# Hex-of-hexes: an outer ring of water around the 19 land hexes.
ROW_LENGTHS = [4, 5, 6, 7, 6, 5, 4]

DESERT_TILE_ID = 18

DEFAULT_RESOURCE_DECK = (
    ["wood"] * 4
    + ["brick"] * 3
    + ["wheat"] * 4
    + ["sheep"] * 4
    + ["ore"] * 3
)

DEFAULT_NUMBER_DECK = [2, 3, 3, 4, 4, 5, 5, 6, 6, 8, 8, 9, 9, 10, 10, 11, 11, 12]

LAYOUT_KINDS = {"water", "land", "desert"}


class MapValidationError(Exception):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


def standard_layout() -> List[Dict[str, Any]]:
    """Tile slots of the standard board in id order.

    Each slot is ``{"id", "row", "col", "kind"}`` where kind is water, land or desert.
    """
    layout: List[Dict[str, Any]] = []
    last_row = len(ROW_LENGTHS) - 1
    for row, length in enumerate(ROW_LENGTHS):
        start_col = max(ROW_LENGTHS) - length
        for i in range(length):
            tid = len(layout)
            if row in (0, last_row) or i in (0, length - 1):
                kind = "water"
            elif tid == DESERT_TILE_ID:
                kind = "desert"
            else:
                kind = "land"
            layout.append({"id": tid, "row": row, "col": start_col + i, "kind": kind})
    return layout


def validate_layout(
    layout: List[Dict[str, Any]],
    resource_deck: List[str],
    number_deck: List[int],
) -> None:
    if not isinstance(layout, list) or not layout:
        raise MapValidationError("layout must be non-empty list")

    for idx, slot in enumerate(layout):
        if not isinstance(slot, dict):
            raise MapValidationError("slot must be object", {"index": idx})
        if slot.get("id") != idx:
            raise MapValidationError("slot ids must be sequential", {"index": idx, "id": slot.get("id")})
        if not isinstance(slot.get("row"), int) or not isinstance(slot.get("col"), int):
            raise MapValidationError("slot row/col must be int", {"index": idx})
        if slot.get("kind") not in LAYOUT_KINDS:
            raise MapValidationError("unknown slot kind", {"index": idx, "kind": slot.get("kind")})

    deserts = [s["id"] for s in layout if s["kind"] == "desert"]
    if len(deserts) != 1:
        raise MapValidationError("layout needs exactly one desert", {"deserts": deserts})

    producing = sum(1 for s in layout if s["kind"] == "land")
    if producing != len(resource_deck):
        raise MapValidationError(
            "resource deck does not match land slots",
            {"land": producing, "deck": len(resource_deck)},
        )
    if producing != len(number_deck):
        raise MapValidationError(
            "number deck does not match land slots",
            {"land": producing, "deck": len(number_deck)},
        )

    for r in resource_deck:
        if r not in RESOURCES:
            raise MapValidationError("unknown resource in deck", {"resource": r})
    for n in number_deck:
        if not isinstance(n, int) or n < 2 or n > 12 or n == 7:
            raise MapValidationError("number token out of range", {"number": n})


def generate_board(
    rng: Optional[random.Random] = None,
    layout: Optional[List[Dict[str, Any]]] = None,
    resource_deck: Optional[List[str]] = None,
    number_deck: Optional[List[int]] = None,
) -> List[Tile]:
    rng = rng or random.Random()
    layout = standard_layout() if layout is None else layout
    resources = list(DEFAULT_RESOURCE_DECK if resource_deck is None else resource_deck)
    numbers = list(DEFAULT_NUMBER_DECK if number_deck is None else number_deck)
    validate_layout(layout, resources, numbers)

    # no spacing constraint between high-probability tokens
    rng.shuffle(resources)
    rng.shuffle(numbers)

    tiles: List[Tile] = []
    ri = 0
    for slot in layout:
        kind = slot["kind"]
        if kind == "land":
            tiles.append(Tile(id=slot["id"], type=resources[ri], number=numbers[ri], row=slot["row"], col=slot["col"]))
            ri += 1
        else:
            tiles.append(Tile(id=slot["id"], type=kind, number=None, row=slot["row"], col=slot["col"]))
    return tiles


def desert_tile_id(tiles: List[Tile]) -> int:
    for t in tiles:
        if t.type == "desert":
            return t.id
    raise MapValidationError("board has no desert")


def build_board_state(rng: Optional[random.Random] = None, **kwargs: Any) -> BoardState:
    tiles = generate_board(rng, **kwargs)
    return BoardState(tiles=tiles, topology=build_topology(tiles))
