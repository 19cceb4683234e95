from __future__ import annotations

from typing import Any, Dict, List, Optional

VERSION = 1

BUILDING_TYPES = ("road", "settlement", "city")


def _err(code: str, message: str, detail: Optional[Dict[str, Any]] = None):
    return {
        "ok": False,
        "error": {"code": code, "message": message, "detail": detail or {}},
    }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_client_message(msg: Any) -> Dict[str, Any]:
    if not isinstance(msg, dict):
        return _err("invalid", "message must be object")
    mtype = msg.get("type")
    if not isinstance(mtype, str):
        return _err("invalid", "type must be string")

    if mtype == "createGame":
        if not isinstance(msg.get("playerName"), str):
            return _err("invalid", "playerName required")
        return {"ok": True}

    if mtype == "joinGame":
        if not isinstance(msg.get("gameId"), str):
            return _err("invalid", "gameId required")
        if not isinstance(msg.get("playerName"), str):
            return _err("invalid", "playerName required")
        return {"ok": True}

    if mtype in ("startGame", "endTurn"):
        return {"ok": True}

    if mtype == "placeBuilding":
        # the building payload rides in "cmd" so its own "type" does not clash
        cmd = msg.get("cmd")
        if not isinstance(cmd, dict):
            return _err("invalid", "cmd must be object")
        if cmd.get("type") not in BUILDING_TYPES:
            return _err("invalid", "cmd.type must be road, settlement or city")
        if not isinstance(cmd.get("position"), str):
            return _err("invalid", "cmd.position required")
        return {"ok": True}

    if mtype == "rollDice":
        dice = msg.get("dice")
        if dice is not None:
            if not isinstance(dice, list) or len(dice) != 2 or not all(_is_int(d) for d in dice):
                return _err("invalid", "dice must be a pair of ints")
        return {"ok": True}

    if mtype == "moveRobber":
        if not _is_int(msg.get("tileId")):
            return _err("invalid", "tileId must be int")
        return {"ok": True}

    if mtype == "chatMessage":
        if not isinstance(msg.get("message"), str):
            return _err("invalid", "message required")
        return {"ok": True}

    return _err("unknown", f"unknown type: {mtype}")


def error_message(code: str, message: str, detail: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"type": "error", "code": code, "message": message, "detail": detail or {}}


def game_created_message(game_id: str, state: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "gameCreated", "gameId": game_id, "gameState": state}


def state_message(event: str, state: Dict[str, Any]) -> Dict[str, Any]:
    """gameJoined, playerJoined, playerLeft, gameStarted or gameStateUpdated."""
    return {"type": event, "gameState": state}


def valid_placements_message(placements: Dict[str, List[str]]) -> Dict[str, Any]:
    return {
        "type": "validPlacements",
        "vertices": list(placements.get("vertices", [])),
        "edges": list(placements.get("edges", [])),
    }


def chat_message(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "chatMessage", **entry}
