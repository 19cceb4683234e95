from __future__ import annotations

import argparse
import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from catan_server import net_protocol
from catan_server.config import ServerConfig
from catan_server.engine.session import CommandResult, Session
from catan_server.logging_config import configure_logging, get_logger
from catan_server.registry import SessionRegistry

# commands that go through the engine and change game state
GAME_COMMANDS = ("startGame", "placeBuilding", "rollDice", "moveRobber", "endTurn")


@dataclass
class ClientConn:
    ws: WebSocket
    player_id: str
    game_id: Optional[str] = None


config = ServerConfig.from_env()
configure_logging(config.log_level, config.log_format)
log = get_logger(__name__)

app = FastAPI(title="Catan session server")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

registry = SessionRegistry(config)
connections: Dict[WebSocket, ClientConn] = {}


async def _send(ws: WebSocket, obj: Dict) -> None:
    await ws.send_text(json.dumps(obj))


async def _send_error(conn: ClientConn, code: str, message: str) -> None:
    await _send(conn.ws, net_protocol.error_message(code, message))


async def _send_quiet(ws: WebSocket, conn: ClientConn, obj: Dict) -> None:
    # peer may have gone away between the lookup and the send
    try:
        await _send(ws, obj)
    except (RuntimeError, OSError, WebSocketDisconnect):
        log.warning("send_failed", game_id=conn.game_id, player_id=conn.player_id, frame=obj.get("type"))


async def _broadcast(game_id: str, obj: Dict, exclude: Optional[WebSocket] = None) -> None:
    for ws, conn in list(connections.items()):
        if conn.game_id == game_id and ws is not exclude:
            await _send_quiet(ws, conn, obj)


async def _send_valid_placements(session: Session) -> None:
    actor = session.next_actor()
    if actor is None:
        return
    placements = session.valid_placements(actor)
    if not placements["vertices"] and not placements["edges"]:
        return
    msg = net_protocol.valid_placements_message(placements)
    for ws, conn in list(connections.items()):
        if conn.player_id == actor and conn.game_id == session.id:
            await _send_quiet(ws, conn, msg)


async def _reject(conn: ClientConn, mtype: str, result: CommandResult) -> None:
    log.info(
        "command_rejected",
        game_id=conn.game_id,
        player_id=conn.player_id,
        command=mtype,
        code=result.code,
        reason=result.message,
    )
    await _send_error(conn, result.code or "invalid", result.message)


def _game_cmd(conn: ClientConn, data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("type") == "placeBuilding":
        building = data["cmd"]
        return {"type": "placeBuilding", "buildingType": building["type"], "position": building["position"]}
    cmd = {k: v for k, v in data.items() if k != "dice"}
    if data.get("type") == "rollDice" and data.get("dice") is not None:
        if config.debug_rolls:
            cmd["dice"] = data["dice"]
        else:
            log.warning("forced_roll_ignored", game_id=conn.game_id, player_id=conn.player_id)
    return cmd


async def _handle(conn: ClientConn, data: Dict[str, Any]) -> None:
    mtype = data["type"]

    if mtype == "createGame":
        if conn.game_id:
            await _send_error(conn, "invalid", "Already in a game")
            return
        session, result = registry.create(conn.player_id, data["playerName"])
        if not result.success:
            await _reject(conn, mtype, result)
            return
        conn.game_id = session.id
        await _send(conn.ws, net_protocol.game_created_message(session.id, session.snapshot()))
        return

    if mtype == "joinGame":
        if conn.game_id:
            await _send_error(conn, "invalid", "Already in a game")
            return
        session, result = registry.join(data["gameId"], conn.player_id, data["playerName"])
        if session is None or not result.success:
            await _reject(conn, mtype, result)
            return
        conn.game_id = session.id
        state = session.snapshot()
        await _send(conn.ws, net_protocol.state_message("gameJoined", state))
        await _broadcast(session.id, net_protocol.state_message("playerJoined", state), exclude=conn.ws)
        return

    session = registry.get(conn.game_id)
    if session is None:
        await _send_error(conn, "game_not_found", "Game not found")
        return

    if mtype == "chatMessage":
        result = session.post_chat(conn.player_id, data["message"])
        if not result.success:
            await _reject(conn, mtype, result)
            return
        await _broadcast(session.id, net_protocol.chat_message(result.data["message"]))
        return

    if mtype in GAME_COMMANDS:
        result = session.dispatch(conn.player_id, _game_cmd(conn, data))
        if not result.success:
            await _reject(conn, mtype, result)
            return
        log.debug("command_applied", game_id=session.id, player_id=conn.player_id, command=mtype, events=result.events)
        event = "gameStarted" if mtype == "startGame" else "gameStateUpdated"
        await _broadcast(session.id, net_protocol.state_message(event, session.snapshot()))
        await _send_valid_placements(session)
        return

    await _send_error(conn, "unknown", f"Unknown message: {mtype}")


async def _drop_player(conn: ClientConn) -> None:
    if not conn.game_id:
        return
    session = registry.leave(conn.game_id, conn.player_id)
    conn.game_id = None
    if session is None:
        return
    await _broadcast(session.id, net_protocol.state_message("playerLeft", session.snapshot()))
    await _send_valid_placements(session)


@app.get("/")
def root():
    return PlainTextResponse(
        "Catan session server running.\n"
        f"Active games: {len(registry)}\n"
        "WS: ws://HOST:PORT/ws\n"
    )


@app.get("/api/health")
def health():
    return {
        "status": "ok",
        "games": len(registry),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/api/games")
def list_games():
    return registry.summaries()


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    conn = ClientConn(ws=ws, player_id=secrets.token_hex(4))
    connections[ws] = conn
    log.info("connection_opened", player_id=conn.player_id)
    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await _send_error(conn, "invalid", "Invalid JSON")
                continue

            val = net_protocol.validate_client_message(data)
            if not val.get("ok"):
                err = val.get("error", {})
                await _send(ws, net_protocol.error_message(err.get("code", "invalid"), err.get("message", "invalid"), err.get("detail")))
                continue

            await _handle(conn, data)

    except WebSocketDisconnect:
        pass
    finally:
        connections.pop(ws, None)
        log.info("connection_closed", player_id=conn.player_id, game_id=conn.game_id)
        await _drop_player(conn)


def main(argv=None):
    import uvicorn

    parser = argparse.ArgumentParser(description="Run the Catan session server")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument("--log-level", default=config.log_level)
    args = parser.parse_args(argv)

    configure_logging(args.log_level, config.log_format)
    log.info("server_starting", host=args.host, port=args.port, debug_rolls=config.debug_rolls)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
