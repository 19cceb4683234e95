from __future__ import annotations

import random
import string
import threading
from typing import Dict, List, Optional, Tuple

from catan_server.config import ServerConfig
from catan_server.engine.rules import StructuralError
from catan_server.engine.session import CommandResult, Session
from catan_server.engine.state import RulesConfig
from catan_server.logging_config import get_logger

log = get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


class SessionRegistry:
    """Owned collection of live sessions keyed by game id.

    The registry lock guards the mapping itself; each session's own lock guards its
    state. Joins and teardown take both, registry lock first, so a session is never
    dropped while a join or a command for it is mid-flight.
    """

    def __init__(self, config: Optional[ServerConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or ServerConfig()
        self.sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self.sessions)

    def _gen_code(self) -> str:
        while True:
            code = "".join(self._rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if code not in self.sessions:
                return code

    def _rules(self) -> RulesConfig:
        return RulesConfig(lock_after_finish=self.config.lock_after_finish)

    def create(self, player_id: str, player_name: str) -> Tuple[Session, CommandResult]:
        with self._lock:
            code = self._gen_code()
            session = Session(code, rules=self._rules(), chat_limit=self.config.chat_limit)
            result = session.add_player(player_id, player_name)
            if result.success:
                self.sessions[code] = session
                log.info("session_created", game_id=code, player_id=player_id)
            return session, result

    def get(self, game_id: Optional[str]) -> Optional[Session]:
        if not game_id:
            return None
        return self.sessions.get(game_id)

    def join(self, game_id: str, player_id: str, player_name: str) -> Tuple[Optional[Session], CommandResult]:
        with self._lock:
            session = self.get(game_id)
            if session is None:
                return None, CommandResult.fail(StructuralError("game_not_found", "Game not found"))
            result = session.add_player(player_id, player_name)
            if result.success:
                log.info("player_joined", game_id=game_id, player_id=player_id, players=len(session.players))
            return session, result

    def leave(self, game_id: Optional[str], player_id: str) -> Optional[Session]:
        """Remove a player; returns the session if it still exists afterwards."""
        with self._lock:
            session = self.get(game_id)
            if session is None:
                return None
            with session.lock:
                session.remove_player(player_id)
                log.info("player_left", game_id=game_id, player_id=player_id, players=len(session.players))
                if session.is_empty():
                    del self.sessions[session.id]
                    log.info("session_destroyed", game_id=session.id)
                    return None
            return session

    def summaries(self) -> List[Dict]:
        return [s.summary() for s in list(self.sessions.values())]
