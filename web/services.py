"""
Service wiring for the web application.

Everything the routes need lives in one ArenaServices object created at
startup and stored on `app.state`: the move broker (with its engine and remote
adapters), the game sessions, the realtime hub, and the bearer-token check.
Tests build the same object around fake engines and mock transports.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from interface.realtime import RealtimeHub
from opponents.broker import MoveBroker
from opponents.constants import (
    API_TOKENS,
    ENGINE_PATH,
    ENGINE_TIMEOUT_S,
    REMOTE_SERVICE_URL,
    REMOTE_TIMEOUT_S,
)
from opponents.engine_process import EngineProcessAdapter
from opponents.remote import RemoteOpponentAdapter
from opponents.session import SessionStore

_log = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    """Maps a bearer token to a username, or None if the token is not valid."""

    def __call__(self, token: str) -> str | None: ...


class StaticTokenVerifier:
    """Accepts a fixed set of tokens. Token issuance happens elsewhere."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    def __call__(self, token: str) -> str | None:
        return self._tokens.get(token)


@dataclass
class ArenaServices:
    broker: MoveBroker
    sessions: SessionStore = field(default_factory=SessionStore)
    hub: RealtimeHub = field(default_factory=RealtimeHub)
    verify_token: TokenVerifier = field(default_factory=lambda: StaticTokenVerifier(API_TOKENS))

    @classmethod
    def from_settings(cls) -> "ArenaServices":
        """Build production services from opponents.constants."""
        engine = EngineProcessAdapter(ENGINE_PATH, timeout_s=ENGINE_TIMEOUT_S)
        remote = RemoteOpponentAdapter.from_url(
            REMOTE_SERVICE_URL,
            evaluator=engine.evaluate_only,
            timeout_s=REMOTE_TIMEOUT_S,
        )
        return cls(broker=MoveBroker(engine, remote))

    async def start(self) -> None:
        await self.broker.engine.start()
        if not self.broker.engine.available:
            _log.warning("Starting without a local engine; engine requests will fail")

    async def close(self) -> None:
        await self.broker.engine.close()
        await self.broker.remote.close()
