"""
Challenge coordinator: the offer/accept/reject handshake before a human game.

State machine per unordered pair of usernames:

    Idle --challenge{A->B}, B online-->  Offered    (challenge_received to B)
    Offered --response{B->A, true}-->    Accepted   (start_game to A and B)
    Offered --response{B->A, false}-->   Rejected   (challenge_response to A)

Accepted and Rejected are transient: the pending entry is discarded as soon
as the response is delivered, which returns the pair to Idle. Only Offered is
ever stored. An offer lives until it is answered or either player goes
offline.

Nothing here reports errors to the initiating client. A challenge to an
absent user, a response with no matching offer, or a message whose "from"
does not match the sender's login is dropped and logged.
"""

import enum
import logging
from dataclasses import dataclass

from interface.connections import ConnectionManager
from interface.presence import PresenceRegistry
from interface.protocol import (
    ChallengeMessage,
    ChallengeReceivedMessage,
    ChallengeResponseMessage,
    StartGameMessage,
)

_log = logging.getLogger(__name__)


class ChallengeState(str, enum.Enum):
    OFFERED = "Offered"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


@dataclass
class Challenge:
    challenger: str
    target: str
    state: ChallengeState = ChallengeState.OFFERED


def _pair(a: str, b: str) -> frozenset[str]:
    return frozenset((a, b))


class ChallengeCoordinator:
    """
    Pending challenges, keyed by unordered username pair.

    Attributes:
        presence:    Who is online, and on which connection.
        connections: Delivery of challenge events to single connections.
    """

    def __init__(self, presence: PresenceRegistry, connections: ConnectionManager) -> None:
        self.presence = presence
        self.connections = connections
        self._pending: dict[frozenset[str], Challenge] = {}
        presence.on_leave(self.forget)

    def __len__(self) -> int:
        return len(self._pending)

    def pending(self, a: str, b: str) -> Challenge | None:
        """The offer between `a` and `b`, in either direction, if any."""
        return self._pending.get(_pair(a, b))

    async def offer(self, connection_id: str, message: ChallengeMessage) -> bool:
        """
        Handle `challenge{from, to}` arriving on `connection_id`.

        Returns:
            True if the offer was recorded and delivered to the target.
        """
        challenger, target = message.sender, message.to
        if not self._is_sender(connection_id, challenger):
            return False
        if challenger == target:
            _log.info("Dropping challenge: %s challenged themselves", challenger)
            return False
        target_connection = self.presence.connection_for(target)
        if target_connection is None:
            _log.info("Dropping challenge %s -> %s: target not online", challenger, target)
            return False
        key = _pair(challenger, target)
        if key in self._pending:
            _log.info("Dropping challenge %s -> %s: a challenge is already pending", challenger, target)
            return False

        self._pending[key] = Challenge(challenger, target)
        _log.info("Challenge offered: %s -> %s", challenger, target)
        delivered = await self.connections.send_to(target_connection, ChallengeReceivedMessage(sender=challenger))
        if not delivered:
            # The target's socket went away; an undeliverable offer is not kept.
            self._pending.pop(key, None)
        return delivered

    async def respond(self, connection_id: str, message: ChallengeResponseMessage) -> ChallengeState | None:
        """
        Handle `challenge_response{from: target, to: challenger, accepted}`.

        Returns:
            ACCEPTED or REJECTED when a pending offer was resolved, else None.
        """
        responder, challenger = message.sender, message.to
        if not self._is_sender(connection_id, responder):
            return None
        key = _pair(responder, challenger)
        challenge = self._pending.get(key)
        if challenge is None or challenge.state is not ChallengeState.OFFERED:
            _log.info("Dropping response %s -> %s: no pending challenge", responder, challenger)
            return None
        if challenge.target != responder:
            _log.info("Dropping response from %s: only %s can answer", responder, challenge.target)
            return None

        # Resolve and discard before any await so a duplicate response finds
        # the pair Idle.
        del self._pending[key]
        challenge.state = ChallengeState.ACCEPTED if message.accepted else ChallengeState.REJECTED
        _log.info("Challenge %s -> %s %s", challenger, responder, challenge.state.value)

        challenger_connection = self.presence.connection_for(challenger)
        if challenge.state is ChallengeState.ACCEPTED:
            if challenger_connection is not None:
                await self.connections.send_to(challenger_connection, StartGameMessage(opponent=responder))
            await self.connections.send_to(connection_id, StartGameMessage(opponent=challenger))
        elif challenger_connection is not None:
            echo = ChallengeResponseMessage(sender=responder, to=challenger, accepted=False)
            await self.connections.send_to(challenger_connection, echo)
        return challenge.state

    def forget(self, username: str) -> int:
        """Discard every pending challenge involving `username`."""
        stale = [key for key in self._pending if username in key]
        for key in stale:
            challenge = self._pending.pop(key)
            _log.info("Challenge %s -> %s discarded: %s went offline",
                      challenge.challenger, challenge.target, username)
        return len(stale)

    def _is_sender(self, connection_id: str, claimed: str) -> bool:
        actual = self.presence.username_for(connection_id)
        if actual != claimed:
            _log.warning("Dropping message from %s claiming to be %r (logged in as %r)",
                         connection_id, claimed, actual)
            return False
        return True
