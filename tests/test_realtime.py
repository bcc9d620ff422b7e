"""Unit tests for interface/realtime.py and interface/protocol.py"""

import json

import pytest
from pydantic import ValidationError

from interface.protocol import (
    ChallengeMessage,
    ChallengeReceivedMessage,
    ChallengeResponseMessage,
    LoginMessage,
    LogoutMessage,
    parse_client_message,
)
from interface.realtime import RealtimeHub
from tests.fakes import FakeConnection, run


class TestProtocol:
    """Parsing client frames."""

    def test_parse_each_client_type(self):
        assert parse_client_message('{"type": "login", "username": "alice"}') == LoginMessage(username="alice")
        assert isinstance(parse_client_message('{"type": "logout"}'), LogoutMessage)

        offer = parse_client_message('{"type": "challenge", "from": "alice", "to": "bob"}')
        assert isinstance(offer, ChallengeMessage)
        assert (offer.sender, offer.to) == ("alice", "bob")

        reply = parse_client_message(b'{"type": "challenge_response", "from": "bob", "to": "alice", "accepted": true}')
        assert isinstance(reply, ChallengeResponseMessage)
        assert reply.accepted is True

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[]",
            '{"username": "alice"}',
            '{"type": "dance"}',
            '{"type": "login"}',
            '{"type": "login", "username": ""}',
            '{"type": "challenge", "from": "alice"}',
        ],
    )
    def test_rejects_bad_frames(self, raw):
        with pytest.raises(ValidationError):
            parse_client_message(raw)

    def test_wire_form_uses_from(self):
        assert ChallengeReceivedMessage(sender="alice").to_wire() == {"type": "challenge_received", "from": "alice"}


class TestRealtimeHub:
    """Frames routed through the hub."""

    def frames(self, hub, conn, *messages):
        async def scenario():
            for message in messages:
                await hub.handle(conn, json.dumps(message))

        run(scenario())

    def test_login_then_challenge_flow(self):
        hub = RealtimeHub()
        alice, bob = FakeConnection("c1"), FakeConnection("c2")
        hub.connect(alice)
        hub.connect(bob)

        self.frames(hub, alice, {"type": "login", "username": "alice"})
        self.frames(hub, bob, {"type": "login", "username": "bob"})
        self.frames(hub, alice, {"type": "challenge", "from": "alice", "to": "bob"})
        self.frames(hub, bob, {"type": "challenge_response", "from": "bob", "to": "alice", "accepted": True})

        assert [u["username"] for u in alice.of_type("onlineUsers")[-1]["users"]] == ["alice", "bob"]
        assert bob.of_type("challenge_received") == [{"type": "challenge_received", "from": "alice"}]
        assert alice.of_type("start_game") == [{"type": "start_game", "opponent": "bob"}]
        assert bob.of_type("start_game") == [{"type": "start_game", "opponent": "alice"}]

    def test_bad_frame_is_ignored(self):
        hub = RealtimeHub()
        conn = FakeConnection("c1")
        hub.connect(conn)

        run(hub.handle(conn, "{oops"))
        run(hub.handle(conn, '{"type": "unknown"}'))

        assert conn.sent == []
        assert "c1" in hub.connections, "The connection stays open"

    def test_logout_keeps_connection(self):
        hub = RealtimeHub()
        alice, watcher = FakeConnection("c1"), FakeConnection("c2")
        hub.connect(alice)
        hub.connect(watcher)

        self.frames(hub, alice, {"type": "login", "username": "alice"}, {"type": "logout"})

        assert watcher.of_type("onlineUsers")[-1]["users"] == []
        assert "c1" in hub.connections

    def test_disconnect_cleans_up(self):
        hub = RealtimeHub()
        alice, bob = FakeConnection("c1"), FakeConnection("c2")
        hub.connect(alice)
        hub.connect(bob)
        self.frames(hub, alice, {"type": "login", "username": "alice"})
        self.frames(hub, bob, {"type": "login", "username": "bob"})

        run(hub.disconnect(alice))

        assert "c1" not in hub.connections
        assert hub.presence.connection_for("alice") is None
        assert [u["username"] for u in bob.of_type("onlineUsers")[-1]["users"]] == ["bob"]

    def test_disconnect_before_login(self):
        hub = RealtimeHub()
        conn, watcher = FakeConnection("c1"), FakeConnection("c2")
        hub.connect(conn)
        hub.connect(watcher)

        run(hub.disconnect(conn))

        assert watcher.sent == [], "Nothing to broadcast for an anonymous connection"
        assert len(hub.connections) == 1

    def test_frames_from_superseded_connection_are_dropped(self):
        hub = RealtimeHub()
        old, new, bob = FakeConnection("old"), FakeConnection("new"), FakeConnection("c2")
        for conn in (old, new, bob):
            hub.connect(conn)

        self.frames(hub, old, {"type": "login", "username": "alice"})
        self.frames(hub, bob, {"type": "login", "username": "bob"})
        self.frames(hub, new, {"type": "login", "username": "alice"})
        # A login still queued on the old socket when it was replaced.
        self.frames(hub, old, {"type": "login", "username": "alice"})
        self.frames(hub, bob, {"type": "challenge", "from": "bob", "to": "alice"})

        assert hub.presence.connection_for("alice") == "new"
        assert "new" in hub.connections and "old" not in hub.connections
        assert not new.closed, "The live connection must survive a replayed login"
        assert new.of_type("challenge_received") == [{"type": "challenge_received", "from": "bob"}]
        assert old.of_type("challenge_received") == []

    def test_frames_after_close_are_dropped(self):
        hub = RealtimeHub()
        conn, watcher = FakeConnection("c1"), FakeConnection("c2")
        hub.connect(conn)
        hub.connect(watcher)
        conn.open = False

        self.frames(hub, conn, {"type": "login", "username": "alice"})

        assert hub.presence.connection_for("alice") is None
        assert watcher.sent == []
