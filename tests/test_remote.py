"""Unit tests for opponents/remote.py against httpx.MockTransport."""

import httpx
import pytest

from opponents.outcome import Failure, FailureKind, GameOver, Move, Success
from opponents.remote import RemoteOpponentAdapter
from tests.fakes import AFTER_E4_FEN, RemoteService, make_remote, run


class RecordingEvaluator:
    """Evaluator double: remembers what it was asked to score."""

    def __init__(self, value: float = 0.42, error: Exception | None = None) -> None:
        self.value = value
        self.error = error
        self.calls: list[tuple[str, int]] = []

    async def __call__(self, fen: str, depth: int) -> float:
        self.calls.append((fen, depth))
        if self.error is not None:
            raise self.error
        return self.value


def request(service: RemoteService, evaluator=None, fen: str = AFTER_E4_FEN, depth: int = 6):
    return run(make_remote(service, evaluator).request_move(fen, depth))


class TestRequestMove:
    """GET /get_move and the three reply shapes the service can send."""

    def test_ok_reply(self):
        service = RemoteService({"status": "ok", "move": "Nc6", "new_fen": "served-fen"})
        evaluator = RecordingEvaluator()

        outcome = request(service, evaluator)

        assert outcome == Success(Move("b8", "c6"), 0.42)
        assert service.requests[0].url.params["fen"] == AFTER_E4_FEN
        assert evaluator.calls == [("served-fen", 6)], "The service's own new_fen is scored"

    def test_ok_reply_without_new_fen_scores_local_position(self):
        evaluator = RecordingEvaluator()

        outcome = request(RemoteService({"status": "ok", "move": "e5"}), evaluator)

        assert isinstance(outcome, Success)
        scored_fen = evaluator.calls[0][0]
        assert scored_fen.startswith("rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w")

    def test_evaluator_failure_degrades_to_zero(self):
        evaluator = RecordingEvaluator(error=RuntimeError("engine gone"))

        outcome = request(RemoteService({"status": "ok", "move": "e5"}), evaluator)

        assert outcome == Success(Move("e7", "e5"), 0.0)

    def test_no_evaluator(self):
        outcome = request(RemoteService({"status": "ok", "move": "e5"}))
        assert outcome == Success(Move("e7", "e5"), 0.0)

    def test_game_over(self):
        outcome = request(RemoteService({"status": "game_over", "result": "1-0"}))
        assert outcome == GameOver("1-0")

    def test_game_over_without_result(self):
        assert request(RemoteService({"status": "game_over"})) == GameOver("*")

    def test_service_error(self):
        outcome = request(RemoteService({"status": "error", "message": "No legal moves"}))
        assert outcome == Failure(FailureKind.REMOTE_SERVICE_ERROR, "No legal moves")

    @pytest.mark.parametrize("reply", [{"status": "thinking"}, {"move": "e5"}])
    def test_unexpected_status(self, reply):
        outcome = request(RemoteService(reply))

        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.REMOTE_SERVICE_ERROR

    def test_non_json_body(self):
        service = RemoteService(lambda req: httpx.Response(200, text="<html>oops</html>"))

        outcome = request(service)

        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.REMOTE_SERVICE_ERROR

    @pytest.mark.parametrize("san", ["Ke2", "e4", "Qxh7", None, 17])
    def test_illegal_or_malformed_move(self, san):
        evaluator = RecordingEvaluator()

        outcome = request(RemoteService({"status": "ok", "move": san}), evaluator)

        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.INVALID_REMOTE_MOVE
        assert evaluator.calls == [], "Nothing is scored for a rejected move"

    def test_connection_refused_is_reported_without_retry(self):
        def refuse(req):
            raise httpx.ConnectError("connection refused", request=req)

        service = RemoteService(refuse)

        outcome = request(service)

        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.REMOTE_SERVICE_UNAVAILABLE
        assert len(service.requests) == 1, "Exactly one attempt"

    def test_timeout(self):
        def slow(req):
            raise httpx.ReadTimeout("timed out", request=req)

        outcome = request(RemoteService(slow))
        assert outcome.kind is FailureKind.REMOTE_SERVICE_UNAVAILABLE

    def test_http_error_status(self):
        outcome = request(RemoteService(lambda req: httpx.Response(500, text="boom")))

        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.REMOTE_SERVICE_UNAVAILABLE


class TestGameBookkeeping:
    """New-game resets and player-move relays."""

    def test_notify_move(self):
        service = RemoteService()

        assert run(make_remote(service).notify_move("Nf3")) is None
        assert service.paths() == ["/move"]
        assert service.requests[0].method == "POST"
        assert b'"Nf3"' in service.requests[0].content

    def test_reset(self):
        service = RemoteService()

        assert run(make_remote(service).reset()) is None
        assert service.paths() == ["/init"]

    def test_post_failure(self):
        def handler(req):
            return httpx.Response(503)

        adapter = RemoteOpponentAdapter(httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://remote.test"))

        outcome = run(adapter.reset())

        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.REMOTE_SERVICE_UNAVAILABLE

    def test_from_url_sets_base_and_timeout(self):
        adapter = RemoteOpponentAdapter.from_url("http://engine.example:5000", timeout_s=3.0)

        assert str(adapter.client.base_url).startswith("http://engine.example:5000")
        assert adapter.client.timeout.read == 3.0
        run(adapter.close())
