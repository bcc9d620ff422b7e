"""
Opponent backends package.

This package puts every computer opponent behind one move-request contract:
callers hand over a FEN and get back a MoveOutcome (Success, GameOver or
Failure), whichever backend produced it.

Modules:
    constants      - Configuration constants (engine path, depths, timeouts, URLs)
    outcome        - Move, MoveOutcome variants, OpponentKind, SearchConfig
    rules          - python-chess adapter: legality, SAN/coordinate conversion, game end
    engine_process - Long-lived UCI engine subprocess with a serialized request slot
    remote         - HTTP client for the remote move-generation service
    session        - Per-game session context (opponent kind, search depth)
    broker         - Dispatch of move requests to the selected backend
"""
