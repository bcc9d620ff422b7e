"""
Interface package: the realtime presence/challenge protocol.

Modules:
    protocol    - Tagged WebSocket messages (pydantic discriminated union)
    connections - Open connections and best-effort delivery/broadcast
    presence    - Who is online, one entry per username
    challenges  - Offer/accept/reject handshake between two online users
    realtime    - Connection lifecycle and per-message dispatch
"""
