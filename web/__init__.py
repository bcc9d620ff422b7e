"""
Web application package for the chess arena backend.

Provides the FastAPI app (move endpoints, online-user query, and the /ws
realtime endpoint) and the service wiring behind it. Run with:
    uvicorn web.app:app
"""
