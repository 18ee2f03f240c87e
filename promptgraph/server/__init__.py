"""FastAPI + Socket.IO service exposing the graph engine to the editor UI."""
