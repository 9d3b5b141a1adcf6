"""
api: HTTP surface and config persistence
========================================

Modules
-------
schemas
    Pydantic wire models and the config JSON codec.
config_store
    SQLite store for the active config document.
server
    FastAPI application factory and uvicorn runner.
"""
