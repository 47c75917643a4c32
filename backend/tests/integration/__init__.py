"""
Integration Tests

Drive the FastAPI app over httpx's ASGI transport with the database
dependency pointed at a per-test SQLite file. No external services needed.
"""
