"""
Unit Tests

Exercise the tracking services directly. Each test gets its own SQLite
file database and a FakeClock, so runs are isolated and deterministic.
"""
