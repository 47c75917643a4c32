"""
Study Tracker Test Suite

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures (SQLite database, FakeClock, locks)
    ├── unit/                # Service-level tests against a per-test SQLite file
    │   ├── test_page_activity.py
    │   ├── test_session_lifecycle.py
    │   ├── test_progress_aggregator.py
    │   ├── test_streak_tracking.py
    │   ├── test_goal_service.py
    │   ├── test_reaper.py
    │   └── ...
    └── integration/         # HTTP tests through the FastAPI app
        ├── test_health.py
        └── test_tracking_api.py

Running Tests:
    # Run all tests
    pytest -v

    # Run only unit tests
    pytest backend/tests/unit/ -v

    # Run only integration tests
    pytest -m integration -v
"""
