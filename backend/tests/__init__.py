"""
StudyFlow Test Suite

Test Structure:
    tests/
    ├── conftest.py                  # Fakes (clock, timers, stores) and fixtures
    └── unit/                        # Unit tests (isolated, no external dependencies)
        ├── test_sm2.py              # SM-2 scheduling
        ├── test_review_service.py   # Review recording and due lists
        ├── test_session_tracker.py  # Tracker state machine and timing
        ├── test_write_dispatch.py   # Per-tracker write queue
        ├── test_tracker_registry.py # One tracker per user
        ├── test_sql_stores.py       # SQLAlchemy stores (mocked session)
        └── test_study_api.py        # Session, review and health endpoints

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run with coverage
    pytest backend/tests/ --cov=studyflow --cov-report=html
"""
