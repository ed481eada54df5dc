"""
Unit Tests

Unit tests run in isolation without external dependencies.
The database and scheduler are replaced by in-memory fakes or mocks.
"""
