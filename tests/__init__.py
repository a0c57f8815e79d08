"""
Life Physics Test Suite
=======================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks (no external dependencies)
- tests/unit/domain/   : Pure domain model and formula tests
- tests/integration/   : Integration tests with testcontainers (real PostgreSQL)

Testing Philosophy
------------------
- Unit tests: fast, isolated, deterministic rolls through scripted randomness
- Integration tests: real database round trips, skipped without Docker
- Use pytest markers to categorize and selectively run tests
"""
