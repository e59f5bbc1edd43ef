"""
MedTrack Test Suite
===================

This package contains all tests for the MedTrack dose tracking service.

Test Structure:
- test_tools/: Materializer, sweeper, adherence analyzer and ticker unit tests
- test_services/: Service tests over the in-memory and SQL repositories
- test_api/: API endpoint tests for FastAPI routes
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run specific test module
    pytest tests/test_api/

    # Run only marked tests
    pytest -m "unit"
    pytest -m "api"
"""

