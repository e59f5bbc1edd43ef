"""
Test Tools Package
Tests for the tools module (materializer, sweeper, adherence analyzer, ticker)
"""

__all__ = [
    "test_materializer",
    "test_sweeper",
    "test_adherence_analyzer",
    "test_ticker",
]
