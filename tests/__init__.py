"""
Tests Package

Unit tests for NEIS School Lookup.

Structure:
    - conftest.py: Fake clocks, NEIS body builders and a fake client
    - test_*.py: One module per component
"""

__all__ = []
