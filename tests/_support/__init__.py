"""
Test support utilities for WFH Pulse tests.

Factories and fakes shared across test modules; fixtures live in
``tests/conftest.py``.
"""
