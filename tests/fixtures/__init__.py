"""Shared test fixtures package.

Provides fake transports and document servers for all test suites. Fixtures
themselves are defined in conftest.py files; this package contains only
helpers.
"""
