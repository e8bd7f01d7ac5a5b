"""
Shared test fixtures for the legacymigrate tests.

Usage:
    from tests.fixtures import BASE_TIME, LegacyRows, legacy_document
"""

from tests.fixtures.rows import BASE_TIME, LegacyRows, legacy_document

__all__ = [
    "BASE_TIME",
    "LegacyRows",
    "legacy_document",
]
