"""
Integration tests for legacymigrate.

These tests run the SQL stores and the full pipeline against file-backed
SQLite databases through aiosqlite; no external services are needed.

Run integration tests:
    pytest tests/integration/ -v

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
