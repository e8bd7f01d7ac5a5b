"""
Serialization utilities for legacymigrate.

Example:
    >>> from legacymigrate.serialization import json_dumps
    >>> json_dumps({"legacy-id": "new-id"})
    '{"legacy-id": "new-id"}'
"""

from legacymigrate.serialization.json import (
    MigrationJSONEncoder,
    json_dumps,
    json_loads,
)

__all__ = [
    "MigrationJSONEncoder",
    "json_dumps",
    "json_loads",
]
