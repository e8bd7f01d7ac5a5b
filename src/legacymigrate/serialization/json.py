"""
JSON serialization utilities for checkpoint and identity-map files.

Handles the non-native types that appear in migration state: cursor
timestamps (datetime) and UUID identifiers.

Example:
    >>> from legacymigrate.serialization import json_dumps, json_loads
    >>> from datetime import UTC, datetime
    >>>
    >>> text = json_dumps({"timestamp": datetime.now(UTC)}, indent=2)
    >>> parsed = json_loads(text)
"""

import json
from datetime import date, datetime
from typing import Any
from uuid import UUID


class MigrationJSONEncoder(json.JSONEncoder):
    """
    JSON encoder that handles UUID and datetime objects.

    - UUID objects: Converted to string representation
    - datetime/date objects: Converted to ISO 8601 format string
    """

    def default(self, obj: Any) -> Any:
        """
        Convert non-serializable objects to JSON-serializable formats.

        Raises:
            TypeError: If object type is not supported
        """
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


def json_dumps(obj: Any, indent: int | str | None = None) -> str:
    """
    Serialize object to JSON string with UUID and datetime support.

    Args:
        obj: Object to serialize
        indent: Passed through to json.dumps

    Returns:
        JSON string representation
    """
    return json.dumps(obj, cls=MigrationJSONEncoder, indent=indent, ensure_ascii=False)


def json_loads(s: str) -> Any:
    """
    Deserialize JSON string to Python object.

    Note: datetime strings are NOT converted back automatically; the model
    that owns the field parses it (see Cursor.from_dict).
    """
    return json.loads(s)


__all__ = [
    "MigrationJSONEncoder",
    "json_dumps",
    "json_loads",
]
