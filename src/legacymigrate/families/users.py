"""
UserFamily - legacy ``User`` (+ ``Secrets``) into ``user``, ``account`` and ``two_factor``.
"""

from collections.abc import Mapping
from typing import Any

from legacymigrate.families.base import RecordFamily
from legacymigrate.models import SourceRecord
from legacymigrate.transform import TransformResult, to_username, transform_user


class UserFamily(RecordFamily):
    """
    Users are migrated first; their identity map is the dependency map of
    the resume family.

    A user collides with the target when ANY of email, normalized username
    or display username is already taken.
    """

    name = "users"
    file_prefix = "user"
    source_table = "User"
    related_table = "Secrets"
    related_column = "userId"
    target_table = "user"
    dependent_tables = ("account", "two_factor")
    natural_key_columns = ("email", "username", "display_username")
    natural_key_match = "any"

    def natural_key(self, record: SourceRecord, owner_id: str | None) -> dict[str, Any]:
        display_username = str(record.get("username", ""))
        return {
            "email": str(record.get("email", "")),
            "username": to_username(display_username),
            "display_username": display_username,
        }

    def transform(
        self,
        record: SourceRecord,
        related: Mapping[str, Any] | None,
        new_id: str,
        owner_id: str | None,
    ) -> TransformResult:
        return transform_user(record, related, new_id)
