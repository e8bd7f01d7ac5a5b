"""
RecordFamily - Describes one kind of record the engine migrates.

The pipeline (reader, filter, writer, runner) is generic; everything that
differs between users and resumes lives in a family:

- where rows come from (legacy table plus an optional related table joined
  by foreign key) and where they go (primary and dependent target tables)
- the natural key used to detect rows already present in the target
- the owner reference remapped through another family's identity map
- the field mapping itself
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar, Literal

from legacymigrate.models import SourceRecord
from legacymigrate.transform import TransformResult

NaturalKeyMatch = Literal["any", "all"]


class RecordFamily(ABC):
    """
    Abstract base class for record families.

    Class attributes:
        name: Family name used in logs, spans and summaries (e.g. "users")
        file_prefix: Prefix of the family's state files ("user" gives
            user-progress.json and user-id-map.json)
        source_table: Legacy table paged through by the reader
        related_table: Legacy table holding one dependent row per record
        related_column: Foreign key in related_table pointing at source_table
        target_table: Primary target table
        dependent_tables: Target tables written best-effort after the primary rows
        natural_key_columns: Target columns forming the natural key
        natural_key_match: "any" if one matching column is a collision,
            "all" if the whole tuple must match
        depends_on: Name of the family whose identity map remaps owners
        owner_table: Target table that must contain the remapped owner id
    """

    name: ClassVar[str]
    file_prefix: ClassVar[str]
    source_table: ClassVar[str]
    related_table: ClassVar[str | None] = None
    related_column: ClassVar[str | None] = None
    target_table: ClassVar[str]
    dependent_tables: ClassVar[tuple[str, ...]] = ()
    natural_key_columns: ClassVar[tuple[str, ...]]
    natural_key_match: ClassVar[NaturalKeyMatch] = "all"
    depends_on: ClassVar[str | None] = None
    owner_table: ClassVar[str | None] = None

    @property
    def checkpoint_filename(self) -> str:
        return f"{self.file_prefix}-progress.json"

    @property
    def identity_filename(self) -> str:
        return f"{self.file_prefix}-id-map.json"

    def owner_id(self, record: SourceRecord) -> str | None:
        """Legacy id of the owning record in the dependency family, if any."""
        return None

    @abstractmethod
    def natural_key(self, record: SourceRecord, owner_id: str | None) -> dict[str, Any]:
        """
        Natural key values the record will have in the target.

        Args:
            record: Legacy row
            owner_id: New owner id (None for families without a dependency)

        Returns:
            One value per column in natural_key_columns
        """
        pass

    @abstractmethod
    def transform(
        self,
        record: SourceRecord,
        related: Mapping[str, Any] | None,
        new_id: str,
        owner_id: str | None,
    ) -> TransformResult:
        """
        Build the target record.

        Args:
            record: Legacy row
            related: The record's row from related_table, if any
            new_id: Freshly generated target id
            owner_id: New owner id (None for families without a dependency)
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


__all__ = ["RecordFamily", "NaturalKeyMatch"]
