"""
ExistenceFilter - Drops rows that must not be written.

For every row of a batch the checks run in this order and the first one
that matches wins:

1. DEPENDENCY_MISSING: the legacy owner has no entry in the dependency
   identity map, or the mapped owner is not in the target owner table
2. NATURAL_KEY_EXISTS: the natural key is already taken in the target or by
   an earlier row of the same batch
3. ALREADY_MIGRATED: the legacy id is a key of the family's identity map

Target lookups are one bulk query per batch (one for owners, one for
natural keys), never one per row. A failed lookup is fatal: the batch can
neither be written safely nor skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from legacymigrate.exceptions import TargetReadError
from legacymigrate.families.base import RecordFamily
from legacymigrate.models import SkipReason, SourceRecord
from legacymigrate.observability import (
    ATTR_FAMILY,
    ATTR_RECORD_COUNT,
    Tracer,
    create_tracer,
)
from legacymigrate.repositories.identity_map import IdentityMap
from legacymigrate.stores.interface import TargetStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """
    A row that passed the filter.

    Attributes:
        record: Legacy row
        owner_id: New id of the owner (None for families without a dependency)
    """

    record: SourceRecord
    owner_id: str | None = None


@dataclass
class FilterResult:
    """Outcome of filtering one batch; eligible keeps the batch order."""

    eligible: list[Candidate] = field(default_factory=list)
    skipped: list[tuple[SourceRecord, SkipReason]] = field(default_factory=list)

    def skipped_by(self, reason: SkipReason) -> list[SourceRecord]:
        return [record for record, r in self.skipped if r == reason]


class NaturalKeyIndex:
    """
    Set of natural keys taken in the target.

    With ``match="any"`` a key collides if any single column value is taken
    (users: email, username or display username). With ``match="all"`` only
    the whole tuple collides (resumes: slug and owner).
    """

    def __init__(self, columns: Sequence[str], match: str) -> None:
        self._columns = tuple(columns)
        self._match = match
        self._by_column: dict[str, set[Any]] = {column: set() for column in self._columns}
        self._tuples: set[tuple[Any, ...]] = set()

    def add(self, key: Mapping[str, Any]) -> None:
        if self._match == "any":
            for column in self._columns:
                self._by_column[column].add(key.get(column))
        else:
            self._tuples.add(tuple(key.get(column) for column in self._columns))

    def collides(self, key: Mapping[str, Any]) -> bool:
        if self._match == "any":
            return any(key.get(column) in self._by_column[column] for column in self._columns)
        return tuple(key.get(column) for column in self._columns) in self._tuples


class ExistenceFilter:
    """
    Filters batches of one record family.

    Example:
        >>> existence = ExistenceFilter(UserFamily(), target, identity_map)
        >>> result = await existence.filter(batch)
        >>> len(result.eligible) + len(result.skipped) == len(batch)
        True
    """

    def __init__(
        self,
        family: RecordFamily,
        target: TargetStore,
        identity_map: IdentityMap,
        dependency_map: IdentityMap | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            family: Record family of the batches
            target: Target store queried for owners and natural keys
            identity_map: The family's own identity map
            dependency_map: Identity map of family.depends_on (required if set)
            tracer: Optional custom Tracer
            enable_tracing: Whether to create OpenTelemetry spans
        """
        if family.depends_on and dependency_map is None:
            raise ValueError(f"{family.name} depends on {family.depends_on}; a dependency map is required")
        self._family = family
        self._target = target
        self._identity_map = identity_map
        self._dependency_map = dependency_map
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def filter(self, batch: Sequence[SourceRecord]) -> FilterResult:
        """
        Split a batch into eligible and skipped rows.

        Raises:
            TargetReadError: If a bulk lookup fails
        """
        result = FilterResult()
        if not batch:
            return result

        with self._tracer.span(
            "legacymigrate.filter.filter",
            {ATTR_FAMILY: self._family.name, ATTR_RECORD_COUNT: len(batch)},
        ):
            owners = self._resolve_owners(batch)
            present_owners = await self._present_owners(owners.values())

            pending: list[tuple[SourceRecord, str | None, dict[str, Any]]] = []
            for record in batch:
                owner_id = owners.get(record.id)
                if self._family.depends_on and owner_id not in present_owners:
                    result.skipped.append((record, SkipReason.DEPENDENCY_MISSING))
                    continue
                pending.append((record, owner_id, self._family.natural_key(record, owner_id)))

            taken = await self._taken_natural_keys([key for _, _, key in pending])

            for record, owner_id, key in pending:
                if taken.collides(key):
                    result.skipped.append((record, SkipReason.NATURAL_KEY_EXISTS))
                    continue
                if record.id in self._identity_map:
                    result.skipped.append((record, SkipReason.ALREADY_MIGRATED))
                    continue
                taken.add(key)
                result.eligible.append(Candidate(record, owner_id))

        if result.skipped:
            logger.info(
                "Skipping %d of %d %s rows",
                len(result.skipped),
                len(batch),
                self._family.name,
                extra={
                    "family": self._family.name,
                    "skipped": len(result.skipped),
                    "reasons": {
                        reason.value: len(result.skipped_by(reason))
                        for reason in SkipReason
                        if result.skipped_by(reason)
                    },
                },
            )
        return result

    def _resolve_owners(self, batch: Sequence[SourceRecord]) -> dict[str, str | None]:
        if not self._family.depends_on or self._dependency_map is None:
            return {}
        owners = {}
        for record in batch:
            legacy_owner = self._family.owner_id(record)
            owners[record.id] = self._dependency_map.get(legacy_owner) if legacy_owner else None
        return owners

    async def _present_owners(self, owner_ids: Any) -> set[str]:
        """Mapped owner ids that exist in the target owner table."""
        wanted = {owner_id for owner_id in owner_ids if owner_id}
        if not wanted or not self._family.owner_table:
            return wanted
        try:
            rows = await self._target.find_any(self._family.owner_table, {"id": wanted})
        except Exception as e:
            raise TargetReadError(
                f"Failed to check owners in {self._family.owner_table}: {e}",
                family=self._family.name,
            ) from e
        return {str(row["id"]) for row in rows}

    async def _taken_natural_keys(self, keys: Sequence[Mapping[str, Any]]) -> NaturalKeyIndex:
        columns = self._family.natural_key_columns
        index = NaturalKeyIndex(columns, self._family.natural_key_match)
        if not keys:
            return index

        match = {column: {key[column] for key in keys} for column in columns}
        lookup = self._target.find_any if self._family.natural_key_match == "any" else self._target.find_all
        try:
            rows = await lookup(self._family.target_table, match)
        except Exception as e:
            raise TargetReadError(
                f"Failed to check existing {self._family.target_table} rows: {e}",
                family=self._family.name,
            ) from e

        for row in rows:
            index.add(row)
        return index


__all__ = [
    "Candidate",
    "FilterResult",
    "NaturalKeyIndex",
    "ExistenceFilter",
]
