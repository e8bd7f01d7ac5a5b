"""
ResumeFamily - legacy ``Resume`` (+ ``Statistics``) into ``resume`` and ``resume_statistics``.
"""

from collections.abc import Mapping
from typing import Any

from legacymigrate.documents import DocumentParser, parse_legacy_resume
from legacymigrate.families.base import RecordFamily
from legacymigrate.models import SourceRecord
from legacymigrate.transform import TransformResult, transform_resume


class ResumeFamily(RecordFamily):
    """
    Resumes depend on users: each resume is reassigned to the new id of its
    owner, taken from the user identity map. A resume collides with the
    target when the (slug, new owner id) pair already exists.

    Args:
        parser: Importer for the legacy resume document
    """

    name = "resumes"
    file_prefix = "resume"
    source_table = "Resume"
    related_table = "Statistics"
    related_column = "resumeId"
    target_table = "resume"
    dependent_tables = ("resume_statistics",)
    natural_key_columns = ("slug", "user_id")
    natural_key_match = "all"
    depends_on = "users"
    owner_table = "user"

    def __init__(self, parser: DocumentParser = parse_legacy_resume) -> None:
        self._parser = parser

    def owner_id(self, record: SourceRecord) -> str | None:
        owner = record.get("userId")
        return str(owner) if owner is not None else None

    def natural_key(self, record: SourceRecord, owner_id: str | None) -> dict[str, Any]:
        return {"slug": str(record.get("slug", "")), "user_id": owner_id}

    def transform(
        self,
        record: SourceRecord,
        related: Mapping[str, Any] | None,
        new_id: str,
        owner_id: str | None,
    ) -> TransformResult:
        if owner_id is None:
            raise ValueError(f"Resume {record.id} has no mapped owner")
        return transform_resume(record, related, new_id, owner_id, self._parser)
