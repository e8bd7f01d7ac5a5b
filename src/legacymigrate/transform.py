"""
Record transformation from the legacy shape to the new schema.

Transforms are total: for any row the source store can return they produce
a TargetRecord. A nested payload that cannot be imported (the resume
document) degrades to the default value and the result is tagged Degraded;
the row is still migrated and nothing is counted as an error.

Result types:
    - Ok: Clean transform
    - Degraded: Transform succeeded with a defaulted sub-document

Mapping functions:
    - transform_user: legacy User (+ Secrets) -> user, account, two_factor rows
    - transform_resume: legacy Resume (+ Statistics) -> resume, resume_statistics rows
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from legacymigrate.documents import DocumentParser, default_resume_data, parse_legacy_resume
from legacymigrate.exceptions import DocumentParseError
from legacymigrate.models import SourceRecord, TargetRecord

logger = logging.getLogger(__name__)

PROVIDER_IDS = {
    "email": "credential",
    "google": "google",
    "github": "github",
}
"""Legacy auth provider -> new provider id. Anything else maps to "custom"."""

_USERNAME_INVALID = re.compile(r"[^a-z0-9._-]")


@dataclass(frozen=True)
class Ok:
    """A transform with no degradation."""

    target: TargetRecord

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True)
class Degraded:
    """
    A transform where a sub-document fell back to its default.

    Attributes:
        target: The record to write, carrying the default sub-document.
        reason: Why the original payload was replaced.
    """

    target: TargetRecord
    reason: str

    @property
    def degraded(self) -> bool:
        return True


TransformResult = Ok | Degraded


def generate_id() -> str:
    """Fresh identifier for a target row."""
    return str(uuid.uuid4())


def map_provider_id(provider: Any) -> str:
    return PROVIDER_IDS.get(str(provider).lower() if provider else "", "custom")


def to_username(value: Any) -> str:
    """
    Normalize a legacy username for the new ``username`` column.

    Lowercases and drops every character outside ``[a-z0-9._-]``. The
    original value is kept as the display username.

    Example:
        >>> to_username("Jane Doe!")
        'janedoe'
    """
    return _USERNAME_INVALID.sub("", str(value or "").strip().lower())


def transform_user(
    record: SourceRecord,
    secrets: Mapping[str, Any] | None,
    new_id: str,
) -> TransformResult:
    """
    Map a legacy user row to a user row plus its account and two-factor rows.

    Args:
        record: Legacy ``User`` row
        secrets: The user's ``Secrets`` row, if any
        new_id: Identifier for the new user

    Returns:
        Ok with dependents ``account`` (always one) and ``two_factor`` (one
        when two-factor is enabled and a secret exists)
    """
    secrets = secrets or {}
    created_at = record.created_at
    updated_at = record.get("updatedAt", created_at)
    display_username = str(record.get("username", ""))
    two_factor_enabled = bool(record.get("twoFactorEnabled", False))

    values = {
        "id": new_id,
        "name": str(record.get("name", "")),
        "email": str(record.get("email", "")),
        "email_verified": bool(record.get("emailVerified", False)),
        "image": str(record.get("picture", "")),
        "username": to_username(display_username),
        "display_username": display_username,
        "two_factor_enabled": two_factor_enabled,
        "created_at": created_at,
        "updated_at": updated_at,
    }

    provider_id = map_provider_id(record.get("provider"))
    account = {
        "id": generate_id(),
        "account_id": new_id if provider_id == "credential" else record.id,
        "provider_id": provider_id,
        "user_id": new_id,
        "password": secrets.get("password"),
        "refresh_token": secrets.get("refreshToken"),
        "created_at": created_at,
        "updated_at": updated_at,
    }

    two_factor = []
    secret = secrets.get("twoFactorSecret")
    if two_factor_enabled and secret:
        two_factor.append(
            {
                "id": generate_id(),
                "secret": secret,
                "backup_codes": ",".join(secrets.get("twoFactorBackupCodes") or []),
                "user_id": new_id,
                "created_at": created_at,
                "updated_at": updated_at,
            }
        )

    return Ok(
        TargetRecord(
            legacy_id=record.id,
            new_id=new_id,
            values=values,
            dependents={"account": [account], "two_factor": two_factor},
        )
    )


def transform_resume(
    record: SourceRecord,
    statistics: Mapping[str, Any] | None,
    new_id: str,
    owner_id: str,
    parser: DocumentParser = parse_legacy_resume,
) -> TransformResult:
    """
    Map a legacy resume row to a resume row plus its statistics row.

    The legacy document is converted with ``parser``; if that fails the row
    keeps the default document and the result is Degraded.

    Args:
        record: Legacy ``Resume`` row
        statistics: The resume's ``Statistics`` row, if any
        new_id: Identifier for the new resume
        owner_id: New id of the owning user, from the user identity map
        parser: Legacy document importer

    Returns:
        Ok or Degraded; the dependent ``resume_statistics`` row is only
        present when the legacy resume had statistics.
    """
    created_at = record.created_at
    updated_at = record.get("updatedAt", created_at)

    reason = None
    try:
        document = parser(record.get("data", {}))
    except DocumentParseError as e:
        reason = e.message
        document = default_resume_data()
    except Exception as e:
        # parsers can be injected; anything they raise degrades the row
        reason = repr(e)
        document = default_resume_data()

    values = {
        "id": new_id,
        "name": str(record.get("title", "")),
        "slug": str(record.get("slug", "")),
        "tags": [],
        "is_public": record.get("visibility") == "public",
        "is_locked": bool(record.get("locked", False)),
        "password": None,
        "data": document.to_document(),
        "user_id": owner_id,
        "created_at": created_at,
        "updated_at": updated_at,
    }

    dependents = []
    if statistics:
        dependents.append(
            {
                "id": generate_id(),
                "views": int(statistics.get("views") or 0),
                "downloads": int(statistics.get("downloads") or 0),
                "last_viewed_at": None,
                "last_downloaded_at": None,
                "resume_id": new_id,
                "created_at": statistics.get("createdAt") or created_at,
                "updated_at": statistics.get("updatedAt") or updated_at,
            }
        )

    target = TargetRecord(
        legacy_id=record.id,
        new_id=new_id,
        values=values,
        dependents={"resume_statistics": dependents},
    )
    if reason is not None:
        logger.warning(
            "Failed to import document for resume %s, using the default document: %s",
            record.id,
            reason,
            extra={"legacy_id": record.id},
        )
        return Degraded(target, reason)
    return Ok(target)


__all__ = [
    "Ok",
    "Degraded",
    "TransformResult",
    "PROVIDER_IDS",
    "generate_id",
    "map_provider_id",
    "to_username",
    "transform_user",
    "transform_resume",
]
