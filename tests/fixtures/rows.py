"""
Legacy row factories.

Rows created by one LegacyRows instance get unique ids and strictly
decreasing createdAt values in creation order, so the first row created is
the first row the reader returns.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

BASE_TIME = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


def _timestamps(aware: bool = True) -> Iterator[datetime]:
    base = BASE_TIME if aware else BASE_TIME.replace(tzinfo=None)
    for step in itertools.count():
        yield base - timedelta(minutes=step)


class LegacyRows:
    """
    Builds legacy rows.

    Args:
        aware: Timezone-aware timestamps (in-memory stores) or naive ones
            (SQLite, which drops the offset)

    Example:
        >>> rows = LegacyRows()
        >>> user = rows.user(email="jane@example.com")
        >>> rows.resume(user["id"], slug="cv")
    """

    def __init__(self, aware: bool = True) -> None:
        self._clock = _timestamps(aware)
        self._ids = itertools.count(1)

    def _next(self, prefix: str) -> tuple[str, datetime]:
        return f"{prefix}{next(self._ids)}", next(self._clock)

    def user(self, **overrides: Any) -> dict[str, Any]:
        user_id, created_at = self._next("u")
        row = {
            "id": user_id,
            "name": f"User {user_id}",
            "picture": None,
            "username": f"user_{user_id}",
            "email": f"{user_id}@example.com",
            "locale": "en-US",
            "emailVerified": True,
            "twoFactorEnabled": False,
            "createdAt": created_at,
            "updatedAt": created_at,
            "provider": "email",
        }
        row.update(overrides)
        return row

    def secrets(self, user_id: str, **overrides: Any) -> dict[str, Any]:
        secret_id, _ = self._next("s")
        row = {
            "id": secret_id,
            "password": "$2b$10$hash",
            "lastSignedIn": None,
            "verificationToken": None,
            "twoFactorSecret": None,
            "twoFactorBackupCodes": [],
            "refreshToken": None,
            "resetToken": None,
            "userId": user_id,
        }
        row.update(overrides)
        return row

    def resume(self, user_id: str, **overrides: Any) -> dict[str, Any]:
        resume_id, created_at = self._next("r")
        row = {
            "id": resume_id,
            "title": f"Resume {resume_id}",
            "slug": f"resume-{resume_id}",
            "data": legacy_document(),
            "visibility": "private",
            "locked": False,
            "userId": user_id,
            "createdAt": created_at,
            "updatedAt": created_at,
        }
        row.update(overrides)
        return row

    def statistics(self, resume_id: str, **overrides: Any) -> dict[str, Any]:
        stats_id, created_at = self._next("st")
        row = {
            "id": stats_id,
            "views": 10,
            "downloads": 2,
            "resumeId": resume_id,
            "createdAt": created_at,
            "updatedAt": created_at,
        }
        row.update(overrides)
        return row


def legacy_document(**metadata: Any) -> dict[str, Any]:
    """A minimal valid legacy (v4) resume document; keyword args override metadata keys."""
    return {
        "basics": {
            "name": "Jane Doe",
            "headline": "Engineer",
            "email": "jane@example.com",
            "phone": "",
            "location": "Berlin",
            "url": {"label": "", "href": "https://jane.dev"},
            "customFields": [],
            "picture": {"url": "", "size": 64, "aspectRatio": 1, "borderRadius": 0, "effects": {}},
        },
        "sections": {
            "summary": {"name": "Summary", "columns": 1, "visible": True, "content": "<p>Hi</p>"},
            "experience": {
                "name": "Experience",
                "columns": 1,
                "visible": True,
                "items": [
                    {
                        "id": "exp1",
                        "visible": True,
                        "company": "Acme",
                        "position": "Developer",
                        "location": "Remote",
                        "date": "2020 - 2024",
                        "summary": "<p>Built things</p>",
                        "url": {"label": "", "href": ""},
                    }
                ],
            },
            "custom": {},
        },
        "metadata": {
            "template": "pikachu",
            "layout": [[["profiles", "summary", "experience"], ["skills"]]],
            "css": {"value": "", "visible": False},
            "page": {"margin": 18, "format": "a4"},
            "theme": {"background": "#ffffff", "text": "#000000", "primary": "#dc2626"},
            "typography": {
                "font": {"family": "IBM Plex Serif", "subset": "latin", "variants": ["regular"], "size": 14},
                "lineHeight": 1.5,
                "hideIcons": False,
            },
            "notes": "",
            **metadata,
        },
    }
