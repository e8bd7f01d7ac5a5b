"""
Record families migrated by the engine, in dependency order.

Example:
    >>> from legacymigrate.families import default_families
    >>> [family.name for family in default_families()]
    ['users', 'resumes']
"""

from legacymigrate.families.base import NaturalKeyMatch, RecordFamily
from legacymigrate.families.resumes import ResumeFamily
from legacymigrate.families.users import UserFamily


def default_families() -> list[RecordFamily]:
    """Users first, then resumes."""
    return [UserFamily(), ResumeFamily()]


__all__ = [
    "RecordFamily",
    "NaturalKeyMatch",
    "UserFamily",
    "ResumeFamily",
    "default_families",
]
