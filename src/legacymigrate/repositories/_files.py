"""
File helpers shared by the JSON-backed repositories.

Writes go to a temporary sibling file that is then renamed over the target,
so an interrupted write leaves either the previous file or the new one,
never a truncated mix.
"""

import os
from pathlib import Path


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` atomically, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)


def read_text_if_exists(path: Path) -> str | None:
    """Return the file contents, or None if the file does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
