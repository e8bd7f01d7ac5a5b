"""
Persistence for migration state: checkpoints and identity maps.

Both are owned by a single running process per record family; no file
locking is performed.
"""

from legacymigrate.repositories.checkpoint import (
    CheckpointStore,
    FileCheckpointStore,
    InMemoryCheckpointStore,
)
from legacymigrate.repositories.identity_map import (
    FileIdentityMapStore,
    IdentityMap,
    IdentityMapStore,
    InMemoryIdentityMapStore,
)

__all__ = [
    # Checkpoints
    "CheckpointStore",
    "FileCheckpointStore",
    "InMemoryCheckpointStore",
    # Identity maps
    "IdentityMap",
    "IdentityMapStore",
    "FileIdentityMapStore",
    "InMemoryIdentityMapStore",
]
