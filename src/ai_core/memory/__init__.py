"""Experience memory: store, pattern index and persistence."""
from .locks import ReadWriteLock
from .store import (
    Experience,
    ExperienceStore,
    SnapshotDocument,
)
from .patterns import (
    Pattern,
    PatternIndex,
    normalize_token,
    tokenize,
)
from .persistence import (
    SnapshotWorker,
    load_store,
)

__all__ = [
    # Locks
    "ReadWriteLock",
    # Store
    "Experience",
    "ExperienceStore",
    "SnapshotDocument",
    # Patterns
    "Pattern",
    "PatternIndex",
    "normalize_token",
    "tokenize",
    # Persistence
    "SnapshotWorker",
    "load_store",
]
