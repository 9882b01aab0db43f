"""Append-only, lock-guarded store of experiences."""
from __future__ import annotations

import json
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import MalformedInputError, SnapshotError
from .locks import ReadWriteLock


def _new_experience_id() -> str:
    return f"exp_{uuid.uuid4().hex}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Experience(BaseModel):
    """One immutable stored text record with provenance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=_new_experience_id)
    timestamp: datetime = Field(default_factory=_utc_now)
    source: str
    content: str
    metadata: Optional[str] = None


class SnapshotDocument(BaseModel):
    """On-disk shape of a store snapshot."""

    model_config = ConfigDict(extra="ignore")

    experiences: list[Experience] = Field(default_factory=list)


class ExperienceStore:
    """Thread-safe ordered collection of experiences.

    Every public method holds the store's read/write lock only for its own
    read or mutation and hands back immutable ``Experience`` values or
    fresh lists, so callers never keep shared state locked while they
    do slow work with the result.
    """

    def __init__(
        self,
        experiences: Optional[Iterable[Experience]] = None,
        lock_timeout_s: Optional[float] = None,
    ):
        """Initialize the store.

        Args:
            experiences: Initial records, kept in the given order
            lock_timeout_s: Lock acquisition timeout (None waits forever)

        Raises:
            MalformedInputError: If two initial records share an id
        """
        self._lock = ReadWriteLock(timeout_s=lock_timeout_s)
        self._experiences: list[Experience] = list(experiences or [])
        self._by_id: dict[str, Experience] = {e.id: e for e in self._experiences}
        if len(self._by_id) != len(self._experiences):
            raise MalformedInputError("Duplicate experience ids in initial records")

    @classmethod
    def from_experiences(cls, experiences: Iterable[Experience]) -> "ExperienceStore":
        """Build a private store over already-created experiences."""
        return cls(experiences=experiences)

    def append(
        self,
        content: str,
        source: str,
        metadata: Optional[str] = None,
    ) -> Experience:
        """Create and store a new experience.

        Args:
            content: Free text of the experience
            source: Where the experience came from
            metadata: Optional opaque annotation

        Returns:
            The stored experience with its assigned id and timestamp
        """
        exp = Experience(content=content, source=source, metadata=metadata)
        with self._lock.write():
            self._experiences.append(exp)
            self._by_id[exp.id] = exp
        return exp

    def get(self, experience_id: str) -> Optional[Experience]:
        """Look up an experience by id, None if absent."""
        with self._lock.read():
            return self._by_id.get(experience_id)

    def search(self, query: str) -> list[Experience]:
        """Case-insensitive substring search over content.

        Results keep insertion order. An empty query matches everything.
        """
        needle = query.lower()
        with self._lock.read():
            return [e for e in self._experiences if needle in e.content.lower()]

    def list(self) -> list[Experience]:
        """Snapshot of all experiences in insertion order."""
        with self._lock.read():
            return list(self._experiences)

    def count(self) -> int:
        with self._lock.read():
            return len(self._experiences)

    def is_empty(self) -> bool:
        return self.count() == 0

    def __len__(self) -> int:
        return self.count()

    def clear(self) -> None:
        """Delete every experience. Irreversible."""
        with self._lock.write():
            self._experiences = []
            self._by_id = {}

    def snapshot_to(self, path: Union[str, Path]) -> int:
        """Serialize the whole store to a JSON file.

        The collection is copied under the read lock and written outside it.
        The file is replaced atomically, so a crash mid-write leaves the
        previous snapshot in place.

        Args:
            path: Destination file

        Returns:
            Number of experiences written

        Raises:
            SnapshotError: If the file cannot be written
        """
        experiences = self.list()
        document = SnapshotDocument(experiences=experiences)
        payload = json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False)

        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise SnapshotError(f"Failed to write snapshot to {target}: {exc}") from exc

        return len(experiences)

    def restore_from(self, path: Union[str, Path]) -> int:
        """Replace the whole store with the contents of a snapshot file.

        The file is fully parsed and validated before the in-memory
        collection is touched; on any failure the current state is kept.

        Args:
            path: Snapshot file to load

        Returns:
            Number of experiences loaded

        Raises:
            FileNotFoundError: If the file does not exist
            SnapshotError: If the file is unreadable or malformed
        """
        target = Path(path)
        try:
            raw = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise SnapshotError(f"Failed to read snapshot {target}: {exc}") from exc

        try:
            document = SnapshotDocument.model_validate_json(raw)
        except ValidationError as exc:
            raise SnapshotError(f"Malformed snapshot {target}: {exc}") from exc

        experiences = document.experiences
        by_id = {e.id: e for e in experiences}
        if len(by_id) != len(experiences):
            raise SnapshotError(f"Malformed snapshot {target}: duplicate experience ids")

        with self._lock.write():
            self._experiences = experiences
            self._by_id = by_id
        return len(experiences)

    def stats(self) -> dict:
        """Get store statistics."""
        with self._lock.read():
            sources: dict[str, int] = {}
            for exp in self._experiences:
                sources[exp.source] = sources.get(exp.source, 0) + 1
            return {
                "total_experiences": len(self._experiences),
                "sources": sources,
            }
