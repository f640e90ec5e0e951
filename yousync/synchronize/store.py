"""Durable correspondence between source issues and destination issues.

A store is scoped to one (source repository, destination project) pair. The engine
is its only writer; records are inserted or overwritten by source issue id and are
never deleted.
"""

import asyncio
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import structlog
from pydantic import ValidationError

from yousync.synchronize.exceptions import CorrespondenceConflictError, StoreOpenError, StoreWriteError
from yousync.synchronize.models import CorrespondenceRecord

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class CorrespondenceStore(ABC):
    """Base ABC for correspondence stores."""

    @abstractmethod
    async def get(self, source_issue_id: int) -> CorrespondenceRecord | None:
        """Get the record for a source issue, or None when it has never been synchronized."""
        pass

    @abstractmethod
    async def put(self, record: CorrespondenceRecord) -> None:
        """Insert or overwrite the record for its source issue.

        Must not return before the record is durable.
        """
        pass

    @abstractmethod
    async def list(self) -> list[CorrespondenceRecord]:
        """List all records, for diagnostics."""
        pass


class InMemoryCorrespondenceStore(CorrespondenceStore):
    """Correspondence store kept in process memory."""

    def __init__(self, records: list[CorrespondenceRecord] | None = None) -> None:
        """Initialize the store, optionally seeded with records."""
        self._records: dict[int, CorrespondenceRecord] = {}
        self._lock = asyncio.Lock()
        for record in records or []:
            self._check_destination_is_unmapped(record)
            self._records[record.source_issue_id] = record

    def _check_destination_is_unmapped(self, record: CorrespondenceRecord) -> None:
        for existing in self._records.values():
            if existing.destination_issue_id == record.destination_issue_id and existing.source_issue_id != record.source_issue_id:
                raise CorrespondenceConflictError(record.destination_issue_id, existing.source_issue_id, record.source_issue_id)

    async def get(self, source_issue_id: int) -> CorrespondenceRecord | None:
        """Get the record for a source issue."""
        record = self._records.get(source_issue_id)
        return record.model_copy(deep=True) if record is not None else None

    async def put(self, record: CorrespondenceRecord) -> None:
        """Insert or overwrite the record for its source issue."""
        async with self._lock:
            self._check_destination_is_unmapped(record)
            self._records[record.source_issue_id] = record.model_copy(deep=True)

    async def list(self) -> list[CorrespondenceRecord]:
        """List all records ordered by source issue id."""
        return [self._records[key].model_copy(deep=True) for key in sorted(self._records)]


class JsonLinesCorrespondenceStore(InMemoryCorrespondenceStore):
    """Correspondence store persisted as one JSON record per line.

    Every put appends the record as a new line and fsyncs the file before
    returning; a later line for the same source issue supersedes earlier ones.
    Opening the store compacts superseded lines away by rewriting the file
    through a temporary sibling which is fsynced and atomically renamed over the
    original.
    """

    def __init__(self, path: Path, records: list[CorrespondenceRecord] | None = None) -> None:
        """Initialize the store for a file path. Use `open` to load existing records."""
        super().__init__(records)
        self.path = path

    @classmethod
    async def open(cls, path: Path) -> "JsonLinesCorrespondenceStore":
        """Open the store at a path, loading and compacting any records it already holds.

        Raises:
            StoreOpenError: If the file cannot be read or holds a corrupt record.
        """
        records: dict[int, CorrespondenceRecord] = {}
        line_count = 0
        if path.exists():
            try:
                lines = path.read_text(encoding="utf-8").splitlines(keepends=True)
            except OSError as exc:
                raise StoreOpenError(f"Failed to read correspondence store {path}: {exc}") from exc
            for line_number, line in enumerate(lines, start=1):
                if not line.strip():
                    continue
                try:
                    record = CorrespondenceRecord.model_validate_json(line)
                except ValidationError as exc:
                    if line_number == len(lines) and not line.endswith("\n"):
                        # A put interrupted mid-append never returned, so its record was never committed.
                        logger.warning("Discarding incomplete trailing correspondence record", path=str(path), line_number=line_number)
                        line_count += 1
                        continue
                    raise StoreOpenError(f"Corrupt correspondence record at {path}:{line_number}: {exc}") from exc
                records[record.source_issue_id] = record
                line_count += 1

        store = cls(path, list(records.values()))
        if line_count > len(records):
            try:
                store._compact()
            except OSError as exc:
                raise StoreOpenError(f"Failed to compact correspondence store {path}: {exc}") from exc
            logger.info("Compacted correspondence store", path=str(path), dropped_lines=line_count - len(records))
        logger.info("Opened correspondence store", path=str(path), record_count=len(records))
        return store

    async def put(self, record: CorrespondenceRecord) -> None:
        """Insert or overwrite the record and durably append it to the file."""
        async with self._lock:
            self._check_destination_is_unmapped(record)
            try:
                self._append(record)
            except OSError as exc:
                logger.error("Failed to persist correspondence store", path=str(self.path), source_issue_id=record.source_issue_id, error=str(exc))
                raise StoreWriteError(f"Failed to persist correspondence store {self.path}: {exc}") from exc
            self._records[record.source_issue_id] = record.model_copy(deep=True)

    def _append(self, record: CorrespondenceRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            offset = f.tell()
            try:
                f.write(record.model_dump_json())
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            except BaseException:
                f.truncate(offset)
                raise

    def _compact(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for key in sorted(self._records):
                    f.write(self._records[key].model_dump_json())
                    f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except BaseException:
            Path(temp_path).unlink(missing_ok=True)
            raise
