"""Append-only activity ledger.

Stores every tracked user interaction as a write-once ``ActivityRecord``.
The ledger exposes validated inserts and time-ordered reads only; there is
no update or delete path.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pydantic

from src.personalization.exceptions import DependencyError, ValidationError
from src.personalization.models import ActivityRecord, ActivityType

# Configure module logger
logger = logging.getLogger(__name__)

RecordInput = Union[ActivityRecord, Mapping[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_record(record: RecordInput) -> ActivityRecord:
    """Validate an activity record or raw mapping.

    Args:
        record: An ``ActivityRecord`` or a mapping with the same fields.

    Returns:
        A validated ``ActivityRecord``.

    Raises:
        ValidationError: If the user id is missing or malformed, the
            activity type is unknown or any other field is invalid.
    """
    if isinstance(record, Mapping):
        activity_type = record.get("activity_type")
        if (
            activity_type is not None
            and not isinstance(activity_type, ActivityType)
            and not ActivityType.is_valid(activity_type)
        ):
            raise ValidationError(
                f"Unrecognized activity type '{activity_type}'",
                details={"activity_type": repr(activity_type)},
            )
        try:
            return ActivityRecord.model_validate(dict(record))
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid activity record",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e

    if not isinstance(record, ActivityRecord):
        raise ValidationError(
            "Activity record must be an ActivityRecord or a mapping",
            details={"type": type(record).__name__},
        )

    # Re-validate: model_construct() bypasses field validators
    try:
        return ActivityRecord.model_validate(record.model_dump())
    except pydantic.ValidationError as e:
        raise ValidationError(
            "Invalid activity record",
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e


class ActivityLedger(ABC):
    """Append-only store of activity records."""

    def __init__(self):
        # _lock guards the in-memory index only; _write_lock orders writers
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._records_by_user: Dict[str, List[ActivityRecord]] = defaultdict(list)
        self._sequence = 0

    def _stamp(self, record: ActivityRecord) -> ActivityRecord:
        """Assign id, sequence and timestamp. Caller holds the write lock."""
        self._sequence += 1
        created_at = record.created_at or _utcnow()
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return record.model_copy(
            update={
                "record_id": record.record_id or uuid.uuid4().hex,
                "sequence": self._sequence,
                "created_at": created_at,
            }
        )

    def _store(self, record: ActivityRecord) -> None:
        """Insert a stamped record keeping the user's list time ordered."""
        records = self._records_by_user[record.user_id]
        if records and record.sort_key < records[-1].sort_key:
            # Back-dated record: insert at its ordered position
            index = len(records)
            while index > 0 and records[index - 1].sort_key > record.sort_key:
                index -= 1
            records.insert(index, record)
        else:
            records.append(record)

    @abstractmethod
    def _persist(self, records: List[ActivityRecord]) -> None:
        """Durably write stamped records."""

    def append(self, record: RecordInput) -> str:
        """Validate and append a single activity record.

        Args:
            record: Record to append.

        Returns:
            The id assigned to the stored record.

        Raises:
            ValidationError: If the record is invalid.
            DependencyError: If the record cannot be persisted.
        """
        return self.append_record(record).record_id

    def append_record(self, record: RecordInput) -> ActivityRecord:
        """Append a single record and return the stored, stamped copy."""
        return self._append([record])[0]

    def append_many(self, records: Iterable[RecordInput]) -> List[str]:
        """Validate and append a batch of records.

        Every record is validated before any is written, so a single invalid
        record rejects the whole batch.
        """
        return [record.record_id for record in self._append(records)]

    def _append(self, records: Iterable[RecordInput]) -> List[ActivityRecord]:
        validated = [coerce_record(record) for record in records]
        if not validated:
            return []

        # Readers only wait on the index update, never on persistence
        with self._write_lock:
            stamped = [self._stamp(record) for record in validated]
            try:
                self._persist(stamped)
            except OSError as e:
                logger.error(
                    "Failed to persist activity records",
                    extra={"num_records": len(stamped), "error": str(e)},
                )
                raise DependencyError("activity_ledger", e) from e
            with self._lock:
                for record in stamped:
                    self._store(record)

        logger.debug(
            "Appended activity records",
            extra={
                "num_records": len(stamped),
                "user_ids": sorted({r.user_id for r in stamped}),
            },
        )
        return stamped

    def query_by_user(
        self,
        user_id: str,
        activity_type: Optional[ActivityType] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
        with_product_only: bool = False,
    ) -> List[ActivityRecord]:
        """Return a user's records in time order.

        Args:
            user_id: Owner of the records.
            activity_type: Only return records of this type.
            limit: Maximum number of records to return (None for all).
            newest_first: Order by creation time descending (default) or
                ascending.
            with_product_only: Only return records that reference a product.

        Returns:
            List of matching records.
        """
        if limit is not None and limit <= 0:
            return []

        # Snapshot under the lock so appends never wait on a long read
        with self._lock:
            records = list(self._records_by_user.get(user_id, ()))

        if newest_first:
            records.reverse()

        selected = []
        for record in records:
            if activity_type is not None and record.activity_type != activity_type:
                continue
            if with_product_only and record.product_id is None:
                continue
            selected.append(record)
            if limit is not None and len(selected) >= limit:
                break

        return selected

    def count(self, user_id: Optional[str] = None) -> int:
        """Number of stored records, for one user or overall."""
        with self._lock:
            if user_id is not None:
                return len(self._records_by_user.get(user_id, ()))
            return sum(len(records) for records in self._records_by_user.values())


class InMemoryActivityLedger(ActivityLedger):
    """Ledger kept in process memory. Used for tests and demos."""

    def _persist(self, records: List[ActivityRecord]) -> None:
        return None


class JsonlActivityLedger(ActivityLedger):
    """Ledger backed by an append-only JSON-lines file.

    Existing lines are replayed on start-up; every append writes one line per
    record.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._replay()

    def _replay(self) -> None:
        if not self.path.exists():
            logger.info(f"Starting new activity ledger at {self.path}")
            return

        loaded = 0
        with self.path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = ActivityRecord.model_validate_json(line)
                except pydantic.ValidationError as e:
                    logger.warning(
                        "Skipping unreadable ledger line",
                        extra={"path": str(self.path), "line": line_number, "error": str(e)},
                    )
                    continue
                self._sequence = max(self._sequence, record.sequence or 0)
                self._store(record)
                loaded += 1

        logger.info(f"Replayed {loaded} activity records from {self.path}")

    def _persist(self, records: List[ActivityRecord]) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            for record in records:
                handle.write(record.model_dump_json())
                handle.write("\n")
