"""
Vector Store

A capped, persisted flat collection of VectorizedRecords keyed by id.

The whole collection lives in a single blob of the key-value store:
    {"version": 1, "dimension": 384, "records": [...]}
plus a "last indexed" marker. Every write is load → modify → persist,
serialized by one asyncio.Lock. Since all owners share the blob, the
lock is store-wide rather than per owner.
"""

import json
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from .config import StoreConfig
from .kv_store import FileKeyValueStore, KeyValueStore
from .schemas import ContentKind, StoreStats, VectorizedRecord, now_ms

logger = logging.getLogger("studyrag.common.vector_store")

STORE_KEY = "vector_store"
LAST_INDEXED_KEY = "last_indexed"
STORE_VERSION = 1


class DimensionMismatchError(ValueError):
    """Record embedding length differs from the rest of the store."""
    pass


class VectorStore:
    """
    Persisted record collection.

    Invariants:
    - at most `max_records` records; oldest created_at_ms evicted first
    - one record per id (upsert replaces in place)
    - one embedding dimension across all records
    - reads are scoped to a single owner before anything else
    """

    def __init__(self, kv_store: KeyValueStore, max_records: int = 1000):
        """
        Initialize vector store.

        Args:
            kv_store: Backing key-value store
            max_records: Record cap
        """
        self._kv = kv_store
        self._max_records = max_records
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: StoreConfig) -> "VectorStore":
        return cls(FileKeyValueStore(Path(config.path)), max_records=config.max_records)

    @property
    def max_records(self) -> int:
        return self._max_records

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _load(self) -> List[VectorizedRecord]:
        """Load the collection; unreadable or foreign blobs count as empty."""
        blob = await self._kv.get(STORE_KEY)
        if not blob:
            return []

        try:
            data = json.loads(blob)
            if not isinstance(data, dict) or data.get("version") != STORE_VERSION:
                logger.warning("Vector store blob has unsupported format, treating as empty")
                return []
            return [VectorizedRecord.model_validate(item) for item in data["records"]]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Vector store blob is corrupt, treating as empty: %s", e)
            return []

    async def _save(self, records: List[VectorizedRecord]) -> None:
        data = {
            "version": STORE_VERSION,
            "dimension": records[0].dimension if records else None,
            "records": [r.model_dump(mode="json") for r in records],
        }
        await self._kv.set(STORE_KEY, json.dumps(data))

    def _enforce_cap(self, records: List[VectorizedRecord]) -> List[VectorizedRecord]:
        """Drop the oldest records beyond the cap, keeping relative order."""
        if len(records) <= self._max_records:
            return records

        newest = sorted(
            enumerate(records),
            key=lambda pair: (pair[1].created_at_ms, pair[0]),
            reverse=True,
        )[: self._max_records]
        keep = {idx for idx, _ in newest}

        logger.info("Vector store over cap, evicting %d oldest record(s)", len(records) - len(keep))
        return [r for idx, r in enumerate(records) if idx in keep]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(self, record: VectorizedRecord) -> None:
        """
        Insert or replace a record by id, then enforce the cap.

        Raises:
            DimensionMismatchError: embedding length differs from the store
            ValueError: empty embedding
        """
        if not record.embedding:
            raise ValueError(f"Record {record.id} has an empty embedding")

        # Store plain records even when handed a SearchResult
        record = VectorizedRecord.model_validate(
            record.model_dump(include=set(VectorizedRecord.model_fields))
        )

        async with self._write_lock:
            records = await self._load()

            others = [r for r in records if r.id != record.id]
            if others and others[0].dimension != record.dimension:
                raise DimensionMismatchError(
                    f"Record {record.id} has dimension {record.dimension}, "
                    f"store uses {others[0].dimension}"
                )

            for idx, existing in enumerate(records):
                if existing.id == record.id:
                    records[idx] = record
                    break
            else:
                records.append(record)

            records = self._enforce_cap(records)
            await self._save(records)

        logger.debug("Upserted %s (%s)", record.id, record.kind.value)

    async def replace_all(self, records: Sequence[VectorizedRecord]) -> None:
        """Overwrite the whole collection (re-embedding migrations)."""
        records = list(records)
        dimensions = {r.dimension for r in records}
        if len(dimensions) > 1:
            raise DimensionMismatchError(f"Mixed dimensions in replacement: {sorted(dimensions)}")

        async with self._write_lock:
            await self._save(self._enforce_cap(records))

    async def clear(self) -> None:
        """Remove all records and the last-indexed marker"""
        async with self._write_lock:
            await self._kv.remove(STORE_KEY)
            await self._kv.remove(LAST_INDEXED_KEY)
        logger.info("Vector store cleared")

    async def mark_indexed(self, timestamp_ms: Optional[int] = None) -> None:
        """Record when indexing last completed"""
        await self._kv.set(LAST_INDEXED_KEY, str(timestamp_ms or now_ms()))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_all(self) -> List[VectorizedRecord]:
        """All records across owners (maintenance only, never for search)"""
        return await self._load()

    async def list_records(
        self,
        owner_id: str,
        kinds: Optional[Sequence[ContentKind]] = None,
        course_id: Optional[str] = None,
        status_filter: Optional[Sequence[str]] = None,
        priority_filter: Optional[Sequence[str]] = None,
    ) -> List[VectorizedRecord]:
        """
        List one owner's records, optionally narrowed.

        Args:
            owner_id: Required owner scope; empty returns nothing
            kinds: Keep only these content kinds
            course_id: Keep only records of this course
            status_filter: Keep only tasks whose status is listed
            priority_filter: Keep only records whose priority is listed

        Returns:
            Matching records in store order
        """
        if not owner_id:
            return []

        records = [r for r in await self._load() if r.owner_id == owner_id]

        if kinds:
            kind_set = {ContentKind(k) for k in kinds}
            records = [r for r in records if r.kind in kind_set]

        if course_id:
            records = [r for r in records if r.course_id == course_id]

        if status_filter:
            records = [
                r for r in records
                if r.kind == ContentKind.TASK and r.status and r.status in status_filter
            ]

        if priority_filter:
            records = [r for r in records if r.priority and r.priority in priority_filter]

        return records

    async def get(self, record_id: str, owner_id: str) -> Optional[VectorizedRecord]:
        """Get one of the owner's records by id"""
        for record in await self.list_records(owner_id):
            if record.id == record_id:
                return record
        return None

    async def stats(self) -> StoreStats:
        """Count records by kind and report the last indexing time"""
        blob = await self._kv.get(STORE_KEY)
        records = await self._load()

        by_kind = {}
        for record in records:
            by_kind[record.kind.value] = by_kind.get(record.kind.value, 0) + 1

        last_indexed = None
        marker = await self._kv.get(LAST_INDEXED_KEY)
        if marker:
            try:
                last_indexed = datetime.fromtimestamp(
                    int(marker) / 1000, tz=timezone.utc
                ).isoformat()
            except ValueError:
                logger.warning("Ignoring unreadable last-indexed marker: %r", marker)

        return StoreStats(
            total_items=len(records),
            by_kind=by_kind,
            last_indexed=last_indexed,
            storage_size=len(blob.encode("utf-8")) if blob else 0,
        )
