"""
Protocol Storage Layer

RESPONSIBILITY: Durable keyed storage of Protocol records with
optimistic-concurrency guarded writes
ALLOWED INPUTS: Protocol snapshots produced by the core engine
OUTPUTS: Protocol snapshots, StoreWriteResult

WHAT THIS LAYER MUST NOT DO:
============================
- Interpret protocol state or run transitions
- Overwrite a record whose stored version differs from the caller's
- Hand out references to its internal records (callers get fresh copies)

CONCURRENCY:
============
put_if_version is a compare-and-write under a process-local lock.
For a given starting version at most one write can succeed; the loser
gets CONCURRENT_MODIFICATION and must re-read.
"""

from __future__ import annotations
from dataclasses import dataclass
from threading import RLock
from typing import Dict, List, Optional
import json
import logging
import os

from ..contracts.base import Error, ErrorCode, Result, Timestamp
from ..contracts.protocol import Protocol
from ..domain.serialization import protocol_from_dict, protocol_to_dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreWriteResult:
    """Result of a store write."""
    success: bool
    protocol_id: Optional[str] = None
    version: Optional[int] = None
    error: Optional[Error] = None


def _write_error(code: ErrorCode, message: str, **context: object) -> StoreWriteResult:
    error = Error(code=code, message=message, timestamp=Timestamp.now().value)
    for key, value in context.items():
        error = error.with_context(key, str(value))
    return StoreWriteResult(success=False, error=error)


# =============================================================================
# STORAGE INTERFACE (Dependency Inversion)
# =============================================================================

class ProtocolStore:
    """
    Abstract protocol store.

    Implementations can use different storage systems (memory, file,
    database) while keeping the same versioned write semantics.
    """

    def __init__(self):
        self._lock = RLock()

    # Backend hooks -----------------------------------------------------------

    def _load(self, protocol_id: str) -> Optional[dict]:
        raise NotImplementedError

    def _save(self, record: dict) -> None:
        raise NotImplementedError

    def list_ids(self) -> List[str]:
        raise NotImplementedError

    # Public API --------------------------------------------------------------

    def read(self, protocol_id: str) -> Result:
        """
        Fresh snapshot as a Result.

        Success carries the Protocol, or None when the id is unknown. A
        stored record that no longer decodes comes back as the decode error
        (UNKNOWN_STAGE or VALIDATION_ERROR) with protocol_id in its context.
        """
        with self._lock:
            record = self._load(protocol_id)
        if record is None:
            return Result.success(None)
        decoded = protocol_from_dict(record)
        if decoded.is_failure:
            logger.error(
                "Stored record %s is unreadable: %s (%s)",
                protocol_id, decoded.error.code.name, decoded.error.message,
            )
            return Result.failure(decoded.error.with_context('protocol_id', protocol_id))
        return decoded

    def get(self, protocol_id: str) -> Optional[Protocol]:
        """
        Fresh snapshot of the stored protocol, or None.

        Raises ValueError for an unreadable record; read() returns it as an Error.
        """
        found = self.read(protocol_id)
        if found.is_failure:
            raise ValueError(f"Stored record {protocol_id} is unreadable: {found.error.message}")
        return found.value

    def create(self, protocol: Protocol) -> StoreWriteResult:
        """Insert a new protocol. Ids are never reused."""
        with self._lock:
            if self._load(protocol.protocol_id) is not None:
                return _write_error(
                    ErrorCode.VALIDATION_ERROR,
                    f"Protocol {protocol.protocol_id} already exists",
                    protocol_id=protocol.protocol_id,
                )
            return self._persist(protocol)

    def put_if_version(self, protocol: Protocol, expected_version: int) -> StoreWriteResult:
        """Replace the stored record only if it is still at expected_version."""
        with self._lock:
            current = self._load(protocol.protocol_id)
            if current is None:
                return _write_error(
                    ErrorCode.PROTOCOL_NOT_FOUND,
                    f"Protocol {protocol.protocol_id} does not exist",
                    protocol_id=protocol.protocol_id,
                )
            stored_version = int(current['version'])
            if stored_version != expected_version:
                logger.info(
                    "Version conflict on %s: expected %d, stored %d",
                    protocol.protocol_id, expected_version, stored_version,
                )
                return _write_error(
                    ErrorCode.CONCURRENT_MODIFICATION,
                    f"Protocol {protocol.protocol_id} changed since it was read",
                    protocol_id=protocol.protocol_id,
                    expected_version=expected_version,
                    stored_version=stored_version,
                )
            if protocol.version <= stored_version:
                return _write_error(
                    ErrorCode.VALIDATION_ERROR,
                    f"New version {protocol.version} must be greater than {stored_version}",
                    protocol_id=protocol.protocol_id,
                )
            return self._persist(protocol)

    def _persist(self, protocol: Protocol) -> StoreWriteResult:
        try:
            self._save(protocol_to_dict(protocol))
        except OSError as exc:
            logger.error("Failed to persist %s: %s", protocol.protocol_id, exc)
            return _write_error(
                ErrorCode.STORAGE_FAILURE,
                f"Failed to write protocol: {exc}",
                protocol_id=protocol.protocol_id,
            )
        return StoreWriteResult(
            success=True,
            protocol_id=protocol.protocol_id,
            version=protocol.version,
        )


# =============================================================================
# IN-MEMORY STORE (Reference Implementation)
# =============================================================================

class InMemoryProtocolStore(ProtocolStore):
    """
    In-memory store. Keeps serialized records so every read decodes a
    fresh snapshot. Suitable for testing and single-process deployments.
    """

    def __init__(self):
        super().__init__()
        self._records: Dict[str, str] = {}

    def _load(self, protocol_id: str) -> Optional[dict]:
        payload = self._records.get(protocol_id)
        return json.loads(payload) if payload is not None else None

    def _save(self, record: dict) -> None:
        self._records[record['protocolId']] = json.dumps(record)

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._records)


# =============================================================================
# FILE STORE
# =============================================================================

class FileProtocolStore(ProtocolStore):
    """
    File-based store.

    Every write appends the full record to protocols.jsonl; the latest
    line for an id is authoritative. Older lines are kept as an audit trail.
    """

    def __init__(self, storage_dir: str):
        super().__init__()
        self._storage_dir = storage_dir
        self._protocols_file = os.path.join(storage_dir, "protocols.jsonl")

        os.makedirs(storage_dir, exist_ok=True)

        # In-memory index (rebuilt on load)
        self._latest: Dict[str, dict] = {}
        self._rebuild_indices()

    def _rebuild_indices(self):
        """Rebuild the latest-record index from the append log."""
        if not os.path.exists(self._protocols_file):
            return
        with open(self._protocols_file, 'r', encoding='utf-8') as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise ValueError(
                        f"{self._protocols_file}:{line_no} is not valid JSON: {exc}"
                    ) from exc
                self._latest[record['protocolId']] = record

    def _load(self, protocol_id: str) -> Optional[dict]:
        record = self._latest.get(protocol_id)
        return json.loads(json.dumps(record)) if record is not None else None

    def _save(self, record: dict) -> None:
        with open(self._protocols_file, 'a', encoding='utf-8') as f:
            f.write(json.dumps(record, sort_keys=True) + '\n')
        self._latest[record['protocolId']] = record

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._latest)

    @property
    def path(self) -> str:
        return self._protocols_file


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class ProtocolStorageConfig:
    """Configuration for protocol storage."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None


def create_store(config: Optional[ProtocolStorageConfig] = None) -> ProtocolStore:
    """Create storage backend based on configuration."""
    config = config or ProtocolStorageConfig()
    if config.backend_type == "file":
        if not config.storage_dir:
            raise ValueError("file storage requires storage_dir")
        return FileProtocolStore(config.storage_dir)
    if config.backend_type != "memory":
        raise ValueError(f"Unknown storage backend: {config.backend_type!r}")
    return InMemoryProtocolStore()


__all__ = [
    'ProtocolStore',
    'InMemoryProtocolStore',
    'FileProtocolStore',
    'ProtocolStorageConfig',
    'StoreWriteResult',
    'create_store',
]
