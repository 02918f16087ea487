"""
Store configuration.
"""

import os
from dataclasses import dataclass

DEFAULT_PATH = "db"


@dataclass(frozen=True)
class StoreConfig:
    """
    Tunables for an on-disk store.

    Attributes:
        path: Store directory, created if absent.
        memtable_threshold: MemTable size in bytes that triggers a flush.
        fsync_interval_ms: Milliseconds between WAL fsyncs (0 = every write).
        compaction_threshold: SSTable count that triggers a full compaction.
        id_reservation: IDs reserved on disk per counter write.
    """

    # Default threshold for MemTable flush (4MB)
    DEFAULT_MEMTABLE_THRESHOLD = 4 * 1024 * 1024

    path: str = DEFAULT_PATH
    memtable_threshold: int = DEFAULT_MEMTABLE_THRESHOLD
    fsync_interval_ms: int = 0
    compaction_threshold: int = 4
    id_reservation: int = 1000

    def __post_init__(self) -> None:
        if not self.path or not self.path.strip():
            raise ValueError("path cannot be empty")
        if self.memtable_threshold <= 0:
            raise ValueError(
                f"memtable_threshold must be positive, got {self.memtable_threshold}"
            )
        if self.memtable_threshold > 1024 * 1024 * 1024:
            raise ValueError(
                f"memtable_threshold too large: {self.memtable_threshold} bytes. "
                f"Maximum 1GB to avoid OOM."
            )
        if self.fsync_interval_ms < 0:
            raise ValueError(f"fsync_interval_ms must be >= 0, got {self.fsync_interval_ms}")
        if self.fsync_interval_ms > 10000:
            raise ValueError(
                f"fsync_interval_ms cannot exceed 10000ms (10 seconds), got {self.fsync_interval_ms}"
            )
        if self.compaction_threshold < 2:
            raise ValueError(
                f"compaction_threshold must be >= 2, got {self.compaction_threshold}"
            )
        if self.id_reservation < 1:
            raise ValueError(f"id_reservation must be >= 1, got {self.id_reservation}")

    @classmethod
    def from_env(cls, **overrides) -> "StoreConfig":
        """
        Build a config from TODOSTORE_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        values = {}
        env_map = {
            "path": ("TODOSTORE_PATH", str),
            "memtable_threshold": ("TODOSTORE_MEMTABLE_THRESHOLD", int),
            "fsync_interval_ms": ("TODOSTORE_FSYNC_INTERVAL_MS", int),
            "compaction_threshold": ("TODOSTORE_COMPACTION_THRESHOLD", int),
            "id_reservation": ("TODOSTORE_ID_RESERVATION", int),
        }
        for field_name, (env_name, convert) in env_map.items():
            raw = os.environ.get(env_name)
            if raw is not None and raw.strip():
                try:
                    values[field_name] = convert(raw.strip())
                except ValueError as exc:
                    raise ValueError(f"Invalid {env_name}={raw!r}") from exc

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
