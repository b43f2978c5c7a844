"""
Persisted Flag Store.

Durable per-user boolean flags (tour completed, remember-me) that survive
reloads and restarts. All reads and writes are synchronous so a read right
after a write observes the new value.

Storage failures never propagate: a failed read is treated as "flag absent"
(the tour is shown again), a failed write is logged and dropped.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

COMPLETION_FLAG_PREFIX = "tutorial-completed-"
REMEMBER_ME_PREFIX = "visamate-remember-me-"


def completion_flag_key(identity_id: str) -> str:
    """Flag key recording that `identity_id` finished or skipped the tour."""
    return f"{COMPLETION_FLAG_PREFIX}{identity_id}"


def remember_me_key(identity_id: str) -> str:
    """Flag key holding the remember-me choice of `identity_id`."""
    return f"{REMEMBER_ME_PREFIX}{identity_id}"


class FlagStore(ABC):
    """
    Boolean key/value store with fail-open semantics.

    Subclasses implement the raw _read/_write/_delete operations and may raise
    freely; the public methods absorb and log those failures.
    """

    def get(self, key: str) -> bool | None:
        try:
            return self._read(key)
        except Exception as e:
            logger.warning(f"Flag read failed for '{key}', treating as absent: {e}")
            return None

    def set(self, key: str, value: bool = True) -> None:
        try:
            self._write(key, bool(value))
        except Exception as e:
            logger.error(f"Flag write failed for '{key}': {e}")

    def remove(self, key: str) -> None:
        try:
            self._delete(key)
        except Exception as e:
            logger.error(f"Flag remove failed for '{key}': {e}")

    def is_set(self, key: str) -> bool:
        return self.get(key) is True

    @abstractmethod
    def _read(self, key: str) -> bool | None: ...

    @abstractmethod
    def _write(self, key: str, value: bool) -> None: ...

    @abstractmethod
    def _delete(self, key: str) -> None: ...


class MemoryFlagStore(FlagStore):
    """Process-local flags. Used by tests and the `memory` backend."""

    def __init__(self, initial: dict[str, bool] | None = None) -> None:
        self._flags: dict[str, bool] = dict(initial or {})

    def _read(self, key: str) -> bool | None:
        return self._flags.get(key)

    def _write(self, key: str, value: bool) -> None:
        self._flags[key] = value

    def _delete(self, key: str) -> None:
        self._flags.pop(key, None)


class JsonFileFlagStore(FlagStore):
    """
    Flags kept in a single JSON object on disk.

    The whole file is re-read on every get so several processes sharing the
    file see each other's writes.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _dump(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    def _read(self, key: str) -> bool | None:
        value = self._load().get(key)
        if value is None:
            return None
        # Browser storage keeps strings ("true"); accept both shapes
        if isinstance(value, str):
            return value.lower() == "true"
        return bool(value)

    def _write(self, key: str, value: bool) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def _delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class SupabaseFlagStore(FlagStore):
    """
    Flags in the `user_flags` table (columns: key text primary key, value bool).

    Uses the synchronous Supabase client, so writes are visible to the next read.
    """

    def __init__(self, client: Any, table: str = "user_flags") -> None:
        self.client = client
        self.table = table

    def _read(self, key: str) -> bool | None:
        result = self.client.table(self.table).select("value").eq("key", key).limit(1).execute()
        if not result.data:
            return None
        return bool(result.data[0].get("value"))

    def _write(self, key: str, value: bool) -> None:
        self.client.table(self.table).upsert({"key": key, "value": value}).execute()

    def _delete(self, key: str) -> None:
        self.client.table(self.table).delete().eq("key", key).execute()
