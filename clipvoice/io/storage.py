"""Durable key-value storage abstractions.

Responsibilities:
- Define the `DurableKeyValueStore` contract used by crash-recovery snapshots.
- Provide filesystem-backed and in-memory implementations.
- Redirect payloads above a per-item ceiling to a larger-capacity store,
  leaving an explicit per-key marker in the primary store.
"""

from __future__ import annotations

import copy
import json
import os
import re
from pathlib import Path
from typing import Any, Protocol

OVERFLOW_MARKER_KEY = "__overflow__"
DEFAULT_MAX_ITEM_BYTES = 4 * 1024 * 1024

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class DurableKeyValueStore(Protocol):
    """Protocol for JSON-value stores that survive process restarts."""

    def get(self, key: str) -> Any | None:
        """Return the stored value for `key`, or `None` when missing."""

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under `key`."""

    def remove(self, key: str) -> None:
        """Delete `key` if present."""


class MemoryKeyValueStore:
    """Process-local store used by tests and ephemeral runs."""

    def __init__(self) -> None:
        """Initialize an empty mapping."""

        self._values: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        """Return a deep copy of the stored value."""

        if key not in self._values:
            return None
        return copy.deepcopy(self._values[key])

    def set(self, key: str, value: Any) -> None:
        """Store a deep copy after verifying JSON serializability."""

        json.dumps(value)
        self._values[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        """Delete `key` if present."""

        self._values.pop(key, None)

    def keys(self) -> list[str]:
        """Return stored keys in sorted order."""

        return sorted(self._values)


class JsonFileKeyValueStore:
    """Filesystem store writing one JSON document per key under a root directory."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with a root directory."""

        self.root = root

    def _path_for(self, key: str) -> Path:
        """Map a key to a filesystem-safe JSON file path."""

        safe_key = _UNSAFE_KEY_CHARS.sub("_", key.strip()) or "_"
        return self.root / f"{safe_key}.json"

    def get(self, key: str) -> Any | None:
        """Load and decode the stored JSON value for `key`."""

        path = self._path_for(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def set(self, key: str, value: Any) -> None:
        """Write the value atomically so a crash never leaves a torn document."""

        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        temporary_path = path.with_suffix(".json.tmp")
        temporary_path.write_text(
            json.dumps(value, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        os.replace(temporary_path, path)

    def remove(self, key: str) -> None:
        """Delete the JSON document for `key` if present."""

        self._path_for(key).unlink(missing_ok=True)


class OverflowKeyValueStore:
    """Store that routes oversized items to a larger-capacity backing store.

    Values whose serialized size exceeds `max_item_bytes` are written to
    `overflow`, and `primary` keeps `{"__overflow__": true}` for that key so
    reads can be redirected transparently.
    """

    def __init__(
        self,
        primary: DurableKeyValueStore,
        overflow: DurableKeyValueStore,
        max_item_bytes: int = DEFAULT_MAX_ITEM_BYTES,
    ) -> None:
        """Initialize primary/overflow stores and the per-item ceiling."""

        if max_item_bytes <= 0:
            raise ValueError("`max_item_bytes` must be a positive integer.")
        self.primary = primary
        self.overflow = overflow
        self.max_item_bytes = max_item_bytes

    @staticmethod
    def _serialized_size(value: Any) -> int:
        """Return the UTF-8 size of the value's JSON encoding."""

        return len(json.dumps(value, ensure_ascii=False).encode("utf-8"))

    @staticmethod
    def is_overflow_marker(value: Any) -> bool:
        """Return whether a primary-store value is an overflow marker."""

        return isinstance(value, dict) and value.get(OVERFLOW_MARKER_KEY) is True

    def get(self, key: str) -> Any | None:
        """Return the value, following an overflow marker when present."""

        value = self.primary.get(key)
        if self.is_overflow_marker(value):
            return self.overflow.get(key)
        return value

    def set(self, key: str, value: Any) -> None:
        """Store small values in primary and large values in overflow."""

        size = self._serialized_size(value)
        if size > self.max_item_bytes:
            self.overflow.set(key, value)
            self.primary.set(key, {OVERFLOW_MARKER_KEY: True, "size": size})
            return

        previous = self.primary.get(key)
        self.primary.set(key, value)
        if self.is_overflow_marker(previous):
            self.overflow.remove(key)

    def remove(self, key: str) -> None:
        """Remove `key` and any overflowed payload."""

        previous = self.primary.get(key)
        self.primary.remove(key)
        if self.is_overflow_marker(previous):
            self.overflow.remove(key)
