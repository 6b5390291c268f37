"""Keyed JSON state store shared by the pipeline components."""

from __future__ import annotations

import copy
import json
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..logging import get_logger

_STATE_VERSION = 1

NAMESPACES = ("profiles", "issues", "changes", "content", "budget")


class StateStore:
    """Namespaced key/value document persisted as one JSON file.

    Every mutation runs under a single lock and is written through with a
    temp-file replace, so ``update`` is atomic per record for all threads of
    the process. ``path=None`` keeps state in memory only.
    """

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, Any]] = {name: {} for name in NAMESPACES}
        self.logger = get_logger("stores.state")
        if self._path is not None:
            self._load(self._path)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def get(self, namespace: str, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._namespace(namespace).get(key, default)
            return copy.deepcopy(value)

    def put(self, namespace: str, key: str, value: Any) -> None:
        with self._lock:
            self._namespace(namespace)[key] = copy.deepcopy(value)
            self._persist()

    def update(self, namespace: str, key: str, func: Callable[[Any], Any]) -> Any:
        """Apply ``func`` to the current value (None when absent) and store the result."""
        with self._lock:
            bucket = self._namespace(namespace)
            current = copy.deepcopy(bucket.get(key))
            updated = func(current)
            bucket[key] = copy.deepcopy(updated)
            self._persist()
            return copy.deepcopy(updated)

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            if self._namespace(namespace).pop(key, None) is not None:
                self._persist()

    def items(self, namespace: str) -> List[Tuple[str, Any]]:
        with self._lock:
            return [(key, copy.deepcopy(value)) for key, value in self._namespace(namespace).items()]

    # ------------------------------------------------------------------
    # Internal helpers

    def _namespace(self, namespace: str) -> Dict[str, Any]:
        if namespace not in self._data:
            raise KeyError(f"Unknown state namespace: {namespace}")
        return self._data[namespace]

    def _persist(self) -> None:
        if self._path is None:
            return
        payload = {"version": _STATE_VERSION, "namespaces": self._data}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self._path)

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.warning("Ignoring unreadable state file %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _STATE_VERSION:
            self.logger.warning("Ignoring state file %s with unsupported version", path)
            return
        namespaces = data.get("namespaces")
        if not isinstance(namespaces, dict):
            return
        for name in NAMESPACES:
            bucket = namespaces.get(name)
            if isinstance(bucket, dict):
                self._data[name] = bucket


__all__ = ["NAMESPACES", "StateStore"]
