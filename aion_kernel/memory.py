"""
Working Memory
==============

Small scoped key/value store shared by daemons and read by the command
entry point. Values are text, numbers, flags or flat maps of those.

Usage:
    memory = WorkingMemory()
    memory.set(GLOBAL_SCOPE, "ai.policy", "maintain_load")

    cortex = memory.scoped(MemoryScope.organ(1))
    cortex.set("last_fault", 0.04)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

MemoryValue = Union[str, float, int, bool, Dict[str, Any]]


@dataclass(frozen=True)
class MemoryScope:
    """Logical scope of a memory entry."""
    kind: str                 # global, node, organ, task
    ref: Optional[int] = None

    @classmethod
    def node(cls, node_id: int) -> MemoryScope:
        return cls("node", node_id)

    @classmethod
    def organ(cls, organ_id: int) -> MemoryScope:
        return cls("organ", organ_id)

    @classmethod
    def task(cls, task_id: int) -> MemoryScope:
        return cls("task", task_id)

    def __str__(self) -> str:
        return self.kind if self.ref is None else f"{self.kind}:{self.ref}"


GLOBAL_SCOPE = MemoryScope("global")


def _check_value(value: Any) -> MemoryValue:
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, dict):
        return {str(k): _check_value(v) for k, v in value.items()}
    raise TypeError(f"unsupported memory value type: {type(value).__name__}")


class WorkingMemory:
    """
    Thread-safe scoped store.

    Written from the scheduler thread, read from snapshot/introspection
    threads, so access is guarded by an RLock.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._data: Dict[Tuple[MemoryScope, str], MemoryValue] = {}

    def set(self, scope: MemoryScope, key: str, value: Any) -> None:
        checked = _check_value(value)
        with self._lock:
            self._data[(scope, key)] = checked

    def get(self, scope: MemoryScope, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get((scope, key), default)

    def delete(self, scope: MemoryScope, key: str) -> bool:
        with self._lock:
            return self._data.pop((scope, key), None) is not None

    def scoped(self, scope: MemoryScope) -> ScopedMemory:
        return ScopedMemory(self, scope)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Entries grouped by scope name."""
        with self._lock:
            items = sorted(self._data.items(), key=lambda kv: (str(kv[0][0]), kv[0][1]))
        out: Dict[str, Dict[str, Any]] = {}
        for (scope, key), value in items:
            out.setdefault(str(scope), {})[key] = value
        return out

    def dump(self) -> str:
        """Text dump for debugging."""
        lines = ["Working memory snapshot:"]
        for scope, entries in self.to_dict().items():
            for key, value in entries.items():
                lines.append(f" - {scope} / {key} = {value!r}")
        return "\n".join(lines)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class ScopedMemory:
    """View of WorkingMemory with a fixed scope."""

    def __init__(self, memory: WorkingMemory, scope: MemoryScope):
        self._memory = memory
        self.scope = scope

    def set(self, key: str, value: Any) -> None:
        self._memory.set(self.scope, key, value)

    def get(self, key: str, default: Any = None) -> Any:
        return self._memory.get(self.scope, key, default)

    @property
    def memory(self) -> WorkingMemory:
        return self._memory
