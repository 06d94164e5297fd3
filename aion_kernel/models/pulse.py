"""
Pulses
======

Immutable events flowing on the bus.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping


class PulseKind(str, Enum):
    """Categories of pulses."""
    HEARTBEAT = "heartbeat"
    STATUS = "status"
    COMMAND = "command"
    AI = "ai"
    SIMULATION = "simulation"
    ALERT = "alert"
    WARNING = "warning"


@dataclass(frozen=True)
class Pulse:
    """A single published event. Payload is a read-only mapping."""
    id: int
    kind: PulseKind
    source: str
    tick: int
    message: str = ""
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "source": self.source,
            "tick": self.tick,
            "message": self.message,
            "payload": dict(self.payload),
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return f"[{self.kind.value}] pulse#{self.id} from {self.source} => {self.message}"
