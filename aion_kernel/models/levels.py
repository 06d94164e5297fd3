"""Scalar settings carried on the bus."""

from __future__ import annotations

from enum import Enum


class SimLevel(str, Enum):
    """Synthetic event intensity."""
    OFF = "off"
    LOW = "low"
    HIGH = "high"


class LogFilter(str, Enum):
    """Which pulses are surfaced to external observers."""
    ALL = "all"
    COMMANDS = "commands"   # command, alert and warning pulses
    SILENT = "silent"

    @classmethod
    def parse(cls, name: str) -> LogFilter:
        key = name.strip().lower()
        if key in ("off", "none"):
            return cls.SILENT
        if key in ("command", "commands_only"):
            return cls.COMMANDS
        return cls(key)


class Policy(str, Enum):
    """Policy labels chosen by the AI cortex."""
    PUSH_CAPACITY = "push_capacity"
    MAINTAIN_LOAD = "maintain_load"
    REDUCE_LOAD = "reduce_load"
    PROTECT_CORE = "protect_core"
