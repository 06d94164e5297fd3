"""
Bus
===

Shared mailbox plus a few scalar fields.

Pulses published during tick t are queued and only become visible when the
scheduler calls advance() at the start of tick t+1. Delivery is FIFO in
publish order. The bus performs no computation of its own.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, List, Optional

from aion_kernel.models.alerts import AlertTier, tier_for
from aion_kernel.models.levels import LogFilter, Policy, SimLevel
from aion_kernel.models.pulse import Pulse, PulseKind

logger = logging.getLogger(__name__)

# Pulses surfaced under LogFilter.COMMANDS.
_COMMAND_KINDS = frozenset({PulseKind.COMMAND, PulseKind.ALERT, PulseKind.WARNING})


class Bus:
    """Event queue and shared state for one organism."""

    def __init__(
        self,
        log_filter: LogFilter = LogFilter.COMMANDS,
        sim_level: SimLevel = SimLevel.OFF,
        history_size: int = 256,
    ):
        self._next_id = 0
        self._tick = 0
        self._pending: List[Pulse] = []
        self._inbox: List[Pulse] = []
        self._history: Deque[Pulse] = deque(maxlen=history_size)
        self._subscribers: List[Callable[[Pulse], None]] = []

        self._log_filter = log_filter
        self._sim_level = sim_level
        self._awareness = 1.0
        self.awareness_tier: AlertTier = tier_for(self._awareness)
        self._policy = Policy.PUSH_CAPACITY

    # ─────────────────────────────────────────────────────────────────
    # Pulses
    # ─────────────────────────────────────────────────────────────────

    def publish(self, kind: PulseKind, source: str, message: str = "", **payload: Any) -> Pulse:
        """Queue a pulse for delivery on the next tick."""
        self._next_id += 1
        pulse = Pulse(
            id=self._next_id,
            kind=kind,
            source=source,
            tick=self._tick,
            message=message,
            payload=payload,
        )
        self._pending.append(pulse)
        return pulse

    def advance(self, tick: int) -> List[Pulse]:
        """Deliver last tick's pulses and start collecting for `tick`."""
        self._tick = tick
        self._inbox = self._pending
        self._pending = []

        for pulse in self._inbox:
            self._history.append(pulse)
            if self.surfaces(pulse):
                self._notify(pulse)

        return list(self._inbox)

    def inbox(self) -> List[Pulse]:
        """Pulses visible during the current tick."""
        return list(self._inbox)

    def pending(self) -> List[Pulse]:
        """Pulses published this tick, not yet delivered."""
        return list(self._pending)

    def history(self, limit: Optional[int] = None) -> List[Pulse]:
        items = list(self._history)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def surfaces(self, pulse: Pulse) -> bool:
        """Whether the verbosity filter lets a pulse reach observers."""
        if self._log_filter is LogFilter.ALL:
            return True
        if self._log_filter is LogFilter.COMMANDS:
            return pulse.kind in _COMMAND_KINDS
        return False

    def subscribe(self, callback: Callable[[Pulse], None]) -> None:
        """Register an external observer of surfaced pulses."""
        self._subscribers.append(callback)

    def _notify(self, pulse: Pulse) -> None:
        for cb in self._subscribers:
            try:
                cb(pulse)
            except Exception as e:
                logger.exception(f"Pulse subscriber error: {e}")

    @property
    def tick(self) -> int:
        return self._tick

    # ─────────────────────────────────────────────────────────────────
    # Shared state
    # ─────────────────────────────────────────────────────────────────

    def current_awareness(self) -> float:
        return self._awareness

    def set_awareness(self, value: float) -> None:
        self._awareness = max(0.0, min(1.0, float(value)))

    def sim_level(self) -> SimLevel:
        return self._sim_level

    def set_sim_level(self, level: SimLevel) -> None:
        if level is not self._sim_level:
            logger.info(f"Simulation level {self._sim_level.value} -> {level.value}")
        self._sim_level = level

    def log_filter(self) -> LogFilter:
        return self._log_filter

    def set_log_filter(self, log_filter: LogFilter) -> None:
        self._log_filter = log_filter

    def policy(self) -> Policy:
        return self._policy

    def set_policy(self, policy: Policy) -> None:
        self._policy = policy
