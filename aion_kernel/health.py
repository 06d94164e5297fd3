"""
Health Engine
=============

Converts raw telemetry into per-organ health, derives the awareness index
and detects alert tier transitions.

Health moves gradually: the summed penalty of all adverse signals in one
reading is capped at `max_step`, and recovery (applied only when no signal
is adverse) is capped the same way. Transient telemetry spikes therefore
cannot flip an organ between tiers in a single tick.

Alerts are edge-triggered. Each organ keeps the tier last observed by
evaluate_alerts(); a new alert is produced only when the current tier
differs from it. Awareness is tracked the same way on the bus.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from aion_kernel.bus import Bus
from aion_kernel.config import HealthLimits
from aion_kernel.errors import TelemetryUnavailable
from aion_kernel.models.alerts import AWARENESS_SUBJECT, Alert, tier_for
from aion_kernel.models.topology import DeltaResult, OrganKind, Topology
from aion_kernel.telemetry.base import CpuGpuMetrics, IoMetrics, MemoryMetrics

logger = logging.getLogger(__name__)

Metrics = Union[CpuGpuMetrics, MemoryMetrics, IoMetrics]

# Fixed awareness weights; they must sum to exactly 1.0.
AWARENESS_WEIGHTS: Dict[OrganKind, float] = {
    OrganKind.CORTEX: 0.4,
    OrganKind.MEMORY: 0.3,
    OrganKind.IO_BRIDGE: 0.3,
}


@dataclass(frozen=True)
class SignalRule:
    """
    One adverse signal.

    severity = clip((value - threshold) / span, 0, 1)
    penalty  = severity * max_penalty
    """
    name: str
    extract: Callable[[Metrics], float]
    threshold: float
    span: float
    max_penalty: float

    def severity(self, value: float) -> float:
        excess = (value - self.threshold) / self.span
        return float(np.clip(excess, 0.0, 1.0))


SIGNAL_RULES: Dict[OrganKind, Tuple[SignalRule, ...]] = {
    OrganKind.CORTEX: (
        SignalRule("cpu_temp_c", lambda m: m.cpu_temp_c, 60.0, 40.0, 0.03),
        SignalRule("cpu_load", lambda m: m.cpu_load, 0.90, 0.10, 0.01),
        SignalRule("throttling_events", lambda m: m.throttling_events, 0.0, 5.0, 0.02),
        SignalRule("gpu_mem_util", lambda m: m.gpu_mem_util, 0.90, 0.10, 0.01),
    ),
    OrganKind.MEMORY: (
        SignalRule("ram_used_ratio", lambda m: m.ram_used_ratio, 0.75, 0.25, 0.03),
        SignalRule("swap_used_ratio", lambda m: m.swap_used_ratio, 0.25, 0.75, 0.02),
        SignalRule("major_page_faults", lambda m: m.major_page_faults, 5.0, 20.0, 0.01),
        SignalRule("disk_latency_ms", lambda m: m.disk_latency_ms, 20.0, 80.0, 0.01),
    ),
    OrganKind.IO_BRIDGE: (
        SignalRule("net_packet_loss", lambda m: m.net_packet_loss, 0.0, 0.10, 0.03),
        SignalRule("net_latency_ms", lambda m: m.net_latency_ms, 100.0, 400.0, 0.01),
        SignalRule("io_queue_depth", lambda m: m.io_queue_depth, 0.80, 0.20, 0.01),
        SignalRule("io_error_rate", lambda m: m.io_error_rate, 0.0, 0.05, 0.02),
    ),
}

_EXPECTED_METRICS = {
    OrganKind.CORTEX: CpuGpuMetrics,
    OrganKind.MEMORY: MemoryMetrics,
    OrganKind.IO_BRIDGE: IoMetrics,
}


def compute_awareness(topology: Topology) -> float:
    """0.4 * cortex + 0.3 * memory + 0.3 * io_bridge."""
    score = sum(
        weight * topology.get_organ(kind).health
        for kind, weight in AWARENESS_WEIGHTS.items()
    )
    return max(0.0, min(1.0, score))


class HealthEngine:
    """Computes health and applies every organ health mutation."""

    def __init__(self, limits: Optional[HealthLimits] = None):
        self.limits = limits or HealthLimits()

    def _max_penalty(self, rule: SignalRule) -> float:
        return self.limits.max_penalties.get(rule.name, rule.max_penalty)

    def penalties(self, kind: OrganKind, metrics: Metrics) -> Dict[str, float]:
        """
        Penalty per adverse signal present in `metrics` (zero entries omitted).

        Raises TelemetryUnavailable if any signal is NaN or infinite.
        """
        expected = _EXPECTED_METRICS[kind]
        if not isinstance(metrics, expected):
            raise TypeError(f"{kind.value} expects {expected.__name__}, got {type(metrics).__name__}")
        out: Dict[str, float] = {}
        for rule in SIGNAL_RULES[kind]:
            value = float(rule.extract(metrics))
            if not math.isfinite(value):
                raise TelemetryUnavailable(kind.value, f"non-finite {rule.name} reading")
            severity = rule.severity(value)
            if severity > 0.0:
                out[rule.name] = severity * max(0.0, self._max_penalty(rule))
        return out

    def compute_health(self, kind: OrganKind, metrics: Metrics, current: float) -> float:
        """Next health value for an organ, rate-limited to one max_step."""
        penalties = self.penalties(kind, metrics)
        if penalties:
            change = -min(sum(penalties.values()), self.limits.max_step)
        else:
            change = min(self.limits.recovery_step, self.limits.max_step)
        return float(np.clip(current + change, 0.0, 1.0))

    # ─────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────

    def apply_metrics(self, topology: Topology, kind: OrganKind, metrics: Metrics) -> DeltaResult:
        """Feed one telemetry reading into an organ."""
        organ = topology.get_organ(kind)
        target = self.compute_health(kind, metrics, organ.health)
        return topology.set_health(kind, target)

    def apply_damage(self, topology: Topology, kind: OrganKind, amount: float) -> DeltaResult:
        """Lower an organ's health by |amount|."""
        return topology.apply_delta(kind, -abs(float(amount)))

    def apply_recovery(
        self,
        topology: Topology,
        amount: float,
        kinds: Optional[Iterable[OrganKind]] = None,
    ) -> List[DeltaResult]:
        """Raise health of the given organs (default all) by |amount|."""
        targets = list(kinds) if kinds is not None else [o.kind for o in topology.organs()]
        return [topology.apply_delta(kind, abs(float(amount))) for kind in targets]

    # ─────────────────────────────────────────────────────────────────
    # Awareness and alerts
    # ─────────────────────────────────────────────────────────────────

    def compute_awareness(self, topology: Topology) -> float:
        return compute_awareness(topology)

    def evaluate_alerts(self, topology: Topology, bus: Bus) -> List[Alert]:
        """Tier transitions since the last evaluation, organs first."""
        alerts: List[Alert] = []

        for organ in topology.organs():
            tier = organ.tier
            if tier != organ.observed_tier:
                alerts.append(Alert(organ.kind.value, organ.observed_tier, tier, organ.health))
                organ.observed_tier = tier

        awareness = bus.current_awareness()
        tier = tier_for(awareness)
        if tier != bus.awareness_tier:
            alerts.append(Alert(AWARENESS_SUBJECT, bus.awareness_tier, tier, awareness))
            bus.awareness_tier = tier

        for alert in alerts:
            if alert.escalating:
                logger.warning(
                    f"{alert.subject} entered {alert.label} "
                    f"({alert.value:.2f}, was {alert.previous.name.lower()})"
                )
            else:
                logger.info(f"{alert.subject} recovered to {alert.label} ({alert.value:.2f})")

        return alerts
