"""
Host Telemetry
==============

Telemetry backed by the host OS through psutil.

CPU load, temperature, RAM, swap, disk latency and network loss/error
rates come from psutil counters; rates are computed from the delta since
the previous read. GPU load is not collected here and reads as zero.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import psutil

from aion_kernel.errors import TelemetryUnavailable
from aion_kernel.telemetry.base import (
    CpuGpuMetrics,
    IoMetrics,
    MemoryMetrics,
    TelemetryPort,
)

logger = logging.getLogger(__name__)

# Sensor names tried in order when looking for the CPU package temperature.
CPU_SENSORS = ("coretemp", "k10temp", "cpu_thermal", "acpitz")


def _ratio(num: float, den: float) -> float:
    if den <= 0:
        return 0.0
    return max(0.0, min(1.0, num / den))


class PsutilTelemetry(TelemetryPort):
    """Real-metrics adapter."""

    name = "real"

    def __init__(self, fallback_temp_c: float = 50.0):
        self.fallback_temp_c = fallback_temp_c
        self._last_net: Optional[Tuple[int, int, int, int, int, int]] = None
        self._last_disk: Optional[Tuple[int, int]] = None
        # Prime cpu_percent so the first non-blocking read is meaningful
        psutil.cpu_percent(interval=None)

    def _cpu_temp(self) -> float:
        sensors = getattr(psutil, "sensors_temperatures", None)
        if sensors is None:
            return self.fallback_temp_c
        temps = sensors() or {}
        for name in CPU_SENSORS:
            if temps.get(name):
                return float(temps[name][0].current)
        return self.fallback_temp_c

    def read_cpu_gpu_metrics(self) -> CpuGpuMetrics:
        try:
            load = psutil.cpu_percent(interval=None) / 100.0
            temp = self._cpu_temp()
        except (psutil.Error, OSError) as e:
            raise TelemetryUnavailable("cortex", str(e)) from e
        return CpuGpuMetrics(
            cpu_load=max(0.0, min(1.0, load)),
            cpu_temp_c=temp,
            throttling_events=0,
            gpu_load=0.0,
            gpu_mem_util=0.0,
        )

    def read_memory_metrics(self) -> MemoryMetrics:
        try:
            mem = psutil.virtual_memory()
            swap = psutil.swap_memory()
            disk = psutil.disk_io_counters()
        except (psutil.Error, OSError) as e:
            raise TelemetryUnavailable("memory", str(e)) from e

        latency_ms = 0.0
        if disk is not None:
            ops = disk.read_count + disk.write_count
            busy_ms = disk.read_time + disk.write_time
            if self._last_disk is not None:
                d_ops = ops - self._last_disk[0]
                d_busy = busy_ms - self._last_disk[1]
                latency_ms = d_busy / d_ops if d_ops > 0 else 0.0
            self._last_disk = (ops, busy_ms)

        return MemoryMetrics(
            ram_used_ratio=_ratio(mem.total - mem.available, mem.total),
            swap_used_ratio=_ratio(swap.used, swap.total),
            major_page_faults=0.0,
            disk_latency_ms=max(0.0, latency_ms),
        )

    def read_io_network_metrics(self) -> IoMetrics:
        try:
            net = psutil.net_io_counters()
        except (psutil.Error, OSError) as e:
            raise TelemetryUnavailable("io_bridge", str(e)) from e
        if net is None:
            raise TelemetryUnavailable("io_bridge", "no network counters")

        current = (
            net.packets_sent, net.packets_recv,
            net.dropin, net.dropout,
            net.errin, net.errout,
        )
        loss = errors = 0.0
        if self._last_net is not None:
            d = [c - p for c, p in zip(current, self._last_net)]
            packets = d[0] + d[1]
            loss = _ratio(d[2] + d[3], packets)
            errors = _ratio(d[4] + d[5], packets)
        self._last_net = current

        return IoMetrics(
            net_packet_loss=loss,
            net_latency_ms=5.0,
            io_queue_depth=0.1,
            io_error_rate=errors,
        )
