"""
Kernel Runtime
==============

Process entry point for the AION kernel.

Runs the scheduler on a background thread, restores and persists organ
health, and reads line commands from stdin:

    status | health | alerts | awareness | topology | nodes | organs
    peripherals | capabilities | memory | metrics | help
    damage <organ> <amount> | heal <organ> <amount>
    sim <off|low|high> | logs <all|commands|silent>
    save [state|<path>] | load [state|<path>] | quit
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from aion_kernel import persistence
from aion_kernel.commands import CommandOp, CommandRequest
from aion_kernel.config import KernelConfig
from aion_kernel.errors import InvalidRequest, PersistenceError
from aion_kernel.health import compute_awareness
from aion_kernel.models.levels import LogFilter, SimLevel
from aion_kernel.models.pulse import Pulse, PulseKind
from aion_kernel.scheduler import Scheduler, build_scheduler

logger = logging.getLogger(__name__)

QUIT_WORDS = ("quit", "exit")

_ALIASES = {
    "sim": CommandOp.SET_SIM,
    "logs": CommandOp.SET_LOGS,
    "log": CommandOp.SET_LOGS,
    "caps": CommandOp.CAPABILITIES,
}


def restore_state(scheduler: Scheduler, path: Path) -> bool:
    """
    Autoload persisted health into a scheduler that is not running yet.

    A missing or unreadable file is logged and leaves the defaults in place.
    Returns True when state was applied.
    """
    try:
        values = persistence.load_file(path, scheduler.topology)
    except PersistenceError as e:
        logger.warning(f"Failed to restore state from {path}: {e}")
        return False
    scheduler.bus.set_awareness(compute_awareness(scheduler.topology))
    return values is not None


def parse_command_line(line: str) -> CommandRequest:
    """
    Turn one shell line into a CommandRequest.

    Raises InvalidRequest for unknown commands or bad arguments.
    """
    words = line.strip().split()
    if not words:
        raise InvalidRequest("empty command")
    head, args = words[0].lower(), words[1:]

    op = _ALIASES.get(head)
    if op is None:
        try:
            op = CommandOp(head)
        except ValueError:
            raise InvalidRequest(f"unknown command '{head}' (try 'help')") from None

    if op in (CommandOp.DAMAGE, CommandOp.HEAL):
        if len(args) != 2:
            raise InvalidRequest(f"usage: {op.value} <organ> <amount>")
        return CommandRequest.build(op, organ=args[0], amount=args[1])
    if op in (CommandOp.SET_SIM, CommandOp.SET_LOGS):
        if len(args) != 1:
            raise InvalidRequest(f"usage: {head} <level>")
        return CommandRequest.build(op, level=args[0])
    if op in (CommandOp.SAVE, CommandOp.LOAD):
        path = args[0] if args and args[0].lower() != "state" else None
        return CommandRequest.build(op, path=path)
    return CommandRequest.build(op)


class KernelRuntime:
    """
    Owns the scheduler thread, the shell reader and state persistence.
    """

    def __init__(
        self,
        config: KernelConfig,
        scheduler: Optional[Scheduler] = None,
        shell: bool = True,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        command_timeout: float = 5.0,
    ):
        self.config = config
        self.scheduler = scheduler or build_scheduler(config)
        self.shell = shell
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.command_timeout = command_timeout

        self._running = False
        self._shutdown_event = threading.Event()
        self._reader: Optional[threading.Thread] = None
        self._previous_handlers: Dict[int, Any] = {}

        self.scheduler.bus.subscribe(self._echo_pulse)

    def start(self) -> None:
        if self._running:
            logger.warning("Runtime already running")
            return

        logger.info("Starting AION kernel...")

        if threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGTERM, signal.SIGINT):
                self._previous_handlers[signum] = signal.signal(signum, self._signal_handler)

        if self.config.persistence.autoload:
            self._restore_state()

        self.scheduler.start()

        if self.shell:
            self._reader = threading.Thread(target=self._read_loop, daemon=True, name="AionShell")
            self._reader.start()

        self._running = True
        logger.info("AION kernel started")

    def stop(self) -> None:
        if not self._running:
            return

        logger.info("Stopping AION kernel...")
        self.scheduler.stop()
        for signum, handler in self._previous_handlers.items():
            if handler is not None:
                signal.signal(signum, handler)
        self._previous_handlers.clear()

        if self.config.persistence.autosave:
            self._persist_state()

        self._running = False
        logger.info("AION kernel stopped")

    def run(self) -> None:
        """Run until quit or a shutdown signal."""
        self.start()
        self._shutdown_event.wait()
        self.stop()

    def shutdown(self) -> None:
        self._shutdown_event.set()

    def _signal_handler(self, signum: int, frame: Any) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        self._shutdown_event.set()

    def _restore_state(self) -> None:
        # Runs before the scheduler thread starts, so the topology is not shared yet
        restore_state(self.scheduler, self.config.persistence.state_path)

    def _persist_state(self) -> None:
        path = self.config.persistence.state_path
        try:
            persistence.save_file(self.scheduler.topology, path)
        except PersistenceError as e:
            logger.error(f"Failed to persist state: {e}")

    # ─────────────────────────────────────────────────────────────────
    # Shell
    # ─────────────────────────────────────────────────────────────────

    def _write(self, text: str) -> None:
        self.stdout.write(text + "\n")
        self.stdout.flush()

    def _echo_pulse(self, pulse: Pulse) -> None:
        # Command outcomes are printed by execute_line
        if pulse.kind is not PulseKind.COMMAND:
            self._write(str(pulse))

    def execute_line(self, line: str) -> bool:
        """Run one shell line. Returns False when the shell should exit."""
        text = line.strip()
        if not text:
            return True
        if text.lower() in QUIT_WORDS:
            return False

        try:
            request = parse_command_line(text)
        except InvalidRequest as e:
            self._write(f"error: {e}")
            return True

        future = self.scheduler.submit(request)
        try:
            result = future.result(timeout=self.command_timeout)
        except FutureTimeout:
            self._write(f"error: {request.op.value} timed out")
            return True

        prefix = "" if result.ok else "error: "
        self._write(prefix + result.message)
        return True

    def _read_loop(self) -> None:
        self._write("AION kernel shell; type 'help' for commands, 'quit' to exit")
        for line in self.stdin:
            if self._shutdown_event.is_set() or not self.execute_line(line):
                break
        self._shutdown_event.set()


def main(argv: Optional[List[str]] = None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="AION organism kernel")
    parser.add_argument("--config", type=Path, help="YAML config file")
    parser.add_argument("--state-file", type=Path, help="Persisted state path")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default from config)",
    )
    parser.add_argument("--sim-level", choices=[s.value for s in SimLevel], help="Initial simulation level")
    parser.add_argument("--log-filter", choices=[f.value for f in LogFilter], help="Pulse verbosity")
    parser.add_argument("--telemetry", choices=["sim", "real"], help="Telemetry provider")
    parser.add_argument("--ticks", type=int, help="Run N ticks, print the snapshot and exit")
    parser.add_argument("--no-shell", action="store_true", help="Do not read commands from stdin")

    args = parser.parse_args(argv)

    config = KernelConfig.from_yaml(args.config) if args.config else KernelConfig.from_env()
    if args.state_file:
        config.persistence.state_path = args.state_file
    if args.sim_level:
        config.sim_level = SimLevel(args.sim_level)
    if args.log_filter:
        config.log_filter = LogFilter(args.log_filter)
    if args.telemetry:
        config.telemetry = args.telemetry
    if args.log_level:
        config.logging.level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format=config.logging.format,
        filename=str(config.logging.file) if config.logging.file else None,
    )

    if args.ticks is not None:
        scheduler = build_scheduler(config)
        if config.persistence.autoload:
            restore_state(scheduler, config.persistence.state_path)
        scheduler.tick_interval_sec = 0.0
        scheduler.run(max_ticks=args.ticks)
        print(scheduler.latest_snapshot().model_dump_json(indent=2))
        return

    runtime = KernelRuntime(config, shell=not args.no_shell)
    runtime.run()


if __name__ == "__main__":
    main()
