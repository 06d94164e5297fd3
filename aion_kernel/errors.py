"""
Kernel Errors
=============

Typed failures raised by the AION kernel core.

    AionError
    ├── TelemetryUnavailable   - a telemetry family could not be read
    ├── InvalidRequest         - malformed command request
    └── PersistenceError
        ├── ParseError             - malformed persisted state
        ├── PersistenceWriteError  - state could not be written
        └── PersistenceReadError   - state could not be read
"""

from __future__ import annotations

from typing import Optional


class AionError(Exception):
    """Base class for all kernel errors."""


class TelemetryUnavailable(AionError):
    """Telemetry for one organ family could not be read."""

    def __init__(self, organ: str, reason: str = ""):
        self.organ = organ
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"telemetry unavailable for {organ}{detail}")


class InvalidRequest(AionError):
    """A command request was rejected before touching any state."""


class PersistenceError(AionError):
    """Base class for persistence failures."""


class ParseError(PersistenceError):
    """Persisted state contained a malformed record."""

    def __init__(self, message: str, line_no: Optional[int] = None):
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


class PersistenceWriteError(PersistenceError):
    """Persisted state could not be written."""


class PersistenceReadError(PersistenceError):
    """Persisted state exists but could not be read."""
