"""
State Persistence
=================

Saves and restores organ health as newline-separated text records:

    version=1
    cortex=0.92
    memory=1
    io_bridge=0.7

Loading is all-or-nothing: every record is parsed and validated before any
organ is touched, so a malformed file raises ParseError and leaves the
topology exactly as it was. Organs without a record keep their health.
Blank lines and lines starting with '#' are ignored.
"""

from __future__ import annotations

import logging
import math
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np

from aion_kernel.errors import ParseError, PersistenceReadError, PersistenceWriteError
from aion_kernel.models.topology import OrganKind, Topology, clamp01

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
VERSION_KEY = "version"

# Plain decimals only; float() would also take "0_5", "nan" or "1e-3"
_DECIMAL = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def _format_health(value: float) -> str:
    # Shortest positional decimal that parses back to the same float
    return np.format_float_positional(value, trim="-")


def save(topology: Topology) -> bytes:
    """Serialize organ health in stable organ order."""
    lines = [f"{VERSION_KEY}={FORMAT_VERSION}"]
    lines.extend(f"{o.kind.value}={_format_health(o.health)}" for o in topology.organs())
    return ("\n".join(lines) + "\n").encode("utf-8")


def parse(data: Union[bytes, str]) -> Dict[OrganKind, float]:
    """Parse persisted records without touching any topology."""
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"state is not valid UTF-8: {e}") from e
    else:
        text = data

    values: Dict[OrganKind, float] = {}
    seen_version = False

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            raise ParseError(f"missing '=' in record {line!r}", line_no)
        key, value = key.strip(), value.strip()

        if key == VERSION_KEY:
            if seen_version:
                raise ParseError("duplicate version record", line_no)
            if value != str(FORMAT_VERSION):
                raise ParseError(f"unsupported state version {value!r}", line_no)
            seen_version = True
            continue

        try:
            kind = OrganKind(key)
        except ValueError:
            raise ParseError(f"unknown organ {key!r}", line_no) from None
        if kind in values:
            raise ParseError(f"duplicate record for {kind.value}", line_no)
        if not _DECIMAL.fullmatch(value):
            raise ParseError(f"invalid health value {value!r} for {kind.value}", line_no)
        health = float(value)
        if not math.isfinite(health):
            raise ParseError(f"non-finite health value for {kind.value}", line_no)
        values[kind] = clamp01(health)

    return values


def load(data: Union[bytes, str], topology: Topology) -> Dict[OrganKind, float]:
    """
    Apply persisted health to a topology.

    Returns the values that were applied. Raises ParseError (topology
    unchanged) on any malformed record.
    """
    values = parse(data)
    missing = [k.value for k in values if not topology.has_organ(k)]
    if missing:
        raise ParseError(f"organ(s) not present in topology: {', '.join(missing)}")
    for kind, health in values.items():
        topology.set_health(kind, health)
    return values


def save_file(topology: Topology, path: Union[str, Path]) -> Path:
    """Write state atomically (temp file in the same directory, then rename)."""
    path = Path(path)
    payload = save(topology)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=str(path.parent),
            delete=False,
            suffix=".tmp",
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(payload)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PersistenceWriteError(f"could not write state to {path}: {e}") from e
    logger.info(f"Saved organism state to {path}")
    return path


def load_file(path: Union[str, Path], topology: Topology) -> Optional[Dict[OrganKind, float]]:
    """Load state from `path`. A missing file returns None and changes nothing."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        logger.info(f"No saved state at {path}")
        return None
    except OSError as e:
        raise PersistenceReadError(f"could not read state from {path}: {e}") from e
    values = load(data, topology)
    logger.info(f"Loaded organism state from {path} ({len(values)} organ(s))")
    return values
