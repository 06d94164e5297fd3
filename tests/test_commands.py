"""
Tests for the command entry point.
"""

import pytest

from aion_kernel.commands import CommandHandler, CommandOp, CommandRequest
from aion_kernel.errors import InvalidRequest
from aion_kernel.memory import GLOBAL_SCOPE
from aion_kernel.models.capability import CapabilityRegistry
from aion_kernel.models.levels import LogFilter, SimLevel
from aion_kernel.models.pulse import PulseKind
from aion_kernel.models.topology import OrganKind
from aion_kernel.runtime import parse_command_line
from aion_kernel.telemetry.base import TelemetrySnapshot


class TestCommandRequest:
    """Test request validation."""

    def test_organ_alias_and_amount_coercion(self):
        request = CommandRequest.build("damage", organ="io", amount="0.1")
        assert request.op is CommandOp.DAMAGE
        assert request.organ is OrganKind.IO_BRIDGE
        assert request.amount == pytest.approx(0.1)

    def test_unknown_op(self):
        with pytest.raises(InvalidRequest):
            CommandRequest.build("fly")

    def test_unknown_organ(self):
        with pytest.raises(InvalidRequest, match="unknown organ"):
            CommandRequest.build("heal", organ="liver", amount=0.1)

    def test_missing_amount(self):
        with pytest.raises(InvalidRequest, match="usage"):
            CommandRequest.build("damage", organ="cortex")

    def test_non_finite_amount(self):
        with pytest.raises(InvalidRequest):
            CommandRequest.build("damage", organ="cortex", amount=float("nan"))

    def test_malformed_amount(self):
        with pytest.raises(InvalidRequest):
            CommandRequest.build("damage", organ="cortex", amount="lots")

    def test_level_required(self):
        with pytest.raises(InvalidRequest):
            CommandRequest.build("set_sim")


class TestShellParsing:
    """Test the line-oriented command syntax."""

    def test_damage_line(self):
        request = parse_command_line("damage memory 0.2")
        assert (request.op, request.organ, request.amount) == (CommandOp.DAMAGE, OrganKind.MEMORY, 0.2)

    def test_sim_and_logs_aliases(self):
        assert parse_command_line("sim high").op is CommandOp.SET_SIM
        assert parse_command_line("logs off").level == "off"

    def test_save_state(self):
        assert parse_command_line("save state").path is None
        assert parse_command_line("load /tmp/x.txt").path == "/tmp/x.txt"

    def test_plain_query(self):
        assert parse_command_line("STATUS").op is CommandOp.STATUS

    @pytest.mark.parametrize("line", ["", "explode", "damage cortex", "sim"])
    def test_invalid(self, line):
        with pytest.raises(InvalidRequest):
            parse_command_line(line)


class TestQueries:
    """Test read-only commands."""

    def test_help_lists_ops(self, handler):
        result = handler.execute(CommandRequest(op=CommandOp.HELP))
        assert result.ok
        assert "damage" in result.data["ops"]

    def test_status(self, handler):
        result = handler.execute(CommandRequest(op=CommandOp.STATUS))
        assert result.ok
        assert result.data["awareness"] == pytest.approx(1.0)
        assert result.data["health_label"] == "ok"
        assert "2 node(s)" in result.message

    def test_alerts_none(self, handler):
        result = handler.execute(CommandRequest(op=CommandOp.ALERTS))
        assert result.data["alerts"] == {}
        assert "no active alerts" in result.message

    def test_alerts_active(self, handler, topology):
        topology.set_health(OrganKind.IO_BRIDGE, 0.3)
        result = handler.execute(CommandRequest(op=CommandOp.ALERTS))
        assert result.data["alerts"] == {"io_bridge": "critical"}
        assert result.data["overall"] == "critical"

    def test_awareness(self, handler, topology, bus):
        topology.set_health(OrganKind.CORTEX, 0.0)
        result = handler.execute(CommandRequest(op=CommandOp.AWARENESS))
        assert result.data["awareness"] == pytest.approx(0.6)
        assert result.data["label"] == "stable"
        assert bus.current_awareness() == pytest.approx(0.6)

    def test_topology_views(self, handler):
        assert len(handler.execute(CommandRequest(op=CommandOp.NODES)).data["nodes"]) == 2
        assert len(handler.execute(CommandRequest(op=CommandOp.ORGANS)).data["organs"]) == 3
        peripherals = handler.execute(CommandRequest(op=CommandOp.PERIPHERALS)).data["peripherals"]
        assert [p["id"] for p in peripherals["memory"]] == ["Sim-NVMe-0"]
        assert "Node 1 [core-0]" in handler.execute(CommandRequest(op=CommandOp.TOPOLOGY)).message

    def test_health(self, handler):
        result = handler.execute(CommandRequest(op=CommandOp.HEALTH))
        assert result.data["health"] == {"cortex": 1.0, "memory": 1.0, "io_bridge": 1.0}

    def test_capabilities(self, handler):
        result = handler.execute(CommandRequest(op=CommandOp.CAPABILITIES))
        assert len(result.data["capabilities"]) == 7

    def test_memory(self, handler, memory):
        memory.set(GLOBAL_SCOPE, "ai.policy", "maintain_load")
        result = handler.execute(CommandRequest(op=CommandOp.MEMORY))
        assert result.data["memory"] == {"global": {"ai.policy": "maintain_load"}}
        assert "ai.policy" in result.message

    def test_shares_empty_stores(self, topology, bus, engine, memory):
        """Empty memory and capability stores passed in are used, not replaced."""
        registry = CapabilityRegistry()
        handler = CommandHandler(topology, bus, engine, memory=memory, capabilities=registry)
        assert handler.memory is memory
        assert handler.capabilities is registry
        assert handler.execute(CommandRequest(op=CommandOp.CAPABILITIES)).data["capabilities"] == []

    def test_metrics_unavailable(self, handler):
        result = handler.execute(CommandRequest(op=CommandOp.METRICS))
        assert not result.ok

    def test_metrics_from_provider(self, handler):
        handler.metrics_provider = lambda: TelemetrySnapshot(tick=7)
        result = handler.execute(CommandRequest(op=CommandOp.METRICS))
        assert result.ok
        assert result.data["tick"] == 7

    def test_execute_publishes_command_pulse(self, handler, bus):
        handler.execute(CommandRequest(op=CommandOp.HELP))
        pending = bus.pending()
        assert [p.kind for p in pending] == [PulseKind.COMMAND]
        assert pending[0].payload["op"] == "help"


class TestMutations:
    """Test commands that change state."""

    def test_damage_and_heal(self, handler, topology, bus):
        result = handler.execute(CommandRequest.build("damage", organ="cortex", amount=0.25))
        assert result.data["health"] == pytest.approx(0.75)
        assert bus.current_awareness() == pytest.approx(0.9)

        result = handler.execute(CommandRequest.build("heal", organ="cortex", amount=0.5))
        assert result.data["health"] == 1.0
        assert topology.get_organ(OrganKind.CORTEX).health == 1.0

    def test_set_sim(self, handler, bus):
        handler.execute(CommandRequest.build("set_sim", level="HIGH"))
        assert bus.sim_level() is SimLevel.HIGH

    def test_set_sim_invalid(self, handler, bus):
        result = handler.handle(CommandRequest.build("set_sim", level="extreme"))
        assert not result.ok
        assert result.error == "InvalidRequest"
        assert bus.sim_level() is SimLevel.OFF

    def test_set_logs(self, handler, bus):
        handler.execute(CommandRequest.build("set_logs", level="off"))
        assert bus.log_filter() is LogFilter.SILENT

    def test_save_then_load(self, handler, topology, state_path):
        handler.execute(CommandRequest.build("damage", organ="memory", amount=0.3))
        saved = handler.execute(CommandRequest(op=CommandOp.SAVE))
        assert saved.data["path"] == str(state_path)

        handler.execute(CommandRequest.build("heal", organ="memory", amount=1.0))
        loaded = handler.execute(CommandRequest(op=CommandOp.LOAD))
        assert loaded.data["loaded"]
        assert topology.get_organ(OrganKind.MEMORY).health == pytest.approx(0.7)

    def test_load_missing_file(self, handler):
        result = handler.execute(CommandRequest(op=CommandOp.LOAD))
        assert result.ok
        assert not result.data["loaded"]

    def test_load_malformed(self, handler, topology, state_path):
        state_path.write_text("cortex=0.1\nmemory=broken\n")
        result = handler.handle(CommandRequest(op=CommandOp.LOAD))
        assert not result.ok
        assert result.error == "ParseError"
        assert topology.get_organ(OrganKind.CORTEX).health == 1.0

    def test_save_to_explicit_path(self, handler, tmp_path):
        target = tmp_path / "other" / "state.txt"
        handler.execute(CommandRequest(op=CommandOp.SAVE, path=str(target)))
        assert target.read_text().startswith("version=1")
