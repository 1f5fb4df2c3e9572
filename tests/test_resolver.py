"""Tests for lazy data resolution."""

import math

import pytest

from weft import EngineConfig, Executor, ExecutionStatus, NodeDefinition, TerminalReason
from weft.core.graph import LogicalCategory
from weft.nodes.base import data_port, outputs
from weft.nodes.factory import connect, create_atomic_node, create_molecular_node


def port(node, name):
    return node.find_output_port(name).id


def counting_definition(calls):
    """A VALUE-like definition that counts its evaluations."""

    def ports(node_id, config):
        return [], [data_port(node_id, "out", "Value", LogicalCategory.NUMBER)]

    def resolve(node, resolved_inputs, context, meta, iteration=None):
        calls.append(node.id)
        return outputs(node, {"Value": 3})

    return NodeDefinition(
        operation_type="COUNTED",
        name="Counted",
        port_generator=ports,
        resolve_outputs=resolve,
    )


# =============================================================================
# Basic resolution
# =============================================================================


@pytest.mark.asyncio
async def test_addition_of_two_providers(executor, store):
    """Test resolving a sum pulls both providers."""
    five = create_atomic_node("VALUE_PROVIDER", "five", config={"value": 5})
    seven = create_atomic_node("VALUE_PROVIDER", "seven", config={"value": 7})
    add = create_atomic_node("ADDITION", "add")
    connections = [
        connect(five, "Value", add, "Number 1"),
        connect(seven, "Value", add, "Number 2"),
    ]

    result = await executor.resolve_single_output(
        "add", port(add, "Sum"), [five, seven, add], connections, store
    )

    assert result.success
    assert result.value == 12
    assert result.meta.reason == TerminalReason.SUCCESS
    assert result.resolved_state[("five", "five_out_value")] == 5
    assert result.meta.execution_path == ["five", "seven", "add"]


@pytest.mark.asyncio
async def test_literal_override_used_when_unconnected(executor):
    """Test unconnected inputs use the node's literal override."""
    five = create_atomic_node("VALUE_PROVIDER", "five", config={"value": 5})
    add = create_atomic_node("ADDITION", "add", overrides={"Number 2": 10})
    connections = [connect(five, "Value", add, "Number 1")]

    result = await executor.resolve_single_output(
        "add", port(add, "Sum"), [five, add], connections
    )

    assert result.value == 15


@pytest.mark.asyncio
async def test_connection_wins_over_override(executor):
    """Test a wired input ignores the literal override on the same port."""
    five = create_atomic_node("VALUE_PROVIDER", "five", config={"value": 5})
    add = create_atomic_node("ADDITION", "add", overrides={"Number 1": 100, "Number 2": 1})
    connections = [connect(five, "Value", add, "Number 1")]

    result = await executor.resolve_single_output(
        "add", port(add, "Sum"), [five, add], connections
    )

    assert result.value == 6


@pytest.mark.asyncio
async def test_memoization_evaluates_shared_node_once(registry):
    """Test a node feeding two inputs is evaluated once per pass."""
    calls = []
    registry.register(counting_definition(calls))
    executor = Executor(registry=registry)
    shared = create_atomic_node("COUNTED", "shared", registry=registry)
    add = create_atomic_node("ADDITION", "add", registry=registry)
    connections = [
        connect(shared, "Value", add, "Number 1"),
        connect(shared, "Value", add, "Number 2"),
    ]

    result = await executor.resolve_single_output(
        "add", port(add, "Sum"), [shared, add], connections
    )

    assert result.value == 6
    assert calls == ["shared"]

    # A new pass evaluates again.
    await executor.resolve_single_output("add", port(add, "Sum"), [shared, add], connections)
    assert calls == ["shared", "shared"]


@pytest.mark.asyncio
async def test_async_resolve_outputs_is_awaited(registry):
    """Test coroutine callbacks are awaited like plain ones."""

    def ports(node_id, config):
        return [], [data_port(node_id, "out", "Value")]

    async def resolve(node, resolved_inputs, context, meta, iteration=None):
        return outputs(node, {"Value": "async"})

    registry.register(
        NodeDefinition(
            operation_type="ASYNC_VALUE", name="Async", port_generator=ports, resolve_outputs=resolve
        )
    )
    executor = Executor(registry=registry)
    node = create_atomic_node("ASYNC_VALUE", "a", registry=registry)

    result = await executor.resolve_single_output("a", port(node, "Value"), [node], [])

    assert result.value == "async"


# =============================================================================
# Cycles and depth ceiling
# =============================================================================


@pytest.mark.asyncio
async def test_mutual_dependency_is_cycle_error(executor):
    """Test two nodes feeding each other fail instead of hanging."""
    a = create_atomic_node("ASSIGN", "a")
    b = create_atomic_node("ASSIGN", "b")
    connections = [connect(a, "Output", b, "Input"), connect(b, "Output", a, "Input")]

    result = await executor.resolve_single_output("a", port(a, "Output"), [a, b], connections)

    assert result.meta.status == ExecutionStatus.ERROR
    assert result.meta.reason == TerminalReason.ERROR_CYCLE_DETECTED
    assert result.value is None
    assert "a -> b -> a" in result.meta.error
    assert result.meta.errors


@pytest.mark.asyncio
async def test_depth_ceiling_limits_long_chains():
    """Test chains deeper than the depth ceiling fail with a cycle error."""
    executor = Executor(config=EngineConfig(max_cycle_depth=3))
    chain = [create_atomic_node("ASSIGN", f"n{i}") for i in range(4)]
    connections = [
        connect(chain[i], "Output", chain[i + 1], "Input") for i in range(len(chain) - 1)
    ]

    result = await executor.resolve_single_output(
        "n3", port(chain[3], "Output"), chain, connections
    )

    assert result.meta.reason == TerminalReason.ERROR_CYCLE_DETECTED
    assert "depth" in result.meta.error

    shallow = await executor.resolve_single_output(
        "n2", port(chain[2], "Output"), chain, connections
    )
    assert shallow.success


@pytest.mark.asyncio
async def test_depth_counter_restored_after_pass(executor):
    """Test depth and trace unwind once resolution finishes."""
    a = create_atomic_node("VALUE_PROVIDER", "a", config={"value": 1})
    b = create_atomic_node("ASSIGN", "b")

    result = await executor.resolve_single_output(
        "b", port(b, "Output"), [a, b], [connect(a, "Value", b, "Input")]
    )

    assert result.meta.cycle_depth == 0
    assert result.meta.visited_trace == []


# =============================================================================
# Errors and faults
# =============================================================================


@pytest.mark.asyncio
async def test_target_node_not_found(executor):
    """Test unknown target nodes report the node reason."""
    result = await executor.resolve_single_output("ghost", "ghost_out_value", [], [])

    assert result.meta.reason == TerminalReason.ERROR_TARGET_NODE_NOT_FOUND


@pytest.mark.asyncio
async def test_target_port_not_found(executor):
    """Test unknown target ports report the port reason."""
    value = create_atomic_node("VALUE_PROVIDER", "v", config={"value": 1})

    result = await executor.resolve_single_output("v", "v_out_missing", [value], [])

    assert result.meta.reason == TerminalReason.ERROR_TARGET_PORT_NOT_FOUND


@pytest.mark.asyncio
async def test_division_by_zero_is_non_fatal(executor):
    """Test division by zero logs an error and yields signed infinity."""
    divide = create_atomic_node("DIVIDE", "div", overrides={"Dividend": -4, "Divisor": 0})

    result = await executor.resolve_single_output("div", port(divide, "Quotient"), [divide], [])

    assert result.success
    assert result.value == -math.inf
    assert [e.message for e in result.meta.errors] == ["Division by zero."]


@pytest.mark.asyncio
async def test_raising_callback_is_operation_failure(registry):
    """Test arbitrary exceptions become operation failures."""

    def ports(node_id, config):
        return [], [data_port(node_id, "out", "Value")]

    def explode(node, resolved_inputs, context, meta, iteration=None):
        raise RuntimeError("boom")

    registry.register(
        NodeDefinition(
            operation_type="EXPLODE", name="Explode", port_generator=ports, resolve_outputs=explode
        )
    )
    executor = Executor(registry=registry)
    node = create_atomic_node("EXPLODE", "x", registry=registry)

    result = await executor.resolve_single_output("x", port(node, "Value"), [node], [])

    assert result.meta.status == ExecutionStatus.ERROR
    assert result.meta.reason == TerminalReason.ERROR_OPERATION_FAILED
    assert "boom" in result.meta.error
    assert result.meta.log[-1].message == result.meta.error


@pytest.mark.asyncio
async def test_invalid_input_type(executor):
    """Test non-numeric inputs to arithmetic are rejected."""
    add = create_atomic_node("ADDITION", "add", overrides={"Number 1": "abc", "Number 2": 1})

    result = await executor.resolve_single_output("add", port(add, "Sum"), [add], [])

    assert result.meta.reason == TerminalReason.ERROR_INVALID_INPUT_TYPE


@pytest.mark.asyncio
async def test_validation_failure_stops_pass(executor):
    """Test invalid graphs fail with the validation reason before resolving."""
    text = create_atomic_node("TO_STRING", "text")
    add = create_atomic_node("ADDITION", "add")

    result = await executor.resolve_single_output(
        "add", port(add, "Sum"), [text, add], [connect(text, "Output", add, "Number 1")]
    )

    assert result.meta.reason == TerminalReason.ERROR_VALIDATION


@pytest.mark.asyncio
async def test_cancel_during_resolution(registry, debugger):
    """Test cancel() reaches a running resolution pass."""
    cancelled = []

    def ports(node_id, config):
        return [], [data_port(node_id, "out", "Value", LogicalCategory.NUMBER)]

    async def resolve(node, resolved_inputs, context, meta, iteration=None):
        cancelled.append(executor.cancel())
        return outputs(node, {"Value": 3})

    registry.register(
        NodeDefinition(operation_type="SLOW", name="Slow", port_generator=ports, resolve_outputs=resolve)
    )
    executor = Executor(registry=registry, debugger=debugger)
    slow = create_atomic_node("SLOW", "slow", registry=registry)
    add = create_atomic_node("ADDITION", "add", registry=registry, overrides={"Number 2": 3})

    result = await executor.resolve_single_output(
        "add", port(add, "Sum"), [slow, add], [connect(slow, "Value", add, "Number 1")]
    )

    assert cancelled == [True]
    assert result.meta.status == ExecutionStatus.IDLE
    assert result.meta.reason == TerminalReason.MANUAL_STOP
    assert result.value is None
    assert "add" not in result.meta.execution_path
    assert executor.active_meta is None


@pytest.mark.asyncio
async def test_cancel_after_resolution_does_not_touch_finished_pass(executor):
    """Test the resolution pass stops being the active pass once it finishes."""
    value = create_atomic_node("VALUE_PROVIDER", "v", config={"value": 1})

    result = await executor.resolve_single_output("v", port(value, "Value"), [value], [])

    assert executor.cancel() is False
    assert result.meta.status == ExecutionStatus.COMPLETED


@pytest.mark.asyncio
async def test_organizational_nodes_are_skipped(executor):
    """Test COMMENT and FRAME nodes resolve to nothing without error."""
    comment = create_atomic_node("COMMENT", "note", config={"text": "hello"})
    value = create_atomic_node("VALUE_PROVIDER", "v", config={"value": 2})

    result = await executor.resolve_single_output("v", port(value, "Value"), [comment, value], [])

    assert result.value == 2
    assert "note" not in result.meta.execution_path


# =============================================================================
# Hierarchical nodes
# =============================================================================


def doubler():
    """A hierarchical node computing X + X."""
    marker_in = create_atomic_node("INPUT_GRAPH", "in_x", config={"external_port_name": "X"})
    add = create_atomic_node("ADDITION", "inner_add")
    marker_out = create_atomic_node("OUTPUT_GRAPH", "out_y", config={"external_port_name": "Y"})
    connections = [
        connect(marker_in, "Value", add, "Number 1"),
        connect(marker_in, "Value", add, "Number 2"),
        connect(add, "Sum", marker_out, "Value"),
    ]
    return create_molecular_node([marker_in, add, marker_out], connections, node_id="double")


@pytest.mark.asyncio
async def test_molecular_node_resolves_through_markers(executor):
    """Test parent inputs seed input markers and outputs come from output markers."""
    value = create_atomic_node("VALUE_PROVIDER", "v", config={"value": 21})
    double = doubler()

    result = await executor.resolve_single_output(
        "double", port(double, "Y"), [value, double], [connect(value, "Value", double, "X")]
    )

    assert result.success
    assert result.value == 42


@pytest.mark.asyncio
async def test_molecular_input_override(executor):
    """Test literal overrides on the parent port reach the sub-graph."""
    double = doubler()
    double.config["input_port_overrides"] = {double.find_input_port("X").id: 4}

    result = await executor.resolve_single_output("double", port(double, "Y"), [double], [])

    assert result.value == 8


@pytest.mark.asyncio
async def test_molecular_sub_graph_error_propagates(executor):
    """Test sub-graph failures become the parent's resolution error."""
    double = doubler()
    double.config["input_port_overrides"] = {double.find_input_port("X").id: "text"}

    result = await executor.resolve_single_output("double", port(double, "Y"), [double], [])

    assert result.meta.status == ExecutionStatus.ERROR
    assert result.meta.reason == TerminalReason.ERROR_INVALID_INPUT_TYPE
    assert "double" in result.meta.error
