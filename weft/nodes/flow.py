"""Flow control node definitions.

ON_EVENT nodes are entry points of execution flows. STATE nodes read and write
the global store. INPUT_GRAPH, OUTPUT_GRAPH, LOOP_ITEM and ITERATION_RESULT are
the markers that connect a molecular node's sub-graph to its parent; MOLECULAR
and ITERATE themselves are evaluated by the scope executor.
"""

from typing import Any, Dict, List

from weft.core.graph import LogicalCategory, OperationType
from weft.nodes.base import (
    NodeDefinition,
    StepResult,
    data_port,
    exec_hops,
    exec_port,
    output_port_or_fail,
    outputs,
    pull_input,
)
from weft.utils.config import DEFAULT_MAX_ITERATIONS
from weft.utils.errors import NodeExecutionError, TerminalReason


# ----------------------------------------------------------------------
# ON_EVENT
# ----------------------------------------------------------------------


def _event_ports(node_id: str, config: Dict[str, Any]):
    return [], [exec_port(node_id, "out", "Triggered"), data_port(node_id, "out", "Payload")]


def _resolve_event(node, resolved_inputs, context, meta, iteration=None):
    # The payload is seeded by the executor when the event fires.
    payload_port = output_port_or_fail(node, "Payload")
    return {payload_port.id: context.get((node.id, payload_port.id))}


# ----------------------------------------------------------------------
# STATE
# ----------------------------------------------------------------------


def _state_id(node) -> str:
    state_id = (node.config.get("state_id") or "").strip()
    if not state_id:
        raise NodeExecutionError(
            node.id,
            "State ID is not configured",
            reason=TerminalReason.ERROR_STATE_ID_MISSING,
        )
    return state_id


def _state_ports(node_id: str, config: Dict[str, Any]):
    return (
        [
            exec_port(node_id, "in", "Execute Action"),
            data_port(node_id, "in", "Set Value"),
            data_port(node_id, "in", "Reset to Initial", LogicalCategory.BOOLEAN),
        ],
        [exec_port(node_id, "out", "Action Executed"), data_port(node_id, "out", "Current Value")],
    )


def _resolve_state(node, resolved_inputs, context, meta, iteration=None):
    state_id = _state_id(node)
    value = meta.store.get(state_id, node.config.get("initial_value"))
    return outputs(node, {"Current Value": value})


async def _step_state(node, triggered_port_id, nodes, connections, resolved_state, meta, resolve):
    state_id = _state_id(node)
    store = meta.store
    reset = await pull_input(node, "Reset to Initial", connections, resolve, default=False)
    if reset is True:
        store.set(state_id, node.config.get("initial_value"))
        meta.info(f"State '{state_id}' reset to initial value.", node.id)
    else:
        value = await pull_input(node, "Set Value", connections, resolve)
        if value is not None:
            store.set(state_id, value)
            meta.info(f"State '{state_id}' set to {value!r}.", node.id)
    current = store.get(state_id, node.config.get("initial_value"))
    resolved_state[(node.id, output_port_or_fail(node, "Current Value").id)] = current
    return StepResult(next_hops=exec_hops(node, "Action Executed", connections))


# ----------------------------------------------------------------------
# Sub-graph markers
# ----------------------------------------------------------------------


def _input_marker_ports(node_id: str, config: Dict[str, Any]):
    category = config.get("external_port_category", LogicalCategory.ANY)
    return [], [data_port(node_id, "out", "Value", category)]


def _resolve_input_marker(node, resolved_inputs, context, meta, iteration=None):
    port = output_port_or_fail(node, "Value")
    if (node.id, port.id) not in context:
        meta.debug(
            f"Input marker '{node.config.get('external_port_name')}' has no seeded value.",
            node.id,
        )
    return {port.id: context.get((node.id, port.id))}


def _output_marker_ports(node_id: str, config: Dict[str, Any]):
    category = config.get("external_port_category", LogicalCategory.ANY)
    return [data_port(node_id, "in", "Value", category)], []


def _resolve_output_marker(node, resolved_inputs, context, meta, iteration=None):
    return {}


def _loop_item_ports(node_id: str, config: Dict[str, Any]):
    return [], [
        exec_port(node_id, "out", "Loop Body"),
        data_port(node_id, "out", "Item"),
        data_port(node_id, "out", "Index", LogicalCategory.NUMBER),
    ]


def _resolve_loop_item(node, resolved_inputs, context, meta, iteration=None):
    if iteration is None:
        meta.debug("LOOP_ITEM resolved outside of an iteration.", node.id)
        return outputs(node, {"Item": None, "Index": None})
    return outputs(node, {"Item": iteration.item, "Index": iteration.index})


def _iteration_result_ports(node_id: str, config: Dict[str, Any]):
    return [exec_port(node_id, "in", "Commit Result"), data_port(node_id, "in", "Value")], []


async def _step_iteration_result(
    node, triggered_port_id, nodes, connections, resolved_state, meta, resolve
):
    value = await pull_input(node, "Value", connections, resolve)
    meta.current_iteration_output = value
    meta.debug(f"Committed iteration result {value!r}.", node.id)
    return StepResult()


# ----------------------------------------------------------------------
# MOLECULAR / ITERATE
# ----------------------------------------------------------------------


def _molecular_ports(node_id: str, config: Dict[str, Any]):
    # Exposed ports are derived from the sub-graph markers by the factory.
    return [], []


def _iterate_ports(node_id: str, config: Dict[str, Any]):
    return (
        [
            exec_port(node_id, "in", "Start Iteration"),
            data_port(node_id, "in", "Collection", LogicalCategory.ARRAY),
            data_port(node_id, "in", "Max Iterations", LogicalCategory.NUMBER),
        ],
        [
            exec_port(node_id, "out", "Iteration Completed"),
            data_port(node_id, "out", "Results", LogicalCategory.ARRAY),
            data_port(node_id, "out", "Completed Status", LogicalCategory.BOOLEAN),
        ],
    )


DEFINITIONS: List[NodeDefinition] = [
    NodeDefinition(
        operation_type=OperationType.ON_EVENT.value,
        name="On Event",
        description="Starts an execution flow when its named event is triggered.",
        port_generator=_event_ports,
        resolve_outputs=_resolve_event,
        default_config={"event_name": ""},
    ),
    NodeDefinition(
        operation_type=OperationType.STATE.value,
        name="State",
        description="A named variable in the global store that persists across passes.",
        port_generator=_state_ports,
        resolve_outputs=_resolve_state,
        process_step=_step_state,
        default_config={"state_id": "", "initial_value": None},
        lazy_inputs=frozenset({"Set Value", "Reset to Initial"}),
    ),
    NodeDefinition(
        operation_type=OperationType.INPUT_GRAPH.value,
        name="Graph Input",
        description="Receives the value of a molecular node's input port.",
        port_generator=_input_marker_ports,
        resolve_outputs=_resolve_input_marker,
        default_config={"external_port_name": "Input", "external_port_category": "any"},
    ),
    NodeDefinition(
        operation_type=OperationType.OUTPUT_GRAPH.value,
        name="Graph Output",
        description="Provides the value of a molecular node's output port.",
        port_generator=_output_marker_ports,
        resolve_outputs=_resolve_output_marker,
        default_config={"external_port_name": "Output", "external_port_category": "any"},
    ),
    NodeDefinition(
        operation_type=OperationType.LOOP_ITEM.value,
        name="Loop Item",
        description="Current item and index of the enclosing ITERATE node.",
        port_generator=_loop_item_ports,
        resolve_outputs=_resolve_loop_item,
    ),
    NodeDefinition(
        operation_type=OperationType.ITERATION_RESULT.value,
        name="Iteration Result",
        description="Commits 'Value' as the result of the current iteration.",
        port_generator=_iteration_result_ports,
        process_step=_step_iteration_result,
        lazy_inputs=frozenset({"Value"}),
    ),
    NodeDefinition(
        operation_type=OperationType.MOLECULAR.value,
        name="Molecular Node",
        description="Encapsulates a sub-graph behind marker-derived ports.",
        port_generator=_molecular_ports,
        molecular=True,
    ),
    NodeDefinition(
        operation_type=OperationType.ITERATE.value,
        name="Iterate",
        description="Runs its sub-graph once per item of 'Collection'.",
        port_generator=_iterate_ports,
        default_config={"max_iterations": DEFAULT_MAX_ITERATIONS},
        molecular=True,
        lazy_inputs=frozenset({"Collection", "Max Iterations"}),
    ),
]
