"""Core node definitions: constants, pass-through, branching, logging."""

import json
from typing import Any, Dict, List

from weft.core.graph import LogicalCategory, OperationType
from weft.nodes.base import (
    NodeDefinition,
    StepResult,
    data_port,
    exec_hops,
    exec_port,
    input_value,
    output_port_or_fail,
    outputs,
    pull_input,
)
from weft.utils.errors import InvalidInputTypeError


def format_log_value(value: Any) -> str:
    """Render a value the way LOG_VALUE prints it."""
    try:
        return json.dumps(value, default=str)
    except ValueError:
        # Circular structures cannot be serialized.
        return repr(value)


# ----------------------------------------------------------------------
# VALUE_PROVIDER / ASSIGN
# ----------------------------------------------------------------------


def _value_provider_ports(node_id: str, config: Dict[str, Any]):
    category = config.get("category", LogicalCategory.ANY)
    return [], [data_port(node_id, "out", "Value", category)]


def _resolve_value_provider(node, resolved_inputs, context, meta, iteration=None):
    return outputs(node, {"Value": node.config.get("value")})


def _assign_ports(node_id: str, config: Dict[str, Any]):
    return [data_port(node_id, "in", "Input")], [data_port(node_id, "out", "Output")]


def _resolve_assign(node, resolved_inputs, context, meta, iteration=None):
    return outputs(node, {"Output": input_value(node, "Input", resolved_inputs)})


# ----------------------------------------------------------------------
# BRANCH
# ----------------------------------------------------------------------


def _branch_ports(node_id: str, config: Dict[str, Any]):
    inputs = [
        exec_port(node_id, "in", "Execute"),
        data_port(node_id, "in", "Condition", LogicalCategory.BOOLEAN),
        data_port(node_id, "in", "Input Value"),
    ]
    outs = [
        exec_port(node_id, "out", "If True (Exec)"),
        exec_port(node_id, "out", "If False (Exec)"),
        data_port(node_id, "out", "If True (Data)"),
        data_port(node_id, "out", "If False (Data)"),
    ]
    return inputs, outs


def _check_condition(node_id: str, condition: Any) -> bool:
    if condition is None:
        return False
    if not isinstance(condition, bool):
        raise InvalidInputTypeError(node_id, "Condition", "a boolean", condition)
    return condition


def _resolve_branch(node, resolved_inputs, context, meta, iteration=None):
    condition = _check_condition(node.id, input_value(node, "Condition", resolved_inputs))
    value = input_value(node, "Input Value", resolved_inputs)
    if condition:
        return outputs(node, {"If True (Data)": value})
    return outputs(node, {"If False (Data)": value})


async def _step_branch(node, triggered_port_id, nodes, connections, resolved_state, meta, resolve):
    condition = _check_condition(
        node.id, await pull_input(node, "Condition", connections, resolve, default=False)
    )
    value = await pull_input(node, "Input Value", connections, resolve)
    branch = "If True" if condition else "If False"
    resolved_state[(node.id, output_port_or_fail(node, f"{branch} (Data)").id)] = value
    meta.debug(f"Condition is {condition}, following '{branch} (Exec)'.", node.id)
    return StepResult(next_hops=exec_hops(node, f"{branch} (Exec)", connections))


# ----------------------------------------------------------------------
# LOG_VALUE
# ----------------------------------------------------------------------


def _log_ports(node_id: str, config: Dict[str, Any]):
    return (
        [exec_port(node_id, "in", "Execute"), data_port(node_id, "in", "Input")],
        [exec_port(node_id, "out", "Executed"), data_port(node_id, "out", "Output")],
    )


def _resolve_log(node, resolved_inputs, context, meta, iteration=None):
    return outputs(node, {"Output": input_value(node, "Input", resolved_inputs)})


async def _step_log(node, triggered_port_id, nodes, connections, resolved_state, meta, resolve):
    value = await pull_input(node, "Input", connections, resolve)
    meta.info(f"LOG: {format_log_value(value)}", node.id)
    resolved_state[(node.id, output_port_or_fail(node, "Output").id)] = value
    return StepResult(next_hops=exec_hops(node, "Executed", connections))


def _no_ports(node_id: str, config: Dict[str, Any]):
    return [], []


DEFINITIONS: List[NodeDefinition] = [
    NodeDefinition(
        operation_type=OperationType.VALUE_PROVIDER.value,
        name="Value Provider",
        description="Outputs the literal value stored in its configuration.",
        port_generator=_value_provider_ports,
        resolve_outputs=_resolve_value_provider,
        default_config={"value": None},
    ),
    NodeDefinition(
        operation_type=OperationType.ASSIGN.value,
        name="Assign",
        description="Passes 'Input' through to 'Output'.",
        port_generator=_assign_ports,
        resolve_outputs=_resolve_assign,
    ),
    NodeDefinition(
        operation_type=OperationType.BRANCH.value,
        name="Branch",
        description="Routes a value and the execution pulse by a boolean condition.",
        port_generator=_branch_ports,
        resolve_outputs=_resolve_branch,
        process_step=_step_branch,
    ),
    NodeDefinition(
        operation_type=OperationType.LOG_VALUE.value,
        name="Log Value",
        description="Writes its input to the execution log when pulsed.",
        port_generator=_log_ports,
        resolve_outputs=_resolve_log,
        process_step=_step_log,
    ),
    NodeDefinition(
        operation_type=OperationType.COMMENT.value,
        name="Comment",
        description="Annotation only; never evaluated.",
        port_generator=_no_ports,
        default_config={"text": ""},
    ),
    NodeDefinition(
        operation_type=OperationType.FRAME.value,
        name="Frame",
        description="Visual grouping only; never evaluated.",
        port_generator=_no_ports,
    ),
]
