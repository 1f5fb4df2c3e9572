"""Logic and comparison node definitions."""

import json
from typing import Any, Callable, Dict, List

from weft.core.graph import LogicalCategory, OperationType, PortKind
from weft.nodes.base import NodeDefinition, data_port, input_value, outputs, to_number
from weft.utils.errors import InvalidInputTypeError

BOOLEAN = LogicalCategory.BOOLEAN


def json_equal(a: Any, b: Any) -> bool:
    """Structural equality by canonical JSON serialization."""
    try:
        return json.dumps(a, sort_keys=True, default=str) == json.dumps(
            b, sort_keys=True, default=str
        )
    except (TypeError, ValueError):
        return a == b


def _boolean_inputs(node, resolved_inputs) -> List[Any]:
    values = []
    for port in node.input_ports:
        if port.kind != PortKind.DATA or port.category != BOOLEAN:
            continue
        values.append(resolved_inputs.get(port.id))
    return values


def _gate(
    operation_type: OperationType, name: str, combine: Callable[[List[Any]], bool], doc: str
) -> NodeDefinition:
    def port_generator(node_id: str, config: Dict[str, Any]):
        count = max(int(config.get("input_count", 2)), 1)
        ins = [data_port(node_id, "in", f"Input {i}", BOOLEAN) for i in range(1, count + 1)]
        return ins, [data_port(node_id, "out", "Result", BOOLEAN)]

    def resolve_outputs(node, resolved_inputs, context, meta, iteration=None):
        return outputs(node, {"Result": combine(_boolean_inputs(node, resolved_inputs))})

    return NodeDefinition(
        operation_type=operation_type.value,
        name=name,
        description=doc,
        port_generator=port_generator,
        resolve_outputs=resolve_outputs,
        multi_input=True,
    )


def _compare_ports(node_id: str, config: Dict[str, Any]):
    return (
        [
            data_port(node_id, "in", "Operand A", LogicalCategory.NUMBER),
            data_port(node_id, "in", "Operand B", LogicalCategory.NUMBER),
        ],
        [data_port(node_id, "out", "Result", BOOLEAN)],
    )


def _comparison(
    operation_type: OperationType, name: str, compare: Callable[[Any, Any], bool]
) -> NodeDefinition:
    def resolve_outputs(node, resolved_inputs, context, meta, iteration=None):
        a = to_number(node.id, "Operand A", input_value(node, "Operand A", resolved_inputs))
        b = to_number(node.id, "Operand B", input_value(node, "Operand B", resolved_inputs))
        return outputs(node, {"Result": compare(a, b)})

    return NodeDefinition(
        operation_type=operation_type.value,
        name=name,
        port_generator=_compare_ports,
        resolve_outputs=resolve_outputs,
    )


def _equals_ports(node_id: str, config: Dict[str, Any]):
    return (
        [data_port(node_id, "in", "Value 1"), data_port(node_id, "in", "Value 2")],
        [data_port(node_id, "out", "Result", BOOLEAN)],
    )


def _resolve_equals(node, resolved_inputs, context, meta, iteration=None):
    a = input_value(node, "Value 1", resolved_inputs)
    b = input_value(node, "Value 2", resolved_inputs)
    return outputs(node, {"Result": json_equal(a, b)})


def _is_empty_ports(node_id: str, config: Dict[str, Any]):
    return [data_port(node_id, "in", "Target")], [data_port(node_id, "out", "Is Empty", BOOLEAN)]


def _resolve_is_empty(node, resolved_inputs, context, meta, iteration=None):
    target = input_value(node, "Target", resolved_inputs)
    if target is None:
        empty = True
    elif isinstance(target, (str, list, tuple, dict)):
        empty = len(target) == 0
    else:
        empty = False
    return outputs(node, {"Is Empty": empty})


def _not_ports(node_id: str, config: Dict[str, Any]):
    return [data_port(node_id, "in", "Input", BOOLEAN)], [data_port(node_id, "out", "Result", BOOLEAN)]


def _resolve_not(node, resolved_inputs, context, meta, iteration=None):
    value = input_value(node, "Input", resolved_inputs)
    if value is None:
        meta.debug("Input for NOT is undefined, treating as false. Outputting true.", node.id)
        return outputs(node, {"Result": True})
    if not isinstance(value, bool):
        raise InvalidInputTypeError(node.id, "Input", "a boolean", value)
    return outputs(node, {"Result": not value})


def _switch_ports(node_id: str, config: Dict[str, Any]):
    return [data_port(node_id, "in", "Value")], [data_port(node_id, "out", "Result")]


def _resolve_switch(node, resolved_inputs, context, meta, iteration=None):
    value = input_value(node, "Value", resolved_inputs)
    for case in node.config.get("switch_cases") or []:
        if json_equal(value, case.get("case_value")):
            return outputs(node, {"Result": case.get("output_value")})
    if "switch_default_value" not in node.config:
        meta.debug(
            f"SWITCH node: No matching case for value '{value!r}' and no default value "
            "defined. Outputting None.",
            node.id,
        )
    return outputs(node, {"Result": node.config.get("switch_default_value")})


DEFINITIONS: List[NodeDefinition] = [
    _gate(
        OperationType.LOGICAL_AND, "AND",
        lambda values: all(v is True for v in values),
        "True when every boolean input is true.",
    ),
    _gate(
        OperationType.LOGICAL_OR, "OR",
        lambda values: any(v is True for v in values),
        "True when any boolean input is true.",
    ),
    _gate(
        OperationType.LOGICAL_XOR, "XOR",
        lambda values: sum(1 for v in values if v is True) % 2 == 1,
        "True when an odd number of boolean inputs are true.",
    ),
    NodeDefinition(
        operation_type=OperationType.EQUALS.value,
        name="Equals",
        description="Deep equality of two values.",
        port_generator=_equals_ports,
        resolve_outputs=_resolve_equals,
    ),
    _comparison(OperationType.GREATER_THAN, "Greater Than", lambda a, b: a > b),
    _comparison(OperationType.LESS_THAN, "Less Than", lambda a, b: a < b),
    NodeDefinition(
        operation_type=OperationType.IS_EMPTY.value,
        name="Is Empty",
        description="True for None and for empty strings, lists and objects.",
        port_generator=_is_empty_ports,
        resolve_outputs=_resolve_is_empty,
    ),
    NodeDefinition(
        operation_type=OperationType.NOT.value,
        name="Not",
        port_generator=_not_ports,
        resolve_outputs=_resolve_not,
    ),
    NodeDefinition(
        operation_type=OperationType.SWITCH.value,
        name="Switch",
        description="Maps 'Value' to the output of the first matching case.",
        port_generator=_switch_ports,
        resolve_outputs=_resolve_switch,
        default_config={"switch_cases": []},
    ),
]
