"""Arithmetic node definitions.

Inputs are coerced with :func:`weft.nodes.base.to_number`, so numeric strings
are accepted and anything else raises ``InvalidInputTypeError``. Division and
modulo by zero and an empty random range are non-fatal: they log an error and
produce a sentinel value so the pass continues.
"""

import math
import random
from typing import Any, Callable, Dict, List

from weft.core.graph import LogicalCategory, OperationType
from weft.nodes.base import NodeDefinition, data_port, input_value, outputs, to_number

NUMBER = LogicalCategory.NUMBER


def _binary(
    operation_type: OperationType,
    name: str,
    left: str,
    right: str,
    result: str,
    operator: Callable[[Any, Any], Any],
    description: str,
) -> NodeDefinition:
    def port_generator(node_id: str, config: Dict[str, Any]):
        return (
            [data_port(node_id, "in", left, NUMBER), data_port(node_id, "in", right, NUMBER)],
            [data_port(node_id, "out", result, NUMBER)],
        )

    def resolve_outputs(node, resolved_inputs, context, meta, iteration=None):
        a = to_number(node.id, left, input_value(node, left, resolved_inputs))
        b = to_number(node.id, right, input_value(node, right, resolved_inputs))
        return outputs(node, {result: operator(a, b)})

    return NodeDefinition(
        operation_type=operation_type.value,
        name=name,
        description=description,
        port_generator=port_generator,
        resolve_outputs=resolve_outputs,
    )


def _unary(
    operation_type: OperationType,
    name: str,
    operator: Callable[[Any], Any],
    description: str,
) -> NodeDefinition:
    def port_generator(node_id: str, config: Dict[str, Any]):
        return (
            [data_port(node_id, "in", "Value", NUMBER)],
            [data_port(node_id, "out", "Result", NUMBER)],
        )

    def resolve_outputs(node, resolved_inputs, context, meta, iteration=None):
        value = to_number(node.id, "Value", input_value(node, "Value", resolved_inputs))
        return outputs(node, {"Result": operator(value)})

    return NodeDefinition(
        operation_type=operation_type.value,
        name=name,
        description=description,
        port_generator=port_generator,
        resolve_outputs=resolve_outputs,
    )


def _divide_ports(node_id: str, config: Dict[str, Any], result: str):
    return (
        [
            data_port(node_id, "in", "Dividend", NUMBER),
            data_port(node_id, "in", "Divisor", NUMBER),
        ],
        [data_port(node_id, "out", result, NUMBER)],
    )


def _resolve_divide(node, resolved_inputs, context, meta, iteration=None):
    dividend = to_number(node.id, "Dividend", input_value(node, "Dividend", resolved_inputs))
    divisor = to_number(node.id, "Divisor", input_value(node, "Divisor", resolved_inputs))
    if divisor == 0:
        meta.error_log("Division by zero.", node.id)
        return outputs(node, {"Quotient": math.inf if dividend >= 0 else -math.inf})
    return outputs(node, {"Quotient": dividend / divisor})


def _resolve_modulo(node, resolved_inputs, context, meta, iteration=None):
    dividend = to_number(node.id, "Dividend", input_value(node, "Dividend", resolved_inputs))
    divisor = to_number(node.id, "Divisor", input_value(node, "Divisor", resolved_inputs))
    if divisor == 0:
        meta.error_log("Modulo by zero.", node.id)
        return outputs(node, {"Remainder": math.nan})
    # Sign follows the dividend, as in truncated division.
    return outputs(node, {"Remainder": math.fmod(dividend, divisor)})


def _random_ports(node_id: str, config: Dict[str, Any]):
    return (
        [data_port(node_id, "in", "Min", NUMBER), data_port(node_id, "in", "Max", NUMBER)],
        [data_port(node_id, "out", "Result", NUMBER)],
    )


def _resolve_random(node, resolved_inputs, context, meta, iteration=None):
    low = input_value(node, "Min", resolved_inputs, node.config.get("default_min", 0))
    high = input_value(node, "Max", resolved_inputs, node.config.get("default_max", 1))
    low = to_number(node.id, "Min", low)
    high = to_number(node.id, "Max", high)
    if low >= high:
        meta.error_log(
            f"Invalid range for RANDOM_NUMBER: Min ({low}) >= Max ({high}). Outputting NaN.",
            node.id,
        )
        return outputs(node, {"Result": math.nan})
    return outputs(node, {"Result": random.random() * (high - low) + low})


def _round_half_up(value):
    return math.floor(value + 0.5)


DEFINITIONS: List[NodeDefinition] = [
    _binary(
        OperationType.ADDITION, "Addition", "Number 1", "Number 2", "Sum",
        lambda a, b: a + b,
        "Outputs the sum of 'Number 1' and 'Number 2'.",
    ),
    _binary(
        OperationType.SUBTRACT, "Subtract", "Minuend", "Subtrahend", "Difference",
        lambda a, b: a - b,
        "Subtracts 'Subtrahend' from 'Minuend'.",
    ),
    _binary(
        OperationType.MULTIPLY, "Multiply", "Operand A", "Operand B", "Product",
        lambda a, b: a * b,
        "Multiplies 'Operand A' by 'Operand B'.",
    ),
    NodeDefinition(
        operation_type=OperationType.DIVIDE.value,
        name="Divide",
        description="Divides 'Dividend' by 'Divisor'. Division by zero yields signed infinity.",
        port_generator=lambda node_id, config: _divide_ports(node_id, config, "Quotient"),
        resolve_outputs=_resolve_divide,
    ),
    NodeDefinition(
        operation_type=OperationType.MODULO.value,
        name="Modulo",
        description="Remainder of 'Dividend' divided by 'Divisor'. Zero divisor yields NaN.",
        port_generator=lambda node_id, config: _divide_ports(node_id, config, "Remainder"),
        resolve_outputs=_resolve_modulo,
    ),
    NodeDefinition(
        operation_type=OperationType.RANDOM_NUMBER.value,
        name="Random Number",
        description="Uniform random number in [Min, Max).",
        port_generator=_random_ports,
        resolve_outputs=_resolve_random,
        default_config={"default_min": 0, "default_max": 1},
    ),
    _unary(OperationType.ROUND, "Round", _round_half_up, "Rounds 'Value' to the nearest integer."),
    _unary(OperationType.FLOOR, "Floor", math.floor, "Rounds 'Value' down."),
    _unary(OperationType.CEIL, "Ceil", math.ceil, "Rounds 'Value' up."),
]
