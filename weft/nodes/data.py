"""Data structure node definitions: strings, arrays and objects.

Malformed inputs on these nodes are non-fatal. They log an error and output
an empty or ``None`` value, matching how the editor surfaces them inline.
"""

import json
from typing import Any, Dict, List

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JSONPathError

from weft.core.graph import LogicalCategory, OperationType, PortKind
from weft.nodes.base import NodeDefinition, data_port, input_value, outputs

STRING = LogicalCategory.STRING
ARRAY = LogicalCategory.ARRAY
OBJECT = LogicalCategory.OBJECT
NUMBER = LogicalCategory.NUMBER
ANY = LogicalCategory.ANY


def stringify(value: Any) -> str:
    """String form used by CONCATENATE and TO_STRING."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _resolve_concatenate(node, resolved_inputs, context, meta, iteration=None):
    first = stringify(input_value(node, "String 1", resolved_inputs))
    second = stringify(input_value(node, "String 2", resolved_inputs))
    return outputs(node, {"Result": first + second})


def _union_ports(node_id: str, config: Dict[str, Any]):
    count = max(int(config.get("input_count", 2)), 1)
    ins = [data_port(node_id, "in", f"Item {i}") for i in range(1, count + 1)]
    return ins, [data_port(node_id, "out", "Collection", ARRAY)]


def _resolve_union(node, resolved_inputs, context, meta, iteration=None):
    collected = []
    for port in node.data_inputs():
        value = resolved_inputs.get(port.id)
        if value is not None:
            collected.append(value)
    return outputs(node, {"Collection": collected})


def _resolve_to_string(node, resolved_inputs, context, meta, iteration=None):
    return outputs(node, {"Output": stringify(input_value(node, "Input", resolved_inputs))})


def _resolve_get_item(node, resolved_inputs, context, meta, iteration=None):
    collection = input_value(node, "Collection", resolved_inputs)
    index = input_value(node, "Index", resolved_inputs)
    item = None
    if not isinstance(collection, (list, tuple)):
        meta.error_log("Input 'Collection' is not an array.", node.id)
    elif isinstance(index, bool) or not isinstance(index, (int, float)) or int(index) != index:
        meta.error_log("Input 'Index' is not an integer.", node.id)
    elif not 0 <= index < len(collection):
        meta.debug(
            f"Index {index} out of bounds for collection length {len(collection)}.", node.id
        )
    else:
        item = collection[int(index)]
    return outputs(node, {"Item": item})


def _resolve_collection_length(node, resolved_inputs, context, meta, iteration=None):
    collection = input_value(node, "Collection", resolved_inputs)
    if not isinstance(collection, (list, tuple)):
        meta.error_log("Input 'Collection' is not an array.", node.id)
        return outputs(node, {"Length": 0})
    return outputs(node, {"Length": len(collection)})


def _resolve_get_property(node, resolved_inputs, context, meta, iteration=None):
    """Read a key, or a JSONPath expression when the key starts with ``$``."""
    source = input_value(node, "Source", resolved_inputs)
    key = input_value(node, "Key", resolved_inputs)
    if not isinstance(source, (dict, list)):
        meta.error_log("Input 'Source' is not an object.", node.id)
        return outputs(node, {"Value": None})
    if not isinstance(key, str):
        meta.error_log("Input 'Key' is not a string.", node.id)
        return outputs(node, {"Value": None})

    if key.startswith("$"):
        try:
            matches = jsonpath_parse(key).find(source)
        except JSONPathError as e:
            meta.error_log(f"Invalid path '{key}': {e}", node.id)
            return outputs(node, {"Value": None})
        if not matches:
            meta.debug(f"Path '{key}' matched nothing in source.", node.id)
            return outputs(node, {"Value": None})
        return outputs(node, {"Value": matches[0].value})

    if not isinstance(source, dict) or key not in source:
        meta.debug(f"Key '{key}' not found in source.", node.id)
        return outputs(node, {"Value": None})
    return outputs(node, {"Value": source[key]})


def _resolve_set_property(node, resolved_inputs, context, meta, iteration=None):
    source = input_value(node, "Source", resolved_inputs)
    key = input_value(node, "Key", resolved_inputs)
    value = input_value(node, "Value", resolved_inputs)
    if not isinstance(source, dict):
        meta.error_log("Input 'Source' is not an object.", node.id)
        return outputs(node, {"Result": {}})
    if not isinstance(key, str):
        meta.error_log("Input 'Key' is not a string.", node.id)
        return outputs(node, {"Result": dict(source)})
    return outputs(node, {"Result": {**source, key: value}})


def _resolve_string_length(node, resolved_inputs, context, meta, iteration=None):
    return outputs(node, {"Length": len(stringify(input_value(node, "Source", resolved_inputs)))})


def _resolve_split(node, resolved_inputs, context, meta, iteration=None):
    source = stringify(input_value(node, "Source", resolved_inputs))
    delimiter = input_value(
        node, "Delimiter", resolved_inputs, node.config.get("split_delimiter", ",")
    )
    delimiter = stringify(delimiter)
    if delimiter == "":
        return outputs(node, {"Result": list(source)})
    return outputs(node, {"Result": source.split(delimiter)})


def _construct_object_ports(node_id: str, config: Dict[str, Any]):
    count = max(int(config.get("pair_count", 1)), 1)
    ins = []
    for i in range(1, count + 1):
        ins.append(data_port(node_id, "in", f"Key {i}", STRING))
        ins.append(data_port(node_id, "in", f"Value {i}"))
    return ins, [data_port(node_id, "out", "Object", OBJECT)]


def _resolve_construct_object(node, resolved_inputs, context, meta, iteration=None):
    result: Dict[str, Any] = {}
    ports = [p for p in node.input_ports if p.kind == PortKind.DATA]
    for key_port, value_port in zip(ports[0::2], ports[1::2]):
        key = resolved_inputs.get(key_port.id)
        if isinstance(key, str) and key.strip():
            result[key] = resolved_inputs.get(value_port.id)
        elif key is not None:
            meta.error_log(
                f"Invalid key type or empty key ({key!r}) for CONSTRUCT_OBJECT port "
                f"'{key_port.name}'. Skipping.",
                node.id,
            )
    return outputs(node, {"Object": result})


def _simple(
    operation_type: OperationType,
    name: str,
    ins: List[tuple],
    outs: List[tuple],
    resolve_outputs,
    description: str = "",
    default_config: Dict[str, Any] = None,
) -> NodeDefinition:
    def port_generator(node_id: str, config: Dict[str, Any]):
        return (
            [data_port(node_id, "in", port_name, category) for port_name, category in ins],
            [data_port(node_id, "out", port_name, category) for port_name, category in outs],
        )

    return NodeDefinition(
        operation_type=operation_type.value,
        name=name,
        description=description,
        port_generator=port_generator,
        resolve_outputs=resolve_outputs,
        default_config=default_config or {},
    )


DEFINITIONS: List[NodeDefinition] = [
    _simple(
        OperationType.CONCATENATE, "Concatenate",
        [("String 1", STRING), ("String 2", STRING)], [("Result", STRING)],
        _resolve_concatenate,
    ),
    NodeDefinition(
        operation_type=OperationType.UNION.value,
        name="Union (Array)",
        description="Collects every non-empty input into an array.",
        port_generator=_union_ports,
        resolve_outputs=_resolve_union,
        multi_input=True,
    ),
    _simple(
        OperationType.TO_STRING, "To String",
        [("Input", ANY)], [("Output", STRING)],
        _resolve_to_string,
    ),
    _simple(
        OperationType.GET_ITEM_AT_INDEX, "Get Item at Index",
        [("Collection", ARRAY), ("Index", NUMBER)], [("Item", ANY)],
        _resolve_get_item,
    ),
    _simple(
        OperationType.COLLECTION_LENGTH, "Collection Length",
        [("Collection", ARRAY)], [("Length", NUMBER)],
        _resolve_collection_length,
    ),
    _simple(
        OperationType.GET_PROPERTY, "Get Property",
        [("Source", OBJECT), ("Key", STRING)], [("Value", ANY)],
        _resolve_get_property,
        "Reads a key from an object, or a JSONPath such as '$.user.name'.",
    ),
    _simple(
        OperationType.SET_PROPERTY, "Set Property",
        [("Source", OBJECT), ("Key", STRING), ("Value", ANY)], [("Result", OBJECT)],
        _resolve_set_property,
        "Returns a copy of 'Source' with 'Key' set to 'Value'.",
    ),
    _simple(
        OperationType.STRING_LENGTH, "String Length",
        [("Source", STRING)], [("Length", NUMBER)],
        _resolve_string_length,
    ),
    _simple(
        OperationType.SPLIT_STRING, "Split String",
        [("Source", STRING), ("Delimiter", STRING)], [("Result", ARRAY)],
        _resolve_split,
        default_config={"split_delimiter": ","},
    ),
    NodeDefinition(
        operation_type=OperationType.CONSTRUCT_OBJECT.value,
        name="Construct Object",
        description="Builds an object from key/value input pairs.",
        port_generator=_construct_object_ports,
        resolve_outputs=_resolve_construct_object,
        multi_input=True,
    ),
]
