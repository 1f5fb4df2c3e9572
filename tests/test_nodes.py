"""Tests for the built-in node library."""

import math

import pytest

from weft import TerminalReason
from weft.nodes.factory import connect, create_atomic_node


async def value_of(executor, node, port_name, upstream=(), connections=(), store=None):
    """Resolve one output of ``node`` and return (value, meta)."""
    result = await executor.resolve_single_output(
        node.id,
        node.find_output_port(port_name).id,
        list(upstream) + [node],
        list(connections),
        store,
    )
    return result.value, result.meta


# =============================================================================
# Arithmetic
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "operation,overrides,port_name,expected",
    [
        ("SUBTRACT", {"Minuend": 10, "Subtrahend": 4}, "Difference", 6),
        ("MULTIPLY", {"Operand A": 3, "Operand B": 4}, "Product", 12),
        ("DIVIDE", {"Dividend": 9, "Divisor": 2}, "Quotient", 4.5),
        ("MODULO", {"Dividend": -7, "Divisor": 3}, "Remainder", -1),
        ("ROUND", {"Value": 2.5}, "Result", 3),
        ("ROUND", {"Value": -2.5}, "Result", -2),
        ("FLOOR", {"Value": 2.7}, "Result", 2),
        ("CEIL", {"Value": 2.1}, "Result", 3),
    ],
)
async def test_arithmetic(executor, operation, overrides, port_name, expected):
    """Test arithmetic operations on literal inputs."""
    node = create_atomic_node(operation, "n", overrides=overrides)

    value, _ = await value_of(executor, node, port_name)

    assert value == expected


@pytest.mark.asyncio
async def test_numeric_strings_are_coerced(executor):
    """Test numeric strings are accepted by arithmetic inputs."""
    add = create_atomic_node("ADDITION", "add", overrides={"Number 1": " 2.5 ", "Number 2": 1})

    value, _ = await value_of(executor, add, "Sum")

    assert value == 3.5


@pytest.mark.asyncio
async def test_boolean_is_not_a_number(executor):
    """Test booleans are rejected by arithmetic inputs."""
    add = create_atomic_node("ADDITION", "add", overrides={"Number 1": True, "Number 2": 1})

    _, meta = await value_of(executor, add, "Sum")

    assert meta.reason == TerminalReason.ERROR_INVALID_INPUT_TYPE


@pytest.mark.asyncio
async def test_modulo_by_zero_is_nan(executor):
    """Test modulo by zero logs an error and yields NaN."""
    node = create_atomic_node("MODULO", "mod", overrides={"Dividend": 5, "Divisor": 0})

    value, meta = await value_of(executor, node, "Remainder")

    assert math.isnan(value)
    assert [e.message for e in meta.errors] == ["Modulo by zero."]


@pytest.mark.asyncio
async def test_random_number_in_range(executor):
    """Test random numbers fall in [Min, Max)."""
    node = create_atomic_node("RANDOM_NUMBER", "r", overrides={"Min": 5, "Max": 6})

    value, _ = await value_of(executor, node, "Result")

    assert 5 <= value < 6


@pytest.mark.asyncio
async def test_random_number_defaults_to_unit_range(executor):
    """Test unconnected bounds fall back to config defaults."""
    node = create_atomic_node("RANDOM_NUMBER", "r")

    value, _ = await value_of(executor, node, "Result")

    assert 0 <= value < 1


@pytest.mark.asyncio
async def test_random_number_empty_range(executor):
    """Test Min >= Max logs an error and yields NaN."""
    node = create_atomic_node("RANDOM_NUMBER", "r", overrides={"Min": 3, "Max": 3})

    value, meta = await value_of(executor, node, "Result")

    assert math.isnan(value)
    assert meta.errors


# =============================================================================
# Logic
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "operation,values,expected",
    [
        ("LOGICAL_AND", [True, True, True], True),
        ("LOGICAL_AND", [True, None, True], False),
        ("LOGICAL_OR", [False, None, True], True),
        ("LOGICAL_OR", [False, False, False], False),
        ("LOGICAL_XOR", [True, True, True], True),
        ("LOGICAL_XOR", [True, True, False], False),
    ],
)
async def test_gates(executor, operation, values, expected):
    """Test boolean gates over three inputs."""
    overrides = {f"Input {i}": v for i, v in enumerate(values, start=1) if v is not None}
    gate = create_atomic_node(operation, "g", config={"input_count": 3}, overrides=overrides)

    value, _ = await value_of(executor, gate, "Result")

    assert value is expected


@pytest.mark.asyncio
async def test_gate_rejects_second_connection_on_one_port(executor):
    """Test a gate grows inputs instead of taking two connections on one port."""
    yes = create_atomic_node("VALUE_PROVIDER", "yes", config={"value": True})
    no = create_atomic_node("VALUE_PROVIDER", "no", config={"value": False})
    gate = create_atomic_node("LOGICAL_AND", "and", config={"input_count": 1})
    connections = [connect(yes, "Value", gate, "Input 1"), connect(no, "Value", gate, "Input 1")]

    value, meta = await value_of(executor, gate, "Result", [yes, no], connections)

    assert value is None
    assert meta.reason == TerminalReason.ERROR_VALIDATION
    assert "already has a connection" in meta.error


@pytest.mark.asyncio
async def test_unvalidated_duplicate_connection_reads_first(executor):
    """Test only the first connection into a Data input is read."""
    executor.config.validate_connections = False
    yes = create_atomic_node("VALUE_PROVIDER", "yes", config={"value": True})
    no = create_atomic_node("VALUE_PROVIDER", "no", config={"value": False})
    gate = create_atomic_node("LOGICAL_AND", "and", config={"input_count": 1})
    connections = [connect(yes, "Value", gate, "Input 1"), connect(no, "Value", gate, "Input 1")]

    value, meta = await value_of(executor, gate, "Result", [yes, no], connections)

    assert value is True
    assert "no" not in meta.execution_path


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "first,second,expected",
    [
        ({"a": 1, "b": [1, 2]}, {"b": [1, 2], "a": 1}, True),
        ([1, 2], [2, 1], False),
        ("x", "x", True),
        (1, "1", False),
    ],
)
async def test_equals_is_structural(executor, first, second, expected):
    """Test EQUALS compares values structurally."""
    node = create_atomic_node("EQUALS", "eq", overrides={"Value 1": first, "Value 2": second})

    value, _ = await value_of(executor, node, "Result")

    assert value is expected


@pytest.mark.asyncio
async def test_comparisons(executor):
    """Test GREATER_THAN and LESS_THAN."""
    gt = create_atomic_node("GREATER_THAN", "gt", overrides={"Operand A": 3, "Operand B": 2})
    lt = create_atomic_node("LESS_THAN", "lt", overrides={"Operand A": 3, "Operand B": 2})

    assert (await value_of(executor, gt, "Result"))[0] is True
    assert (await value_of(executor, lt, "Result"))[0] is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "target,expected",
    [(None, True), ("", True), ([], True), ({}, True), ("a", False), (0, False)],
)
async def test_is_empty(executor, target, expected):
    """Test IS_EMPTY for None, empty containers and scalars."""
    overrides = {} if target is None else {"Target": target}
    node = create_atomic_node("IS_EMPTY", "e", overrides=overrides)

    value, _ = await value_of(executor, node, "Is Empty")

    assert value is expected


@pytest.mark.asyncio
async def test_not(executor):
    """Test NOT negates booleans and treats a missing input as false."""
    negate = create_atomic_node("NOT", "not", overrides={"Input": True})
    missing = create_atomic_node("NOT", "not2")
    invalid = create_atomic_node("NOT", "not3", overrides={"Input": "yes"})

    assert (await value_of(executor, negate, "Result"))[0] is False
    assert (await value_of(executor, missing, "Result"))[0] is True
    _, meta = await value_of(executor, invalid, "Result")
    assert meta.reason == TerminalReason.ERROR_INVALID_INPUT_TYPE


@pytest.mark.asyncio
async def test_switch(executor):
    """Test SWITCH picks the first matching case or the default."""
    config = {
        "switch_cases": [
            {"case_value": "a", "output_value": 1},
            {"case_value": "b", "output_value": 2},
            {"case_value": "a", "output_value": 3},
        ],
        "switch_default_value": 0,
    }
    hit = create_atomic_node("SWITCH", "s1", config=config, overrides={"Value": "a"})
    miss = create_atomic_node("SWITCH", "s2", config=config, overrides={"Value": "z"})
    no_default = create_atomic_node(
        "SWITCH", "s3", config={"switch_cases": []}, overrides={"Value": "z"}
    )

    assert (await value_of(executor, hit, "Result"))[0] == 1
    assert (await value_of(executor, miss, "Result"))[0] == 0
    assert (await value_of(executor, no_default, "Result"))[0] is None


# =============================================================================
# Data structures
# =============================================================================


@pytest.mark.asyncio
async def test_concatenate_and_to_string(executor):
    """Test string conversion of mixed values."""
    concat = create_atomic_node(
        "CONCATENATE", "c", overrides={"String 1": "n=", "String 2": 5}
    )
    text = create_atomic_node("TO_STRING", "t", overrides={"Input": {"a": True}})

    assert (await value_of(executor, concat, "Result"))[0] == "n=5"
    assert (await value_of(executor, text, "Output"))[0] == '{"a": true}'


@pytest.mark.asyncio
async def test_union_skips_missing_items(executor):
    """Test UNION collects only the inputs that have a value."""
    union = create_atomic_node(
        "UNION", "u", config={"input_count": 3}, overrides={"Item 1": "a", "Item 3": [1]}
    )

    value, _ = await value_of(executor, union, "Collection")

    assert value == ["a", [1]]


@pytest.mark.asyncio
async def test_get_item_at_index(executor):
    """Test indexing, out of range and invalid inputs."""
    hit = create_atomic_node(
        "GET_ITEM_AT_INDEX", "g1", overrides={"Collection": [5, 6, 7], "Index": 2}
    )
    out_of_range = create_atomic_node(
        "GET_ITEM_AT_INDEX", "g2", overrides={"Collection": [5], "Index": 3}
    )
    bad = create_atomic_node("GET_ITEM_AT_INDEX", "g3", overrides={"Collection": "abc", "Index": 0})

    assert (await value_of(executor, hit, "Item"))[0] == 7

    value, meta = await value_of(executor, out_of_range, "Item")
    assert value is None
    assert not meta.errors

    value, meta = await value_of(executor, bad, "Item")
    assert value is None
    assert meta.errors
    assert meta.reason == TerminalReason.SUCCESS


@pytest.mark.asyncio
async def test_lengths(executor):
    """Test COLLECTION_LENGTH and STRING_LENGTH."""
    collection = create_atomic_node("COLLECTION_LENGTH", "cl", overrides={"Collection": [1, 2]})
    string = create_atomic_node("STRING_LENGTH", "sl", overrides={"Source": "hello"})
    bad = create_atomic_node("COLLECTION_LENGTH", "cl2", overrides={"Collection": 4})

    assert (await value_of(executor, collection, "Length"))[0] == 2
    assert (await value_of(executor, string, "Length"))[0] == 5
    value, meta = await value_of(executor, bad, "Length")
    assert value == 0
    assert meta.errors


@pytest.mark.asyncio
async def test_get_property_by_key(executor):
    """Test reading a plain key and a missing key."""
    source = {"name": "weft", "size": 3}
    hit = create_atomic_node("GET_PROPERTY", "p1", overrides={"Source": source, "Key": "name"})
    miss = create_atomic_node("GET_PROPERTY", "p2", overrides={"Source": source, "Key": "nope"})

    assert (await value_of(executor, hit, "Value"))[0] == "weft"
    value, meta = await value_of(executor, miss, "Value")
    assert value is None
    assert not meta.errors


@pytest.mark.asyncio
async def test_get_property_by_jsonpath(executor):
    """Test keys starting with '$' are JSONPath expressions."""
    source = {"user": {"tags": ["a", "b"]}}
    node = create_atomic_node(
        "GET_PROPERTY", "p", overrides={"Source": source, "Key": "$.user.tags[1]"}
    )
    miss = create_atomic_node(
        "GET_PROPERTY", "p2", overrides={"Source": source, "Key": "$.user.email"}
    )

    assert (await value_of(executor, node, "Value"))[0] == "b"
    assert (await value_of(executor, miss, "Value"))[0] is None


@pytest.mark.asyncio
async def test_get_property_malformed_path_is_non_fatal(executor):
    """Test an unparsable JSONPath logs an error and outputs None."""
    node = create_atomic_node("GET_PROPERTY", "p", overrides={"Source": {"a": 1}, "Key": "$["})

    value, meta = await value_of(executor, node, "Value")

    assert value is None
    assert meta.reason == TerminalReason.SUCCESS
    assert len(meta.errors) == 1
    assert "Invalid path" in meta.errors[0].message


@pytest.mark.asyncio
async def test_set_property_copies_source(executor):
    """Test SET_PROPERTY returns a new object and leaves the source alone."""
    source = {"a": 1}
    node = create_atomic_node(
        "SET_PROPERTY", "s", overrides={"Source": source, "Key": "b", "Value": 2}
    )

    value, _ = await value_of(executor, node, "Result")

    assert value == {"a": 1, "b": 2}
    assert source == {"a": 1}


@pytest.mark.asyncio
async def test_split_string(executor):
    """Test splitting on the configured, a wired and an empty delimiter."""
    default = create_atomic_node("SPLIT_STRING", "s1", overrides={"Source": "a,b,c"})
    custom = create_atomic_node(
        "SPLIT_STRING", "s2", overrides={"Source": "a b", "Delimiter": " "}
    )
    chars = create_atomic_node(
        "SPLIT_STRING", "s3", config={"split_delimiter": ""}, overrides={"Source": "ab"}
    )

    assert (await value_of(executor, default, "Result"))[0] == ["a", "b", "c"]
    assert (await value_of(executor, custom, "Result"))[0] == ["a", "b"]
    assert (await value_of(executor, chars, "Result"))[0] == ["a", "b"]


@pytest.mark.asyncio
async def test_construct_object(executor):
    """Test key/value pairs build an object and invalid keys are skipped."""
    node = create_atomic_node(
        "CONSTRUCT_OBJECT",
        "o",
        config={"pair_count": 3},
        overrides={"Key 1": "a", "Value 1": 1, "Key 2": "  ", "Value 2": 2, "Value 3": 3},
    )

    value, meta = await value_of(executor, node, "Object")

    assert value == {"a": 1}
    assert len(meta.errors) == 1


# =============================================================================
# Channels
# =============================================================================


@pytest.mark.asyncio
async def test_receive_data_reads_store(executor, store):
    """Test RECEIVE_DATA outputs the last value sent on its channel."""
    store.send("news", "hello")
    store.send("news", "world")
    node = create_atomic_node("RECEIVE_DATA", "r", config={"channel_name": "news"})
    empty = create_atomic_node("RECEIVE_DATA", "r2", config={"channel_name": "quiet"})

    assert (await value_of(executor, node, "Data Out", store=store))[0] == "world"
    assert (await value_of(executor, empty, "Data Out", store=store))[0] is None


@pytest.mark.asyncio
async def test_receive_data_without_channel_name(executor):
    """Test a blank channel name stops the pass."""
    node = create_atomic_node("RECEIVE_DATA", "r", config={"channel_name": " "})

    _, meta = await value_of(executor, node, "Data Out")

    assert meta.reason == TerminalReason.ERROR_CHANNEL_NAME_MISSING
