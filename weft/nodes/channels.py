"""Named channel nodes for wireless messaging through the global store."""

from typing import Any, Dict, List

from weft.core.graph import OperationType
from weft.nodes.base import (
    NodeDefinition,
    StepResult,
    data_port,
    exec_hops,
    exec_port,
    outputs,
    pull_input,
)
from weft.utils.errors import NodeExecutionError, TerminalReason


def _channel_name(node) -> str:
    name = (node.config.get("channel_name") or "").strip()
    if not name:
        raise NodeExecutionError(
            node.id,
            "Channel name is not configured",
            reason=TerminalReason.ERROR_CHANNEL_NAME_MISSING,
        )
    return name


def _send_ports(node_id: str, config: Dict[str, Any]):
    return (
        [exec_port(node_id, "in", "Execute"), data_port(node_id, "in", "Data In")],
        [exec_port(node_id, "out", "Executed")],
    )


async def _step_send(node, triggered_port_id, nodes, connections, resolved_state, meta, resolve):
    name = _channel_name(node)
    value = await pull_input(node, "Data In", connections, resolve)
    meta.store.send(name, value)
    meta.debug(f"Sent value on channel '{name}'.", node.id)
    return StepResult(next_hops=exec_hops(node, "Executed", connections))


def _receive_ports(node_id: str, config: Dict[str, Any]):
    return [], [data_port(node_id, "out", "Data Out")]


def _resolve_receive(node, resolved_inputs, context, meta, iteration=None):
    name = _channel_name(node)
    store = meta.store
    if name not in store.channels():
        meta.debug(f"Channel '{name}' has no value yet.", node.id)
    return outputs(node, {"Data Out": store.receive(name)})


DEFINITIONS: List[NodeDefinition] = [
    NodeDefinition(
        operation_type=OperationType.SEND_DATA.value,
        name="Send Data",
        description="Publishes 'Data In' on a named channel when pulsed.",
        port_generator=_send_ports,
        process_step=_step_send,
        default_config={"channel_name": ""},
    ),
    NodeDefinition(
        operation_type=OperationType.RECEIVE_DATA.value,
        name="Receive Data",
        description="Outputs the last value published on a named channel.",
        port_generator=_receive_ports,
        resolve_outputs=_resolve_receive,
        default_config={"channel_name": ""},
    ),
]
