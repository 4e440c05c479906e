# nodescaler/backend/memory.py
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..errors import BackendRequestFailed
from ..model.entities import Node, Pod, format_cordon_timestamp
from ..snapshot.cluster import ClusterSnapshot
from ..types import CpuMillis, NodeName
from .base import ClusterSource, NodePool

log = logging.getLogger(__name__)


class InMemoryCluster(ClusterSource, NodePool):
    """
    Кластер в памяти: источник состояния и пул нод одновременно.

    Используется для --dry-run по сохранённому snapshot'у и в тестах.
    Все мутирующие вызовы пишутся в self.calls.
    """

    def __init__(
        self,
        nodes: Sequence[Node] = (),
        pods: Sequence[Pod] = (),
        node_capacity_cpu_m: Optional[int] = None,
        new_node_prefix: str = "node-new",
    ):
        self.nodes: Dict[NodeName, Node] = {n.name: n for n in nodes}
        self.pods: List[Pod] = list(pods)
        self.node_capacity_cpu_m = node_capacity_cpu_m
        self.new_node_prefix = new_node_prefix
        self.calls: List[Tuple] = []
        # операции, которые должны падать: "cordon", "uncordon", "increase", "delete", "list"
        self.fail_on: Set[str] = set()
        self._counter = 0

    @classmethod
    def from_snapshot(cls, snapshot: ClusterSnapshot, **kwargs) -> "InMemoryCluster":
        return cls(nodes=snapshot.nodes, pods=snapshot.pods, **kwargs)

    def _check(self, operation: str, node: Optional[str] = None) -> None:
        if operation in self.fail_on:
            raise BackendRequestFailed(operation, "injected failure", node=node)

    # --- ClusterSource ---

    def list_nodes(self) -> List[Node]:
        if "list" in self.fail_on:
            raise ConnectionError("cluster is unreachable")
        return list(self.nodes.values())

    def list_pods(self, node_name: str) -> List[Pod]:
        return [p for p in self.pods if p.node == node_name]

    def set_cordoned(self, node_name: str, cordoned: bool, timestamp: Optional[datetime]) -> None:
        op = "cordon" if cordoned else "uncordon"
        self._check(op, node_name)
        node = self.nodes.get(NodeName(node_name))
        if node is None:
            raise BackendRequestFailed(op, "no such node", node=node_name)
        annotation = format_cordon_timestamp(timestamp) if cordoned and timestamp else None
        self.nodes[node.name] = replace(node, cordoned=cordoned, cordon_annotation=annotation)
        self.calls.append((op, node_name))
        log.info(f"[memory] {op} {node_name}")

    def delete_node(self, node_name: str) -> None:
        self._check("delete", node_name)
        self.nodes.pop(NodeName(node_name), None)
        self.pods = [p for p in self.pods if p.node != node_name]
        self.calls.append(("delete_node", node_name))

    # --- NodePool ---

    def increase_to_size(self, size: int) -> None:
        self._check("increase")
        self.calls.append(("increase", size))
        current = len(self.nodes)
        if size <= current:
            log.info(f"[memory] ignoring request to resize pool of {current} to {size}")
            return

        capacity = self.node_capacity_cpu_m
        if capacity is None and self.nodes:
            capacity = next(iter(self.nodes.values())).capacity_cpu_m
        for _ in range(size - current):
            self._counter += 1
            name = NodeName(f"{self.new_node_prefix}-{self._counter}")
            self.nodes[name] = Node(name=name, capacity_cpu_m=CpuMillis(int(capacity or 0)))
        log.info(f"[memory] pool resized from {current} to {size}")

    def delete_nodes(self, nodes: Sequence[Node]) -> None:
        self._check("delete")
        self.calls.append(("delete_nodes", tuple(n.name for n in nodes)))
        for n in nodes:
            self.nodes.pop(n.name, None)
