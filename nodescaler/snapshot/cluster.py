# nodescaler/snapshot/cluster.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..backend.base import ClusterSource
from ..errors import SourceUnavailable
from ..model.entities import Node, Pod
from ..types import CpuMillis, NodeName

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClusterSnapshot:
    """
    Неизменяемый срез кластера на момент одного решения.

    Мутаторов нет: любое действие, меняющее кластер, требует нового
    snapshot'а через build_snapshot().
    """
    nodes: Tuple[Node, ...]
    pods: Tuple[Pod, ...]
    _pods_by_node: Dict[NodeName, Tuple[Pod, ...]] = field(init=False, repr=False, compare=False)
    _nodes_by_name: Dict[NodeName, Node] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_node: Dict[NodeName, List[Pod]] = {}
        for p in self.pods:
            if p.node is None:
                continue
            by_node.setdefault(p.node, []).append(p)
        object.__setattr__(self, "_pods_by_node", {k: tuple(v) for k, v in by_node.items()})
        object.__setattr__(self, "_nodes_by_name", {n.name: n for n in self.nodes})

    # --- выборки ---

    def node(self, name: str) -> Optional[Node]:
        return self._nodes_by_name.get(NodeName(name))

    def pods_on_node(self, node: Node) -> Tuple[Pod, ...]:
        return self._pods_by_node.get(node.name, ())

    def protected_pods_on_node(self, node: Node) -> List[Pod]:
        return [p for p in self.pods_on_node(node) if p.is_protected]

    def cordoned_nodes(self) -> List[Node]:
        return [n for n in self.nodes if n.cordoned]

    def uncordoned_nodes(self) -> List[Node]:
        return [n for n in self.nodes if not n.cordoned]

    # --- ресурсы ---

    def used_cpu_m(self, node: Node) -> CpuMillis:
        """Сумма requests всех подов на ноде, защищённых и нет. Сырые milliCPU."""
        return CpuMillis(sum(int(p.req_cpu_m) for p in self.pods_on_node(node)))

    def free_cpu_m(self, node: Node) -> int:
        return int(node.capacity_cpu_m or 0) - int(self.used_cpu_m(node))

    def available_cpu_m(self) -> int:
        return sum(self.free_cpu_m(n) for n in self.uncordoned_nodes())

    def available_blocks(self, block_size_cpu_m: int) -> int:
        """floor(свободный CPU на uncordoned-нодах / размер блока)."""
        return self.available_cpu_m() // int(block_size_cpu_m)

    def node_capacity_proxy(self) -> Optional[CpuMillis]:
        """
        Ёмкость "типовой" ноды. Пул считаем однородным, поэтому берём первую.
        """
        if not self.nodes:
            return None
        return self.nodes[0].capacity_cpu_m


def build_snapshot(source: ClusterSource) -> ClusterSnapshot:
    """
    Один проход по источнику: все ноды и поды на каждой из них.
    Нода без capacity - ошибка, а не пропуск.
    """
    try:
        nodes = list(source.list_nodes())
        pods: List[Pod] = []
        for n in nodes:
            pods.extend(source.list_pods(n.name))
    except SourceUnavailable:
        raise
    except Exception as e:
        raise SourceUnavailable(f"failed to fetch cluster state: {e}") from e

    for n in nodes:
        if n.capacity_cpu_m is None or int(n.capacity_cpu_m) <= 0:
            raise SourceUnavailable(f"node {n.name} has no cpu capacity")

    snap = ClusterSnapshot(nodes=tuple(nodes), pods=tuple(pods))
    log.debug(f"Snapshot: {len(snap.nodes)} nodes, {len(snap.pods)} pods")
    return snap
