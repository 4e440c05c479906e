# nodescaler/scaling/selector.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import cmp_to_key
from typing import List

from ..backend.base import ClusterSource
from ..model.entities import Node
from ..snapshot.cluster import ClusterSnapshot
from .planner import nodes_to_cordon

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Компараторы (чистые, без I/O)
# ---------------------------------------------------------------------------


def _by_name(a: Node, b: Node) -> int:
    return (a.name > b.name) - (a.name < b.name)


def compare_for_uncordon(snapshot: ClusterSnapshot, a: Node, b: Node) -> int:
    """Сначала самые загруженные (по сумме requests)."""
    ua = int(snapshot.used_cpu_m(a))
    ub = int(snapshot.used_cpu_m(b))
    if ua != ub:
        return -1 if ua > ub else 1
    return _by_name(a, b)


def compare_for_cordon(snapshot: ClusterSnapshot, a: Node, b: Node) -> int:
    """Сначала ноды с наименьшим числом подов."""
    pa = len(snapshot.pods_on_node(a))
    pb = len(snapshot.pods_on_node(b))
    if pa != pb:
        return -1 if pa < pb else 1
    return _by_name(a, b)


def order_for_uncordon(snapshot: ClusterSnapshot) -> List[Node]:
    return sorted(
        snapshot.cordoned_nodes(),
        key=cmp_to_key(lambda a, b: compare_for_uncordon(snapshot, a, b)),
    )


def order_for_cordon(snapshot: ClusterSnapshot) -> List[Node]:
    # все ноды, включая уже cordoned
    return sorted(
        snapshot.nodes,
        key=cmp_to_key(lambda a, b: compare_for_cordon(snapshot, a, b)),
    )


# ---------------------------------------------------------------------------
# Выбор + мутации
# ---------------------------------------------------------------------------


@dataclass
class UncordonResult:
    satisfied: bool
    uncordoned: List[Node] = field(default_factory=list)


def pick_to_uncordon(
    snapshot: ClusterSnapshot,
    deficit_blocks: int,
    block_size_cpu_m: int,
    source: ClusterSource,
) -> UncordonResult:
    """
    Uncordon'ит cordoned-ноды (самые загруженные первыми), пока не покроет
    deficit_blocks. satisfied=False, если cordoned-ноды кончились раньше.
    """
    if deficit_blocks <= 0:
        log.warning(f"Cannot uncordon nodes by a 0 or negative number of blocks: {deficit_blocks}")
        return UncordonResult(satisfied=True)

    nodes = order_for_uncordon(snapshot)
    if not nodes:
        log.info("No nodes that are unscheduled, exiting...")
        return UncordonResult(satisfied=False)

    cpu_request = int(deficit_blocks) * int(block_size_cpu_m)
    log.info(
        f"Uncordoning nodes. Requesting {deficit_blocks} blocks for a cpu request of {cpu_request}m"
    )

    result = UncordonResult(satisfied=False)
    for n in nodes:
        source.set_cordoned(n.name, False, None)
        result.uncordoned.append(n)

        freed = snapshot.free_cpu_m(n)
        cpu_request -= freed
        log.info(f"Uncordoned {n.name}: +{freed}m cpu, {cpu_request}m remaining")

        if cpu_request <= 0:
            result.satisfied = True
            return result

    return result


def pick_to_cordon(
    snapshot: ClusterSnapshot,
    surplus_blocks: int,
    block_size_cpu_m: int,
    source: ClusterSource,
    now: datetime,
) -> List[Node]:
    """
    Cordon'ит ноды с наименьшим числом подов, но не больше ёмкости,
    которая укладывается в surplus_blocks целиком.
    """
    if surplus_blocks <= 0:
        log.warning(f"Cannot cordon nodes by a 0 or negative number of blocks: {surplus_blocks}")
        return []

    capacity = snapshot.node_capacity_proxy()
    if not capacity:
        return []

    diff = nodes_to_cordon(surplus_blocks, block_size_cpu_m, int(capacity))
    if diff <= 0:
        log.info("No nodes to be cordoned.")
        return []

    log.info(f"Cordoning {diff} nodes")
    chosen = order_for_cordon(snapshot)[:diff]

    for n in chosen:
        # уже cordoned-нода тоже получает новую метку времени
        log.info(f"Cordoning node: {n.name}")
        source.set_cordoned(n.name, True, now)

    return chosen
