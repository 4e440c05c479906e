# nodescaler/scaling/planner.py
from __future__ import annotations

import logging
import math

from ..backend.base import NodePool
from ..config import ScalingConfig
from ..snapshot.cluster import ClusterSnapshot

log = logging.getLogger(__name__)


def nodes_to_add(deficit_blocks: int, block_size_cpu_m: int, node_capacity_cpu_m: int) -> int:
    """ceil: добавленная ёмкость не меньше дефицита."""
    cpu_request = int(deficit_blocks) * int(block_size_cpu_m)
    return int(math.ceil(cpu_request / float(node_capacity_cpu_m)))


def nodes_to_cordon(surplus_blocks: int, block_size_cpu_m: int, node_capacity_cpu_m: int) -> int:
    """floor: выводимая ёмкость не больше излишка."""
    cpu_request = int(surplus_blocks) * int(block_size_cpu_m)
    return int(math.floor(cpu_request / float(node_capacity_cpu_m)))


def grow(snapshot: ClusterSnapshot, deficit_blocks: int, config: ScalingConfig, pool: NodePool) -> int:
    """
    Увеличивает пул на столько нод, чтобы покрыть deficit_blocks.

    Новый размер = число uncordoned-нод + добавка. Возвращает запрошенный
    размер или 0, если ничего не просили.

    Ёмкость новой ноды берётся с первой ноды snapshot'а, поэтому пул из
    нуля нод этой функцией не растёт: его надо поднять хотя бы до одной
    ноды снаружи.
    """
    if deficit_blocks <= 0:
        log.warning(f"Cannot increase nodes by a 0 or negative number of blocks: {deficit_blocks}")
        return 0

    capacity = snapshot.node_capacity_proxy()
    if not capacity:
        # пустой кластер: не от чего взять шаблон
        log.warning("Cannot increase node pool: no nodes to derive capacity from")
        return 0

    log.info(
        f"Attempting to increase node list of {len(snapshot.nodes)} by {deficit_blocks} cpu blocks"
    )
    diff = nodes_to_add(deficit_blocks, config.block_size_cpu_m, int(capacity))
    if diff <= 0:
        log.warning(f"Computed a non-positive number of nodes to add: {diff}")
        return 0

    size = len(snapshot.uncordoned_nodes()) + diff
    log.info(f"Adding {diff} nodes to the node pool, requesting size {size}")
    pool.increase_to_size(size)
    return size
