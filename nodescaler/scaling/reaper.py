# nodescaler/scaling/reaper.py
from __future__ import annotations

import logging
from typing import List

from ..backend.base import ClusterSource, NodePool
from ..config import ScalingConfig
from ..model.entities import Node, parse_cordon_timestamp
from ..snapshot.cluster import ClusterSnapshot, build_snapshot

log = logging.getLogger(__name__)


class GracePeriodReaper:
    """
    Удаляет cordoned-ноды, у которых истёк grace period и нет защищённых подов.
    """

    def __init__(self, source: ClusterSource, pool: NodePool, config: ScalingConfig):
        self.source = source
        self.pool = pool
        self.config = config

    def expired_nodes(self, snapshot: ClusterSnapshot) -> List[Node]:
        """
        Чистый отбор кандидатов. Любая cordoned-нода без валидной метки
        времени прерывает весь отбор (MalformedNodeState).
        """
        now = self.config.clock.now()
        result: List[Node] = []
        for n in snapshot.cordoned_nodes():
            cordoned_at = parse_cordon_timestamp(n)
            expired = cordoned_at + self.config.grace_period <= now
            protected = snapshot.protected_pods_on_node(n)

            if protected:
                log.debug(f"Node {n.name} still hosts {len(protected)} protected pods")
                continue
            if not expired:
                log.debug(f"Node {n.name} cordoned at {cordoned_at}, grace period not over")
                continue
            result.append(n)
        return result

    def reap(self) -> List[Node]:
        snapshot = build_snapshot(self.source)
        to_delete = self.expired_nodes(snapshot)
        if not to_delete:
            return []

        for n in to_delete:
            log.info(f"Deleting cordoned node: {n.name}")
            self.source.delete_node(n.name)

        self.pool.delete_nodes(to_delete)
        return to_delete
