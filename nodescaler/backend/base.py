# nodescaler/backend/base.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from ..model.entities import Node, Pod


class ClusterSource:
    """
    Источник состояния кластера + мутации над нодами.

    Все методы блокирующие. Чтения могут бросать что угодно - build_snapshot
    превратит это в SourceUnavailable; мутации бросают BackendRequestFailed.
    """

    def list_nodes(self) -> List[Node]:
        raise NotImplementedError

    def list_pods(self, node_name: str) -> List[Pod]:
        raise NotImplementedError

    def set_cordoned(self, node_name: str, cordoned: bool, timestamp: Optional[datetime]) -> None:
        """cordoned=True ставит метку времени, False - снимает её."""
        raise NotImplementedError

    def delete_node(self, node_name: str) -> None:
        raise NotImplementedError


class NodePool:
    """Управляемый пул нод (ASG, managed node group и т.п.)."""

    def increase_to_size(self, size: int) -> None:
        """Запросы на size <= текущего размера игнорируются, а не отклоняются."""
        raise NotImplementedError

    def delete_nodes(self, nodes: Sequence[Node]) -> None:
        raise NotImplementedError
