# nodescaler/model/entities.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from ..errors import MalformedNodeState
from ..types import NodeName, PodId, Namespace, CpuMillis


@dataclass(frozen=True)
class ProtectedLabel:
    """
    Метка, по которой под считается "активной сессией".
    Нода с хотя бы одним таким подом не удаляется никогда.
    """
    key: str = "sessions"
    value: str = "game"

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


@dataclass(frozen=True)
class Node:
    name: NodeName
    # allocatable CPU; None значит "источник не отдал capacity"
    capacity_cpu_m: Optional[CpuMillis]
    cordoned: bool = False
    # сырое значение аннотации с моментом cordon (как хранится в кластере)
    cordon_annotation: Optional[str] = None
    # aws:///eu-central-1a/i-0123... и т.п.
    provider_id: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Pod:
    id: PodId
    name: str
    namespace: Namespace
    node: Optional[NodeName]
    req_cpu_m: CpuMillis
    labels: Dict[str, str] = field(default_factory=dict, compare=False)
    is_protected: bool = False


def pod_is_protected(labels: Optional[Dict[str, str]], protected: ProtectedLabel) -> bool:
    if not labels:
        return False
    return labels.get(protected.key) == protected.value


# ---------------------------------------------------------------------------
# Метка времени cordon
# ---------------------------------------------------------------------------


def format_cordon_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_cordon_timestamp(node: Node) -> datetime:
    """
    Момент, когда нода была cordon'ута.

    Отсутствующая или битая аннотация - ошибка MalformedNodeState, не пропуск.
    """
    raw = node.cordon_annotation
    if not raw:
        raise MalformedNodeState(node.name, "cordoned node has no cordon timestamp")
    try:
        ts = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise MalformedNodeState(node.name, f"cannot parse cordon timestamp {raw!r}") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
