"""
Test fixtures and helpers for pytest
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from nodescaler.backend.memory import InMemoryCluster
from nodescaler.config import Clock, ScalingConfig
from nodescaler.model.entities import Node, Pod, format_cordon_timestamp
from nodescaler.snapshot.cluster import ClusterSnapshot
from nodescaler.types import CpuMillis, Namespace, NodeName, PodId


NOW = datetime(2026, 1, 10, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock(Clock):
    """Clock that only moves when told to"""

    def __init__(self, now: datetime = NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


def make_node(
    name: str,
    capacity: Optional[int] = 1000,
    cordoned: bool = False,
    cordoned_at: Optional[datetime] = None,
    annotation: Optional[str] = None,
    provider_id: Optional[str] = None,
) -> Node:
    if cordoned_at is not None:
        cordoned = True
        annotation = format_cordon_timestamp(cordoned_at)
    return Node(
        name=NodeName(name),
        capacity_cpu_m=CpuMillis(capacity) if capacity is not None else None,
        cordoned=cordoned,
        cordon_annotation=annotation,
        provider_id=provider_id,
    )


def make_pod(name: str, node: Optional[str], cpu: int, protected: bool = False, namespace: str = "default") -> Pod:
    labels = {"sessions": "game"} if protected else {"app": "sidecar"}
    return Pod(
        id=PodId(f"{namespace}/{name}"),
        name=name,
        namespace=Namespace(namespace),
        node=NodeName(node) if node else None,
        req_cpu_m=CpuMillis(cpu),
        labels=labels,
        is_protected=protected,
    )


def make_snapshot(nodes, pods=()) -> ClusterSnapshot:
    return ClusterSnapshot(nodes=tuple(nodes), pods=tuple(pods))


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def config(clock):
    """blockSize=100m, buffer=5 blocks, grace period 60s"""
    return ScalingConfig(
        block_size_cpu_m=100,
        buffer_count=5,
        grace_period=timedelta(seconds=60),
        clock=clock,
    )


@pytest.fixture
def idle_cluster():
    """Three idle uncordoned nodes of 1000m each (30 blocks available)"""
    return InMemoryCluster(nodes=[make_node("n1"), make_node("n2"), make_node("n3")])
