# nodescaler/snapshot/io.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from ..model.entities import Node, Pod, ProtectedLabel, pod_is_protected
from ..types import CpuMillis, Namespace, NodeName, PodId
from .cluster import ClusterSnapshot


def snapshot_to_dict(snap: ClusterSnapshot) -> Dict[str, Any]:
    nodes_dict = {}
    for n in snap.nodes:
        nodes_dict[n.name] = {
            "name": n.name,
            "capacity_cpu_m": int(n.capacity_cpu_m) if n.capacity_cpu_m is not None else None,
            "cordoned": n.cordoned,
            "cordon_timestamp": n.cordon_annotation,
            "provider_id": n.provider_id,
            "labels": dict(n.labels),
        }

    pods_dict = {}
    for p in snap.pods:
        pods_dict[p.id] = {
            "name": p.name,
            "namespace": p.namespace,
            "node": p.node,
            "req_cpu_m": int(p.req_cpu_m or 0),
            "labels": dict(p.labels),
            "is_protected": p.is_protected,
        }

    return {"nodes": nodes_dict, "pods": pods_dict}


def snapshot_from_dict(data: Dict[str, Any], protected: Optional[ProtectedLabel] = None) -> ClusterSnapshot:
    """
    Обратное к snapshot_to_dict. Если задан protected, классификация подов
    пересчитывается по меткам, иначе берётся сохранённый is_protected.
    """
    raw_nodes = data.get("nodes", {})
    raw_pods = data.get("pods", {})

    nodes = []
    for k, v in raw_nodes.items():
        cap = v.get("capacity_cpu_m")
        nodes.append(Node(
            name=NodeName(v.get("name") or k),
            capacity_cpu_m=CpuMillis(int(cap)) if cap is not None else None,
            cordoned=bool(v.get("cordoned", False)),
            cordon_annotation=v.get("cordon_timestamp"),
            provider_id=v.get("provider_id"),
            labels=v.get("labels", {}),
        ))

    pods = []
    for k, v in raw_pods.items():
        labels = v.get("labels", {})
        namespace, _, name = str(k).rpartition("/")
        pods.append(Pod(
            id=PodId(k),
            name=v.get("name") or name,
            namespace=Namespace(v.get("namespace") or namespace or "default"),
            node=NodeName(v.get("node")) if v.get("node") else None,
            req_cpu_m=CpuMillis(int(v.get("req_cpu_m", 0))),
            labels=labels,
            is_protected=(
                pod_is_protected(labels, protected) if protected is not None
                else bool(v.get("is_protected", False))
            ),
        ))

    return ClusterSnapshot(nodes=tuple(nodes), pods=tuple(pods))


def save_snapshot_to_file(snap: ClusterSnapshot, path: Path) -> None:
    data = snapshot_to_dict(snap)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)


def load_snapshot_from_file(path: Path, protected: Optional[ProtectedLabel] = None) -> ClusterSnapshot:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return snapshot_from_dict(data, protected)
