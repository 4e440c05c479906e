# nodescaler/backend/kube.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..config import DEFAULT_CORDON_ANNOTATION
from ..errors import BackendRequestFailed
from ..model.entities import Node, Pod, ProtectedLabel, format_cordon_timestamp, pod_is_protected
from ..types import CpuMillis, Namespace, NodeName, PodId
from .base import ClusterSource

log = logging.getLogger(__name__)

# поды в этих фазах ресурсы не держат
_FINISHED_PHASES = ("Succeeded", "Failed")


def parse_cpu(quantity: Any) -> CpuMillis:
    """Пустое значение = 0; нераспознанное - ValueError."""
    if quantity is None or quantity == "": return CpuMillis(0)
    quantity = str(quantity)
    try:
        if quantity.endswith('m'): return CpuMillis(int(quantity[:-1]))
        if quantity.endswith('n'): return CpuMillis(int(int(quantity[:-1]) / 1_000_000))
        if quantity.endswith('u'): return CpuMillis(int(int(quantity[:-1]) / 1_000))
        return CpuMillis(int(float(quantity) * 1000))
    except ValueError as e:
        raise ValueError(f"invalid cpu quantity: {quantity!r}") from e


def load_core_api(k8s_context: Optional[str] = None) -> client.CoreV1Api:
    """
    Внутри кластера - in-cluster config, иначе kubeconfig (с нужным контекстом).
    """
    if k8s_context is None:
        try:
            config.load_incluster_config()
            return client.CoreV1Api()
        except config.ConfigException:
            pass
    config.load_kube_config(context=k8s_context)
    return client.CoreV1Api()


class KubeClusterSource(ClusterSource):
    def __init__(
        self,
        api: client.CoreV1Api,
        protected_label: Optional[ProtectedLabel] = None,
        cordon_annotation: str = DEFAULT_CORDON_ANNOTATION,
    ):
        self.api = api
        self.protected_label = protected_label or ProtectedLabel()
        self.cordon_annotation = cordon_annotation

    # --- чтение ---

    def _to_node(self, kn) -> Node:
        meta = kn.metadata
        spec = kn.spec
        status = kn.status
        capacity: Dict[str, Any] = (status.capacity if status is not None else None) or {}
        annotations = meta.annotations or {}
        cpu = capacity.get("cpu")

        return Node(
            name=NodeName(meta.name),
            capacity_cpu_m=parse_cpu(cpu) if cpu is not None else None,
            cordoned=bool(spec is not None and spec.unschedulable),
            cordon_annotation=annotations.get(self.cordon_annotation),
            provider_id=spec.provider_id if spec is not None else None,
            labels=dict(meta.labels or {}),
        )

    def _to_pod(self, kp) -> Pod:
        meta = kp.metadata
        spec = kp.spec
        labels = dict(meta.labels or {})
        req_cpu = 0
        for c in spec.containers or []:
            requests = (c.resources.requests if c.resources is not None else None) or {}
            req_cpu += int(parse_cpu(requests.get("cpu")))

        return Pod(
            id=PodId(f"{meta.namespace}/{meta.name}"),
            name=meta.name,
            namespace=Namespace(meta.namespace),
            node=NodeName(spec.node_name) if spec.node_name else None,
            req_cpu_m=CpuMillis(req_cpu),
            labels=labels,
            is_protected=pod_is_protected(labels, self.protected_label),
        )

    def list_nodes(self) -> List[Node]:
        log.debug("Fetching nodes")
        return [self._to_node(kn) for kn in self.api.list_node().items]

    def list_pods(self, node_name: str) -> List[Pod]:
        resp = self.api.list_pod_for_all_namespaces(field_selector=f"spec.nodeName={node_name}")
        result: List[Pod] = []
        for kp in resp.items:
            phase = kp.status.phase if kp.status is not None else None
            if phase in _FINISHED_PHASES:
                continue
            result.append(self._to_pod(kp))
        return result

    # --- мутации ---

    def set_cordoned(self, node_name: str, cordoned: bool, timestamp: Optional[datetime]) -> None:
        op = "cordon" if cordoned else "uncordon"
        # None в strategic merge patch удаляет аннотацию
        value = format_cordon_timestamp(timestamp) if cordoned and timestamp else None
        body = {
            "spec": {"unschedulable": cordoned},
            "metadata": {"annotations": {self.cordon_annotation: value}},
        }
        try:
            self.api.patch_node(node_name, body)
        except ApiException as e:
            raise BackendRequestFailed(op, f"{e.status} {e.reason}", node=node_name) from e
        except (HTTPError, OSError) as e:
            raise BackendRequestFailed(op, str(e), node=node_name) from e

    def delete_node(self, node_name: str) -> None:
        try:
            self.api.delete_node(node_name)
        except ApiException as e:
            if e.status == 404:
                log.info(f"Node {node_name} is already gone")
                return
            raise BackendRequestFailed("delete", f"{e.status} {e.reason}", node=node_name) from e
        except (HTTPError, OSError) as e:
            raise BackendRequestFailed("delete", str(e), node=node_name) from e
