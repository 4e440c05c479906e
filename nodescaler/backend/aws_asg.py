# nodescaler/backend/aws_asg.py
from __future__ import annotations

import json
import logging
import subprocess
from typing import List, Optional, Sequence

from ..errors import BackendRequestFailed
from ..model.entities import Node
from .base import NodePool

log = logging.getLogger(__name__)


def instance_id_from_provider_id(provider_id: Optional[str]) -> Optional[str]:
    """
    aws:///eu-central-1a/i-0abc123 -> i-0abc123
    """
    if not provider_id or not provider_id.startswith("aws://"):
        return None
    tail = provider_id.rstrip("/").rsplit("/", 1)[-1]
    return tail if tail.startswith("i-") else None


class AwsAutoScalingNodePool(NodePool):
    """
    Пул нод = EC2 Auto Scaling Group. Работаем через aws CLI.
    """

    def __init__(self, group_name: str, region: Optional[str] = None, profile: Optional[str] = None):
        self.group_name = group_name
        self.region = region
        self.profile = profile

    def _run_aws(self, operation: str, args: List[str]) -> dict:
        cmd = ["aws", "autoscaling"] + args + ["--output", "json"]
        if self.region:
            cmd.extend(["--region", self.region])
        if self.profile:
            cmd.extend(["--profile", self.profile])

        log.info(f"Running: {' '.join(cmd)}")
        try:
            proc = subprocess.run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as e:
            raise BackendRequestFailed(operation, (e.stderr or "").strip() or str(e)) from e
        except OSError as e:
            raise BackendRequestFailed(operation, f"cannot run aws cli: {e}") from e

        out = (proc.stdout or "").strip()
        if not out:
            return {}
        try:
            return json.loads(out)
        except ValueError as e:
            raise BackendRequestFailed(operation, f"unexpected aws cli output: {out[:200]!r}") from e

    def desired_capacity(self) -> int:
        resp = self._run_aws("increase", [
            "describe-auto-scaling-groups",
            "--auto-scaling-group-names", self.group_name,
        ])
        groups = resp.get("AutoScalingGroups", [])
        if not groups:
            raise BackendRequestFailed("increase", f"auto scaling group {self.group_name} not found")
        return int(groups[0].get("DesiredCapacity", 0))

    def increase_to_size(self, size: int) -> None:
        current = self.desired_capacity()
        if size <= current:
            log.info(f"Ignoring request to resize {self.group_name} from {current} to {size}")
            return

        log.info(f"Resizing {self.group_name} from {current} to {size}")
        self._run_aws("increase", [
            "set-desired-capacity",
            "--auto-scaling-group-name", self.group_name,
            "--desired-capacity", str(size),
        ])

    def delete_nodes(self, nodes: Sequence[Node]) -> None:
        """Best-effort: пытаемся удалить все, ошибки собираем и отдаём одной."""
        failed: List[str] = []
        for n in nodes:
            instance_id = instance_id_from_provider_id(n.provider_id)
            if instance_id is None:
                log.error(f"Cannot map provider id {n.provider_id!r} of node {n.name} to an instance")
                failed.append(n.name)
                continue
            log.info(f"Terminating instance {instance_id} of node {n.name}")
            try:
                self._run_aws("delete", [
                    "terminate-instance-in-auto-scaling-group",
                    "--instance-id", instance_id,
                    "--should-decrement-desired-capacity",
                ])
            except BackendRequestFailed as e:
                log.error(f"Failed to terminate {instance_id}: {e}")
                failed.append(n.name)

        if failed:
            raise BackendRequestFailed("delete", f"failed to remove nodes: {', '.join(failed)}")
