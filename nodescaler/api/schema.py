# nodescaler/api/schema.py
from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel

class HealthResponse(BaseModel):
    status: str
    loop_running: bool

class TickReportModel(BaseModel):
    outcome: str
    started_at: str
    available_blocks: Optional[int] = None
    target_blocks: Optional[int] = None
    uncordoned: List[str] = []
    cordoned: List[str] = []
    requested_size: Optional[int] = None
    deleted: List[str] = []
    error: Optional[str] = None

class StatusResponse(BaseModel):
    ticks_total: int
    ticks_failed: int
    last_tick: Optional[TickReportModel] = None

class NodeRowModel(BaseModel):
    node: str
    capacity_cpu_m: int
    used_cpu_m: int
    free_cpu_m: int
    pods_count: int
    protected_pods_count: int
    cordoned: bool
    cordon_timestamp: Optional[str] = None

class SnapshotResponse(BaseModel):
    block_size_cpu_m: int
    buffer_count: int
    available_blocks: int
    nodes: List[NodeRowModel]
