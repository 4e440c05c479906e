# nodescaler/api/server.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException

from ..errors import NodeScalerError
from ..runner import TickInProgress, TickRunner
from ..scaling.controller import TickReport
from ..snapshot.cluster import build_snapshot
from .schema import (
    HealthResponse, NodeRowModel, SnapshotResponse, StatusResponse, TickReportModel
)

app = FastAPI(title="nodescaler")

log = logging.getLogger("uvicorn")

# --- STATE ---
# Раннер подключает лаунчер (или тест) через attach_runner()
RUNNER: Optional[TickRunner] = None


def attach_runner(runner: Optional[TickRunner]) -> None:
    global RUNNER
    RUNNER = runner


def _require_runner() -> TickRunner:
    if RUNNER is None:
        raise HTTPException(status_code=503, detail="Controller is not configured")
    return RUNNER


def to_report_model(report: TickReport) -> TickReportModel:
    return TickReportModel(
        outcome=report.outcome.value,
        started_at=report.started_at.isoformat(),
        available_blocks=report.available_blocks,
        target_blocks=report.target_blocks,
        uncordoned=list(report.uncordoned),
        cordoned=list(report.cordoned),
        requested_size=report.requested_size,
        deleted=list(report.deleted),
        error=report.error,
    )

# --- Endpoints ---

@app.get("/healthz", response_model=HealthResponse)
def healthz():
    runner = _require_runner()
    return HealthResponse(status="ok", loop_running=runner.running)

@app.get("/status", response_model=StatusResponse)
def status():
    runner = _require_runner()
    last = runner.last_report
    return StatusResponse(
        ticks_total=runner.ticks_total,
        ticks_failed=runner.ticks_failed,
        last_tick=to_report_model(last) if last is not None else None,
    )

@app.get("/snapshot", response_model=SnapshotResponse)
def snapshot():
    runner = _require_runner()
    controller = runner.controller
    cfg = controller.config
    try:
        snap = build_snapshot(controller.source)
    except NodeScalerError as e:
        raise HTTPException(status_code=502, detail=str(e))

    rows = []
    for n in snap.nodes:
        rows.append(NodeRowModel(
            node=n.name,
            capacity_cpu_m=int(n.capacity_cpu_m or 0),
            used_cpu_m=int(snap.used_cpu_m(n)),
            free_cpu_m=snap.free_cpu_m(n),
            pods_count=len(snap.pods_on_node(n)),
            protected_pods_count=len(snap.protected_pods_on_node(n)),
            cordoned=n.cordoned,
            cordon_timestamp=n.cordon_annotation,
        ))
    return SnapshotResponse(
        block_size_cpu_m=cfg.block_size_cpu_m,
        buffer_count=cfg.buffer_count,
        available_blocks=snap.available_blocks(cfg.block_size_cpu_m),
        nodes=rows,
    )

@app.post("/tick", response_model=TickReportModel)
def trigger_tick():
    runner = _require_runner()
    try:
        report = runner.run_once(blocking=False)
    except TickInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    log.info(f"Manual tick: {report.outcome.value}")
    return to_report_model(report)
