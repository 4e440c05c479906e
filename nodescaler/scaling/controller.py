# nodescaler/scaling/controller.py
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..backend.base import ClusterSource, NodePool
from ..config import ScalingConfig
from ..snapshot.cluster import build_snapshot
from . import planner, selector
from .reaper import GracePeriodReaper

log = logging.getLogger(__name__)


class TickOutcome(str, enum.Enum):
    GROWN = "grown"
    SHRUNK = "shrunk"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class TickReport:
    outcome: TickOutcome
    started_at: datetime
    available_blocks: Optional[int] = None
    target_blocks: Optional[int] = None
    uncordoned: List[str] = field(default_factory=list)
    cordoned: List[str] = field(default_factory=list)
    requested_size: Optional[int] = None
    deleted: List[str] = field(default_factory=list)
    error: Optional[str] = None


class ScalingController:
    """
    Один тик reconciliation:

      1. snapshot S0, available vs buffer
      2. дефицит: uncordon; не хватило - новый snapshot и рост пула
      3. излишек: cordon
      4. всегда: reaper

    Ошибка любого шага прерывает тик; сделанное до неё остаётся,
    следующий тик начинает с нового snapshot'а.
    """

    def __init__(self, source: ClusterSource, pool: NodePool, config: ScalingConfig):
        self.source = source
        self.pool = pool
        self.config = config
        self.reaper = GracePeriodReaper(source, pool, config)

    def tick(self) -> TickReport:
        cfg = self.config
        report = TickReport(
            outcome=TickOutcome.UNCHANGED,
            started_at=cfg.clock.now(),
            target_blocks=cfg.buffer_count,
        )

        snapshot = build_snapshot(self.source)
        available = snapshot.available_blocks(cfg.block_size_cpu_m)
        report.available_blocks = available
        log.info(
            f"CPU request blocks of {cfg.block_size_cpu_m}m. Available: {available}. "
            f"Requires a buffer of {cfg.buffer_count}"
        )

        if available < cfg.buffer_count:
            res = selector.pick_to_uncordon(
                snapshot, cfg.buffer_count - available, cfg.block_size_cpu_m, self.source
            )
            report.uncordoned = [n.name for n in res.uncordoned]
            if res.uncordoned:
                report.outcome = TickOutcome.GROWN

            if not res.satisfied:
                # cordon-состояние могло измениться: считаем заново
                snapshot = build_snapshot(self.source)
                available = snapshot.available_blocks(cfg.block_size_cpu_m)
                size = planner.grow(snapshot, cfg.buffer_count - available, cfg, self.pool)
                if size:
                    report.requested_size = size
                    report.outcome = TickOutcome.GROWN

        elif available > cfg.buffer_count:
            chosen = selector.pick_to_cordon(
                snapshot,
                available - cfg.buffer_count,
                cfg.block_size_cpu_m,
                self.source,
                cfg.clock.now(),
            )
            report.cordoned = [n.name for n in chosen if not n.cordoned]
            if report.cordoned:
                report.outcome = TickOutcome.SHRUNK

        report.deleted = [n.name for n in self.reaper.reap()]
        if report.deleted and report.outcome == TickOutcome.UNCHANGED:
            report.outcome = TickOutcome.SHRUNK
        return report
