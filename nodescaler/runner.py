# nodescaler/runner.py
from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Optional

from .errors import NodeScalerError
from .scaling.controller import ScalingController, TickOutcome, TickReport

log = logging.getLogger(__name__)


class TickInProgress(Exception):
    pass


class TickRunner:
    """
    Гоняет ScalingController.tick() по таймеру в одном фоновом потоке.
    Тики никогда не пересекаются: и таймер, и ручной запуск идут через один lock.
    """

    def __init__(self, controller: ScalingController, interval: timedelta):
        self.controller = controller
        self.interval = interval
        self.last_report: Optional[TickReport] = None
        self.ticks_total = 0
        self.ticks_failed = 0

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, blocking: bool = True) -> TickReport:
        """
        Один тик. Ошибки контроллера не пробрасываются, а превращаются
        в отчёт с outcome=FAILED. blocking=False бросает TickInProgress,
        если тик уже идёт.
        """
        if not self._lock.acquire(blocking=blocking):
            raise TickInProgress("a tick is already running")
        try:
            started = self.controller.config.clock.now()
            try:
                report = self.controller.tick()
            except NodeScalerError as e:
                log.error(f"Tick failed: {e}")
                report = TickReport(outcome=TickOutcome.FAILED, started_at=started, error=str(e))
                self.ticks_failed += 1
            except Exception as e:
                # цикл тиков переживает любую ошибку одного тика
                log.exception(f"Tick failed with unexpected error: {e!r}")
                report = TickReport(outcome=TickOutcome.FAILED, started_at=started, error=repr(e))
                self.ticks_failed += 1
            else:
                log.info(f"Tick finished: {report.outcome.value}")
            self.ticks_total += 1
            self.last_report = report
            return report
        finally:
            self._lock.release()

    def run_forever(self) -> None:
        log.info(f"Starting tick loop every {self.interval}")
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval.total_seconds())
        log.info("Tick loop stopped")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="nodescaler-ticks", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
