# nodescaler/config.py
from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from .errors import ConfigError
from .model.entities import ProtectedLabel

log = logging.getLogger(__name__)

DEFAULT_CORDON_ANNOTATION = "nodescaler/cordon-timestamp"


class Clock:
    """Источник времени. В тестах подменяется на фиксированные часы."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScalingConfig:
    """
    Параметры одного контроллера. Не меняются в течение тика.

      - block_size_cpu_m: сколько milliCPU в одном "блоке" (слот под одну сессию)
      - buffer_count: сколько свободных блоков держим всегда
      - grace_period: сколько cordoned-нода ждёт перед удалением
    """
    block_size_cpu_m: int
    buffer_count: int
    grace_period: timedelta
    clock: Clock = field(default_factory=SystemClock, compare=False)
    protected_label: ProtectedLabel = field(default_factory=ProtectedLabel)
    cordon_annotation: str = DEFAULT_CORDON_ANNOTATION

    def __post_init__(self) -> None:
        if self.block_size_cpu_m <= 0:
            raise ConfigError(f"block size must be positive, got {self.block_size_cpu_m}")
        if self.buffer_count < 0:
            raise ConfigError(f"buffer count must not be negative, got {self.buffer_count}")
        if self.grace_period < timedelta(0):
            raise ConfigError(f"grace period must not be negative, got {self.grace_period}")


@dataclass(frozen=True)
class RunnerConfig:
    tick_interval: timedelta = timedelta(seconds=10)


# ---------------------------------------------------------------------------
# Загрузка из окружения
# ---------------------------------------------------------------------------

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> timedelta:
    """
    "90" (секунды), "30s", "5m", "1h30m", "250ms".
    """
    raw = (value or "").strip()
    if not raw:
        raise ConfigError("empty duration")
    if re.fullmatch(r"\d+(?:\.\d+)?", raw):
        return timedelta(seconds=float(raw))

    pos = 0
    total = 0.0
    for m in _DURATION_PART.finditer(raw):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos != len(raw) or pos == 0:
        raise ConfigError(f"invalid duration: {value!r}")
    return timedelta(seconds=total)


def parse_protected_label(value: str) -> ProtectedLabel:
    key, sep, label_value = (value or "").partition("=")
    if not sep or not key.strip() or not label_value.strip():
        raise ConfigError(f"PROTECTED_LABEL must look like key=value, got {value!r}")
    return ProtectedLabel(key=key.strip(), value=label_value.strip())


def _env_int(name: str, default: Optional[int]) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        if default is None:
            raise ConfigError(f"{name} is required")
        return default
    try:
        return int(v)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {v!r}") from e


def load_config_from_env(clock: Optional[Clock] = None) -> ScalingConfig:
    protected = os.getenv("PROTECTED_LABEL")
    cfg = ScalingConfig(
        block_size_cpu_m=_env_int("CPU_REQUEST", None),
        buffer_count=_env_int("BUFFER_COUNT", None),
        grace_period=parse_duration(os.getenv("SHUTDOWN", "60s")),
        clock=clock or SystemClock(),
        protected_label=parse_protected_label(protected) if protected else ProtectedLabel(),
        cordon_annotation=os.getenv("CORDON_ANNOTATION", DEFAULT_CORDON_ANNOTATION),
    )
    log.info(
        f"Config: block={cfg.block_size_cpu_m}m buffer={cfg.buffer_count} "
        f"grace={cfg.grace_period} protected={cfg.protected_label}"
    )
    return cfg


def load_runner_config_from_env() -> RunnerConfig:
    interval = parse_duration(os.getenv("TICK", "10s"))
    if interval <= timedelta(0):
        raise ConfigError(f"TICK must be positive, got {interval}")
    return RunnerConfig(tick_interval=interval)


def setup_logging() -> None:
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
