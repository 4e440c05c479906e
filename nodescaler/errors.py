# nodescaler/errors.py
from __future__ import annotations

from typing import Optional


class NodeScalerError(Exception):
    """Базовая ошибка контроллера. Всё, что ниже, прерывает текущий тик."""


class SourceUnavailable(NodeScalerError):
    """Не удалось получить состояние кластера (ноды/поды)."""


class BackendRequestFailed(NodeScalerError):
    """Упал вызов cordon/uncordon/increase/delete."""

    def __init__(self, operation: str, message: str, node: Optional[str] = None):
        self.operation = operation
        self.node = node
        target = f" node={node}" if node else ""
        super().__init__(f"{operation}{target}: {message}")


class MalformedNodeState(NodeScalerError):
    """У cordoned-ноды нет (или не парсится) метка времени cordon."""

    def __init__(self, node: str, message: str):
        self.node = node
        super().__init__(f"node {node}: {message}")


class ConfigError(NodeScalerError):
    """Невалидная конфигурация при старте."""
