# src/atlas_deploy/core/config/settings.py
"""
Leitura tipada de chaves da configuração efetiva.

A configuração é mantida como `dict` puro (ver `loader`); este módulo
apenas oferece acesso por caminho pontilhado e a visão validada das
opções do engine consumidas pelo scheduler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import InvalidConfigValueError


_MISSING = object()


def get_setting(config: Optional[Dict[str, Any]], key: str, default: Any = None) -> Any:
    """Retorna `config[a][b][c]` para `key="a.b.c"`, ou `default` se ausente."""
    node: Any = config or {}
    for part in key.split("."):
        if not isinstance(node, dict):
            return default
        node = node.get(part, _MISSING)
        if node is _MISSING:
            return default
    return default if node is None else node


@dataclass(frozen=True)
class EngineSettings:
    max_workers: int = 4
    step_timeout_seconds: float = 300.0
    log_level: str = "INFO"
    release_grace_seconds: float = 30.0

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "EngineSettings":
        max_workers = get_setting(config, "engine.max_workers", cls.max_workers)
        timeout = get_setting(config, "engine.step_timeout_seconds", cls.step_timeout_seconds)
        log_level = get_setting(config, "engine.log_level", cls.log_level)
        grace = get_setting(config, "engine.release_grace_seconds", cls.release_grace_seconds)

        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise InvalidConfigValueError(
                f"engine.max_workers deve ser inteiro >= 1, recebido: {max_workers!r}"
            )
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise InvalidConfigValueError(
                f"engine.step_timeout_seconds deve ser número > 0, recebido: {timeout!r}"
            )
        if isinstance(grace, bool) or not isinstance(grace, (int, float)) or grace < 0:
            raise InvalidConfigValueError(
                f"engine.release_grace_seconds deve ser número >= 0, recebido: {grace!r}"
            )

        return cls(
            max_workers=max_workers,
            step_timeout_seconds=float(timeout),
            log_level=str(log_level).upper(),
            release_grace_seconds=float(grace),
        )
