# src/atlas_deploy/core/pipeline/context.py
"""
Contexto de execução explícito de uma run.

Este módulo define o `RunContext`, a estrutura canônica passada
explicitamente Run → Task → Step durante a execução de um pipeline.

O RunContext substitui qualquer estado global de processo (workspace
ambiente, credenciais ambiente, clientes singleton): cada run recebe o seu,
o que permite várias runs concorrentes no mesmo processo sem interferência.

O RunContext consolida:
    - identidade da execução (run_id, created_at)
    - configuração resolvida
    - colaboradores externos (source fetcher, resource store)
    - logs estruturados de execução
    - warnings não fatais agrupados por Step
    - sinal de cancelamento da run
    - threads de Steps abandonadas por timeout (ainda em execução)

Invariantes:
    - Logs sempre incluem `run_id` e `step_id`
    - Warnings são agrupados por `step_id`
    - Escritas em `events`/`warnings` são seguras entre threads

Limites explícitos:
    - Não executa Steps
    - Não decide políticas de execução
    - Não persiste dados automaticamente
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


LOG_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}


@dataclass(frozen=True)
class AbandonedStep:
    """Step que estourou o timeout e cuja thread continua viva."""

    step_id: str
    thread: threading.Thread
    workspace: Any = None

    @property
    def alive(self) -> bool:
        return self.thread.is_alive()


@dataclass
class RunContext:
    """
    Contexto de execução de uma run do pipeline.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva (defaults + local deep-merge)
    - fetcher: colaborador de fetch de código-fonte (`SourceFetcher`)
    - resources: colaborador de recursos do cluster (`ResourceStore`)
    - meta: metadados livres (ex.: origem do trigger)
    - events: log estruturado de eventos
    - warnings: warnings por step_id
    """

    run_id: str
    created_at: datetime
    config: Dict[str, Any]
    fetcher: Any = None
    resources: Any = None
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _cancel: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _abandoned: List["AbandonedStep"] = field(default_factory=list, init=False, repr=False)

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, step_id: str, message: str) -> None:
        with self._lock:
            if step_id not in self.warnings:
                self.warnings[step_id] = []
            self.warnings[step_id].append(message)

    def events_at_or_above(self, level: str) -> List[Dict[str, Any]]:
        threshold = LOG_LEVELS.get(str(level).upper(), 0)
        with self._lock:
            return [
                e for e in self.events
                if LOG_LEVELS.get(str(e.get("level", "")).upper(), 0) >= threshold
            ]

    # -----------------------------
    # Cancelamento
    # -----------------------------
    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._cancel.is_set():
            self.meta["cancel_reason"] = reason or "cancelled"
            self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # -----------------------------
    # Steps abandonados
    # -----------------------------
    def abandon(self, *, step_id: str, thread: threading.Thread, workspace: Any = None) -> None:
        """Registra a thread de um Step que estourou o timeout e segue viva."""
        with self._lock:
            self._abandoned.append(AbandonedStep(step_id=step_id, thread=thread, workspace=workspace))

    def abandoned_steps(self, *, alive_only: bool = True) -> List[AbandonedStep]:
        with self._lock:
            items = list(self._abandoned)
        return [a for a in items if a.alive] if alive_only else items
