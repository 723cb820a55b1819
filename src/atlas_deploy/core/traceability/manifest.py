# src/atlas_deploy/core/traceability/manifest.py
"""
Manifest v1 — registro de histórico de runs no Atlas Deploy.

Este módulo define a estrutura e as operações canônicas do Manifest,
o artefato de rastreabilidade de uma run de pipeline.

O Manifest consolida, de forma determinística e auditável:
    - metadados da execução (run_id, pipeline, início, fim, status)
    - hashes de entradas (configuração efetiva e parâmetros resolvidos)
    - estado incremental de cada PipelineTask
    - Event Log ordenado de eventos explícitos

Princípios fundamentais:
    - Nenhum evento é emitido implicitamente
    - Toda mutação ocorre por chamadas explícitas da API
    - A ordem do Event Log reflete a ordem real observada pelo scheduler
    - O Manifest é serializável e reconstruível (round-trip)

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - O formato de persistência é JSON determinístico
    - Apenas o loop do scheduler muta o Manifest (sem concorrência)

Limites explícitos:
    - Não executa pipeline
    - Não decide políticas de execução
    - Não aplica política de retenção de histórico
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """
    Normaliza um timestamp para timezone-aware em UTC.

    Timestamps naive são interpretados como UTC; timestamps com outro
    timezone são convertidos.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    """Duração não negativa em milissegundos entre dois timestamps."""
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class RunManifest:
    """
    Manifest v1 — registro de uma execução de pipeline.

    Campos principais:
        - run: metadados da execução
        - inputs: hashes e parâmetros resolvidos
        - tasks: estado por PipelineTask (indexado por nome)
        - events: Event Log ordenado
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    tasks: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "tasks": {k: dict(v) for k, v in self.tasks.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunManifest":
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            tasks={k: dict(v) for k, v in (data.get("tasks", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )


def create_manifest(
    *,
    run_id: str,
    pipeline: str,
    started_at: datetime,
    version: str,
    config_hash: str,
    params_hash: str,
    params: Optional[Dict[str, str]] = None,
) -> RunManifest:
    """
    Cria o Manifest inicial de uma run.

    ⚠️ Importante: esta função **não emite eventos implicitamente**.
    O Event Log inicia vazio e só é preenchido por chamadas explícitas.
    """
    return RunManifest(
        run={
            "run_id": run_id,
            "pipeline": pipeline,
            "started_at": _iso(started_at),
            "atlas_deploy_version": version,
            "status": "running",
        },
        inputs={
            "config_hash": config_hash,
            "params_hash": params_hash,
            "params": dict(params or {}),
        },
        tasks={},
        events=[],
    )


def add_event(
    manifest: RunManifest,
    *,
    event_type: str,
    ts: datetime,
    task_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """Adiciona um evento explícito ao Event Log, preservando a ordem de chamada."""
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if task_id is not None:
        ev["task_id"] = task_id
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def task_started(manifest: RunManifest, *, task_id: str, task_ref: str, ts: datetime) -> None:
    t = manifest.tasks.setdefault(task_id, {"task_id": task_id})
    t.update({"task_ref": task_ref, "status": "running", "started_at": _iso(ts)})
    add_event(manifest, event_type="task_started", ts=ts, task_id=task_id, payload={"task_ref": task_ref})


def task_finished(manifest: RunManifest, *, task_id: str, ts: datetime, result: Dict[str, Any]) -> None:
    """
    Registra o estado terminal de uma task executada (succeeded/failed).

    `result` é a forma serializada de `TaskRunResult` (ver `to_dict`).
    """
    t = manifest.tasks.setdefault(task_id, {"task_id": task_id})
    started_iso = t.get("started_at")
    started_dt = datetime.fromisoformat(started_iso) if started_iso else ts

    status = result.get("status", "succeeded")
    t.update(
        {
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started_dt, ts),
            "summary": result.get("summary"),
            "steps": list(result.get("steps", []) or []),
            "error": result.get("error"),
        }
    )
    event_type = "task_failed" if status == "failed" else "task_finished"
    payload: Dict[str, Any] = {"status": status, "duration_ms": t["duration_ms"]}
    if result.get("error"):
        payload["error_type"] = result["error"].get("type")
    add_event(manifest, event_type=event_type, ts=ts, task_id=task_id, payload=payload)


def task_skipped(manifest: RunManifest, *, task_id: str, task_ref: str, ts: datetime, reason: str) -> None:
    manifest.tasks[task_id] = {
        "task_id": task_id,
        "task_ref": task_ref,
        "status": "skipped",
        "summary": reason,
    }
    add_event(manifest, event_type="task_skipped", ts=ts, task_id=task_id, payload={"reason": reason})


def run_finished(
    manifest: RunManifest,
    *,
    status: str,
    ts: datetime,
    degraded: bool = False,
    cancelled: bool = False,
    error: Optional[Dict[str, Any]] = None,
) -> None:
    started = datetime.fromisoformat(manifest.run["started_at"])
    manifest.run.update(
        {
            "status": status,
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started, ts),
            "degraded": degraded,
            "cancelled": cancelled,
        }
    )
    if error:
        manifest.run["error"] = dict(error)
    add_event(manifest, event_type="run_finished", ts=ts, payload={"status": status})


def save_manifest(manifest: RunManifest, path: Path) -> None:
    """Persiste o Manifest em JSON determinístico (chaves ordenadas, UTF-8)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(manifest.to_dict(), f, ensure_ascii=False, indent=2, sort_keys=True)


def load_manifest(path: Path) -> RunManifest:
    with Path(path).open("r", encoding="utf-8") as f:
        return RunManifest.from_dict(json.load(f))
