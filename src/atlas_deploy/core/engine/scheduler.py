# src/atlas_deploy/core/engine/scheduler.py
"""
Run Scheduler do Atlas Deploy.

Executa uma instância de Pipeline com parâmetros concretos:

    1. resolve parâmetros do Pipeline e instancia todas as Tasks
       (qualquer erro de definição ocorre aqui, antes do primeiro Step)
    2. provisiona os Workspaces (posse exclusiva da run)
    3. loop: propaga SKIPPED, promove PENDING → READY quando todas as
       dependências `run_after` estão SUCCEEDED, submete as tasks READY ao
       pool (RUNNING), aguarda a próxima conclusão e recomputa
    4. encerra quando nenhuma task está PENDING/READY/RUNNING
    5. libera os Workspaces, mesmo em falha ou cancelamento; um Workspace
       ainda alvo de um Step abandonado por timeout só é liberado quando a
       thread desse Step termina

Falha ao provisionar um Workspace (ocupado por outra run, erro de I/O)
não escapa como exceção: a run termina FAILED, todas as tasks SKIPPED e o
erro fica em `RunResult.error` e no Manifest.

Decisões arquiteturais:
    - Tasks independentes executam em paralelo (`engine.max_workers`);
      as arestas `run_after` são o único controle de concorrência
    - Submissão em ordem topológica determinística (desempate lexicográfico)
    - Falha de uma task nunca aborta tasks em andamento sem relação com ela;
      apenas dependentes (diretos e transitivos) são marcados SKIPPED
    - Cancelamento interrompe a submissão imediatamente; tasks em andamento
      chegam a um ponto natural de parada (fim do Step atual)

Invariantes:
    - Nenhuma task inicia antes de todas as suas dependências SUCCEEDED
    - Status da run é SUCCEEDED sse todas as tasks terminaram SUCCEEDED
"""

from __future__ import annotations

import re
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from atlas_deploy import __version__
from atlas_deploy.core.config.hashing import compute_config_hash
from atlas_deploy.core.config.settings import EngineSettings, get_setting
from atlas_deploy.core.errors import engine_execution_error
from atlas_deploy.core.exceptions import DefinitionError, WorkspaceIOError
from atlas_deploy.core.pipeline.context import RunContext
from atlas_deploy.core.pipeline.pipeline import Pipeline
from atlas_deploy.core.pipeline.task import BoundTask, exception_to_error
from atlas_deploy.core.pipeline.types import RunStatus, TaskRunResult, TaskStatus
from atlas_deploy.core.traceability.manifest import (
    RunManifest,
    add_event,
    create_manifest,
    run_finished,
    task_finished,
    task_skipped,
    task_started,
)
from atlas_deploy.core.workspace import Workspace


_WORKSPACE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

WorkspaceFactory = Callable[[str, str], Workspace]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _release_after(ws: Workspace, threads: List[threading.Thread]) -> None:
    for t in threads:
        t.join()
    ws.release()


@dataclass(frozen=True)
class RunResult:
    """Resultado agregado de uma run (status por task + status geral)."""

    run_id: str
    pipeline: str
    status: RunStatus
    started_at: str
    finished_at: str
    tasks: Dict[str, TaskRunResult] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    degraded: bool = False
    cancelled: bool = False
    error: Optional[Dict[str, Any]] = None
    deferred_workspaces: List[str] = field(default_factory=list)
    manifest: Optional[RunManifest] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    @property
    def failed_tasks(self) -> List[TaskRunResult]:
        return [t for t in self.tasks.values() if t.status == TaskStatus.FAILED]


class RunScheduler:
    """Executa uma run de Pipeline sobre um `RunContext` explícito."""

    def __init__(
        self,
        *,
        ctx: RunContext,
        workspaces: Optional[Mapping[str, Workspace]] = None,
        workspace_factory: Optional[WorkspaceFactory] = None,
    ):
        self.ctx = ctx
        self.settings = EngineSettings.from_config(ctx.config)
        self._workspaces_override = dict(workspaces or {})
        self._workspace_factory = workspace_factory or self._default_workspace

    def _default_workspace(self, name: str, identifier: str) -> Workspace:
        if not _WORKSPACE_ID.match(identifier or "") or identifier in {".", ".."}:
            raise DefinitionError(
                message=f"Invalid workspace identifier {identifier!r} for '{name}'",
                details={"workspace": name, "identifier": identifier},
                hint="Use letters, digits, '.', '_' or '-'.",
            )
        root = Path(get_setting(self.ctx.config, "workspace.root", ".atlas/workspaces"))
        return Workspace(name=identifier, root=root / identifier)

    def cancel(self, reason: Optional[str] = None) -> None:
        self.ctx.cancel(reason)

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def _prepare(self, pipeline: Pipeline, params: Mapping[str, str]):
        resolved = pipeline.resolve_params(params)
        bound = pipeline.bind_tasks(resolved)
        workspaces = self._resolve_workspaces(pipeline, resolved)
        return resolved, bound, workspaces

    def validate(self, pipeline: Pipeline, params: Mapping[str, str]) -> None:
        """
        Executa toda a validação de definição sem rodar nenhum Step.

        Raises:
            DefinitionError: parâmetro ausente/desconhecido, binding inválido
                ou identificador de Workspace inválido.
        """
        self._prepare(pipeline, params)

    def run(self, pipeline: Pipeline, params: Mapping[str, str]) -> RunResult:
        ctx = self.ctx
        resolved, bound, workspaces = self._prepare(pipeline, params)

        started = _utcnow()
        manifest = create_manifest(
            run_id=ctx.run_id,
            pipeline=pipeline.name,
            started_at=started,
            version=__version__,
            config_hash=compute_config_hash(ctx.config or {}),
            params_hash=compute_config_hash(resolved),
            params=resolved,
        )
        ctx.log(step_id="run", level="INFO", message="run started", pipeline=pipeline.name)

        provisioned: List[Workspace] = []
        run_error: Optional[Dict[str, Any]] = None
        deferred: List[str] = []
        try:
            try:
                for ws in workspaces.values():
                    ws.provision(ctx.run_id)
                    provisioned.append(ws)
            except WorkspaceIOError as e:
                run_error = exception_to_error(e, step_id="run").to_dict()
                ctx.log(
                    step_id="run",
                    level="ERROR",
                    message="workspace provisioning failed",
                    error_type=run_error["type"],
                    error_message=run_error["message"],
                )
                results: Dict[str, TaskRunResult] = {}
                order: List[str] = []
                status_by_task: Dict[str, TaskStatus] = {}
                for pt in pipeline.order:
                    reason = "skipped: workspace provisioning failed"
                    self._skip(pt.name, pt.task.name, reason, status_by_task, results, manifest)
            else:
                results, order = self._loop(pipeline, bound, workspaces, manifest)
        finally:
            deferred = self._release_workspaces(provisioned, manifest)

        finished = _utcnow()
        status = (
            RunStatus.SUCCEEDED
            if run_error is None and all(r.status == TaskStatus.SUCCEEDED for r in results.values())
            else RunStatus.FAILED
        )
        degraded = any(r.warnings for r in results.values())
        run_finished(
            manifest,
            status=status.value,
            ts=finished,
            degraded=degraded,
            cancelled=ctx.cancelled,
            error=run_error,
        )
        ctx.log(
            step_id="run",
            level="INFO" if status == RunStatus.SUCCEEDED else "ERROR",
            message="run finished",
            status=status.value,
            degraded=degraded,
        )

        return RunResult(
            run_id=ctx.run_id,
            pipeline=pipeline.name,
            status=status,
            started_at=started.isoformat(),
            finished_at=finished.isoformat(),
            tasks={pt.name: results[pt.name] for pt in pipeline.order},
            order=order,
            degraded=degraded,
            cancelled=ctx.cancelled,
            error=run_error,
            deferred_workspaces=deferred,
            manifest=manifest,
        )

    def _release_workspaces(self, provisioned: List[Workspace], manifest: RunManifest) -> List[str]:
        """
        Libera os Workspaces da run.

        Um Workspace ainda alvo de um Step abandonado por timeout só é liberado
        depois que a thread desse Step termina: aguarda-se até
        `engine.release_grace_seconds`; se ela seguir viva, a posse continua
        com a run e a liberação fica a cargo de uma thread que aguarda o fim
        do Step. Retorna os nomes dos Workspaces com liberação adiada.
        """
        ctx = self.ctx
        deferred: List[str] = []
        deadline = time.monotonic() + self.settings.release_grace_seconds
        for ws in provisioned:
            pending = [a for a in ctx.abandoned_steps() if a.workspace is ws]
            for item in pending:
                item.thread.join(max(0.0, deadline - time.monotonic()))
            alive = [a for a in pending if a.alive]
            if not alive:
                ws.release()
                continue

            steps = [a.step_id for a in alive]
            deferred.append(ws.name)
            ctx.log(
                step_id="run",
                level="WARNING",
                message="workspace release deferred until timed-out steps finish",
                workspace=ws.name,
                steps=steps,
            )
            add_event(
                manifest,
                event_type="workspace_release_deferred",
                ts=_utcnow(),
                payload={"workspace": ws.name, "steps": steps},
            )
            threading.Thread(
                target=_release_after,
                args=(ws, [a.thread for a in alive]),
                name=f"release:{ws.name}",
                daemon=True,
            ).start()
        return deferred

    def _resolve_workspaces(self, pipeline: Pipeline, resolved: Mapping[str, str]) -> Dict[str, Workspace]:
        out: Dict[str, Workspace] = {}
        for name, identifier in pipeline.workspace_ids(resolved).items():
            if name in self._workspaces_override:
                out[name] = self._workspaces_override[name]
            else:
                out[name] = self._workspace_factory(name, identifier)
        return out

    def _loop(
        self,
        pipeline: Pipeline,
        bound: Mapping[str, BoundTask],
        workspaces: Mapping[str, Workspace],
        manifest: RunManifest,
    ):
        ctx = self.ctx
        status: Dict[str, TaskStatus] = {pt.name: TaskStatus.PENDING for pt in pipeline.order}
        results: Dict[str, TaskRunResult] = {}
        order: List[str] = []
        running: Dict[Future, str] = {}

        with ThreadPoolExecutor(max_workers=self.settings.max_workers, thread_name_prefix=f"run-{ctx.run_id}") as pool:
            while True:
                self._propagate_skips(pipeline, status, results, manifest)

                if ctx.cancelled:
                    for pt in pipeline.order:
                        if status[pt.name] == TaskStatus.PENDING:
                            self._skip(pt.name, pt.task.name, "skipped: run cancelled", status, results, manifest)

                for pt in pipeline.order:
                    if status[pt.name] == TaskStatus.PENDING and all(
                        status[d] == TaskStatus.SUCCEEDED for d in pt.run_after
                    ):
                        status[pt.name] = TaskStatus.READY

                for pt in pipeline.order:
                    if status[pt.name] != TaskStatus.READY:
                        continue
                    status[pt.name] = TaskStatus.RUNNING
                    order.append(pt.name)
                    task_started(manifest, task_id=pt.name, task_ref=pt.task.name, ts=_utcnow())
                    ctx.log(step_id=pt.name, level="INFO", message="task started", task_ref=pt.task.name)
                    task_ws = {k: workspaces[v] for k, v in pt.workspaces.items()}
                    fut = pool.submit(self._run_task, bound[pt.name], pt.name, task_ws)
                    running[fut] = pt.name

                if not running:
                    break

                done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for fut in done:
                    name = running.pop(fut)
                    result = fut.result()
                    results[name] = result
                    status[name] = result.status
                    if result.status == TaskStatus.SKIPPED:
                        task_skipped(manifest, task_id=name, task_ref=result.task_ref, ts=_utcnow(), reason=result.summary)
                    else:
                        task_finished(manifest, task_id=name, ts=_utcnow(), result=result.to_dict())
                    ctx.log(
                        step_id=name,
                        level="INFO" if result.status == TaskStatus.SUCCEEDED else "ERROR",
                        message=f"task {result.status.value}",
                        summary=result.summary,
                    )

        return results, order

    def _run_task(self, bound: BoundTask, task_id: str, workspaces: Mapping[str, Workspace]) -> TaskRunResult:
        try:
            return bound.run(
                self.ctx,
                task_id=task_id,
                workspaces=workspaces,
                step_timeout=self.settings.step_timeout_seconds,
            )
        except Exception as e:
            err = engine_execution_error(step=task_id, exc_type=e.__class__.__name__, exc_message=str(e) or None)
            return TaskRunResult(
                task_id=task_id,
                task_ref=bound.task.name,
                status=TaskStatus.FAILED,
                summary=err.message,
                finished_at=_utcnow().isoformat(),
                error=err.to_dict(),
            )

    def _propagate_skips(self, pipeline, status, results, manifest) -> None:
        changed = True
        while changed:
            changed = False
            for pt in pipeline.order:
                if status[pt.name] != TaskStatus.PENDING:
                    continue
                blocked = [d for d in pt.run_after if status[d] in (TaskStatus.FAILED, TaskStatus.SKIPPED)]
                if blocked:
                    reason = f"skipped: dependency {', '.join(sorted(blocked))} did not succeed"
                    self._skip(pt.name, pt.task.name, reason, status, results, manifest)
                    changed = True

    def _skip(self, name, task_ref, reason, status, results, manifest) -> None:
        status[name] = TaskStatus.SKIPPED
        results[name] = TaskRunResult(task_id=name, task_ref=task_ref, status=TaskStatus.SKIPPED, summary=reason)
        task_skipped(manifest, task_id=name, task_ref=task_ref, ts=_utcnow(), reason=reason)
        self.ctx.log(step_id=name, level="INFO", message="task skipped", reason=reason)
