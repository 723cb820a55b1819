# src/atlas_deploy/trigger.py
"""
Superfície de trigger do Atlas Deploy.

Recebe um nome de pipeline e um mapeamento de parâmetros, inicia a run em
segundo plano e devolve imediatamente a identidade da run (`RunHandle`).
O resultado terminal (status geral + status por task) fica disponível em
`RunHandle.result()` e no histórico do trigger.

Decisões arquiteturais:
    - Cada run recebe o seu próprio `RunContext`; runs concorrentes no
      mesmo processo não compartilham estado além dos colaboradores
    - Erros de definição (pipeline desconhecido, parâmetro obrigatório
      ausente, parâmetro desconhecido, identificador de Workspace inválido)
      são levantados em `submit`, antes de qualquer Step executar
    - Falhas ao provisionar Workspaces não escapam do handle: viram um
      `RunResult` FAILED (tasks SKIPPED), registrado no histórico
    - O Manifest de cada run terminada é persistido em `history.dir`
      quando a chave estiver configurada

Limites explícitos:
    - Histórico em memória limitado ao processo (o Manifest em disco é a
      fonte durável)
    - Não aplica política de retenção
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from atlas_deploy.core.config.loader import load_config
from atlas_deploy.core.config.settings import get_setting
from atlas_deploy.core.engine.scheduler import RunResult, RunScheduler
from atlas_deploy.core.exceptions import DefinitionError
from atlas_deploy.core.pipeline.context import RunContext
from atlas_deploy.core.pipeline.pipeline import Pipeline
from atlas_deploy.core.traceability.manifest import save_manifest
from atlas_deploy.integrations.resources import InMemoryResourceStore
from atlas_deploy.integrations.source import GitFetcher


def new_run_id(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now:%Y%m%dT%H%M%SZ}-{uuid.uuid4().hex[:8]}"


class RunHandle:
    """Identidade de uma run em andamento; dá acesso ao cancelamento e ao resultado."""

    def __init__(self, run_id: str, pipeline: str, ctx: RunContext, future: "Future[RunResult]"):
        self.run_id = run_id
        self.pipeline = pipeline
        self.ctx = ctx
        self._future = future

    def __repr__(self) -> str:
        return f"RunHandle(run_id={self.run_id!r}, pipeline={self.pipeline!r}, done={self.done()})"

    def cancel(self, reason: Optional[str] = None) -> None:
        self.ctx.cancel(reason)

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> RunResult:
        return self._future.result(timeout=timeout)


class PipelineTrigger:
    def __init__(
        self,
        pipelines: Mapping[str, Pipeline],
        *,
        config: Optional[Dict[str, Any]] = None,
        fetcher: Any = None,
        resources: Any = None,
        max_concurrent_runs: int = 4,
    ):
        self.pipelines = dict(pipelines)
        self.config = config if config is not None else load_config()
        self.fetcher = fetcher if fetcher is not None else GitFetcher.from_config(self.config)
        self.resources = resources if resources is not None else InMemoryResourceStore(
            conflict_retries=int(get_setting(self.config, "resources.conflict_retries", 3))
        )
        self._executor = ThreadPoolExecutor(max_workers=max_concurrent_runs, thread_name_prefix="atlas-run")
        self._lock = threading.Lock()
        self._history: Dict[str, RunResult] = {}

    def __enter__(self) -> "PipelineTrigger":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def get_pipeline(self, name: str) -> Pipeline:
        if name not in self.pipelines:
            raise DefinitionError(
                message=f"Unknown pipeline '{name}'",
                details={"pipeline": name, "known": sorted(self.pipelines)},
            )
        return self.pipelines[name]

    def submit(
        self,
        name: str,
        params: Mapping[str, str],
        *,
        run_id: Optional[str] = None,
    ) -> RunHandle:
        """
        Inicia uma run em segundo plano.

        Raises:
            DefinitionError: pipeline desconhecido, parâmetros inválidos
                (inclui `UnboundParameterError`) ou identificador de
                Workspace inválido.
        """
        pipeline = self.get_pipeline(name)

        run_id = run_id or new_run_id()
        ctx = RunContext(
            run_id=run_id,
            created_at=datetime.now(timezone.utc),
            config=self.config,
            fetcher=self.fetcher,
            resources=self.resources,
            meta={"pipeline": name, "params": dict(params)},
        )
        scheduler = RunScheduler(ctx=ctx)
        # falha de definição deve ocorrer aqui, não dentro da thread
        scheduler.validate(pipeline, params)

        future = self._executor.submit(self._execute, scheduler, pipeline, dict(params))
        return RunHandle(run_id, name, ctx, future)

    def run(self, name: str, params: Mapping[str, str], *, run_id: Optional[str] = None) -> RunResult:
        """Executa uma run e aguarda o resultado terminal."""
        return self.submit(name, params, run_id=run_id).result()

    def _execute(self, scheduler: RunScheduler, pipeline: Pipeline, params: Dict[str, str]) -> RunResult:
        result = scheduler.run(pipeline, params)
        with self._lock:
            self._history[result.run_id] = result

        history_dir = get_setting(self.config, "history.dir")
        if history_dir and result.manifest is not None:
            save_manifest(result.manifest, Path(history_dir) / f"{result.run_id}.json")
        return result

    @property
    def history(self) -> List[RunResult]:
        with self._lock:
            return list(self._history.values())

    def get(self, run_id: str) -> Optional[RunResult]:
        with self._lock:
            return self._history.get(run_id)
