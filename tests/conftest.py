# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Deploy.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas
- contexto de execução controlado (RunContext)
- colaboradores externos falsos (fetcher e resource store em memória)
- Steps dummy para testes estruturais de Task, Pipeline e scheduler

Decisões arquiteturais:
    - Fixtures são mantidas simples e explícitas
    - Steps dummy utilizam duck typing em vez de herança
    - Imports do core são realizados de forma lazy para
      melhorar a clareza de erros durante falhas
    - Nenhuma fixture acessa rede; I/O de disco fica restrito a `tmp_path`

Limites explícitos:
    - Não substituir testes de integração com git real
    - Não conter lógica de domínio
"""

import threading
import time
from datetime import datetime, timezone
from pathlib import Path

import pytest


# =====================================================
# Config fixtures
# =====================================================

@pytest.fixture
def project_like_config_defaults_yaml() -> str:
    """
    YAML de defaults semelhante ao `config.defaults.yaml` empacotado.

    Fornecido como string para que os testes do loader controlem onde
    (e se) o arquivo é escrito.
    """
    return """\
engine:
  max_workers: 4
  step_timeout_seconds: 300
  log_level: INFO
workspace:
  root: .atlas/workspaces
resources:
  conflict_retries: 3
deploy:
  port: 8080
"""


@pytest.fixture
def project_like_config_local_yaml() -> str:
    """YAML de overrides locais: altera apenas nível de log e porta."""
    return """\
engine:
  log_level: DEBUG
deploy:
  port: 9090
"""


@pytest.fixture
def dummy_config(tmp_path) -> dict:
    """
    Configuração mínima e já resolvida para testes do engine.

    Invariantes:
        - `workspace.root` aponta para um diretório temporário isolado
        - `history.dir` ausente: nenhum manifest é persistido
        - timeout de Step curto o bastante para os testes de timeout
    """
    return {
        "engine": {"max_workers": 4, "step_timeout_seconds": 5, "log_level": "INFO"},
        "workspace": {"root": str(tmp_path / "workspaces")},
        "resources": {"conflict_retries": 3},
        "deploy": {"port": 8080, "volume_name": "html-home", "mount_path": "/var/www/html"},
    }


# =====================================================
# Colaboradores externos
# =====================================================

@pytest.fixture
def FakeFetcher():
    """
    Fixture factory de um `SourceFetcher` falso.

    O fetcher escreve `files` no destino (como um checkout faria), inclui
    um diretório `.git` e devolve uma revisão fixa. Com `fail=True` levanta
    `FetchError`, simulando URL inválida ou credenciais ausentes.
    """
    from atlas_deploy.core.exceptions import FetchError
    from atlas_deploy.integrations.source import FetchResult

    class _FakeFetcher:
        def __init__(self, files=None, revision="0123abcd", fail=False):
            self.files = dict(files if files is not None else {"index.html": "<h1>hello</h1>\n"})
            self.revision = revision
            self.fail = fail
            self.calls = []

        def fetch(self, url, destination):
            self.calls.append(url)
            if self.fail:
                raise FetchError(message=f"Failed to clone repository: {url}", details={"url": url})
            dest = Path(destination)
            (dest / ".git").mkdir(parents=True)
            (dest / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
            for rel, content in self.files.items():
                target = dest / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            return FetchResult(success=True, revision_id=self.revision, url=url)

    return _FakeFetcher


@pytest.fixture
def memory_store():
    from atlas_deploy.integrations.resources import InMemoryResourceStore

    return InMemoryResourceStore(conflict_retries=3)


@pytest.fixture
def dummy_ctx(dummy_config, memory_store, FakeFetcher):
    """
    RunContext determinístico para testes.

    `run_id` e `created_at` são fixos; fetcher e resource store são os
    falsos definidos acima, injetados explicitamente.
    """
    from atlas_deploy.core.pipeline.context import RunContext

    return RunContext(
        run_id="run-test-001",
        created_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        config=dummy_config,
        fetcher=FakeFetcher(),
        resources=memory_store,
        meta={"source": "pytest"},
    )


@pytest.fixture
def workspace(tmp_path):
    from atlas_deploy.core.workspace import Workspace

    return Workspace(name="repo", root=tmp_path / "repo")


# =====================================================
# Steps dummy
# =====================================================

@pytest.fixture
def DummyStep():
    """
    Fixture factory de um Step mínimo, duck-typed.

    Comportamentos controlados pelo construtor:
        - `fail`: levanta RuntimeError ao executar
        - `sleep`: dorme antes de concluir (timeouts e paralelismo)
        - `warning`: devolve um warning não fatal
        - `journal`: lista compartilhada onde o Step registra
          `(evento, nome, thread)` para verificar ordem e concorrência
        - `gate`: `threading.Event` aguardado antes de concluir
    """
    from atlas_deploy.core.pipeline.types import StepResult, StepStatus, StepTarget

    class _DummyStep:
        target = StepTarget.WORKSPACE

        def __init__(
            self,
            name="dummy",
            params=None,
            workspace=None,
            required_args=(),
            optional_args=(),
            fail=False,
            sleep=0.0,
            warning=None,
            journal=None,
            gate=None,
        ):
            self.name = name
            self.params = dict(params or {})
            self.workspace = workspace
            self.required_args = tuple(required_args)
            self.optional_args = tuple(optional_args)
            self.fail = fail
            self.sleep = sleep
            self.warning = warning
            self.journal = journal if journal is not None else []
            self.gate = gate
            self.received = []

        def execute(self, args, workspace, ctx):
            self.received.append(dict(args))
            self.journal.append(("start", self.name, threading.get_ident()))
            if self.gate is not None:
                self.gate.wait(5)
            if self.sleep:
                time.sleep(self.sleep)
            if self.fail:
                self.journal.append(("fail", self.name, threading.get_ident()))
                raise RuntimeError(f"{self.name} boom")
            self.journal.append(("end", self.name, threading.get_ident()))
            return StepResult(
                step_id=self.name,
                target=self.target,
                status=StepStatus.SUCCESS,
                summary="dummy ok",
                outputs={"args": dict(args)},
                warnings=[self.warning] if self.warning else [],
            )

    return _DummyStep


@pytest.fixture
def make_pipeline(DummyStep):
    """
    Constrói um Pipeline de tasks dummy a partir de `{task: run_after}`.

    Cada task tem um único Step dummy; `failing` lista as tasks cujo Step
    falha e `sleeps` define atrasos por task. Todos os Steps compartilham
    o mesmo `journal`, devolvido junto com o Pipeline.
    """
    from atlas_deploy.core.pipeline.pipeline import Pipeline, PipelineTask
    from atlas_deploy.core.pipeline.task import Task

    def _make(graph, *, failing=(), sleeps=None, warnings=None, name="dummy-pipeline"):
        journal = []
        tasks = []
        for task_name, run_after in graph.items():
            step = DummyStep(
                name=f"{task_name}-step",
                fail=task_name in failing,
                sleep=(sleeps or {}).get(task_name, 0.0),
                warning=(warnings or {}).get(task_name),
                journal=journal,
            )
            tasks.append(
                PipelineTask(
                    name=task_name,
                    task=Task(name=f"{task_name}-task", steps=[step]),
                    run_after=list(run_after),
                )
            )
        return Pipeline(name=name, tasks=tasks), journal

    return _make
