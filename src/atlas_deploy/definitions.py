# src/atlas_deploy/definitions.py
"""
Loader de definições declarativas (YAML) de Tasks e Pipelines.

Formato (multi-documento, um recurso por documento):

    kind: Task
    metadata: {name: clone-repo}
    spec:
      params:      [{name, type?, description?, default?}]
      workspaces:  [{name}]
      steps:       [{name, uses, workspace?, params: {arg: template}}]

    kind: Pipeline
    metadata: {name: deploy-app-pipeline}
    spec:
      params:      [{name, type?, description?, default?}]
      workspaces:  [{name, param}]
      tasks:
        - name: clone-repo
          taskRef: {name: clone-repo}
          params:     [{name, value}]          # ou mapa nome → valor
          workspaces: [{name, workspace}]      # ou mapa nome → workspace
          runAfter:   [cleanup-repo]

Decisões:
    - Tasks são resolvidas por nome entre todos os documentos carregados,
      independente de arquivo ou ordem
    - `uses` nomeia uma ação registrada no `StepRegistry`
    - Qualquer problema estrutural vira `DefinitionError` com o documento
      de origem em `details`

Limites explícitos:
    - NÃO executa pipelines
    - NÃO aceita expressões além de `$(params.<nome>)`
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from atlas_deploy.core.exceptions import DefinitionError
from atlas_deploy.core.pipeline.params import ParamSpec
from atlas_deploy.core.pipeline.pipeline import Pipeline, PipelineTask, PipelineWorkspace
from atlas_deploy.core.pipeline.registry import StepRegistry
from atlas_deploy.core.pipeline.task import Task
from atlas_deploy.steps.catalog import default_registry


PIPELINES_DIR = Path(__file__).resolve().parent / "pipelines"

KINDS = ("Task", "Pipeline")


def _fail(message: str, source: str, **details: Any) -> DefinitionError:
    return DefinitionError(message=message, details={"source": source, **details})


def _name_of(doc: Dict[str, Any], source: str) -> str:
    meta = doc.get("metadata")
    name = meta.get("name") if isinstance(meta, dict) else doc.get("name")
    if not isinstance(name, str) or not name.strip():
        raise _fail(f"{doc.get('kind')} without metadata.name", source)
    return name


def _as_list(value: Any, what: str, source: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _fail(f"'{what}' must be a list", source, field=what)
    return value


def _as_mapping(value: Any, value_key: str, what: str, source: str) -> Dict[str, Any]:
    """Aceita mapa `{nome: valor}` ou lista `[{name, <value_key>}]`."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    out: Dict[str, Any] = {}
    for item in _as_list(value, what, source):
        if not isinstance(item, dict) or "name" not in item or value_key not in item:
            raise _fail(f"Entries of '{what}' need 'name' and '{value_key}'", source, field=what)
        if item["name"] in out:
            raise _fail(f"Duplicate entry '{item['name']}' in '{what}'", source, field=what)
        out[item["name"]] = item[value_key]
    return out


def _params(spec: Dict[str, Any], source: str) -> List[ParamSpec]:
    out = []
    for item in _as_list(spec.get("params"), "params", source):
        if not isinstance(item, dict):
            raise _fail("Each param must be a mapping", source)
        unknown = sorted(set(item) - {"name", "type", "description", "default"})
        if unknown:
            raise _fail(f"Unknown param field(s): {', '.join(unknown)}", source, param=item.get("name"))
        out.append(
            ParamSpec(
                name=item.get("name"),
                type=item.get("type", "string"),
                description=item.get("description", "") or "",
                default=item.get("default"),
            )
        )
    return out


def _build_task(doc: Dict[str, Any], source: str, registry: StepRegistry) -> Task:
    name = _name_of(doc, source)
    spec = doc.get("spec") or {}
    if not isinstance(spec, dict):
        raise _fail(f"Task '{name}' spec must be a mapping", source, task=name)

    workspaces = []
    for ws in _as_list(spec.get("workspaces"), "workspaces", source):
        workspaces.append(ws.get("name") if isinstance(ws, dict) else ws)

    steps = []
    for item in _as_list(spec.get("steps"), "steps", source):
        if not isinstance(item, dict) or "uses" not in item:
            raise _fail(f"Each step of task '{name}' needs 'uses'", source, task=name)
        params = item.get("params") or {}
        if not isinstance(params, dict):
            raise _fail(f"Step params of task '{name}' must be a mapping", source, task=name)
        steps.append(
            registry.build(
                item["uses"],
                name=item.get("name") or item["uses"],
                params=dict(params),
                workspace=item.get("workspace"),
            )
        )

    return Task(
        name=name,
        steps=steps,
        params=_params(spec, source),
        workspaces=workspaces,
        description=spec.get("description", "") or "",
    )


def _build_pipeline(doc: Dict[str, Any], source: str, tasks: Dict[str, Task]) -> Pipeline:
    name = _name_of(doc, source)
    spec = doc.get("spec") or {}
    if not isinstance(spec, dict):
        raise _fail(f"Pipeline '{name}' spec must be a mapping", source, pipeline=name)

    workspaces = []
    for ws in _as_list(spec.get("workspaces"), "workspaces", source):
        if not isinstance(ws, dict) or "name" not in ws or "param" not in ws:
            raise _fail(f"Workspaces of pipeline '{name}' need 'name' and 'param'", source, pipeline=name)
        workspaces.append(PipelineWorkspace(name=ws["name"], param=ws["param"]))

    pipeline_tasks = []
    for item in _as_list(spec.get("tasks"), "tasks", source):
        if not isinstance(item, dict) or "name" not in item:
            raise _fail(f"Tasks of pipeline '{name}' need 'name'", source, pipeline=name)
        ref = item.get("taskRef") or {}
        ref_name = ref.get("name") if isinstance(ref, dict) else ref
        if ref_name not in tasks:
            raise _fail(
                f"Pipeline '{name}' references unknown task '{ref_name}'",
                source,
                pipeline=name,
                task=item["name"],
                known=sorted(tasks),
            )
        pipeline_tasks.append(
            PipelineTask(
                name=item["name"],
                task=tasks[ref_name],
                params=_as_mapping(item.get("params"), "value", "params", source),
                run_after=list(_as_list(item.get("runAfter"), "runAfter", source)),
                workspaces=_as_mapping(item.get("workspaces"), "workspace", "workspaces", source),
            )
        )

    return Pipeline(
        name=name,
        tasks=pipeline_tasks,
        params=_params(spec, source),
        workspaces=workspaces,
        description=spec.get("description", "") or "",
    )


def parse_documents(text: str, *, source: str = "<string>") -> List[Dict[str, Any]]:
    try:
        docs = [d for d in yaml.safe_load_all(text) if d is not None]
    except yaml.YAMLError as e:
        raise _fail(f"Invalid YAML: {e}", source) from e
    for doc in docs:
        if not isinstance(doc, dict):
            raise _fail("Each YAML document must be a mapping", source)
        if doc.get("kind") not in KINDS:
            raise _fail(f"Unsupported kind: {doc.get('kind')!r}", source, supported=list(KINDS))
    return docs


def build_pipelines(
    documents: Iterable[tuple],
    *,
    registry: Optional[StepRegistry] = None,
) -> Dict[str, Pipeline]:
    """
    Constrói Pipelines a partir de pares `(source, documento)`.

    Todas as Tasks são construídas antes dos Pipelines, para que a ordem
    dos documentos não importe.
    """
    registry = registry or default_registry()
    docs = list(documents)

    tasks: Dict[str, Task] = {}
    for source, doc in docs:
        if doc["kind"] != "Task":
            continue
        task = _build_task(doc, source, registry)
        if task.name in tasks:
            raise _fail(f"Duplicate task definition '{task.name}'", source, task=task.name)
        tasks[task.name] = task

    pipelines: Dict[str, Pipeline] = {}
    for source, doc in docs:
        if doc["kind"] != "Pipeline":
            continue
        pipeline = _build_pipeline(doc, source, tasks)
        if pipeline.name in pipelines:
            raise _fail(f"Duplicate pipeline definition '{pipeline.name}'", source, pipeline=pipeline.name)
        pipelines[pipeline.name] = pipeline
    return pipelines


def loads(text: str, *, registry: Optional[StepRegistry] = None, source: str = "<string>") -> Dict[str, Pipeline]:
    return build_pipelines(((source, d) for d in parse_documents(text, source=source)), registry=registry)


def load_definitions(
    paths: Iterable[Union[str, Path]],
    *,
    registry: Optional[StepRegistry] = None,
) -> Dict[str, Pipeline]:
    """Carrega e combina definições de um ou mais arquivos YAML."""
    pairs = []
    for p in paths:
        path = Path(p)
        if not path.is_file():
            raise DefinitionError(message=f"Definition file not found: {path}", details={"source": str(path)})
        text = path.read_text(encoding="utf-8")
        pairs.extend((str(path), d) for d in parse_documents(text, source=str(path)))
    return build_pipelines(pairs, registry=registry)


def load_packaged_pipelines(*, registry: Optional[StepRegistry] = None) -> Dict[str, Pipeline]:
    """Carrega os pipelines distribuídos com o pacote (`pipelines/*.yaml`)."""
    return load_definitions(sorted(PIPELINES_DIR.glob("*.yaml")), registry=registry)
