# src/atlas_deploy/core/pipeline/pipeline.py
"""
Pipeline — DAG de invocações de Task.

Uma `PipelineTask` instancia uma Task dentro de um Pipeline, com bindings
concretos de parâmetros (literais ou referências `$(params.x)` a
parâmetros do Pipeline), mapeamento de workspaces e o conjunto explícito
`run_after` de tasks das quais depende.

Toda a validação estrutural acontece na construção do Pipeline, antes de
qualquer execução:
    - nomes de tasks únicos, `run_after` resolvível e grafo acíclico
    - bindings referenciam apenas parâmetros declarados no Pipeline
    - bindings apenas para parâmetros declarados pela Task
    - todo parâmetro obrigatório da Task tem binding
    - todo workspace da Task é vinculado a um workspace do Pipeline

Decisão preservada: não existe canal de outputs entre tasks. Toda
comunicação entre tasks ocorre via Workspace compartilhado ou estado
externo, e a única ordem garantida é a das arestas `run_after`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from atlas_deploy.core.engine.planner import plan_execution
from atlas_deploy.core.exceptions import InvalidPipelineDefinitionError, UnboundParameterError

from .params import ParamSpec, check_references, check_unique, resolve_values, substitute
from .task import BoundTask, Task


@dataclass(frozen=True)
class PipelineWorkspace:
    """Workspace declarado pelo Pipeline; `param` carrega o identificador concreto."""

    name: str
    param: str


@dataclass
class PipelineTask:
    name: str
    task: Task
    params: Dict[str, str] = field(default_factory=dict)
    run_after: List[str] = field(default_factory=list)
    workspaces: Dict[str, str] = field(default_factory=dict)


@dataclass
class Pipeline:
    name: str
    tasks: List[PipelineTask]
    params: List[ParamSpec] = field(default_factory=list)
    workspaces: List[PipelineWorkspace] = field(default_factory=list)
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidPipelineDefinitionError(message="pipeline.name must be a non-empty string")
        if not self.tasks:
            raise InvalidPipelineDefinitionError(
                message=f"Pipeline '{self.name}' declares no tasks",
                details={"pipeline": self.name},
            )

        declared = set(check_unique(self.params, owner=f"pipeline/{self.name}"))

        ws_names: Dict[str, PipelineWorkspace] = {}
        for ws in self.workspaces:
            if ws.name in ws_names:
                raise InvalidPipelineDefinitionError(
                    message=f"Duplicate workspace '{ws.name}' in pipeline '{self.name}'",
                    details={"pipeline": self.name, "workspace": ws.name},
                )
            if ws.param not in declared:
                raise UnboundParameterError(
                    message=f"Workspace '{ws.name}' takes its identifier from undeclared parameter '{ws.param}'",
                    details={"pipeline": self.name, "workspace": ws.name, "param": ws.param},
                )
            ws_names[ws.name] = ws

        self.order: List[PipelineTask] = plan_execution(self.tasks)

        for pt in self.tasks:
            self._validate_task(pt, declared, ws_names)

    def _validate_task(
        self,
        pt: PipelineTask,
        declared: set,
        ws_names: Mapping[str, PipelineWorkspace],
    ) -> None:
        owner = f"pipeline/{self.name}/task/{pt.name}"
        check_references(pt.params, declared, owner=owner)

        task_params = {p.name for p in pt.task.params}
        unknown = sorted(set(pt.params) - task_params)
        if unknown:
            raise UnboundParameterError(
                message=f"Task '{pt.name}' binds parameter(s) not declared by '{pt.task.name}': {', '.join(unknown)}",
                details={"task": pt.name, "unknown": unknown},
            )
        missing = sorted(set(pt.task.required_params) - set(pt.params))
        if missing:
            raise UnboundParameterError(
                message=f"Task '{pt.name}' leaves required parameter(s) unbound: {', '.join(missing)}",
                details={"task": pt.name, "missing": missing},
            )

        for task_ws in pt.task.workspaces:
            target = pt.workspaces.get(task_ws)
            if target is None:
                raise InvalidPipelineDefinitionError(
                    message=f"Task '{pt.name}' does not bind workspace '{task_ws}'",
                    details={"task": pt.name, "workspace": task_ws},
                )
            if target not in ws_names:
                raise InvalidPipelineDefinitionError(
                    message=f"Task '{pt.name}' binds '{task_ws}' to undeclared pipeline workspace '{target}'",
                    details={"task": pt.name, "workspace": task_ws, "pipeline_workspace": target},
                )
        extra = sorted(set(pt.workspaces) - set(pt.task.workspaces))
        if extra:
            raise InvalidPipelineDefinitionError(
                message=f"Task '{pt.name}' binds workspace(s) not declared by '{pt.task.name}': {', '.join(extra)}",
                details={"task": pt.name, "unknown": extra},
            )

    # -----------------------------
    # Binding de uma run
    # -----------------------------
    def resolve_params(self, values: Mapping[str, str]) -> Dict[str, str]:
        """Resolve os parâmetros do Pipeline para uma run (binding > default)."""
        return resolve_values(self.params, values, owner=f"pipeline/{self.name}")

    def bind_tasks(self, resolved: Mapping[str, str]) -> Dict[str, BoundTask]:
        """Instancia todas as Tasks; qualquer erro ocorre antes do primeiro Step."""
        bound: Dict[str, BoundTask] = {}
        for pt in self.order:
            bindings = {k: substitute(v, resolved) for k, v in pt.params.items()}
            bound[pt.name] = pt.task.instantiate(bindings)
        return bound

    def workspace_ids(self, resolved: Mapping[str, str]) -> Dict[str, str]:
        return {ws.name: resolved[ws.param] for ws in self.workspaces}

    def get_task(self, name: str) -> PipelineTask:
        for pt in self.tasks:
            if pt.name == name:
                return pt
        raise KeyError(name)
