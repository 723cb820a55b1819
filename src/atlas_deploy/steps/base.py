# src/atlas_deploy/steps/base.py
"""
Base comum dos Steps canônicos do Atlas Deploy.

Concentra apenas o que é idêntico entre os Steps concretos:
    - campos declarativos (`name`, `params`, `workspace`)
    - acesso validado aos colaboradores do `RunContext`
    - construção de `StepResult` de sucesso

Erros não são convertidos aqui: Steps levantam exceções tipadas e o
`BoundTask` as converte em `ErrorPayload`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from atlas_deploy.core.exceptions import DefinitionError, StepError
from atlas_deploy.core.pipeline.context import RunContext
from atlas_deploy.core.pipeline.types import StepResult, StepStatus, StepTarget


@dataclass
class BaseStep:
    name: str
    params: Dict[str, str] = field(default_factory=dict)
    workspace: Optional[str] = None

    target: ClassVar[StepTarget]
    required_args: ClassVar[Tuple[str, ...]] = ()
    optional_args: ClassVar[Tuple[str, ...]] = ()
    needs_workspace: ClassVar[bool] = False

    def __post_init__(self) -> None:
        if self.needs_workspace and not self.workspace:
            raise DefinitionError(
                message=f"Step '{self.name}' requires a workspace binding",
                details={"step": self.name, "step_type": type(self).__name__},
            )

    def _workspace(self, workspace):
        if workspace is None:
            raise StepError(
                message=f"Workspace '{self.workspace}' was not provided to step '{self.name}'",
                details={"step": self.name, "workspace": self.workspace},
            )
        return workspace

    def _resources(self, ctx: RunContext):
        if ctx.resources is None:
            raise StepError(
                message="No resource store configured for this run",
                details={"step": self.name},
                hint="Pass a ResourceStore to the trigger (or set resources.state_file).",
            )
        return ctx.resources

    def _ok(
        self,
        summary: str,
        *,
        outputs: Optional[Dict[str, Any]] = None,
        warnings: Optional[List[str]] = None,
        logs: Optional[List[str]] = None,
    ) -> StepResult:
        return StepResult(
            step_id=self.name,
            target=self.target,
            status=StepStatus.SUCCESS,
            summary=summary,
            outputs=dict(outputs or {}),
            warnings=list(warnings or []),
            logs=list(logs or []),
        )
