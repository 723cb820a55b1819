"""Step canônico: workspace.cleanup.

Responsabilidades:
- remover todo o conteúdo do Workspace vinculado
- reportar quantos arquivos foram removidos

Idempotência:
- Workspace inexistente, vazio ou populado termina vazio; nunca falha
  apenas porque não há nada a remover
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from atlas_deploy.core.pipeline.context import RunContext
from atlas_deploy.core.pipeline.types import StepResult, StepTarget
from atlas_deploy.steps.base import BaseStep


@dataclass
class CleanupWorkspaceStep(BaseStep):
    """Limpa o Workspace (equivalente a `rm -rf <workspace>/*`)."""

    target = StepTarget.WORKSPACE
    needs_workspace = True

    def execute(self, args: Mapping[str, str], workspace, ctx: RunContext) -> StepResult:
        ws = self._workspace(workspace)
        before = ws.list()
        remaining = ws.clear()

        ctx.log(
            step_id=self.name,
            level="INFO",
            message="workspace cleared",
            workspace=ws.name,
            removed=len(before),
        )
        summary = f"removed {len(before)} file(s)" if before else "workspace already empty"
        return self._ok(summary, outputs={"removed": len(before), "remaining": len(remaining)})
