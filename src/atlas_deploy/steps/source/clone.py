"""Step canônico: source.clone.

Responsabilidades:
- obter o conteúdo do repositório (`url`) via `ctx.fetcher`
- substituir o conteúdo do Workspace pelo checkout obtido
- publicar a revisão obtida em `outputs["revision"]`

Decisões:
- o fetch ocorre em diretório temporário; o Workspace só é limpo depois
  de um fetch bem-sucedido, então uma falha de rede não destrói o
  conteúdo anterior
- o diretório `.git` não é copiado para o Workspace

Limites explícitos:
- NÃO trata credenciais (responsabilidade do fetcher / ambiente)
- NÃO faz checkout de branch ou tag específicos
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from atlas_deploy.core.exceptions import FetchError
from atlas_deploy.core.pipeline.context import RunContext
from atlas_deploy.core.pipeline.types import StepResult, StepTarget
from atlas_deploy.steps.base import BaseStep


@dataclass
class CloneRepositoryStep(BaseStep):
    """Clona `url` e importa o checkout para o Workspace."""

    target = StepTarget.SOURCE
    required_args = ("url",)
    needs_workspace = True

    def execute(self, args: Mapping[str, str], workspace, ctx: RunContext) -> StepResult:
        ws = self._workspace(workspace)
        url = args["url"]

        if ctx.fetcher is None:
            raise FetchError(
                message="No source fetcher configured for this run",
                details={"step": self.name, "url": url},
            )

        with tempfile.TemporaryDirectory(prefix="atlas-clone-") as tmp:
            checkout = Path(tmp) / "checkout"
            result = ctx.fetcher.fetch(url, checkout)
            if not result.success:
                raise FetchError(
                    message=f"Failed to fetch repository: {url}",
                    details={"step": self.name, "url": url},
                )
            ws.clear()
            files = ws.import_tree(checkout, exclude=(".git",))

        ctx.log(
            step_id=self.name,
            level="INFO",
            message="repository cloned",
            url=url,
            revision=result.revision_id,
            files=len(files),
        )
        return self._ok(
            f"cloned {url} at {result.revision_id or 'unknown revision'}",
            outputs={"url": url, "revision": result.revision_id, "files": len(files)},
        )
