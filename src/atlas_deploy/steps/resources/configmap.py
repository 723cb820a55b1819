"""Step canônico: resources.configmap.

Responsabilidades:
- ler `source-path` do Workspace (default: `index.html`)
- reconciliar o `configmap` com `data[<basename>] = conteúdo`, removendo
  chaves de arquivos que não fazem mais parte do configmap
- montar o configmap no deployment (volume `deploy.volume_name` em
  `deploy.mount_path`), substituindo um volume de mesmo nome; o mount é
  um update com versão esperada, nunca cria o deployment

Condição não fatal:
- deployment ausente (ou removido antes do mount) → o configmap é
  reconciliado, o mount é pulado, um warning é emitido e a run termina
  como degradada (não falha)
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from atlas_deploy.core.config.settings import get_setting
from atlas_deploy.core.exceptions import ResourceConflictError, ResourceNotFoundError, WorkspaceIOError
from atlas_deploy.core.pipeline.context import RunContext
from atlas_deploy.core.pipeline.types import StepResult, StepTarget
from atlas_deploy.integrations.resources import ReconcileAction
from atlas_deploy.steps.base import BaseStep


DEFAULT_SOURCE_PATH = "index.html"


def mount_volumes(volumes: List[Dict[str, Any]], *, volume: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Retorna `volumes` com `volume` substituindo qualquer entrada de mesmo nome."""
    kept = [dict(v) for v in volumes if v.get("name") != volume["name"]]
    return kept + [dict(volume)]


@dataclass
class ManageConfigMapStep(BaseStep):
    """Publica um arquivo do Workspace como configmap e o monta no deployment."""

    target = StepTarget.RESOURCES
    required_args = ("configmap-name", "deployment-name")
    optional_args = ("source-path",)
    needs_workspace = True

    def execute(self, args: Mapping[str, str], workspace, ctx: RunContext) -> StepResult:
        ws = self._workspace(workspace)
        store = self._resources(ctx)

        cm_name = args["configmap-name"]
        dep_name = args["deployment-name"]
        source_path = args.get("source-path") or DEFAULT_SOURCE_PATH

        if not ws.exists(source_path):
            raise WorkspaceIOError(
                message=f"File '{source_path}' not found in workspace '{ws.name}'",
                details={"workspace": ws.name, "path": source_path},
                hint="Check that the repository contains the file at its root.",
            )
        content = ws.read(source_path)
        key = posixpath.basename(source_path)

        current = store.get("configmap", cm_name)
        data: Dict[str, Any] = {k: None for k in ((current.spec.get("data") or {}) if current else {}) if k != key}
        data[key] = content
        cm = store.reconcile("configmap", cm_name, {"data": data})
        ctx.log(
            step_id=self.name,
            level="INFO",
            message="configmap reconciled",
            resource=cm_name,
            action=cm.action.value,
            key=key,
        )
        outputs: Dict[str, Any] = {"configmap": cm_name, "key": key, "configmap_action": cm.action.value}

        volume = {
            "name": str(get_setting(ctx.config, "deploy.volume_name", "html-home")),
            "config_map": cm_name,
            "mount_path": str(get_setting(ctx.config, "deploy.mount_path", "/var/www/html")),
        }
        retries = int(get_setting(ctx.config, "resources.conflict_retries", 3))
        mount_action = self._mount(store, dep_name, volume, retries=retries)

        if mount_action is None:
            warning = f"Deployment '{dep_name}' not found; configmap '{cm_name}' was not mounted"
            ctx.log(step_id=self.name, level="WARNING", message=warning, deployment=dep_name)
            outputs["mount_action"] = "skipped"
            return self._ok(f"configmap '{cm_name}' reconciled (not mounted)", outputs=outputs, warnings=[warning])

        ctx.log(
            step_id=self.name,
            level="INFO",
            message="configmap mounted",
            deployment=dep_name,
            volume=volume["name"],
            action=mount_action,
        )
        outputs["mount_action"] = mount_action
        return self._ok(f"configmap '{cm_name}' mounted on '{dep_name}'", outputs=outputs)

    @staticmethod
    def _mount(store, dep_name: str, volume: Dict[str, Any], *, retries: int) -> Optional[str]:
        """
        Monta o volume em um deployment existente, nunca o criando.

        Retorna a ação (`updated`/`unchanged`) ou None se o deployment não
        existe (inclusive quando removido entre a leitura e a escrita).
        """
        attempts = max(0, retries) + 1
        for attempt in range(1, attempts + 1):
            deployment = store.get("deployment", dep_name)
            if deployment is None:
                return None
            current = list(deployment.spec.get("volumes") or [])
            volumes = mount_volumes(current, volume=volume)
            if volumes == current:
                return ReconcileAction.UNCHANGED.value
            try:
                store.update("deployment", dep_name, {"volumes": volumes}, expected_version=deployment.version)
                return ReconcileAction.UPDATED.value
            except ResourceNotFoundError:
                return None
            except ResourceConflictError:
                if attempt == attempts:
                    raise
        raise AssertionError("unreachable")  # pragma: no cover
