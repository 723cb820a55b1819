"""Step canônico: resources.deploy-app.

Responsabilidades:
- reconciliar o `deployment` com a imagem informada
- reconciliar o `service` que expõe o deployment
- reconciliar a `route` que expõe o service

Idempotência (get → cria se ausente → atualiza se necessário):
- o deployment recebe a anotação de restart com o `run_id` a cada run,
  o que força um rollout sem duplicar o recurso
- service e route permanecem intocados quando já correspondem ao desejado

Todos os três recursos usam `deployment-name` como nome.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from atlas_deploy.core.config.settings import get_setting
from atlas_deploy.core.exceptions import StepError
from atlas_deploy.core.pipeline.context import RunContext
from atlas_deploy.core.pipeline.types import StepResult, StepTarget
from atlas_deploy.steps.base import BaseStep


RESTART_ANNOTATION = "atlas.deploy/restarted-by-run"


def _port(args: Mapping[str, str], ctx: RunContext) -> int:
    raw = args.get("port") or get_setting(ctx.config, "deploy.port", 8080)
    try:
        port = int(raw)
    except (TypeError, ValueError) as e:
        raise StepError(message=f"Invalid port: {raw!r}", details={"port": raw}) from e
    if not 0 < port < 65536:
        raise StepError(message=f"Port out of range: {port}", details={"port": port})
    return port


def desired_resources(name: str, image: str, port: int) -> Dict[str, Dict[str, Any]]:
    """Specs desejadas de deployment/service/route para uma aplicação."""
    labels = {"app": name}
    return {
        "deployment": {"image": image, "replicas": 1, "labels": labels},
        "service": {"selector": labels, "port": port, "target_port": port},
        "route": {"to": {"kind": "service", "name": name}, "port": port},
    }


@dataclass
class DeployApplicationStep(BaseStep):
    """Reconcilia deployment, service e route de uma aplicação."""

    target = StepTarget.RESOURCES
    required_args = ("deployment-name", "image")
    optional_args = ("port",)

    def execute(self, args: Mapping[str, str], workspace, ctx: RunContext) -> StepResult:
        store = self._resources(ctx)
        name = args["deployment-name"]
        image = args["image"]
        port = _port(args, ctx)

        actions: Dict[str, str] = {}
        logs = []
        for kind, spec in desired_resources(name, image, port).items():
            annotations = {RESTART_ANNOTATION: ctx.run_id} if kind == "deployment" else None
            outcome = store.reconcile(kind, name, spec, annotations=annotations)
            actions[kind] = outcome.action.value
            logs.append(f"{kind}/{name} {outcome.action.value} (version {outcome.resource.version})")
            ctx.log(
                step_id=self.name,
                level="INFO",
                message=f"{kind} reconciled",
                kind=kind,
                resource=name,
                action=outcome.action.value,
                version=outcome.resource.version,
            )

        return self._ok(
            f"application '{name}' deployed with image {image}",
            outputs={"deployment": name, "image": image, "port": port, "actions": actions},
            logs=logs,
        )
