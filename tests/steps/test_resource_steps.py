# tests/steps/test_resource_steps.py
"""
Testes dos Steps de recursos (deploy-app e configmap).

Os testes asseguram que:
- deploy-app cria deployment, service e route na primeira execução
- reexecuções não duplicam recursos: service e route ficam intocados e o
  deployment recebe apenas a nova anotação de restart
- configmap reflete o conteúdo do arquivo do Workspace e é montado no
  deployment, substituindo um volume de mesmo nome
- deployment ausente gera warning (run degradada), não falha
"""

from datetime import datetime, timezone

import pytest

try:
    from atlas_deploy.core.exceptions import ResourceNotFoundError, StepError, WorkspaceIOError
    from atlas_deploy.core.pipeline.context import RunContext
    from atlas_deploy.core.pipeline.types import StepStatus
    from atlas_deploy.integrations.resources import InMemoryResourceStore
    from atlas_deploy.steps.resources.configmap import ManageConfigMapStep
    from atlas_deploy.steps.resources.deploy_app import RESTART_ANNOTATION, DeployApplicationStep
except Exception as e:  # noqa: BLE001
    DeployApplicationStep = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing src/atlas_deploy/steps/resources. Import error: {_IMPORT_ERR}")


DEPLOY_ARGS = {"deployment-name": "site", "image": "registry.example.org/httpd:2.4"}


def _ctx_like(ctx, run_id):
    return RunContext(
        run_id=run_id,
        created_at=datetime.now(timezone.utc),
        config=ctx.config,
        fetcher=ctx.fetcher,
        resources=ctx.resources,
    )


def test_deploy_creates_all_resources(dummy_ctx, memory_store):
    _require_imports()
    result = DeployApplicationStep(name="deploy").execute(DEPLOY_ARGS, None, dummy_ctx)

    assert result.status == StepStatus.SUCCESS
    assert result.outputs["actions"] == {"deployment": "created", "service": "created", "route": "created"}
    assert memory_store.get("deployment", "site").spec["image"] == DEPLOY_ARGS["image"]
    assert memory_store.get("service", "site").spec["port"] == 8080
    assert memory_store.get("route", "site").spec["to"] == {"kind": "service", "name": "site"}
    assert memory_store.get("deployment", "site").annotations[RESTART_ANNOTATION] == "run-test-001"


def test_deploy_rerun_restarts_without_duplicating(dummy_ctx, memory_store):
    """
    Segunda run: service e route `unchanged`; deployment `updated` apenas
    pela anotação de restart com o novo run_id.
    """
    _require_imports()
    step = DeployApplicationStep(name="deploy")
    step.execute(DEPLOY_ARGS, None, dummy_ctx)

    result = step.execute(DEPLOY_ARGS, None, _ctx_like(dummy_ctx, "run-test-002"))

    assert result.outputs["actions"] == {"deployment": "updated", "service": "unchanged", "route": "unchanged"}
    assert len(memory_store.list()) == 3
    deployment = memory_store.get("deployment", "site")
    assert deployment.annotations[RESTART_ANNOTATION] == "run-test-002"
    assert deployment.spec["image"] == DEPLOY_ARGS["image"]


def test_deploy_port_override_and_validation(dummy_ctx, memory_store):
    _require_imports()
    step = DeployApplicationStep(name="deploy")
    step.execute({**DEPLOY_ARGS, "port": "9000"}, None, dummy_ctx)
    assert memory_store.get("service", "site").spec["port"] == 9000

    with pytest.raises(StepError) as exc:
        step.execute({**DEPLOY_ARGS, "port": "http"}, None, dummy_ctx)
    assert "Invalid port" in str(exc.value)


def test_configmap_reflects_file_and_mounts_volume(dummy_ctx, memory_store, workspace):
    _require_imports()
    workspace.write("index.html", "<h1>v1</h1>")
    memory_store.create(
        "deployment",
        "site",
        {"image": "httpd", "volumes": [{"name": "html-home", "config_map": "old"}, {"name": "logs"}]},
    )
    step = ManageConfigMapStep(name="configmap", workspace="repo")
    args = {"configmap-name": "site-html", "deployment-name": "site"}

    result = step.execute(args, workspace, dummy_ctx)

    assert result.status == StepStatus.SUCCESS
    assert result.warnings == []
    assert memory_store.get("configmap", "site-html").spec["data"] == {"index.html": "<h1>v1</h1>"}
    volumes = memory_store.get("deployment", "site").spec["volumes"]
    assert volumes == [
        {"name": "logs"},
        {"name": "html-home", "config_map": "site-html", "mount_path": "/var/www/html"},
    ]


def test_configmap_update_is_idempotent(dummy_ctx, memory_store, workspace):
    """
    Mesmo conteúdo → configmap e mount `unchanged`; conteúdo diferente →
    configmap `updated` com o novo conteúdo.
    """
    _require_imports()
    memory_store.create("deployment", "site", {"image": "httpd"})
    step = ManageConfigMapStep(name="configmap", workspace="repo")
    args = {"configmap-name": "site-html", "deployment-name": "site"}

    workspace.write("index.html", "<h1>v1</h1>")
    step.execute(args, workspace, dummy_ctx)
    again = step.execute(args, workspace, dummy_ctx)
    assert again.outputs["configmap_action"] == "unchanged"
    assert again.outputs["mount_action"] == "unchanged"

    workspace.write("index.html", "<h1>v2</h1>")
    changed = step.execute(args, workspace, dummy_ctx)
    assert changed.outputs["configmap_action"] == "updated"
    assert memory_store.get("configmap", "site-html").spec["data"] == {"index.html": "<h1>v2</h1>"}


def test_configmap_drops_keys_of_previous_source_path(dummy_ctx, memory_store, workspace):
    _require_imports()
    memory_store.create("deployment", "site", {"image": "httpd"})
    step = ManageConfigMapStep(name="configmap", workspace="repo")
    workspace.write("index.html", "<h1>index</h1>")
    workspace.write("pages/home.html", "<h1>home</h1>")

    step.execute({"configmap-name": "cm", "deployment-name": "site"}, workspace, dummy_ctx)
    step.execute({"configmap-name": "cm", "deployment-name": "site", "source-path": "pages/home.html"}, workspace, dummy_ctx)

    assert memory_store.get("configmap", "cm").spec["data"] == {"home.html": "<h1>home</h1>"}


def test_missing_deployment_is_a_warning_not_a_failure(dummy_ctx, memory_store, workspace):
    _require_imports()
    workspace.write("index.html", "<h1>v1</h1>")

    result = ManageConfigMapStep(name="configmap", workspace="repo").execute(
        {"configmap-name": "site-html", "deployment-name": "ghost"}, workspace, dummy_ctx
    )

    assert result.status == StepStatus.SUCCESS
    assert result.outputs["mount_action"] == "skipped"
    assert len(result.warnings) == 1
    assert "ghost" in result.warnings[0]
    assert memory_store.get("configmap", "site-html") is not None
    assert memory_store.get("deployment", "ghost") is None


def test_missing_source_file_fails(dummy_ctx, workspace):
    _require_imports()
    with pytest.raises(WorkspaceIOError):
        ManageConfigMapStep(name="configmap", workspace="repo").execute(
            {"configmap-name": "cm", "deployment-name": "site"}, workspace, dummy_ctx
        )


def test_deployment_removed_before_mount_is_not_recreated(dummy_ctx, workspace):
    """
    O deployment existe na leitura mas some antes da escrita do mount: o
    Step não cria um deployment só com `volumes` (sem imagem); o mount é
    pulado com warning, como no caso de deployment ausente.
    """
    _require_imports()

    class _VanishingStore(InMemoryResourceStore):
        def update(self, kind, name, patch, *, expected_version=None, annotations=None):
            if kind == "deployment":
                self._items.pop((kind, name), None)
            return super().update(kind, name, patch, expected_version=expected_version, annotations=annotations)

    store = _VanishingStore()
    store.create("deployment", "site", {"image": "httpd"})
    dummy_ctx.resources = store
    workspace.write("index.html", "<h1>v1</h1>")

    result = ManageConfigMapStep(name="configmap", workspace="repo").execute(
        {"configmap-name": "site-html", "deployment-name": "site"}, workspace, dummy_ctx
    )

    assert result.status == StepStatus.SUCCESS
    assert result.outputs["mount_action"] == "skipped"
    assert "site" in result.warnings[0]
    assert store.get("deployment", "site") is None
    assert store.get("configmap", "site-html") is not None

    with pytest.raises(ResourceNotFoundError):
        store.update("deployment", "site", {"volumes": []})


def test_mount_retries_when_deployment_changes_concurrently(dummy_ctx, workspace):
    """
    Outro escritor altera o deployment entre a leitura e o mount: o update
    com versão esperada conflita, o Step relê e monta preservando a mudança
    concorrente.
    """
    _require_imports()

    class _RacyStore(InMemoryResourceStore):
        raced = False

        def update(self, kind, name, patch, *, expected_version=None, annotations=None):
            if kind == "deployment" and not self.raced:
                self.raced = True
                super().update(kind, name, {"replicas": 2})
            return super().update(kind, name, patch, expected_version=expected_version, annotations=annotations)

    store = _RacyStore()
    store.create("deployment", "site", {"image": "httpd"})
    dummy_ctx.resources = store
    workspace.write("index.html", "<h1>v1</h1>")

    result = ManageConfigMapStep(name="configmap", workspace="repo").execute(
        {"configmap-name": "site-html", "deployment-name": "site"}, workspace, dummy_ctx
    )

    deployment = store.get("deployment", "site")
    assert result.outputs["mount_action"] == "updated"
    assert deployment.spec["image"] == "httpd"
    assert deployment.spec["replicas"] == 2
    assert deployment.spec["volumes"][0]["config_map"] == "site-html"
    assert deployment.version == 3
