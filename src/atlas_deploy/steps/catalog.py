# src/atlas_deploy/steps/catalog.py
"""Registro padrão das ações de Step disponíveis em definições YAML."""

from __future__ import annotations

from atlas_deploy.core.pipeline.registry import StepRegistry

from .resources.configmap import ManageConfigMapStep
from .resources.deploy_app import DeployApplicationStep
from .source.clone import CloneRepositoryStep
from .workspace.cleanup import CleanupWorkspaceStep


def default_registry() -> StepRegistry:
    registry = StepRegistry()
    registry.add("workspace.cleanup", CleanupWorkspaceStep)
    registry.add("source.clone", CloneRepositoryStep)
    registry.add("resources.deploy-app", DeployApplicationStep)
    registry.add("resources.configmap", ManageConfigMapStep)
    return registry
