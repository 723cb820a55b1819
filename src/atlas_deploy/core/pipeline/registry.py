# src/atlas_deploy/core/pipeline/registry.py
"""
Registro de ações de Step.

Definições declarativas (YAML) referenciam Steps por nome de ação
(`uses: resources.deploy-app`). O `StepRegistry` mapeia esses nomes
para as classes concretas que implementam o protocolo `Step`.

Invariantes:
    - Cada nome de ação é único no registro
    - A ordem de registro é preservada em `list()`

Limites explícitos:
    - Não instancia Steps por conta própria fora de `build`
    - Não valida parâmetros (responsabilidade da Task)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from atlas_deploy.core.exceptions import DefinitionError


class DuplicateStepActionError(ValueError):
    """
    Exceção levantada quando duas classes são registradas com o mesmo
    nome de ação. Trata-se de erro de programação, não de definição.
    """


@dataclass
class StepRegistry:
    _actions: Dict[str, Callable[..., Any]] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    def add(self, action: str, factory: Callable[..., Any]) -> None:
        if not isinstance(action, str) or not action.strip():
            raise ValueError("action must be a non-empty string")
        if action in self._actions:
            raise DuplicateStepActionError(f"Duplicate step action: {action}")
        self._actions[action] = factory
        self._order.append(action)

    def get(self, action: str) -> Callable[..., Any]:
        if action not in self._actions:
            raise DefinitionError(
                message=f"Unknown step action '{action}'",
                details={"action": action, "known": list(self._order)},
            )
        return self._actions[action]

    def build(self, action: str, **kwargs: Any) -> Any:
        return self.get(action)(**kwargs)

    def list(self) -> List[str]:
        return list(self._order)
