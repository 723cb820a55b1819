# src/atlas_deploy/core/pipeline/params.py
"""
Parâmetros declarativos de Tasks e Pipelines.

Um parâmetro é um valor nomeado, tipado (apenas `string` nesta versão),
com default opcional. Valores podem referenciar parâmetros do escopo
imediatamente superior com a sintaxe `$(params.<nome>)`, seja como valor
inteiro ou embutido em uma string maior.

Escopos:
    - Pipeline → PipelineTask: bindings referenciam parâmetros do Pipeline
    - Task → Step: templates referenciam parâmetros da Task

Princípios fundamentais:
    - Referências não resolvidas são erro de definição, nunca de runtime
    - Não existe canal de outputs entre tasks: qualquer outra forma
      `$(...)` (ex.: `$(tasks.x.results.y)`) é rejeitada
    - Resolução é pura e determinística

Ordem de resolução em cada escopo:
    1. binding explícito
    2. default declarado
    3. caso contrário, `UnboundParameterError`
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from atlas_deploy.core.exceptions import DefinitionError, UnboundParameterError


SUPPORTED_TYPES = frozenset({"string"})

_PARAM_REF = re.compile(r"\$\(params\.([A-Za-z0-9_.-]+)\)")
_ANY_REF = re.compile(r"\$\(([^)]*)\)")


@dataclass(frozen=True)
class ParamSpec:
    """Declaração de parâmetro (nome, tipo, descrição e default opcional)."""

    name: str
    type: str = "string"
    description: str = ""
    default: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise DefinitionError(message="param.name must be a non-empty string")
        if self.type not in SUPPORTED_TYPES:
            raise DefinitionError(
                message=f"Unsupported type '{self.type}' for param '{self.name}'",
                details={"param": self.name, "supported": sorted(SUPPORTED_TYPES)},
            )
        if self.default is not None and not isinstance(self.default, str):
            raise DefinitionError(
                message=f"Default of param '{self.name}' must be a string",
                details={"param": self.name},
            )

    @property
    def required(self) -> bool:
        return self.default is None


def find_references(value: str) -> List[str]:
    """
    Lista os nomes de parâmetros referenciados em `value`.

    Raises:
        DefinitionError: Se `value` contiver uma referência `$(...)` que não
            seja da forma `$(params.<nome>)`.
    """
    if not isinstance(value, str):
        raise DefinitionError(
            message="Parameter values must be strings",
            details={"received": type(value).__name__},
        )
    for match in _ANY_REF.finditer(value):
        if not _PARAM_REF.fullmatch(match.group(0)):
            raise DefinitionError(
                message=f"Unsupported reference '{match.group(0)}': only $(params.<name>) is allowed",
                details={"reference": match.group(0)},
                hint="Tasks do not exchange outputs; share data through the workspace instead.",
            )
    return [m.group(1) for m in _PARAM_REF.finditer(value)]


def substitute(value: str, values: Mapping[str, str]) -> str:
    """Substitui as referências `$(params.x)` de `value` pelos valores resolvidos."""

    def _replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in values:
            raise UnboundParameterError(
                message=f"Reference to unbound parameter '{name}'",
                details={"param": name},
            )
        return values[name]

    return _PARAM_REF.sub(_replace, value)


def check_unique(specs: Iterable[ParamSpec], *, owner: str) -> Dict[str, ParamSpec]:
    by_name: Dict[str, ParamSpec] = {}
    for spec in specs:
        if spec.name in by_name:
            raise DefinitionError(
                message=f"Duplicate param '{spec.name}' in '{owner}'",
                details={"owner": owner, "param": spec.name},
            )
        by_name[spec.name] = spec
    return by_name


def check_references(templates: Mapping[str, str], declared: Set[str], *, owner: str) -> None:
    """Garante que todo template referencie apenas parâmetros declarados em `declared`."""
    for key, template in templates.items():
        for ref in find_references(template):
            if ref not in declared:
                raise UnboundParameterError(
                    message=f"'{owner}' references undeclared parameter '{ref}' in '{key}'",
                    details={"owner": owner, "binding": key, "param": ref},
                )


def resolve_values(
    specs: Sequence[ParamSpec],
    bindings: Mapping[str, str],
    *,
    owner: str,
) -> Dict[str, str]:
    """
    Resolve os valores finais de um escopo a partir de bindings literais.

    Bindings para nomes não declarados são rejeitados; parâmetros obrigatórios
    sem binding levantam `UnboundParameterError`.
    """
    declared = {s.name for s in specs}
    unknown = sorted(set(bindings) - declared)
    if unknown:
        raise UnboundParameterError(
            message=f"Unknown parameter(s) for '{owner}': {', '.join(unknown)}",
            details={"owner": owner, "unknown": unknown},
        )

    resolved: Dict[str, str] = {}
    missing: List[str] = []
    for spec in specs:
        if spec.name in bindings:
            value = bindings[spec.name]
            if not isinstance(value, str):
                raise UnboundParameterError(
                    message=f"Value of parameter '{spec.name}' must be a string",
                    details={"owner": owner, "param": spec.name},
                )
            resolved[spec.name] = value
        elif spec.default is not None:
            resolved[spec.name] = spec.default
        else:
            missing.append(spec.name)

    if missing:
        raise UnboundParameterError(
            message=f"Missing required parameter(s) for '{owner}': {', '.join(missing)}",
            details={"owner": owner, "missing": missing},
        )
    return resolved
