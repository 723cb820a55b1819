"""
Atlas Deploy — Canonical Exceptions (v1)

Este módulo define exceções tipadas internas do Atlas Deploy.

Objetivo:
- Permitir que Steps/Engine levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para ErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Taxonomia:
- DefinitionError e derivadas: falhas estruturais, fatais, levantadas
  antes de qualquer Step executar.
- StepError e derivadas: falhas com escopo de Step; falham o Step, a Task
  e a PipelineTask dona, sem afetar ramos irmãos do DAG.

Regras:
- Exceções devem carregar apenas dados estruturados (serializáveis).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas Deploy.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------------------------------------------------------------------------
# Definição (fatal, antes da execução)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DefinitionError(AtlasException):
    """Definição de Task/Pipeline inválida; nenhum Step é executado."""


@dataclass(frozen=True)
class InvalidPipelineDefinitionError(DefinitionError):
    """Grafo do pipeline inválido (nome duplicado, referência ou workspace inexistente)."""


@dataclass(frozen=True)
class UnknownDependencyError(InvalidPipelineDefinitionError):
    """Uma PipelineTask declara em `runAfter` uma task inexistente."""


@dataclass(frozen=True)
class CycleDetectedError(InvalidPipelineDefinitionError):
    """As arestas `runAfter` formam um ciclo."""


@dataclass(frozen=True)
class UnboundParameterError(DefinitionError):
    """Parâmetro obrigatório sem binding, ou referência a parâmetro não declarado."""


# ---------------------------------------------------------------------------
# Execução (escopo de Step)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StepError(AtlasException):
    """Base das falhas com escopo de Step."""


@dataclass(frozen=True)
class FetchError(StepError):
    """Falha ao obter o conteúdo do repositório de origem."""


@dataclass(frozen=True)
class WorkspaceIOError(StepError):
    """Falha de I/O no Workspace."""


@dataclass(frozen=True)
class WorkspaceBusyError(WorkspaceIOError):
    """O Workspace já pertence a outra run."""


@dataclass(frozen=True)
class ResourceConflictError(StepError):
    """Conflito de concorrência otimista ou criação de recurso já existente."""


@dataclass(frozen=True)
class ResourceNotFoundError(StepError):
    """Atualização de recurso inexistente."""


@dataclass(frozen=True)
class StepTimeoutError(StepError):
    """O Step excedeu o timeout configurado."""


@dataclass(frozen=True)
class RunCancelledError(StepError):
    """A run foi cancelada antes que a Task concluísse todos os Steps."""
