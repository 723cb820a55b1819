"""
Atlas Deploy — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas Deploy.

Erros são considerados artefatos operacionais e fazem parte do contrato
do sistema, devendo ser:
- explícitos
- serializáveis
- rastreáveis
- acionáveis

Um erro nunca é engolido silenciosamente: ele é convertido em payload,
registrado no Step, na Task e no Manifest da run.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ErrorPayload:
    """
    Payload canônico de erro do Atlas Deploy.

    Campos:
    - type: código estável do erro (nome da exceção tipada ou código do catálogo)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Engine / Execução
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"

# Steps
STEP_INVALID_RESULT = "STEP_INVALID_RESULT"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def engine_execution_error(
    *,
    step: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique os eventos da run para diagnosticar a falha. Nenhum fallback é aplicado automaticamente.",
) -> ErrorPayload:
    return ErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message=exc_message or "Falha inesperada durante a execução do Step",
        details={
            "step": step,
            "exc_type": exc_type,
        },
        hint=hint,
    )


def step_invalid_result(*, step: str, received: str) -> ErrorPayload:
    return ErrorPayload(
        type=STEP_INVALID_RESULT,
        message="Step retornou tipo inválido",
        details={
            "step": step,
            "expected": "StepResult",
            "received": received,
        },
        hint="Ajuste o Step para retornar StepResult",
    )
