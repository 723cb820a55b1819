# src/atlas_deploy/core/pipeline/step.py
"""
Contrato canônico de Step do Atlas Deploy.

Um Step é a menor unidade executável de uma Task: uma ação atômica,
parametrizada e idempotente sobre um único sistema externo.

Contrato de idempotência:
    Reexecutar um Step com as mesmas entradas contra o mesmo estado externo
    converge para o mesmo estado externo. Um Step nunca falha apenas porque
    o estado alvo já existe: ele detecta o estado atual e pula ou atualiza,
    nunca duplica (get → se ausente, cria; se presente, atualiza se necessário).

Princípios fundamentais:
    - Steps não conhecem o scheduler nem a ordem de execução
    - Steps recebem parâmetros já resolvidos (strings) e o Workspace vinculado
    - Colaboradores externos chegam exclusivamente via `RunContext`
    - Conformidade é garantida por duck typing (@runtime_checkable)
    - Um Step nunca engole erros: falhas são levantadas como exceções tipadas

Atributos obrigatórios:
    - name: nome do Step, único dentro da Task
    - target: sistema externo alvo (`StepTarget`)
    - params: mapa argumento → template sobre parâmetros da Task
    - workspace: nome do workspace da Task utilizado (ou None)
    - required_args: argumentos obrigatórios do Step
    - optional_args: argumentos opcionais aceitos pelo Step
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .context import RunContext
from .types import StepResult, StepTarget


@runtime_checkable
class Step(Protocol):
    name: str
    target: StepTarget
    params: Dict[str, str]
    workspace: Optional[str]
    required_args: Tuple[str, ...]
    optional_args: Tuple[str, ...]

    def execute(self, args: Mapping[str, str], workspace, ctx: RunContext) -> StepResult:
        """Executa o Step com argumentos resolvidos e o Workspace vinculado (ou None)."""
        ...
