# src/atlas_deploy/core/pipeline/types.py
"""
Tipos canônicos do pipeline do Atlas Deploy.

Este módulo define as estruturas e enums fundamentais que padronizam
a comunicação entre Steps, Tasks, o scheduler e a camada de rastreabilidade.

Componentes principais:
    - StepTarget     → sistema externo sobre o qual um Step atua
    - StepStatus     → estados finais de um Step
    - TaskStatus     → máquina de estados de uma PipelineTask
    - RunStatus      → estado agregado de uma run
    - StepResult     → resultado imutável produzido por um Step
    - TaskRunResult  → resultado imutável de uma PipelineTask em uma run

Princípios fundamentais:
    - Tipos são estáveis e serializáveis
    - Valores textuais dos enums são canônicos (usados no Manifest e relatórios)
    - Nenhuma lógica de execução vive neste módulo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class StepTarget(str, Enum):
    """
    Sistema externo sobre o qual um Step atua.

    Tipos definidos:
        - WORKSPACE: área de staging compartilhada da run
        - SOURCE: controle de versão (fetch de código-fonte)
        - RESOURCES: resource store do cluster (deployment, service, route, configmap)

    O valor é informativo: o scheduler não decide execução com base nele.
    """

    WORKSPACE = "workspace"
    SOURCE = "source"
    RESOURCES = "resources"


class StepStatus(str, Enum):
    """
    Estados finais possíveis da execução de um Step.

    Estados definidos:
        - SUCCESS: execução concluída (incluindo "nada a fazer", por idempotência)
        - FAILED: execução interrompida por erro
        - SKIPPED: Step não executado porque um Step anterior da Task falhou
          ou a run foi cancelada
    """

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskStatus(str, Enum):
    """
    Máquina de estados de uma PipelineTask dentro de uma run.

    Transições válidas:
        PENDING → READY → RUNNING → {SUCCEEDED, FAILED}
        PENDING → SKIPPED (dependência terminou em FAILED/SKIPPED, ou run cancelada)
    """

    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.SKIPPED)


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult:
    """
    Resultado imutável da execução de um Step.

    Campos:
        - step_id: nome do Step dentro da Task
        - target: sistema externo alvo do Step
        - status: estado final da execução do Step
        - summary: resumo textual da execução
        - outputs: valores produzidos (ex.: revisão obtida, ação de reconcile)
        - warnings: avisos não fatais (marcam a run como degradada)
        - logs: mensagens emitidas pelo Step, na ordem de emissão
        - payload: dados adicionais livres (ex.: `error` em caso de falha)

    Invariantes:
        - Uma instância nunca é alterada após criada
        - `success` é verdadeiro apenas para `StepStatus.SUCCESS`
    """

    step_id: str
    target: StepTarget
    status: StepStatus
    summary: str
    outputs: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == StepStatus.SUCCESS


@dataclass(frozen=True)
class TaskRunResult:
    """Resultado terminal de uma PipelineTask em uma run."""

    task_id: str
    task_ref: str
    status: TaskStatus
    summary: str
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    steps: List[StepResult] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None

    @property
    def warnings(self) -> List[str]:
        return [w for s in self.steps for w in s.warnings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_ref": self.task_ref,
            "status": self.status.value,
            "summary": self.summary,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "steps": [
                {
                    "step_id": s.step_id,
                    "target": s.target.value,
                    "status": s.status.value,
                    "summary": s.summary,
                    "outputs": dict(s.outputs),
                    "warnings": list(s.warnings),
                }
                for s in self.steps
            ],
            "error": dict(self.error) if self.error else None,
        }
