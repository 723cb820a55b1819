# src/atlas_deploy/core/pipeline/task.py
"""
Task — sequência reutilizável e nomeada de Steps.

Uma Task é um *template*: declara um esquema de parâmetros, os workspaces
que espera receber e a lista ordenada de Steps. Ela não guarda estado entre
runs; `instantiate(bindings)` produz um `BoundTask` com valores resolvidos,
e apenas o `BoundTask` executa.

Política de execução (`BoundTask.run`):
    - Steps executam estritamente na ordem declarada, sem paralelismo interno
    - Cada Step executa com timeout limitado; um Step travado vira FAILED
      (`StepTimeoutError`) sem bloquear o scheduler
    - Fail-fast: a primeira falha encerra a Task; Steps seguintes não executam
      e são reportados como SKIPPED
    - Exceções são convertidas em `ErrorPayload` serializável (sem stack trace)
    - Cancelamento da run é observado entre Steps: o Step em andamento
      termina naturalmente, os seguintes não começam

Validação na construção (erro de definição, antes de qualquer execução):
    - nomes de Steps únicos
    - templates de Steps referenciam apenas parâmetros declarados na Task
    - todo argumento obrigatório de Step possui template
    - todo workspace usado por um Step é declarado pela Task
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from atlas_deploy.core.errors import ErrorPayload, engine_execution_error, step_invalid_result
from atlas_deploy.core.exceptions import (
    AtlasException,
    DefinitionError,
    RunCancelledError,
    StepTimeoutError,
    UnboundParameterError,
)

from .context import RunContext
from .params import ParamSpec, check_references, check_unique, find_references, resolve_values, substitute
from .step import Step
from .types import StepResult, StepStatus, TaskRunResult, TaskStatus


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def exception_to_error(exc: BaseException, *, step_id: str) -> ErrorPayload:
    """Converte exceções em ErrorPayload (serializável, acionável).

    Regras:
    - AtlasException: já vem com message/details/hint; o tipo é o nome da classe.
    - Outras exceções: encapsular como ENGINE_EXECUTION_ERROR sem expor stack trace.
    """
    if isinstance(exc, AtlasException):
        details = dict(exc.details or {})
        details.setdefault("step", step_id)
        return ErrorPayload(
            type=exc.__class__.__name__,
            message=exc.message or "Erro de execução",
            details=details,
            hint=exc.hint,
        )
    return engine_execution_error(
        step=step_id,
        exc_type=exc.__class__.__name__,
        exc_message=str(exc) or None,
    )


def _call_with_timeout(
    fn: Callable[[], Any],
    *,
    timeout: float,
    label: str,
    on_abandon: Optional[Callable[[threading.Thread], None]] = None,
) -> Any:
    """Executa `fn` em thread daemon e aguarda no máximo `timeout` segundos.

    A thread não é interrompida em caso de timeout: chamadas externas nunca
    são mortas no meio de uma mutação. O resultado tardio é descartado e a
    thread ainda viva é entregue a `on_abandon`, para que o scheduler não
    libere o Workspace enquanto ela puder escrever nele.
    """
    box: Dict[str, Any] = {}
    done = threading.Event()

    def _target() -> None:
        try:
            box["result"] = fn()
        except Exception as e:  # noqa: BLE001 - repassada ao chamador
            box["error"] = e
        finally:
            done.set()

    worker = threading.Thread(target=_target, name=f"step:{label}", daemon=True)
    worker.start()

    if not done.wait(timeout):
        if on_abandon is not None:
            on_abandon(worker)
        raise StepTimeoutError(
            message=f"Step '{label}' timed out after {timeout:g}s",
            details={"step": label, "timeout_seconds": timeout},
            hint="Check the external system or raise engine.step_timeout_seconds.",
        )
    if "error" in box:
        raise box["error"]
    return box["result"]


@dataclass
class Task:
    """Template de Task: parâmetros, workspaces e Steps ordenados."""

    name: str
    steps: List[Step]
    params: List[ParamSpec] = field(default_factory=list)
    workspaces: List[str] = field(default_factory=list)
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise DefinitionError(message="task.name must be a non-empty string")
        if not self.steps:
            raise DefinitionError(
                message=f"Task '{self.name}' declares no steps",
                details={"task": self.name},
            )

        declared = set(check_unique(self.params, owner=f"task/{self.name}"))

        if len(set(self.workspaces)) != len(self.workspaces):
            raise DefinitionError(
                message=f"Duplicate workspace declaration in task '{self.name}'",
                details={"task": self.name, "workspaces": list(self.workspaces)},
            )

        seen = set()
        for step in self.steps:
            sname = getattr(step, "name", None)
            if not isinstance(sname, str) or not sname.strip():
                raise DefinitionError(
                    message=f"Task '{self.name}' has a step without name",
                    details={"task": self.name},
                )
            if sname in seen:
                raise DefinitionError(
                    message=f"Duplicate step name '{sname}' in task '{self.name}'",
                    details={"task": self.name, "step": sname},
                )
            seen.add(sname)

            owner = f"task/{self.name}/step/{sname}"
            templates = dict(getattr(step, "params", {}) or {})
            check_references(templates, declared, owner=owner)

            required = set(getattr(step, "required_args", ()) or ())
            optional = set(getattr(step, "optional_args", ()) or ())
            missing = sorted(required - set(templates))
            if missing:
                raise UnboundParameterError(
                    message=f"Step '{sname}' of task '{self.name}' misses argument(s): {', '.join(missing)}",
                    details={"task": self.name, "step": sname, "missing": missing},
                )
            unknown = sorted(set(templates) - required - optional)
            if unknown:
                raise DefinitionError(
                    message=f"Step '{sname}' of task '{self.name}' does not accept: {', '.join(unknown)}",
                    details={"task": self.name, "step": sname, "unknown": unknown},
                )

            ws = getattr(step, "workspace", None)
            if ws is not None and ws not in self.workspaces:
                raise DefinitionError(
                    message=f"Step '{sname}' uses workspace '{ws}' not declared by task '{self.name}'",
                    details={"task": self.name, "step": sname, "workspace": ws},
                )

    @property
    def required_params(self) -> List[str]:
        return [p.name for p in self.params if p.required]

    def instantiate(self, bindings: Mapping[str, str]) -> "BoundTask":
        """
        Vincula valores literais aos parâmetros da Task.

        Raises:
            UnboundParameterError: Parâmetro obrigatório sem binding, binding
                para parâmetro não declarado, ou valor ainda contendo referência.
        """
        values = resolve_values(self.params, bindings, owner=f"task/{self.name}")
        for key, value in values.items():
            refs = find_references(value)
            if refs:
                raise UnboundParameterError(
                    message=f"Parameter '{key}' of task '{self.name}' is still a reference: {value}",
                    details={"task": self.name, "param": key, "references": refs},
                )
        return BoundTask(task=self, values=values)


@dataclass(frozen=True)
class BoundTask:
    """Task com parâmetros resolvidos, pronta para executar."""

    task: Task
    values: Dict[str, str]

    def step_args(self, step: Step) -> Dict[str, str]:
        return {k: substitute(v, self.values) for k, v in (step.params or {}).items()}

    def run(
        self,
        ctx: RunContext,
        *,
        task_id: str,
        workspaces: Mapping[str, Any],
        step_timeout: float,
    ) -> TaskRunResult:
        started_at = _utcnow_iso()
        results: List[StepResult] = []
        error: Optional[Dict[str, Any]] = None
        status = TaskStatus.SUCCEEDED

        for index, step in enumerate(self.task.steps):
            sid = f"{task_id}/{step.name}"

            if ctx.cancelled:
                if index == 0:
                    ctx.log(step_id=task_id, level="INFO", message="task not started: run cancelled")
                    return TaskRunResult(
                        task_id=task_id,
                        task_ref=self.task.name,
                        status=TaskStatus.SKIPPED,
                        summary="skipped: run cancelled",
                        started_at=started_at,
                        finished_at=_utcnow_iso(),
                    )
                exc = RunCancelledError(
                    message=f"Run cancelled before step '{step.name}'",
                    details={"task": task_id},
                )
                error = exception_to_error(exc, step_id=sid).to_dict()
                status = TaskStatus.FAILED
                results.extend(self._not_executed(self.task.steps[index:], "run cancelled"))
                break

            ctx.log(step_id=sid, level="INFO", message="step started", target=step.target.value)
            result = self._run_step(step, sid, ctx, workspaces, step_timeout)
            results.append(result)

            for message in result.warnings:
                ctx.add_warning(step_id=sid, message=message)

            if not result.success:
                error = dict(result.payload.get("error") or {}) or None
                status = TaskStatus.FAILED
                ctx.log(
                    step_id=sid,
                    level="ERROR",
                    message="step failed",
                    error_type=(error or {}).get("type"),
                    error_message=(error or {}).get("message"),
                )
                results.extend(self._not_executed(self.task.steps[index + 1:], f"step '{step.name}' failed"))
                break

            ctx.log(step_id=sid, level="INFO", message="step finished", summary=result.summary)

        summary = "all steps succeeded" if status == TaskStatus.SUCCEEDED else (
            (error or {}).get("message") or "task failed"
        )
        return TaskRunResult(
            task_id=task_id,
            task_ref=self.task.name,
            status=status,
            summary=summary,
            started_at=started_at,
            finished_at=_utcnow_iso(),
            steps=results,
            error=error,
        )

    def _run_step(
        self,
        step: Step,
        sid: str,
        ctx: RunContext,
        workspaces: Mapping[str, Any],
        timeout: float,
    ) -> StepResult:
        ws = workspaces.get(step.workspace) if step.workspace else None
        try:
            args = self.step_args(step)
            result = _call_with_timeout(
                lambda: step.execute(args, ws, ctx),
                timeout=timeout,
                label=sid,
                on_abandon=lambda t: ctx.abandon(step_id=sid, thread=t, workspace=ws),
            )
            if not isinstance(result, StepResult):
                err = step_invalid_result(step=sid, received=type(result).__name__)
                return self._failed(step, err)
            if result.status == StepStatus.FAILED and "error" not in result.payload:
                err = ErrorPayload(
                    type="STEP_FAILED",
                    message=result.summary or "step reported failure",
                    details={"step": sid},
                )
                return replace(result, step_id=step.name, payload={**result.payload, "error": err.to_dict()})
            return replace(result, step_id=step.name)
        except Exception as e:
            return self._failed(step, exception_to_error(e, step_id=sid))

    @staticmethod
    def _failed(step: Step, error: ErrorPayload) -> StepResult:
        return StepResult(
            step_id=step.name,
            target=step.target,
            status=StepStatus.FAILED,
            summary=error.message,
            payload={"error": error.to_dict()},
        )

    @staticmethod
    def _not_executed(steps: List[Step], reason: str) -> List[StepResult]:
        return [
            StepResult(
                step_id=s.name,
                target=s.target,
                status=StepStatus.SKIPPED,
                summary=f"not executed: {reason}",
            )
            for s in steps
        ]
