# src/atlas_deploy/core/engine/planner.py
"""
Planejador estrutural do pipeline (DAG).

Este módulo valida o grafo formado pelas arestas `runAfter` das
PipelineTasks e produz uma ordem topológica determinística.

O planner opera exclusivamente em nível estrutural, analisando:
    - nomes de PipelineTasks
    - dependências declaradas (`run_after`)
    - formação de ciclos

A ordem produzida é usada pelo scheduler apenas como critério de
desempate determinístico ao submeter tasks prontas; a prontidão em si é
sempre decidida pelo estado das dependências, nunca pela ordem de listagem.

Decisões arquiteturais:
    - Ordenação topológica determinística (Kahn modificado)
    - Empates são resolvidos por ordem lexicográfica do nome
    - Erros estruturais são fatais e ocorrem em tempo de definição

Invariantes:
    - Nenhuma task aparece antes de suas dependências
    - Todas as tasks aparecem exatamente uma vez
    - A mesma definição produz sempre a mesma ordem

Limites explícitos:
    - Não executa tasks
    - Não interage com RunContext
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Set

from atlas_deploy.core.exceptions import (
    CycleDetectedError,
    InvalidPipelineDefinitionError,
    UnknownDependencyError,
)


def plan_execution(tasks: Iterable[Any]) -> List[Any]:
    """
    Valida e produz uma ordem de execução topológica determinística.

    Args:
        tasks (Iterable[Any]): Objetos com `name: str` e `run_after: list[str]`.

    Returns:
        List[Any]: Tasks em ordem topológica determinística.

    Raises:
        InvalidPipelineDefinitionError: Nome inválido ou duplicado.
        UnknownDependencyError: Dependência inexistente em `run_after`.
        CycleDetectedError: Ciclo no grafo de dependências.
    """
    task_list = list(tasks)
    by_name: Dict[str, Any] = {}
    for t in task_list:
        name = getattr(t, "name", None)
        if not isinstance(name, str) or not name.strip():
            raise InvalidPipelineDefinitionError(message="pipeline task name must be a non-empty string")
        if name in by_name:
            raise InvalidPipelineDefinitionError(
                message=f"Duplicate pipeline task name: {name}",
                details={"task": name},
            )
        by_name[name] = t

    deps: Dict[str, List[str]] = {}
    for name, t in by_name.items():
        d = list(dict.fromkeys(getattr(t, "run_after", []) or []))
        for dep in d:
            if dep not in by_name:
                raise UnknownDependencyError(
                    message=f"Task '{name}' runs after unknown task '{dep}'",
                    details={"task": name, "run_after": dep},
                )
        deps[name] = d

    incoming_count: Dict[str, int] = {name: 0 for name in by_name}
    outgoing: Dict[str, Set[str]] = {name: set() for name in by_name}

    for name, dlist in deps.items():
        incoming_count[name] = len(dlist)
        for dep in dlist:
            outgoing[dep].add(name)

    ready: List[str] = sorted(name for name, c in incoming_count.items() if c == 0)
    order: List[str] = []

    while ready:
        name = ready.pop(0)
        order.append(name)
        for child in sorted(outgoing[name]):
            incoming_count[child] -= 1
            if incoming_count[child] == 0:
                ready.append(child)
                ready.sort()

    if len(order) != len(by_name):
        stuck = sorted(set(by_name) - set(order))
        raise CycleDetectedError(
            message="Cycle detected in runAfter graph",
            details={"tasks": stuck},
        )

    return [by_name[name] for name in order]
