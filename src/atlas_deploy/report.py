"""
src/atlas_deploy/report.py

Relatório final de uma run (Markdown).

Regras:
- O relatório é derivado EXCLUSIVAMENTE do `RunResult` (e do Manifest anexado).
- Toda task aparece com seu status terminal; falhas incluem tipo e mensagem do erro.
- Mesmo resultado => mesmo relatório (tasks em ordem topológica, chaves ordenadas).

Estrutura:
# Run Report

## Summary
## Tasks
## Failures
## Warnings
## Run Metadata
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from atlas_deploy.core.engine.scheduler import RunResult
from atlas_deploy.core.pipeline.types import TaskStatus


REQUIRED_SECTIONS: List[str] = [
    "# Run Report",
    "## Summary",
    "## Tasks",
    "## Failures",
    "## Warnings",
    "## Run Metadata",
]


def _as_pretty_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2)


def render_run_report(result: RunResult) -> str:
    """Gera o relatório Markdown de uma run terminada."""
    if not isinstance(result, RunResult):
        raise ValueError("RunResult is required to render a run report")

    lines: List[str] = []
    lines.append("# Run Report\n")

    lines.append("## Summary")
    lines.append(f"- **Run ID**: `{result.run_id}`")
    lines.append(f"- **Pipeline**: `{result.pipeline}`")
    lines.append(f"- **Status**: `{result.status.value}`")
    lines.append(f"- **Started At (UTC)**: `{result.started_at}`")
    lines.append(f"- **Finished At (UTC)**: `{result.finished_at}`")
    if result.degraded:
        lines.append("- **Degraded**: `true` (non-fatal warnings were reported)")
    if result.cancelled:
        lines.append("- **Cancelled**: `true`")
    if result.deferred_workspaces:
        names = ", ".join(f"`{n}`" for n in result.deferred_workspaces)
        lines.append(f"- **Workspace release deferred**: {names} (timed-out steps still running)")
    lines.append("")

    lines.append("## Tasks")
    lines.append("| Task | Status | Summary |")
    lines.append("| --- | --- | --- |")
    for name, task in result.tasks.items():
        summary = (task.summary or "").replace("|", "\\|")
        lines.append(f"| `{name}` | `{task.status.value}` | {summary} |")
    lines.append("")

    lines.append("## Failures")
    failed = [t for t in result.tasks.values() if t.status == TaskStatus.FAILED]
    if result.error:
        lines.append(f"- **run**: `{result.error.get('type', 'UNKNOWN')}`: {result.error.get('message')}")
        if result.error.get("hint"):
            lines.append(f"  - hint: {result.error['hint']}")
    if failed:
        for task in failed:
            error: Dict[str, Any] = task.error or {}
            lines.append(
                f"- **{task.task_id}**: `{error.get('type', 'UNKNOWN')}`: {error.get('message') or task.summary}"
            )
            if error.get("hint"):
                lines.append(f"  - hint: {error['hint']}")
    elif not result.error:
        lines.append("No task failed.")
    lines.append("")

    lines.append("## Warnings")
    warnings = [(t.task_id, s.step_id, w) for t in result.tasks.values() for s in t.steps for w in s.warnings]
    if warnings:
        for task_id, step_id, message in warnings:
            lines.append(f"- `{task_id}/{step_id}`: {message}")
    else:
        lines.append("No warnings recorded.")
    lines.append("")

    lines.append("## Run Metadata")
    if result.manifest is not None:
        lines.append("```json")
        lines.append(_as_pretty_json({"run": result.manifest.run, "inputs": result.manifest.inputs}))
        lines.append("```")
    else:
        lines.append("No manifest attached to this result.")

    content = "\n".join(lines)

    for sec in REQUIRED_SECTIONS:
        if sec not in content:
            raise RuntimeError(f"Report generation failed: missing required section: {sec}")

    return content
