# src/atlas_deploy/cli.py
"""
CLI do Atlas Deploy.

    atlas-deploy run <pipeline> -p chave=valor ... [--definitions ARQ]
                 [--config ARQ] [--local-config ARQ] [--verbose]
    atlas-deploy list [--definitions ARQ]

Exit codes:
    0 → run terminou SUCCEEDED
    1 → run terminou FAILED (ou erro de execução fora de Steps)
    2 → erro de definição, parâmetro ou configuração (nenhum Step executou)
"""

from __future__ import annotations

import argparse
import sys
from typing import Dict, List, Optional, Sequence

from atlas_deploy import __version__
from atlas_deploy.core.config.errors import ConfigError
from atlas_deploy.core.config.loader import load_config
from atlas_deploy.core.config.settings import EngineSettings, get_setting
from atlas_deploy.core.exceptions import AtlasException, DefinitionError
from atlas_deploy.definitions import PIPELINES_DIR, load_definitions
from atlas_deploy.integrations.resources import JsonFileResourceStore
from atlas_deploy.report import render_run_report
from atlas_deploy.trigger import PipelineTrigger


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _parse_params(items: Optional[Sequence[str]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise DefinitionError(
                message=f"Invalid parameter {item!r}; expected key=value",
                details={"param": item},
            )
        out[key.strip()] = value
    return out


def _load_pipelines(extra: Optional[Sequence[str]]):
    paths: List = sorted(PIPELINES_DIR.glob("*.yaml"))
    paths.extend(extra or [])
    return load_definitions(paths)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="atlas-deploy", description="Declarative deploy pipelines.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a pipeline and print its report")
    run.add_argument("pipeline", help="Pipeline name")
    run.add_argument("-p", "--param", action="append", default=[], metavar="KEY=VALUE", help="Pipeline parameter")
    run.add_argument("--definitions", action="append", default=[], metavar="FILE", help="Extra YAML definitions")
    run.add_argument("--config", default=None, metavar="FILE", help="Defaults file (replaces packaged defaults)")
    run.add_argument("--local-config", default=None, metavar="FILE", help="Local overrides file")
    run.add_argument("--verbose", action="store_true", help="Print run events at or above engine.log_level")

    lst = sub.add_parser("list", help="List known pipelines and their parameters")
    lst.add_argument("--definitions", action="append", default=[], metavar="FILE", help="Extra YAML definitions")

    return parser


def _cmd_list(args: argparse.Namespace) -> int:
    for name, pipeline in sorted(_load_pipelines(args.definitions).items()):
        print(name)
        for p in pipeline.params:
            suffix = "required" if p.required else f"default: {p.default}"
            print(f"  {p.name} ({suffix})")
    return EXIT_OK


def _cmd_run(args: argparse.Namespace) -> int:
    config = load_config(defaults_path=args.config, local_path=args.local_config)
    settings = EngineSettings.from_config(config)
    pipelines = _load_pipelines(args.definitions)
    params = _parse_params(args.param)

    resources = JsonFileResourceStore(
        get_setting(config, "resources.state_file", ".atlas/resources.json"),
        conflict_retries=int(get_setting(config, "resources.conflict_retries", 3)),
    )

    with PipelineTrigger(pipelines, config=config, resources=resources) as trigger:
        handle = trigger.submit(args.pipeline, params)
        try:
            result = handle.result()
        except KeyboardInterrupt:
            print("Cancelling run, waiting for running steps to finish...", file=sys.stderr)
            handle.cancel("interrupted")
            result = handle.result()

    if args.verbose:
        for event in handle.ctx.events_at_or_above(settings.log_level):
            print(f"{event['timestamp']} {event['level']:<7} [{event['step_id']}] {event['message']}", file=sys.stderr)

    print(render_run_report(result))
    return result.exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        if args.command == "list":
            return _cmd_list(args)
        if args.command == "run":
            return _cmd_run(args)
    except (DefinitionError, ConfigError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except AtlasException as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
