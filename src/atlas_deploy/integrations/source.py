# src/atlas_deploy/integrations/source.py
"""
Colaborador de fetch de código-fonte.

Contrato:
    fetch(url, destination) -> FetchResult(success, revision_id)

Falhas nunca são silenciosas: URL inválida, credenciais ausentes, binário
inexistente ou timeout levantam `FetchError`, falhando o Step dono.

Credenciais não passam pelo engine: o `GitFetcher` usa a configuração de
credenciais do ambiente git do processo, com prompt interativo desabilitado.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from atlas_deploy.core.config.settings import get_setting
from atlas_deploy.core.exceptions import FetchError


@dataclass(frozen=True)
class FetchResult:
    success: bool
    revision_id: Optional[str]
    url: str


@runtime_checkable
class SourceFetcher(Protocol):
    def fetch(self, url: str, destination: Union[str, Path]) -> FetchResult:
        """Obtém o conteúdo de `url` em `destination` (diretório vazio ou inexistente)."""
        ...


class GitFetcher:
    """Fetch via `git clone`; a revisão é lida com `git rev-parse HEAD`."""

    def __init__(
        self,
        *,
        git_binary: str = "git",
        depth: Optional[int] = 1,
        timeout_seconds: float = 120.0,
    ):
        self.git_binary = git_binary
        self.depth = depth
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "GitFetcher":
        depth = get_setting(config, "source.clone_depth", 1)
        return cls(
            git_binary=str(get_setting(config, "source.git_binary", "git")),
            depth=int(depth) if depth else None,
            timeout_seconds=float(get_setting(config, "source.timeout_seconds", 120)),
        )

    def _git(self, args, *, url: str) -> str:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            p = subprocess.run(
                [self.git_binary, *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_seconds,
                env=env,
            )
        except FileNotFoundError as e:
            raise FetchError(
                message=f"git binary not found: {self.git_binary}",
                details={"url": url, "git_binary": self.git_binary},
                hint="Install git or set source.git_binary.",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise FetchError(
                message=f"git timed out after {self.timeout_seconds:g}s",
                details={"url": url, "command": args[0]},
            ) from e

        if p.returncode != 0:
            raise FetchError(
                message=f"Failed to clone repository: {url}",
                details={"url": url, "command": args[0], "returncode": p.returncode, "stderr": p.stderr[-800:]},
                hint="Check URL and credentials.",
            )
        return p.stdout

    def fetch(self, url: str, destination: Union[str, Path]) -> FetchResult:
        if not isinstance(url, str) or not url.strip():
            raise FetchError(message="Repository URL must be a non-empty string", details={"url": url})

        dest = Path(destination)
        if dest.exists() and any(dest.iterdir()):
            raise FetchError(
                message=f"Fetch destination is not empty: {dest}",
                details={"url": url, "destination": str(dest)},
            )

        args = ["clone", "--quiet"]
        if self.depth:
            args += ["--depth", str(self.depth)]
        args += ["--", url, str(dest)]
        self._git(args, url=url)

        revision = self._git(["-C", str(dest), "rev-parse", "HEAD"], url=url).strip()
        return FetchResult(success=True, revision_id=revision or None, url=url)
