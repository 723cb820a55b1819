# src/atlas_deploy/core/workspace.py
"""
Workspace — área de staging compartilhada entre Tasks de uma run.

Um Workspace é um diretório nomeado, mutável e de posse exclusiva de uma
única run por vez. O conteúdo escrito por um Step só é visível para Steps
posteriores que recebam o mesmo binding de Workspace; nenhuma visibilidade
implícita entre runs é garantida além do que ficou em disco.

Ciclo de vida:
    provision(owner) → [clear / write / read / exists / list] → release()

Decisões arquiteturais:
    - Posse exclusiva via arquivo de lock *ao lado* do diretório
      (`<root>.lock`), para que `clear()` nunca apague o próprio lock
    - Conteúdo é preservado entre runs; limpar é responsabilidade de um Step
    - Não existe lock interno por arquivo: as arestas `runAfter` do DAG
      são o único controle de concorrência sobre o Workspace
    - Caminhos são sempre relativos à raiz e não podem escapar dela

Invariantes:
    - `clear()` é idempotente: raiz inexistente, vazia ou populada
      terminam no mesmo estado observável (lista vazia)
    - Falhas de I/O são sempre convertidas em `WorkspaceIOError`
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from atlas_deploy.core.exceptions import WorkspaceBusyError, WorkspaceIOError


class Workspace:
    """Diretório de staging de posse exclusiva de uma run."""

    def __init__(self, name: str, root: Union[str, Path]):
        if not isinstance(name, str) or not name.strip():
            raise ValueError("workspace name must be a non-empty string")
        self.name = name
        self.root = Path(root)
        self._owner: Optional[str] = None

    def __repr__(self) -> str:
        return f"Workspace(name={self.name!r}, root={str(self.root)!r}, owner={self._owner!r})"

    @property
    def lock_path(self) -> Path:
        return self.root.with_name(self.root.name + ".lock")

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    # -----------------------------
    # Ownership
    # -----------------------------
    def provision(self, owner: str) -> None:
        """Cria a raiz (se necessário) e adquire posse exclusiva para `owner`."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with self.lock_path.open("x", encoding="utf-8") as f:
                f.write(owner)
        except FileExistsError:
            current = self._read_lock()
            if current != owner:
                raise WorkspaceBusyError(
                    message=f"Workspace '{self.name}' is owned by run '{current}'",
                    details={"workspace": self.name, "owner": current, "requested_by": owner},
                    hint="Wait for the other run to finish or remove a stale lock file.",
                )
        except OSError as e:
            raise WorkspaceIOError(
                message=f"Cannot provision workspace '{self.name}': {e}",
                details={"workspace": self.name, "root": str(self.root)},
            ) from e
        self._owner = owner

    def release(self) -> None:
        """Libera a posse. Idempotente."""
        try:
            if self._owner is not None and self._read_lock() == self._owner:
                self.lock_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise WorkspaceIOError(
                message=f"Cannot release workspace '{self.name}': {e}",
                details={"workspace": self.name},
            ) from e
        finally:
            self._owner = None

    def _read_lock(self) -> Optional[str]:
        try:
            return self.lock_path.read_text(encoding="utf-8").strip() or None
        except FileNotFoundError:
            return None

    # -----------------------------
    # Conteúdo
    # -----------------------------
    def _resolve(self, path: str) -> Path:
        rel = Path(path)
        if rel.is_absolute() or not str(path).strip():
            raise WorkspaceIOError(
                message=f"Workspace paths must be relative and non-empty: {path!r}",
                details={"workspace": self.name, "path": str(path)},
            )
        base = self.root.resolve()
        target = (base / rel).resolve()
        if target != base and base not in target.parents:
            raise WorkspaceIOError(
                message=f"Path escapes workspace '{self.name}': {path!r}",
                details={"workspace": self.name, "path": str(path)},
            )
        return target

    def clear(self) -> List[str]:
        """Remove todo o conteúdo e retorna a listagem resultante (sempre vazia)."""
        if not self.root.exists():
            return []
        try:
            for child in self.root.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
        except OSError as e:
            raise WorkspaceIOError(
                message=f"Cannot clear workspace '{self.name}': {e}",
                details={"workspace": self.name},
            ) from e
        return self.list()

    def list(self) -> List[str]:
        """Lista os arquivos (caminhos relativos, ordenados) do Workspace."""
        if not self.root.exists():
            return []
        return sorted(
            p.relative_to(self.root).as_posix()
            for p in self.root.rglob("*")
            if p.is_file() or p.is_symlink()
        )

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def write(self, path: str, content: Union[str, bytes]) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        except OSError as e:
            raise WorkspaceIOError(
                message=f"Cannot write '{path}' in workspace '{self.name}': {e}",
                details={"workspace": self.name, "path": path},
            ) from e

    def read(self, path: str) -> str:
        target = self._resolve(path)
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise WorkspaceIOError(
                message=f"Cannot read '{path}' from workspace '{self.name}': {e}",
                details={"workspace": self.name, "path": path},
            ) from e

    def import_tree(self, source: Union[str, Path], *, exclude: Iterable[str] = (".git",)) -> List[str]:
        """Copia o conteúdo de `source` para a raiz, ignorando entradas de topo em `exclude`."""
        src = Path(source)
        skip = set(exclude)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            for child in sorted(src.iterdir()):
                if child.name in skip:
                    continue
                dest = self.root / child.name
                if child.is_dir() and not child.is_symlink():
                    shutil.copytree(child, dest, symlinks=True, dirs_exist_ok=True)
                else:
                    shutil.copy2(child, dest, follow_symlinks=False)
        except OSError as e:
            raise WorkspaceIOError(
                message=f"Cannot import {src} into workspace '{self.name}': {e}",
                details={"workspace": self.name, "source": os.fspath(src)},
            ) from e
        return self.list()
