# src/atlas_deploy/integrations/resources.py
"""
Resource store — colaborador de recursos do cluster.

Recursos gerenciados (deployment, service, route, configmap) são
identificados por `(kind, name)`. O contrato mínimo do colaborador é:

    get(kind, name)                       -> Resource | None (NotFound)
    create(kind, name, spec)              -> Resource
    update(kind, name, patch, ...)        -> Resource
    reconcile(kind, name, desired, ...)   -> ReconcileOutcome

`reconcile` é a operação idempotente única usada pelos Steps: get →
se ausente cria; se presente aplica o patch apenas quando algo muda.
Corridas contra mutações externas são absorvidas pelo controle de
concorrência otimista do próprio store (`Resource.version`): versão
desatualizada vira `ResourceConflictError`, e `reconcile` tenta de novo
até `conflict_retries` vezes. O engine não implementa locking próprio.

Implementações:
    - InMemoryResourceStore: testes e uso embarcado
    - JsonFileResourceStore: estado persistido em JSON (CLI), para que
      reexecuções observem o estado deixado pela run anterior
"""

from __future__ import annotations

import json
import os
import threading
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union, runtime_checkable

from atlas_deploy.core.exceptions import ResourceConflictError, ResourceNotFoundError


Key = Tuple[str, str]


@dataclass(frozen=True)
class Resource:
    kind: str
    name: str
    spec: Dict[str, Any]
    version: int = 1
    annotations: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "spec": deepcopy(self.spec),
            "version": self.version,
            "annotations": dict(self.annotations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resource":
        return cls(
            kind=data["kind"],
            name=data["name"],
            spec=dict(data.get("spec") or {}),
            version=int(data.get("version", 1)),
            annotations=dict(data.get("annotations") or {}),
        )


class ReconcileAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ReconcileOutcome:
    action: ReconcileAction
    resource: Resource


def apply_patch(spec: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge-patch: dicts recursivos, `None` remove a chave, demais valores
    (inclusive listas) substituem. Nenhum input é mutado.
    """
    result = deepcopy(spec)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = apply_patch(result[key], value)
        else:
            result[key] = deepcopy(value)
    return result


@runtime_checkable
class ResourceStore(Protocol):
    def get(self, kind: str, name: str) -> Optional[Resource]: ...

    def create(self, kind: str, name: str, spec: Dict[str, Any], *, annotations: Optional[Dict[str, str]] = None) -> Resource: ...

    def update(
        self,
        kind: str,
        name: str,
        patch: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
        annotations: Optional[Dict[str, str]] = None,
    ) -> Resource: ...

    def reconcile(
        self,
        kind: str,
        name: str,
        desired: Dict[str, Any],
        *,
        annotations: Optional[Dict[str, str]] = None,
    ) -> ReconcileOutcome: ...


class _BaseResourceStore:
    """get/create/update sobre um mapa `(kind, name) -> Resource`, com reconcile otimista."""

    def __init__(self, *, conflict_retries: int = 3):
        self.conflict_retries = max(0, int(conflict_retries))
        self._lock = threading.RLock()

    # hooks de persistência
    def _read_all(self) -> Dict[Key, Resource]:
        raise NotImplementedError

    def _write_all(self, items: Dict[Key, Resource]) -> None:
        raise NotImplementedError

    def get(self, kind: str, name: str) -> Optional[Resource]:
        with self._lock:
            return self._read_all().get((kind, name))

    def list(self, kind: Optional[str] = None) -> List[Resource]:
        with self._lock:
            items = self._read_all()
        return [items[k] for k in sorted(items) if kind is None or k[0] == kind]

    def create(
        self,
        kind: str,
        name: str,
        spec: Dict[str, Any],
        *,
        annotations: Optional[Dict[str, str]] = None,
    ) -> Resource:
        with self._lock:
            items = self._read_all()
            if (kind, name) in items:
                raise ResourceConflictError(
                    message=f"{kind} '{name}' already exists",
                    details={"kind": kind, "name": name},
                )
            res = Resource(kind=kind, name=name, spec=deepcopy(spec), version=1, annotations=dict(annotations or {}))
            items[(kind, name)] = res
            self._write_all(items)
            return res

    def update(
        self,
        kind: str,
        name: str,
        patch: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
        annotations: Optional[Dict[str, str]] = None,
    ) -> Resource:
        with self._lock:
            items = self._read_all()
            current = items.get((kind, name))
            if current is None:
                raise ResourceNotFoundError(
                    message=f"{kind} '{name}' not found",
                    details={"kind": kind, "name": name},
                )
            if expected_version is not None and current.version != expected_version:
                raise ResourceConflictError(
                    message=f"{kind} '{name}' was modified concurrently",
                    details={"kind": kind, "name": name, "expected": expected_version, "actual": current.version},
                )
            res = Resource(
                kind=kind,
                name=name,
                spec=apply_patch(current.spec, patch),
                version=current.version + 1,
                annotations={**current.annotations, **(annotations or {})},
            )
            items[(kind, name)] = res
            self._write_all(items)
            return res

    def reconcile(
        self,
        kind: str,
        name: str,
        desired: Dict[str, Any],
        *,
        annotations: Optional[Dict[str, str]] = None,
    ) -> ReconcileOutcome:
        attempts = self.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            current = self.get(kind, name)
            try:
                if current is None:
                    return ReconcileOutcome(ReconcileAction.CREATED, self.create(kind, name, desired, annotations=annotations))

                spec_changed = apply_patch(current.spec, desired) != current.spec
                ann_changed = any(current.annotations.get(k) != v for k, v in (annotations or {}).items())
                if not spec_changed and not ann_changed:
                    return ReconcileOutcome(ReconcileAction.UNCHANGED, current)

                updated = self.update(
                    kind,
                    name,
                    desired,
                    expected_version=current.version,
                    annotations=annotations,
                )
                return ReconcileOutcome(ReconcileAction.UPDATED, updated)
            except (ResourceConflictError, ResourceNotFoundError):
                if attempt == attempts:
                    raise
        raise AssertionError("unreachable")  # pragma: no cover


class InMemoryResourceStore(_BaseResourceStore):
    """Estado em memória; leituras e escritas trabalham sobre cópias."""

    def __init__(self, *, conflict_retries: int = 3):
        super().__init__(conflict_retries=conflict_retries)
        self._items: Dict[Key, Resource] = {}

    def _read_all(self) -> Dict[Key, Resource]:
        return deepcopy(self._items)

    def _write_all(self, items: Dict[Key, Resource]) -> None:
        self._items = deepcopy(items)


class JsonFileResourceStore(_BaseResourceStore):
    """Estado persistido em um arquivo JSON (escrita atômica via `os.replace`)."""

    def __init__(self, path: Union[str, Path], *, conflict_retries: int = 3):
        super().__init__(conflict_retries=conflict_retries)
        self.path = Path(path)

    def _read_all(self) -> Dict[Key, Resource]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f) or {}
        items = [Resource.from_dict(r) for r in data.get("resources", [])]
        return {(r.kind, r.name): r for r in items}

    def _write_all(self, items: Dict[Key, Resource]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        payload = {"resources": [items[k].to_dict() for k in sorted(items)]}
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2, sort_keys=True)
        os.replace(tmp, self.path)
