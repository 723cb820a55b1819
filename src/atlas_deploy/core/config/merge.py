# src/atlas_deploy/core/config/merge.py
"""
Deep-merge entre `config.defaults.yaml` e o override local do operador.

Política de merge (v1):
    - dict → merge recursivo por chave
    - list → sobrescrita total (sem merge elemento a elemento)
    - escalar → sobrescrita direta; int e float são intercambiáveis
      (ex.: `engine.step_timeout_seconds: 0.5` sobre o default `300`)
    - null no override → limpa o default (ex.: `history.dir: null`
      desliga a persistência de manifests)
    - conflito de tipos → `ConfigTypeConflictError` com o caminho pontilhado
      da chave (ex.: `deploy.port`)

Invariantes:
    - A mesma entrada sempre produz a mesma saída
    - Nenhum input é mutado
"""

from copy import deepcopy
from typing import Any, Dict, Tuple

from .errors import ConfigTypeConflictError


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    return type(value).__name__


def _merge(base: Dict[str, Any], override: Dict[str, Any], path: Tuple[str, ...]) -> Dict[str, Any]:
    result: Dict[str, Any] = deepcopy(base)

    for key, value in override.items():
        key_path = path + (str(key),)
        current = result.get(key)

        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = _merge(current, value, key_path)
        elif key not in result or current is None or value is None or isinstance(value, list):
            result[key] = deepcopy(value)
        elif _kind(current) != _kind(value):
            raise ConfigTypeConflictError(
                f"Override local incompatível em '{'.'.join(key_path)}': "
                f"default é {type(current).__name__}, override é {type(value).__name__}"
            )
        else:
            result[key] = deepcopy(value)

    return result


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Aplica `override` sobre `base` e retorna uma nova configuração.

    Raises:
        ConfigTypeConflictError: raiz não-dict ou chave com tipos incompatíveis.
    """
    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Defaults e override local devem ser mapeamentos, recebido: "
            f"{type(base).__name__} e {type(override).__name__}"
        )
    return _merge(base, override, ())
