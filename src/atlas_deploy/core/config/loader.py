# src/atlas_deploy/core/config/loader.py
"""
Carregamento da configuração efetiva do Atlas Deploy.

Duas camadas, nesta ordem:
    1. defaults: `config.defaults.yaml` empacotado (ou o arquivo passado em
       `--config`); obrigatório
    2. override local: arquivo do operador (`--local-config`); opcional,
       ignorado quando não existe em disco

O resultado é um `dict` puro consumido pelo scheduler (`engine.*`,
`workspace.*`), pelo trigger (`history.*`), pelos colaboradores
(`source.*`, `resources.*`) e pelos Steps de deploy (`deploy.*`). O hash
canônico desse dict é registrado no Manifest de cada run.

Limites explícitos:
    - Não valida valores (ver `settings.EngineSettings`)
    - Não lê variáveis de ambiente
"""

from pathlib import Path
from typing import Any, Dict, Optional

import json
import yaml  # PyYAML

from .merge import deep_merge
from .errors import (
    ConfigParseError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)


DEFAULTS_PATH = Path(__file__).resolve().parents[2] / "config.defaults.yaml"

_PARSERS = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.load,
}


def _read_layer(path: Path, *, layer: str) -> Dict[str, Any]:
    """
    Lê uma camada de configuração (`defaults` ou `override local`).

    Arquivo vazio vale como `{}`; a raiz precisa ser um mapeamento.
    """
    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        raise UnsupportedConfigFormatError(
            f"Formato de {layer} não suportado ({path.suffix or 'sem extensão'}): {path}; use .yaml, .yml ou .json"
        )

    try:
        with path.open("r", encoding="utf-8") as f:
            data = parser(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigParseError(f"Arquivo de {layer} inválido: {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"A raiz do arquivo de {layer} deve ser um mapeamento, recebido {type(data).__name__}: {path}"
        )
    return data


def load_config(
    *,
    defaults_path: Optional[str] = None,
    local_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Resolve a configuração efetiva (defaults + override local).

    Raises:
        DefaultsNotFoundError: arquivo de defaults inexistente.
        UnsupportedConfigFormatError: extensão diferente de YAML/JSON.
        ConfigParseError: YAML/JSON malformado.
        InvalidConfigRootTypeError: raiz que não é mapeamento.
        ConfigTypeConflictError: override com tipo incompatível.
    """
    defaults_file = Path(defaults_path) if defaults_path is not None else DEFAULTS_PATH
    if not defaults_file.exists():
        raise DefaultsNotFoundError(f"Arquivo de defaults do Atlas Deploy não encontrado: {defaults_file}")
    defaults = _read_layer(defaults_file, layer="defaults")

    if local_path is None or not Path(local_path).exists():
        return defaults
    return deep_merge(defaults, _read_layer(Path(local_path), layer="override local"))
