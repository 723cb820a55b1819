# src/atlas_deploy/core/config/__init__.py

"""
Camada de configuração do Atlas Deploy.

Este pacote contém as estruturas e utilitários responsáveis por carregar,
mesclar, validar estruturalmente e identificar configurações de execução.

A configuração no Atlas Deploy é:
    - declarativa
    - determinística
    - explicitamente versionável
    - separada das definições de pipeline

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Leitura tipada das opções do engine
    - Geração de hash canônico para rastreabilidade

Limites explícitos:
    - Não executa pipeline
    - Não interage com Steps diretamente
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    InvalidConfigValueError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash
from .loader import DEFAULTS_PATH, load_config
from .merge import deep_merge
from .settings import EngineSettings, get_setting

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "InvalidConfigValueError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "DEFAULTS_PATH",
    "load_config",
    "deep_merge",
    "EngineSettings",
    "get_setting",
]
