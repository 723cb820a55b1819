import json
import hashlib
from typing import Dict, Any


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico de uma estrutura de configuração.

    Utilizado para a configuração efetiva do engine e para o mapa de
    parâmetros resolvidos de uma run; ambos são registrados no Manifest.

    Política de hashing (v1):
        - Serialização JSON canônica
        - Ordenação estável de chaves
        - Separadores compactos
        - Codificação UTF-8
        - Algoritmo SHA-256

    Invariantes:
        - O valor retornado é uma string hexadecimal de 64 caracteres
        - Estruturas equivalentes produzem o mesmo hash, independente da
          ordem original das chaves

    Args:
        config (Dict[str, Any]): Estrutura a ser identificada.

    Returns:
        str: Hash SHA-256 hexadecimal.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """

    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    canonical_json = json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )

    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()
