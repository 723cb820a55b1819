# tests/core/config/test_merge.py
"""
Testes da política de deep-merge de configuração.

Os testes asseguram que:
- valores escalares são sobrescritos corretamente
- dicionários são mesclados de forma recursiva
- listas são sobrescritas integralmente
- `null` no override limpa o valor base
- conflitos de tipo são detectados e rejeitados explicitamente
- objetos de entrada não são mutados durante o merge

Limites explícitos:
    - Não valida carregamento de arquivos YAML
    - Não valida hashing de configuração
"""

import pytest

try:
    from atlas_deploy.core.config.merge import deep_merge
    from atlas_deploy.core.config.errors import ConfigTypeConflictError
except Exception as e:  # noqa: BLE001
    deep_merge = None
    ConfigTypeConflictError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """Falha com mensagem orientada quando o módulo de merge não importa."""
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing config merge modules. Implement:\n"
            "- src/atlas_deploy/core/config/merge.py (deep_merge)\n"
            "- src/atlas_deploy/core/config/errors.py (ConfigTypeConflictError)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_merge_simple_override():
    """
    Verifica o override de escalares sem mutar os dicionários de entrada.

    Invariantes:
        - O valor sobrescrito reflete exatamente o override
        - `base` e `override` não sofrem mutação
    """
    _require_imports()
    base = {"a": 1, "b": 2}
    override = {"b": 99}

    out = deep_merge(base, override)

    assert out == {"a": 1, "b": 99}
    assert base == {"a": 1, "b": 2}
    assert override == {"b": 99}


def test_merge_nested_dict():
    _require_imports()
    base = {"engine": {"max_workers": 4, "log_level": "INFO"}}
    override = {"engine": {"log_level": "DEBUG"}}

    assert deep_merge(base, override) == {"engine": {"max_workers": 4, "log_level": "DEBUG"}}


def test_merge_list_override_total():
    """Listas não são mescladas elemento a elemento: o override é total."""
    _require_imports()
    base = {"source": {"allowed_hosts": ["github.com", "gitlab.com"]}}
    override = {"source": {"allowed_hosts": ["example.org"]}}

    assert deep_merge(base, override) == {"source": {"allowed_hosts": ["example.org"]}}


def test_merge_null_override_clears_value_and_null_base_accepts_any_type():
    _require_imports()
    base = {"history": {"dir": ".atlas/runs"}, "source": {"clone_depth": None}}
    override = {"history": {"dir": None}, "source": {"clone_depth": 5}}

    out = deep_merge(base, override)

    assert out["history"]["dir"] is None
    assert out["source"]["clone_depth"] == 5


def test_merge_type_conflict_raises():
    """
    Verifica que conflitos de tipo durante o deep-merge são rejeitados.

    Um dicionário não pode ser sobrescrito por um escalar; nenhum merge
    parcial é produzido.
    """
    _require_imports()
    base = {"engine": {"max_workers": 4}}
    override = {"engine": "DEBUG"}

    with pytest.raises(ConfigTypeConflictError):
        deep_merge(base, override)


def test_merge_numbers_are_interchangeable_but_bool_is_not():
    """
    Um timeout fracionário sobre um default inteiro é um override válido;
    booleano sobre número continua sendo conflito, com a chave pontilhada
    na mensagem.
    """
    _require_imports()
    base = {"engine": {"step_timeout_seconds": 300, "max_workers": 4}}

    out = deep_merge(base, {"engine": {"step_timeout_seconds": 0.5}})
    assert out["engine"] == {"step_timeout_seconds": 0.5, "max_workers": 4}

    with pytest.raises(ConfigTypeConflictError, match="engine.max_workers"):
        deep_merge(base, {"engine": {"max_workers": True}})
