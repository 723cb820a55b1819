# tests/core/pipeline/test_params.py
"""
Testes de parâmetros declarativos e referências `$(params.x)`.

Os testes asseguram que:
- referências são encontradas como valor inteiro ou embutidas
- qualquer outra forma `$(...)` é rejeitada na definição
- a resolução segue binding > default > erro
- bindings para nomes não declarados são rejeitados
"""

import pytest

try:
    from atlas_deploy.core.exceptions import DefinitionError, UnboundParameterError
    from atlas_deploy.core.pipeline.params import (
        ParamSpec,
        check_references,
        check_unique,
        find_references,
        resolve_values,
        substitute,
    )
except Exception as e:  # noqa: BLE001
    ParamSpec = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(f"Missing src/atlas_deploy/core/pipeline/params.py. Import error: {_IMPORT_ERR}")


def test_find_references_whole_and_embedded():
    _require_imports()
    assert find_references("$(params.repository-url)") == ["repository-url"]
    assert find_references("app-$(params.name)-$(params.env)") == ["name", "env"]
    assert find_references("literal") == []


def test_cross_task_output_references_are_rejected():
    """Não existe canal de outputs entre tasks: `$(tasks.x.results.y)` é erro de definição."""
    _require_imports()
    with pytest.raises(DefinitionError):
        find_references("$(tasks.clone-repo.results.commit)")


def test_substitute_resolves_and_rejects_unbound():
    _require_imports()
    assert substitute("$(params.a)/$(params.b)", {"a": "x", "b": "y"}) == "x/y"
    with pytest.raises(UnboundParameterError):
        substitute("$(params.missing)", {})


def test_resolution_order_binding_then_default():
    _require_imports()
    specs = [ParamSpec(name="image", default="httpd:2.4"), ParamSpec(name="name")]

    assert resolve_values(specs, {"name": "site"}, owner="t") == {"image": "httpd:2.4", "name": "site"}
    assert resolve_values(specs, {"name": "site", "image": "nginx"}, owner="t")["image"] == "nginx"


def test_missing_required_and_unknown_names_are_rejected():
    _require_imports()
    specs = [ParamSpec(name="name")]

    with pytest.raises(UnboundParameterError) as missing:
        resolve_values(specs, {}, owner="t")
    assert missing.value.details["missing"] == ["name"]

    with pytest.raises(UnboundParameterError) as unknown:
        resolve_values(specs, {"name": "x", "extra": "y"}, owner="t")
    assert unknown.value.details["unknown"] == ["extra"]


def test_param_spec_validation():
    _require_imports()
    with pytest.raises(DefinitionError):
        ParamSpec(name="port", type="integer")
    with pytest.raises(DefinitionError):
        ParamSpec(name="")
    with pytest.raises(DefinitionError):
        check_unique([ParamSpec(name="a"), ParamSpec(name="a")], owner="t")


def test_check_references_against_declared():
    _require_imports()
    check_references({"url": "$(params.repo)"}, {"repo"}, owner="t")
    with pytest.raises(UnboundParameterError):
        check_references({"url": "$(params.other)"}, {"repo"}, owner="t")
