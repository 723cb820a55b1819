# tests/core/config/test_loader.py
"""
Testes do loader canônico de configuração.

Os testes asseguram que:
- defaults empacotados carregam e contêm todas as seções usadas pelo engine
- overrides locais são aplicados via deep-merge
- um arquivo local ausente é ignorado
- erros estruturais (defaults ausentes, formato, raiz) são explícitos
- a visão tipada do engine (`EngineSettings`) valida seus valores
"""

import json

import pytest

try:
    from atlas_deploy.core.config.errors import (
        ConfigParseError,
        DefaultsNotFoundError,
        InvalidConfigRootTypeError,
        InvalidConfigValueError,
        UnsupportedConfigFormatError,
    )
    from atlas_deploy.core.config.loader import load_config
    from atlas_deploy.core.config.settings import EngineSettings, get_setting
except Exception as e:  # noqa: BLE001
    load_config = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing config loader modules. Implement:\n"
            "- src/atlas_deploy/core/config/loader.py (load_config)\n"
            "- src/atlas_deploy/core/config/settings.py (EngineSettings, get_setting)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_packaged_defaults_cover_every_section():
    """
    Os defaults empacotados são carregados sem argumentos e contêm as
    chaves consumidas por engine, workspace, histórico, fetcher, store e deploy.
    """
    _require_imports()
    cfg = load_config()

    for key in (
        "engine.max_workers",
        "engine.step_timeout_seconds",
        "engine.log_level",
        "workspace.root",
        "history.dir",
        "source.git_binary",
        "source.clone_depth",
        "source.timeout_seconds",
        "resources.state_file",
        "resources.conflict_retries",
        "deploy.port",
        "deploy.volume_name",
        "deploy.mount_path",
    ):
        assert get_setting(cfg, key) is not None, key

    assert get_setting(cfg, "deploy.volume_name") == "html-home"
    assert get_setting(cfg, "deploy.mount_path") == "/var/www/html"


def test_local_overrides_defaults(tmp_path, project_like_config_defaults_yaml, project_like_config_local_yaml):
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    local = tmp_path / "config.local.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local.write_text(project_like_config_local_yaml, encoding="utf-8")

    cfg = load_config(defaults_path=str(defaults), local_path=str(local))

    assert cfg["engine"]["log_level"] == "DEBUG"
    assert cfg["engine"]["max_workers"] == 4
    assert cfg["deploy"]["port"] == 9090


def test_missing_local_file_is_ignored(tmp_path, project_like_config_defaults_yaml):
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")

    cfg = load_config(defaults_path=str(defaults), local_path=str(tmp_path / "nope.yaml"))

    assert cfg["engine"]["log_level"] == "INFO"


def test_json_local_file_is_supported(tmp_path, project_like_config_defaults_yaml):
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local = tmp_path / "local.json"
    local.write_text(json.dumps({"engine": {"max_workers": 1}}), encoding="utf-8")

    cfg = load_config(defaults_path=str(defaults), local_path=str(local))

    assert cfg["engine"]["max_workers"] == 1


def test_structural_errors_are_explicit(tmp_path):
    _require_imports()
    with pytest.raises(DefaultsNotFoundError):
        load_config(defaults_path=str(tmp_path / "missing.yaml"))

    toml = tmp_path / "config.toml"
    toml.write_text("a = 1\n", encoding="utf-8")
    with pytest.raises(UnsupportedConfigFormatError):
        load_config(defaults_path=str(toml))

    as_list = tmp_path / "list.yaml"
    as_list.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(InvalidConfigRootTypeError):
        load_config(defaults_path=str(as_list))


def test_engine_settings_validate_values():
    _require_imports()
    s = EngineSettings.from_config({"engine": {"max_workers": 2, "step_timeout_seconds": 10, "log_level": "debug"}})
    assert (s.max_workers, s.step_timeout_seconds, s.log_level) == (2, 10.0, "DEBUG")

    with pytest.raises(InvalidConfigValueError):
        EngineSettings.from_config({"engine": {"max_workers": 0}})
    with pytest.raises(InvalidConfigValueError):
        EngineSettings.from_config({"engine": {"step_timeout_seconds": "soon"}})


def test_malformed_override_is_a_parse_error(tmp_path, project_like_config_defaults_yaml):
    _require_imports()
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local = tmp_path / "config.local.yaml"
    local.write_text("engine: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigParseError, match="override local"):
        load_config(defaults_path=str(defaults), local_path=str(local))


def test_release_grace_is_validated():
    _require_imports()
    assert EngineSettings.from_config({"engine": {"release_grace_seconds": 0}}).release_grace_seconds == 0.0
    assert EngineSettings.from_config({}).release_grace_seconds == 30.0

    with pytest.raises(InvalidConfigValueError):
        EngineSettings.from_config({"engine": {"release_grace_seconds": -1}})
