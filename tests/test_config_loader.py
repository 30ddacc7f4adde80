from pathlib import Path

import pytest

from esplora_cli.config import (
    DEFAULT_BASE_URL,
    ConfigurationError,
    EsploraConfig,
    load_esplora_config,
    set_default_config_path,
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    config_path = tmp_path / ".esplora.yaml"
    monkeypatch.setattr("esplora_cli.config.DEFAULT_CONFIG_PATH", config_path)
    monkeypatch.setattr("esplora_cli.config._CONFIG_PATH_OVERRIDE", None)
    return config_path


def test_load_esplora_config_prefers_environment_over_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        esplora:
          url: https://file.example/api
        """
    )

    config = load_esplora_config(
        config_path=config_path, env={"ESPLORA_URL": "https://env.example/api/"}
    )

    assert isinstance(config, EsploraConfig)
    assert config.base_url == "https://env.example/api"


def test_load_esplora_config_reads_default_yaml_when_env_missing(isolated_config: Path) -> None:
    isolated_config.write_text("esplora:\n  url: http://localhost:3002/\n")

    config = load_esplora_config(env={})

    assert config.base_url == "http://localhost:3002"


def test_overrides_win_over_environment(isolated_config: Path) -> None:
    isolated_config.write_text("esplora:\n  url: https://file.example/api\n")

    config = load_esplora_config(
        env={"ESPLORA_API_URL": "https://env.example/api"},
        overrides={"url": "https://mempool.space/testnet/api"},
    )

    assert config.base_url == "https://mempool.space/testnet/api"


def test_defaults_without_any_source() -> None:
    assert load_esplora_config(env={}).base_url == DEFAULT_BASE_URL


def test_empty_section_falls_back_to_default(isolated_config: Path) -> None:
    isolated_config.write_text("esplora:\n")

    assert load_esplora_config(env={}).base_url == DEFAULT_BASE_URL


def test_explicit_config_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_esplora_config(config_path=tmp_path / "missing.yaml", env={})


def test_default_config_path_override(tmp_path: Path) -> None:
    config_path = tmp_path / "custom.yaml"
    config_path.write_text("esplora:\n  url: https://custom.example/api\n")

    set_default_config_path(config_path)

    assert load_esplora_config(env={}).base_url == "https://custom.example/api"


@pytest.mark.parametrize(
    "content",
    ["- just\n- a list\n", "esplora: https://not-a-mapping\n", "esplora:\n  url: 42\n"],
)
def test_malformed_config_is_rejected(isolated_config: Path, content: str) -> None:
    isolated_config.write_text(content)

    with pytest.raises(ConfigurationError):
        load_esplora_config(env={})


@pytest.mark.parametrize("url", ["ftp://example.test", "example.test/api", "https://"])
def test_invalid_url_is_rejected(url: str) -> None:
    with pytest.raises(ConfigurationError):
        load_esplora_config(env={"ESPLORA_URL": url})


def test_invalid_yaml_is_a_configuration_error(isolated_config: Path) -> None:
    isolated_config.write_text("esplora: [unclosed\n")

    with pytest.raises(ConfigurationError, match="not valid YAML"):
        load_esplora_config(env={})


def test_reset_default_config_path(tmp_path: Path) -> None:
    set_default_config_path(tmp_path / "missing.yaml")
    with pytest.raises(ConfigurationError):
        load_esplora_config(env={})

    set_default_config_path(None)

    assert load_esplora_config(env={}).base_url == DEFAULT_BASE_URL
