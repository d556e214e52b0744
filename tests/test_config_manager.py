"""Unit tests for configuration management."""

import json
from pathlib import Path

import pytest

from snapgen.config import (
    ConfigError,
    ConfigManager,
    SnapgenConfig,
    flatten_for_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager(env={})


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".snapgen" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "snapgen configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, SnapgenConfig)


def test_load_does_not_create_missing_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    config = manager.load()

    assert config == SnapgenConfig()
    assert not manager.config_path.exists()


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"scan": {"name": "from-file", "batch_size": 50}})

    env = {"SNAPGEN__SCAN__NAME": "from-env", "SNAPGEN__SCAN__CHUNK_SIZE_KB": "64"}
    cli = {"scan.batch_size": 10}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    # The file beats the environment, the command line beats both.
    assert config.scan.name == "from-file"
    assert config.scan.batch_size == 10
    assert config.scan.chunk_size_kb == 64


def test_exclude_patterns_accumulate_across_sources(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"scan": {"exclude": ["*.tmp", "**/.git/**"]}})

    config = manager.load(
        cli_overrides={"scan.exclude": ["build", "*.tmp"]},
        env_overrides={"SNAPGEN__SCAN__EXCLUDE": "['*.bak']"},
    )

    assert config.scan.exclude == ["build", "*.tmp", "**/.git/**", "*.bak"]


def test_legacy_json_keys_are_lifted(tmp_path: Path) -> None:
    path = tmp_path / "snap.json"
    path.write_text(
        json.dumps({"path": "/data", "out": "out.db", "exclude": ["*.log"], "sign": True}),
        encoding="utf-8",
    )

    config = ConfigManager(path, env={}).load()

    assert config.scan.path == "/data"
    assert config.scan.out == "out.db"
    assert config.scan.exclude == ["*.log"]
    assert config.output.sign is True


def test_legacy_environment_aliases(tmp_path: Path) -> None:
    env = {"SNAP_PATH": "/srv", "SNAP_OUT": "x.db"}
    manager = ConfigManager(tmp_path / "missing.yaml", env=env)

    config = manager.load()

    assert config.scan.path == "/srv"
    assert config.scan.out == "x.db"


def test_include_env_false_ignores_environment(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "missing.yaml", env={"SNAPGEN__OUTPUT__QUIET": "true"})

    assert manager.load().output.quiet is True
    assert manager.load(include_env=False).output.quiet is False


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_unparseable_yaml_raises_config_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("scan: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigError):
        ConfigManager(path, env={}).load()


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(SnapgenConfig())

    assert flat["SNAPGEN__SCAN__BATCH_SIZE"] == "200"
    assert flat["SNAPGEN__SCAN__OUT"] == "null"
    assert flat["SNAPGEN__LOGGING__LEVEL"] == "WARNING"
    assert flat["SNAPGEN__SCAN__EXCLUDE"] == "[]"


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=SnapgenConfig(),
            file_overrides={"scan": {"batch_size": 0}},
        )


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=SnapgenConfig(), file_overrides={"scan": {"depth": 3}})


def test_logging_level_is_normalized() -> None:
    config = resolve_with_precedence(
        defaults=SnapgenConfig(), cli_overrides={"logging.level": "debug"}
    )
    assert config.logging.level == "DEBUG"

    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=SnapgenConfig(), cli_overrides={"logging.level": "loud"})


def test_set_value_writes_nested_key(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yaml", env={})

    config = manager.set_value("output.checksum", True)

    assert config.output.checksum is True
    assert manager.load().output.checksum is True


def test_set_value_leaves_file_untouched_on_invalid_value(tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yaml", env={})
    manager.set_value("scan.batch_size", 10)

    with pytest.raises(ConfigError):
        manager.set_value("scan.batch_size", -1)

    assert manager.load().scan.batch_size == 10
