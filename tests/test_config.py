"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from vts_orbiter.config import (
    OrbiterConfig,
    OrbitConfig,
    ReconnectPolicy,
    config_from_dict,
    load_config,
)
from vts_orbiter.errors import ConfigError


class TestDefaults:
    def test_defaults(self):
        config = load_config(None)
        assert config == OrbiterConfig()
        assert config.url == "ws://localhost:8001"
        assert config.reconnect.delay == 2.0
        assert config.animation.interval == 0.033
        assert config.shutdown_grace == 0.2


class TestReconnectPolicy:
    def test_unbounded(self):
        policy = ReconnectPolicy()
        assert policy.delay_for(1) == 2.0
        assert policy.delay_for(1000) == 2.0

    def test_bounded(self):
        policy = ReconnectPolicy(delay=1.0, max_attempts=3)
        assert policy.delay_for(3) == 1.0
        assert policy.delay_for(4) is None


class TestLoadConfig:
    def test_yaml_file(self, tmp_path: Path):
        path = tmp_path / "orbiter.yaml"
        path.write_text(
            "port: 8002\n"
            "asset_filename: cookie.png\n"
            "token_file: ~/vts/token.txt\n"
            "pin_art_mesh_id: ArtMesh51\n"
            "reconnect:\n"
            "  delay: 5\n"
            "  max_attempts: 10\n"
            "animation:\n"
            "  radius: 0.3\n"
        )

        config = load_config(path)

        assert config.port == 8002
        assert config.asset_filename == "cookie.png"
        assert config.token_file == Path("~/vts/token.txt").expanduser()
        assert config.pin_art_mesh_id == "ArtMesh51"
        assert config.reconnect == ReconnectPolicy(delay=5, max_attempts=10)
        assert config.animation == OrbitConfig(radius=0.3)

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "orbiter.yaml"
        path.write_text("")
        assert load_config(path) == OrbiterConfig()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "orbiter.yaml"
        path.write_text("port: [8001\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path):
        path = tmp_path / "orbiter.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)


class TestConfigFromDict:
    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigError, match="colour"):
            config_from_dict({"colour": "red"})

    def test_unknown_animation_key(self):
        with pytest.raises(ConfigError, match="animation"):
            config_from_dict({"animation": {"wobble": 1}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigError):
            config_from_dict({"reconnect": 2})
