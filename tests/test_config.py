from __future__ import annotations

import pytest

from bettermake.config import DEFAULT_TOOLCHAIN_PROBE, EngineSettings
from bettermake.errors import ConfigError


def test_defaults() -> None:
    settings = EngineSettings.from_mapping({})

    assert settings.default_task == "default"
    assert settings.jobs == 1
    assert settings.allow_install is False
    assert settings.toolchain_env == "RUSTUP_TOOLCHAIN"
    assert settings.toolchain_probe == DEFAULT_TOOLCHAIN_PROBE


def test_config_table_values() -> None:
    settings = EngineSettings.from_mapping(
        {
            "default_task": "ci",
            "jobs": 4,
            "allow_install": True,
            "toolchain_env": "TOOLCHAIN",
            "toolchain_probe": ["rustup", "which", "--toolchain", "{toolchain}", "rustc"],
            "install_command": ["cargo", "binstall", "{crate}"],
            "default_to_workspace": False,
        }
    )
    assert settings.default_task == "ci"
    assert settings.jobs == 4
    assert settings.allow_install is True
    assert settings.toolchain_env == "TOOLCHAIN"
    assert settings.toolchain_probe[-1] == "rustc"
    assert settings.install_command == ("cargo", "binstall", "{crate}")


@pytest.mark.parametrize(
    "config, match",
    [
        ({"jobs": True}, "jobs must be int"),
        ({"jobs": 0}, "at least 1"),
        ({"allow_install": "yes"}, "allow_install must be bool"),
        ({"toolchain_probe": "rustup run"}, "not a single string"),
        ({"install_command": []}, "non-empty list"),
    ],
)
def test_bad_config_values(config, match) -> None:
    with pytest.raises(ConfigError, match=match):
        EngineSettings.from_mapping(config)


def test_env_values_are_stringified() -> None:
    settings = EngineSettings.from_mapping({}, {"A": 1, "B": True, "C": "x"})
    assert settings.env == {"A": "1", "B": "true", "C": "x"}


def test_override_skips_unset_values() -> None:
    base = EngineSettings.from_mapping({"jobs": 4, "allow_install": True})
    updated = base.override(jobs=None, allow_install=False, toolchain_env=None)

    assert updated.jobs == 4
    assert updated.allow_install is False
    assert updated.toolchain_env == base.toolchain_env


def test_override_validates_jobs() -> None:
    with pytest.raises(ConfigError):
        EngineSettings().override(jobs=0)


def test_settings_are_hashable() -> None:
    settings = EngineSettings.from_mapping({"jobs": 2}, {"RUST_LOG": "debug"})

    assert hash(settings) == hash(settings.override(jobs=2))
