"""Tests for loading and saving config.toml."""

from pathlib import Path

import pytest

from unstacked.core.config import (
    CONFIG_FILENAME,
    CONFIG_KEYS,
    UnstackedConfig,
    config_dir_for,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "nothing-here") == UnstackedConfig()


def test_load_reads_every_section(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        """\
[remote]
name = "upstream"
branch_prefix = "jane"

[stack]
upstream = "develop"

[signing]
key = "ABCDEF0123456789"
program = "gpg2"
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config == UnstackedConfig(
        remote="upstream",
        upstream="develop",
        signing_key="ABCDEF0123456789",
        branch_prefix="jane",
        gpg_program="gpg2",
    )


def test_partial_config_falls_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text('[signing]\nkey = "K"\n', encoding="utf-8")

    config = load_config(tmp_path)

    assert config.remote == "origin"
    assert config.upstream == "main"
    assert config.signing_key == "K"
    assert config.gpg_program is None


def test_save_then_load_round_trip(tmp_path: Path) -> None:
    """Test that save_config creates the directory and writes loadable TOML."""
    config_dir = tmp_path / "git" / "unstacked"
    config = UnstackedConfig(remote="fork", signing_key="KEY", branch_prefix="me")

    save_config(config_dir, config)

    assert (config_dir / CONFIG_FILENAME).exists()
    assert load_config(config_dir) == config


def test_save_omits_signing_section_when_unset(tmp_path: Path) -> None:
    save_config(tmp_path, UnstackedConfig())

    assert "[signing]" not in (tmp_path / CONFIG_FILENAME).read_text(encoding="utf-8")


def test_get_and_set_every_key() -> None:
    config = UnstackedConfig()
    for key in CONFIG_KEYS:
        config = set_config_value(config, key, f"value-{key}")
        assert get_config_value(config, key) == f"value-{key}"


def test_set_branch_prefix_strips_slashes() -> None:
    config = set_config_value(UnstackedConfig(), "remote.branch_prefix", "/users/jane/")

    assert config.branch_prefix == "users/jane"


def test_empty_signing_key_unsets_it() -> None:
    config = set_config_value(UnstackedConfig(signing_key="K"), "signing.key", "")

    assert config.signing_key is None


def test_unknown_key_raises() -> None:
    with pytest.raises(KeyError):
        get_config_value(UnstackedConfig(), "nope")
    with pytest.raises(KeyError):
        set_config_value(UnstackedConfig(), "remote.url", "x")


def test_config_dir_lives_in_git_dir() -> None:
    assert config_dir_for(Path("/repo/.git")) == Path("/repo/.git/unstacked")
