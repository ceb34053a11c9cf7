import tomllib
from dataclasses import dataclass, replace
from pathlib import Path

import tomlkit

CONFIG_FILENAME = "config.toml"

CONFIG_KEYS = (
    "remote.name",
    "remote.branch_prefix",
    "stack.upstream",
    "signing.key",
    "signing.program",
)


@dataclass(frozen=True)
class UnstackedConfig:
    """In-memory representation of `<git-dir>/unstacked/config.toml`."""

    remote: str = "origin"
    upstream: str = "main"
    signing_key: str | None = None
    branch_prefix: str = "unstacked"
    gpg_program: str | None = None


def config_dir_for(git_dir: Path) -> Path:
    return git_dir / "unstacked"


def load_config(config_dir: Path) -> UnstackedConfig:
    """Load config.toml from the given directory if present; otherwise return defaults.

    Example config:
      [remote]
      name = "origin"
      branch_prefix = "unstacked"

      [stack]
      upstream = "main"

      [signing]
      key = "ABCDEF0123456789"
      program = "gpg2"
    """
    cfg_path = config_dir / CONFIG_FILENAME
    if not cfg_path.exists():
        return UnstackedConfig()

    data = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
    remote = data.get("remote", {})
    stack = data.get("stack", {})
    signing = data.get("signing", {})

    key = signing.get("key")
    program = signing.get("program")
    return UnstackedConfig(
        remote=str(remote.get("name", "origin")),
        upstream=str(stack.get("upstream", "main")),
        signing_key=str(key) if key is not None else None,
        branch_prefix=str(remote.get("branch_prefix", "unstacked")),
        gpg_program=str(program) if program is not None else None,
    )


def save_config(config_dir: Path, config: UnstackedConfig) -> None:
    """Save UnstackedConfig to config.toml.

    Creates the config directory if it doesn't exist.
    """
    config_dir.mkdir(parents=True, exist_ok=True)
    cfg_path = config_dir / CONFIG_FILENAME

    doc = tomlkit.document()

    remote = tomlkit.table()
    remote["name"] = config.remote
    remote["branch_prefix"] = config.branch_prefix
    doc["remote"] = remote

    stack = tomlkit.table()
    stack["upstream"] = config.upstream
    doc["stack"] = stack

    if config.signing_key is not None or config.gpg_program is not None:
        signing = tomlkit.table()
        if config.signing_key is not None:
            signing["key"] = config.signing_key
        if config.gpg_program is not None:
            signing["program"] = config.gpg_program
        doc["signing"] = signing

    cfg_path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def get_config_value(config: UnstackedConfig, key: str) -> str | None:
    """Look up a dotted configuration key.

    Raises:
        KeyError: If ``key`` is not a known configuration key
    """
    match key:
        case "remote.name":
            return config.remote
        case "remote.branch_prefix":
            return config.branch_prefix
        case "stack.upstream":
            return config.upstream
        case "signing.key":
            return config.signing_key
        case "signing.program":
            return config.gpg_program
        case _:
            raise KeyError(key)


def set_config_value(config: UnstackedConfig, key: str, value: str) -> UnstackedConfig:
    """Return a copy of ``config`` with one dotted key replaced.

    Raises:
        KeyError: If ``key`` is not a known configuration key
    """
    match key:
        case "remote.name":
            return replace(config, remote=value)
        case "remote.branch_prefix":
            return replace(config, branch_prefix=value.strip("/"))
        case "stack.upstream":
            return replace(config, upstream=value)
        case "signing.key":
            return replace(config, signing_key=value or None)
        case "signing.program":
            return replace(config, gpg_program=value or None)
        case _:
            raise KeyError(key)
