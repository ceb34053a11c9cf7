import click

from unstacked.core.config import CONFIG_KEYS, get_config_value, save_config, set_config_value
from unstacked.core.context import UnstackedContext
from unstacked.core.output import machine_output, user_output


def _check_key(key: str) -> None:
    if key not in CONFIG_KEYS:
        user_output(click.style("Error: ", fg="red") + f"Invalid key: {key}")
        user_output("Valid keys: " + ", ".join(CONFIG_KEYS))
        raise SystemExit(1)


@click.group("config")
def config_group() -> None:
    """Manage unstacked configuration."""


@config_group.command("list")
@click.pass_obj
def config_list(ctx: UnstackedContext) -> None:
    """Print a list of configuration keys and values."""
    user_output(click.style("Repository configuration:", bold=True))
    for key in CONFIG_KEYS:
        value = get_config_value(ctx.config, key)
        machine_output(f"  {key}={value if value is not None else ''}")
    if ctx.config.signing_key is None and ctx.signing_key is not None:
        user_output(f"  (signing key from git config user.signingkey: {ctx.signing_key})")


@config_group.command("get")
@click.argument("key", metavar="KEY")
@click.pass_obj
def config_get(ctx: UnstackedContext, key: str) -> None:
    """Print the value of a given configuration key."""
    _check_key(key)
    value = get_config_value(ctx.config, key)
    if value is None:
        user_output(f"Key not set: {key}")
        raise SystemExit(1)
    machine_output(value)


@config_group.command("set")
@click.argument("key", metavar="KEY")
@click.argument("value", metavar="VALUE")
@click.pass_obj
def config_set(ctx: UnstackedContext, key: str, value: str) -> None:
    """Update configuration with a value for the given key."""
    _check_key(key)
    save_config(ctx.config_dir, set_config_value(ctx.config, key, value))
    user_output(f"Set {key}={value}")
