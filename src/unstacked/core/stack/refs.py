"""Ref naming convention for stacks.

    refs/unstacked/stacks/<stack>/manifest       blob holding order and sync state
    refs/unstacked/stacks/<stack>/base           commit the first change builds on
    refs/unstacked/stacks/<stack>/changes/<id>   current commit of change <id>
    refs/unstacked/stacks/<stack>/pushed/<id>    commit last pushed for <id> ("base" for the base)

Published branches live at refs/heads/<prefix>/<stack>/<id> and
refs/heads/<prefix>/<stack>/base on the remote.
"""

import re
import secrets

STACKS_PREFIX = "refs/unstacked/stacks/"
PUSHED_BASE = "base"

_STACK_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_stack_name(name: str) -> None:
    if not _STACK_NAME_RE.match(name) or ".." in name or name.endswith(".lock"):
        raise ValueError(
            f"Invalid stack name '{name}': use letters, digits, '.', '_' and '-', "
            "starting with a letter or digit"
        )


def new_change_id() -> str:
    return secrets.token_hex(6)


def stack_prefix(stack: str) -> str:
    return f"{STACKS_PREFIX}{stack}/"


def manifest_ref(stack: str) -> str:
    return f"{stack_prefix(stack)}manifest"


def base_ref(stack: str) -> str:
    return f"{stack_prefix(stack)}base"


def changes_prefix(stack: str) -> str:
    return f"{stack_prefix(stack)}changes/"


def change_ref(stack: str, change_id: str) -> str:
    return f"{changes_prefix(stack)}{change_id}"


def pushed_prefix(stack: str) -> str:
    return f"{stack_prefix(stack)}pushed/"


def pushed_ref(stack: str, change_id: str) -> str:
    return f"{pushed_prefix(stack)}{change_id}"


def remote_prefix(branch_prefix: str, stack: str) -> str:
    return f"refs/heads/{branch_prefix}/{stack}/"


def remote_branch(branch_prefix: str, stack: str, change_id: str) -> str:
    return f"{remote_prefix(branch_prefix, stack)}{change_id}"


def stack_name_from_manifest_ref(ref: str) -> str | None:
    if not ref.startswith(STACKS_PREFIX) or not ref.endswith("/manifest"):
        return None
    name = ref[len(STACKS_PREFIX) : -len("/manifest")]
    if "/" in name:
        return None
    return name
