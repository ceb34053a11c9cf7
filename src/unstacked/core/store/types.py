"""Value types for git objects as the engine sees them."""

import re
from dataclasses import dataclass

MODE_TREE = "40000"
MODE_BLOB = "100644"
MODE_EXECUTABLE = "100755"
MODE_SYMLINK = "120000"
MODE_SUBMODULE = "160000"

_IDENTITY_RE = re.compile(r"^(?P<name>.*?) <(?P<email>[^>]*)> (?P<timestamp>-?\d+) (?P<offset>[+-]\d{4})$")


@dataclass(frozen=True)
class Identity:
    """Author or committer line: name, email, seconds since epoch and tz offset."""

    name: str
    email: str
    timestamp: int
    offset: str = "+0000"

    def format(self) -> str:
        return f"{self.name} <{self.email}> {self.timestamp} {self.offset}"

    @staticmethod
    def parse(value: str) -> "Identity":
        match = _IDENTITY_RE.match(value)
        if match is None:
            raise ValueError(f"Malformed identity line: {value!r}")
        return Identity(
            name=match.group("name"),
            email=match.group("email"),
            timestamp=int(match.group("timestamp")),
            offset=match.group("offset"),
        )


@dataclass(frozen=True)
class Blob:
    data: bytes


@dataclass(frozen=True)
class TreeEntry:
    mode: str
    name: str
    oid: str

    @property
    def is_tree(self) -> bool:
        return self.mode == MODE_TREE


@dataclass(frozen=True)
class Tree:
    entries: tuple[TreeEntry, ...] = ()

    def get(self, name: str) -> TreeEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None


@dataclass(frozen=True)
class Commit:
    """A commit object.

    ``signature`` is the armored detached signature stored in the ``gpgsig``
    header, or None for an unsigned commit. ``extra_headers`` preserves any
    other headers (``encoding``, ``mergetag``...) in their original order so a
    decoded commit re-encodes byte for byte.
    """

    tree: str
    parents: tuple[str, ...]
    author: Identity
    committer: Identity
    message: str
    signature: str | None = None
    extra_headers: tuple[tuple[str, str], ...] = ()

    @property
    def title(self) -> str:
        lines = self.message.strip().splitlines()
        if not lines:
            return ""
        return lines[0]

    @property
    def parent(self) -> str | None:
        if len(self.parents) != 1:
            return None
        return self.parents[0]


GitObject = Commit | Tree | Blob


@dataclass(frozen=True)
class TreeMerge:
    """Outcome of a three-way tree merge.

    ``tree`` is always written; when ``conflicts`` is non-empty it contains
    conflict markers and must not be committed.
    """

    tree: str
    conflicts: tuple[str, ...] = ()

    @property
    def clean(self) -> bool:
        return not self.conflicts


def object_type(obj: GitObject) -> str:
    if isinstance(obj, Commit):
        return "commit"
    if isinstance(obj, Tree):
        return "tree"
    return "blob"
