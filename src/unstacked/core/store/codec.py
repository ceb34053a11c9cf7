"""Canonical serialization of git objects.

Both the real and the in-memory store go through this codec so that object
ids are identical to the ones ``git hash-object`` would produce. Text is
encoded as UTF-8 with ``surrogateescape`` so arbitrary bytes in names and
messages survive a decode/encode cycle unchanged.
"""

import hashlib

from unstacked.core.store.types import (
    MODE_TREE,
    Blob,
    Commit,
    GitObject,
    Identity,
    Tree,
    TreeEntry,
    object_type,
)

SIGNATURE_HEADER = "gpgsig"


def _to_bytes(value: str) -> bytes:
    return value.encode("utf-8", "surrogateescape")


def _to_str(value: bytes) -> str:
    return value.decode("utf-8", "surrogateescape")


def _header(key: str, value: str) -> str:
    # Multi-line values continue on lines prefixed with a single space
    return key + " " + value.replace("\n", "\n ") + "\n"


def _tree_sort_key(entry: TreeEntry) -> bytes:
    name = _to_bytes(entry.name)
    if entry.is_tree:
        return name + b"/"
    return name


def encode_commit(commit: Commit, include_signature: bool = True) -> bytes:
    parts = [_header("tree", commit.tree)]
    for parent in commit.parents:
        parts.append(_header("parent", parent))
    parts.append(_header("author", commit.author.format()))
    parts.append(_header("committer", commit.committer.format()))
    for key, value in commit.extra_headers:
        parts.append(_header(key, value))
    if include_signature and commit.signature is not None:
        parts.append(_header(SIGNATURE_HEADER, commit.signature.rstrip("\n")))
    parts.append("\n")
    parts.append(commit.message)
    return _to_bytes("".join(parts))


def signing_payload(commit: Commit) -> bytes:
    """Bytes covered by the commit signature: the commit without its gpgsig header."""
    return encode_commit(commit, include_signature=False)


def decode_commit(body: bytes) -> Commit:
    text = _to_str(body)
    header_text, sep, message = text.partition("\n\n")
    if not sep:
        # A commit with an empty message may end right after the headers
        header_text = text.rstrip("\n")
        message = ""

    headers: list[tuple[str, str]] = []
    for line in header_text.split("\n"):
        if line.startswith(" ") and headers:
            key, value = headers[-1]
            headers[-1] = (key, value + "\n" + line[1:])
            continue
        key, _, value = line.partition(" ")
        headers.append((key, value))

    tree: str | None = None
    parents: list[str] = []
    author: Identity | None = None
    committer: Identity | None = None
    signature: str | None = None
    extra: list[tuple[str, str]] = []
    for key, value in headers:
        if key == "tree":
            tree = value
        elif key == "parent":
            parents.append(value)
        elif key == "author":
            author = Identity.parse(value)
        elif key == "committer":
            committer = Identity.parse(value)
        elif key == SIGNATURE_HEADER:
            signature = value + "\n"
        else:
            extra.append((key, value))

    if tree is None or author is None or committer is None:
        raise ValueError("Commit object is missing a tree, author or committer header")

    return Commit(
        tree=tree,
        parents=tuple(parents),
        author=author,
        committer=committer,
        message=message,
        signature=signature,
        extra_headers=tuple(extra),
    )


def encode_tree(tree: Tree) -> bytes:
    out = bytearray()
    for entry in sorted(tree.entries, key=_tree_sort_key):
        out += _to_bytes(f"{entry.mode} {entry.name}") + b"\0" + bytes.fromhex(entry.oid)
    return bytes(out)


def decode_tree(body: bytes, hash_size: int = 20) -> Tree:
    entries: list[TreeEntry] = []
    pos = 0
    while pos < len(body):
        space = body.index(b" ", pos)
        nul = body.index(b"\0", space)
        mode = body[pos:space].decode("ascii")
        name = _to_str(body[space + 1 : nul])
        oid = body[nul + 1 : nul + 1 + hash_size].hex()
        if mode == "040000":
            mode = MODE_TREE
        entries.append(TreeEntry(mode=mode, name=name, oid=oid))
        pos = nul + 1 + hash_size
    return Tree(entries=tuple(entries))


def encode_object(obj: GitObject) -> bytes:
    if isinstance(obj, Commit):
        return encode_commit(obj)
    if isinstance(obj, Tree):
        return encode_tree(obj)
    return obj.data


def decode_object(kind: str, body: bytes, hash_size: int = 20) -> GitObject:
    if kind == "commit":
        return decode_commit(body)
    if kind == "tree":
        return decode_tree(body, hash_size)
    if kind == "blob":
        return Blob(data=body)
    raise ValueError(f"Unsupported object type: {kind}")


def hash_object(kind: str, body: bytes) -> str:
    header = f"{kind} {len(body)}\0".encode("ascii")
    return hashlib.sha1(header + body).hexdigest()


def object_id(obj: GitObject) -> str:
    """Return the id ``git hash-object -t <type>`` would assign to ``obj``."""
    return hash_object(object_type(obj), encode_object(obj))
