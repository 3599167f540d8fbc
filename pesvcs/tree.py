"""Tree objects: directory snapshots built from the index."""

from __future__ import annotations

import os
import re
import stat
from dataclasses import dataclass, field

from pesvcs.index import Index, IndexEntry
from pesvcs.objects import (
    HASH_SIZE,
    ObjectID,
    ObjectStore,
    ObjectStoreError,
    ObjectType,
)

MAX_TREE_ENTRIES = 1024
MAX_NAME_LEN = 255
MODE_FILE = 0o100644
MODE_EXEC = 0o100755
MODE_DIR = 0o040000

_OCTAL_PREFIX = re.compile(rb"\s*([+-]?)([0-7]*)")


class TreeError(Exception):
    """Raised for malformed tree data or an index that cannot form a tree."""


@dataclass
class TreeEntry:
    """A name in a directory pointing at a blob or a subtree."""

    mode: int
    hash: ObjectID
    name: str


@dataclass
class Tree:
    """An ordered list of tree entries."""

    entries: list[TreeEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


def get_file_mode(path: str | os.PathLike[str]) -> int:
    """Object mode for a filesystem path, or 0 if it cannot be examined."""
    try:
        st = os.lstat(path)
    except OSError:
        return 0
    if stat.S_ISDIR(st.st_mode):
        return MODE_DIR
    if st.st_mode & stat.S_IXUSR:
        return MODE_EXEC
    return MODE_FILE


def _parse_octal(text: bytes) -> int:
    match = _OCTAL_PREFIX.match(text)
    sign, digits = match.group(1), match.group(2)
    value = int(digits, 8) if digits else 0
    return -value if sign == b"-" else value


def parse_tree(data: bytes) -> Tree:
    """Parse the binary tree format into a Tree."""
    data = bytes(data)
    tree = Tree()
    pos = 0
    while pos < len(data) and len(tree.entries) < MAX_TREE_ENTRIES:
        space = data.find(b" ", pos)
        if space < 0:
            raise TreeError("malformed tree: missing mode separator")
        mode_text = data[pos:space]
        if len(mode_text) >= 16:
            raise TreeError("malformed tree: mode too long")
        pos = space + 1

        nul = data.find(b"\0", pos)
        if nul < 0:
            raise TreeError("malformed tree: missing name terminator")
        name = data[pos:nul]
        if len(name) > MAX_NAME_LEN:
            raise TreeError("malformed tree: name too long")
        pos = nul + 1

        if pos + HASH_SIZE > len(data):
            raise TreeError("malformed tree: truncated hash")
        digest = data[pos : pos + HASH_SIZE]
        pos += HASH_SIZE

        tree.entries.append(
            TreeEntry(
                mode=_parse_octal(mode_text),
                hash=ObjectID(digest),
                name=name.decode("utf-8", "surrogateescape"),
            )
        )
    return tree


def _name_key(entry: TreeEntry) -> bytes:
    return entry.name.encode("utf-8", "surrogateescape")


def serialize_tree(tree: Tree) -> bytes:
    """Binary form of ``tree`` with entries sorted by name."""
    return b"".join(
        f"{entry.mode:o} ".encode("ascii")
        + _name_key(entry)
        + b"\0"
        + entry.hash.digest
        for entry in sorted(tree.entries, key=_name_key)
    )


def _write_level(items: list[tuple[str, IndexEntry]], store: ObjectStore) -> ObjectID:
    entries: list[TreeEntry] = []
    subdirs: dict[str, list[tuple[str, IndexEntry]]] = {}
    for rel, entry in items:
        head, sep, rest = rel.partition("/")
        if not head or (sep and not rest):
            raise TreeError(f"invalid path in index: {entry.path!r}")
        if sep:
            subdirs.setdefault(head, []).append((rest, entry))
        else:
            entries.append(TreeEntry(entry.mode, entry.hash, head))

    for name, children in subdirs.items():
        entries.append(TreeEntry(MODE_DIR, _write_level(children, store), name))

    names = [entry.name for entry in entries]
    if len(set(names)) != len(names):
        raise TreeError("index has a path that is both a file and a directory")
    if len(entries) > MAX_TREE_ENTRIES:
        raise TreeError("too many entries in one directory")
    if any(len(_name_key(entry)) > MAX_NAME_LEN for entry in entries):
        raise TreeError("entry name too long")

    try:
        return store.write(ObjectType.TREE, serialize_tree(Tree(entries)))
    except ObjectStoreError as exc:
        raise TreeError(f"cannot write tree: {exc}") from exc


def tree_from_index(index: Index, store: ObjectStore) -> ObjectID:
    """Write the tree hierarchy for the staged files and return the root id."""
    return _write_level([(entry.path, entry) for entry in index.entries], store)