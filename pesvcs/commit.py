"""Commit objects, HEAD handling and history traversal."""

from __future__ import annotations

import os
import re
import time
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from pesvcs.index import Index, IndexError_
from pesvcs.objects import (
    HEAD_FILE,
    PES_DIR,
    ObjectID,
    ObjectStore,
    ObjectStoreError,
    ObjectType,
    pes_author,
)
from pesvcs.tree import TreeError, tree_from_index

MAX_AUTHOR_LEN = 255
MAX_MESSAGE_LEN = 4095

_TREE_LINE = re.compile(r"tree\s*(\S{1,64})")
_PARENT_LINE = re.compile(r"parent\s*(\S{1,64})")
_AUTHOR_LINE = re.compile(r"author\s*(.+)")
_LEADING_NUMBER = re.compile(r"\s*\+?(\d*)")


class CommitError(Exception):
    """Raised when a commit cannot be parsed, created or followed."""


@dataclass
class Commit:
    """A snapshot of the tree with its parent, author, time and message."""

    tree: ObjectID
    parent: ObjectID | None
    author: str
    timestamp: int
    message: str

    @property
    def has_parent(self) -> bool:
        return self.parent is not None


def _take_line(text: str) -> tuple[str, str]:
    line, sep, rest = text.partition("\n")
    if not sep:
        raise CommitError("malformed commit: truncated headers")
    return line, rest


def _parse_id(pattern: re.Pattern[str], line: str, what: str) -> ObjectID:
    match = pattern.match(line)
    if not match:
        raise CommitError(f"malformed commit: bad {what} line")
    try:
        return ObjectID.from_hex(match.group(1))
    except ValueError as exc:
        raise CommitError(f"malformed commit: bad {what} hash") from exc


def _parse_timestamp(text: str) -> int:
    digits = _LEADING_NUMBER.match(text).group(1)
    return int(digits) if digits else 0


def parse_commit(data: bytes) -> Commit:
    """Parse the text form of a commit object."""
    text = bytes(data).decode("utf-8", "surrogateescape")

    line, rest = _take_line(text)
    tree_id = _parse_id(_TREE_LINE, line, "tree")

    parent_id = None
    if rest.startswith("parent "):
        line, rest = _take_line(rest)
        parent_id = _parse_id(_PARENT_LINE, line, "parent")

    line, rest = _take_line(rest)
    match = _AUTHOR_LINE.match(line)
    if not match:
        raise CommitError("malformed commit: bad author line")
    author_field = match.group(1)[:MAX_AUTHOR_LEN]
    name, sep, stamp = author_field.rpartition(" ")
    if not sep:
        raise CommitError("malformed commit: author line has no timestamp")

    _, rest = _take_line(rest)  # committer line
    _, rest = _take_line(rest)  # blank separator

    return Commit(
        tree=tree_id,
        parent=parent_id,
        author=name,
        timestamp=_parse_timestamp(stamp),
        message=rest[:MAX_MESSAGE_LEN],
    )


def serialize_commit(commit: Commit) -> bytes:
    """Text form of ``commit`` as stored in the object store."""
    lines = [f"tree {commit.tree.hex()}\n"]
    if commit.parent is not None:
        lines.append(f"parent {commit.parent.hex()}\n")
    lines.append(f"author {commit.author} {commit.timestamp}\n")
    lines.append(f"committer {commit.author} {commit.timestamp}\n")
    lines.append("\n")
    lines.append(commit.message)
    return "".join(lines).encode("utf-8", "surrogateescape")


def _first_line(path: Path) -> str | None:
    """First line of ``path`` without its line ending; None if missing or empty."""
    try:
        text = path.read_text(encoding="utf-8", errors="surrogateescape")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise CommitError(f"cannot read {path}: {exc}") from exc
    if not text:
        return None
    return re.split(r"[\r\n]", text, maxsplit=1)[0]


def _read_head_line(root: Path) -> str:
    line = _first_line(root / HEAD_FILE)
    if line is None:
        raise CommitError("cannot read HEAD")
    return line


def _ref_target(root: Path, head_line: str) -> Path:
    if head_line.startswith("ref: "):
        return root / PES_DIR / head_line[5:]
    return root / HEAD_FILE


def head_read(root: str | os.PathLike[str] = ".") -> ObjectID | None:
    """Commit that HEAD points at, following a symbolic ref; None if there is none yet."""
    root = Path(root)
    line = _read_head_line(root)
    if line.startswith("ref: "):
        line = _first_line(_ref_target(root, line))
        if line is None:
            return None
    if not line:
        return None
    try:
        return ObjectID.from_hex(line)
    except ValueError as exc:
        raise CommitError(f"HEAD holds an invalid hash: {line!r}") from exc


def head_update(root: str | os.PathLike[str], commit_id: ObjectID) -> None:
    """Point HEAD, or the branch it names, at ``commit_id`` atomically."""
    root = Path(root)
    target = _ref_target(root, _read_head_line(root))
    tmp_path = target.with_name(target.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="ascii") as handle:
            handle.write(commit_id.hex() + "\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target)
    except OSError as exc:
        raise CommitError(f"cannot update {target}: {exc}") from exc


def create_commit(root: str | os.PathLike[str], message: str) -> ObjectID:
    """Commit the staged files, move the branch to it and return its id."""
    root = Path(root)
    store = ObjectStore(root)
    try:
        index = Index.load(root)
        tree_id = tree_from_index(index, store)
    except (IndexError_, TreeError) as exc:
        raise CommitError(f"cannot build tree: {exc}") from exc

    commit = Commit(
        tree=tree_id,
        parent=head_read(root),
        author=pes_author(),
        timestamp=int(time.time()),
        message=message,
    )
    try:
        commit_id = store.write(ObjectType.COMMIT, serialize_commit(commit))
    except ObjectStoreError as exc:
        raise CommitError(f"cannot store commit: {exc}") from exc
    head_update(root, commit_id)
    return commit_id


def walk_commits(root: str | os.PathLike[str] = ".") -> Iterator[tuple[ObjectID, Commit]]:
    """Yield commits from HEAD back to the root commit, newest first."""
    root = Path(root)
    commit_id = head_read(root)
    if commit_id is None:
        raise CommitError("no commits yet")
    store = ObjectStore(root)
    while commit_id is not None:
        try:
            _, data = store.read(commit_id)
        except ObjectStoreError as exc:
            raise CommitError(f"cannot read commit {commit_id}: {exc}") from exc
        commit = parse_commit(data)
        yield commit_id, commit
        commit_id = commit.parent