"""Staging area: the files that go into the next commit."""

from __future__ import annotations

import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from pesvcs.objects import (
    INDEX_FILE,
    ObjectID,
    ObjectStore,
    ObjectStoreError,
    ObjectType,
)

MAX_INDEX_ENTRIES = 10000
MODE_FILE = 0o100644
MODE_EXEC = 0o100755

_SKIPPED_NAMES = frozenset({".", "..", ".pes", "pes"})


class IndexError_(Exception):
    """Raised when the index cannot be loaded, saved or updated."""


@dataclass
class IndexEntry:
    """One staged file: mode, blob hash and the metadata used for change detection."""

    mode: int
    hash: ObjectID
    mtime_sec: int
    size: int
    path: str

    def to_line(self) -> str:
        return f"{self.mode:o} {self.hash.hex()} {self.mtime_sec} {self.size} {self.path}"

    @classmethod
    def from_line(cls, line: str) -> IndexEntry:
        fields = line.split(" ", 4)
        if len(fields) != 5 or not fields[4]:
            raise IndexError_(f"malformed index line: {line!r}")
        mode_text, hex_text, mtime_text, size_text, path = fields
        try:
            return cls(
                mode=int(mode_text, 8),
                hash=ObjectID.from_hex(hex_text),
                mtime_sec=int(mtime_text),
                size=int(size_text),
                path=path,
            )
        except ValueError as exc:
            raise IndexError_(f"malformed index line: {line!r}") from exc


@dataclass
class Status:
    """Working directory status relative to the index."""

    staged: list[str] = field(default_factory=list)
    unstaged: list[tuple[str, str]] = field(default_factory=list)
    untracked: list[str] = field(default_factory=list)

    @property
    def modified(self) -> list[str]:
        return [path for kind, path in self.unstaged if kind == "modified"]

    @property
    def deleted(self) -> list[str]:
        return [path for kind, path in self.unstaged if kind == "deleted"]


class Index:
    """The staging area stored as a text file in ``<root>/.pes/index``."""

    def __init__(
        self,
        root: str | os.PathLike[str] = ".",
        entries: list[IndexEntry] | None = None,
    ) -> None:
        self.root = Path(root)
        self.entries: list[IndexEntry] = list(entries) if entries else []

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_FILE

    @classmethod
    def load(cls, root: str | os.PathLike[str] = ".") -> Index:
        """Read the index; a missing file yields an empty index."""
        index = cls(root)
        try:
            text = index.index_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return index
        except OSError as exc:
            raise IndexError_(f"cannot read index: {exc}") from exc

        for line in text.splitlines():
            if not line.strip():
                continue
            if len(index.entries) >= MAX_INDEX_ENTRIES:
                raise IndexError_("too many index entries")
            index.entries.append(IndexEntry.from_line(line))
        return index

    def save(self) -> None:
        """Write the index sorted by path, atomically via a temporary file."""
        self.entries.sort(key=lambda entry: entry.path)
        target = self.index_path
        content = "".join(entry.to_line() + "\n" for entry in self.entries)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".index-")
        except OSError as exc:
            raise IndexError_(f"cannot write index: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, target)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise IndexError_(f"cannot write index: {exc}") from exc

    def find(self, path: str) -> IndexEntry | None:
        """Return the entry for ``path``, or None if it is not staged."""
        return next((entry for entry in self.entries if entry.path == path), None)

    def add(self, path: str | os.PathLike[str]) -> IndexEntry:
        """Store the file as a blob and stage it, then save the index."""
        rel = os.fspath(path)
        full = self.root / rel
        try:
            st = os.stat(full)
            if not stat.S_ISREG(st.st_mode):
                raise IndexError_(f"'{rel}' is not a regular file")
            data = full.read_bytes()
        except OSError as exc:
            raise IndexError_(f"cannot read '{rel}': {exc}") from exc

        try:
            blob_id = ObjectStore(self.root).write(ObjectType.BLOB, data)
        except ObjectStoreError as exc:
            raise IndexError_(f"cannot store '{rel}': {exc}") from exc

        mode = MODE_EXEC if st.st_mode & stat.S_IXUSR else MODE_FILE
        entry = self.find(rel)
        if entry is None:
            if len(self.entries) >= MAX_INDEX_ENTRIES:
                raise IndexError_("index is full")
            entry = IndexEntry(mode, blob_id, int(st.st_mtime), st.st_size, rel)
            self.entries.append(entry)
        else:
            entry.mode = mode
            entry.hash = blob_id
            entry.mtime_sec = int(st.st_mtime)
            entry.size = st.st_size
        self.save()
        return entry

    def remove(self, path: str) -> None:
        """Unstage ``path`` and save the index."""
        entry = self.find(path)
        if entry is None:
            raise IndexError_(f"'{path}' is not in the index")
        self.entries.remove(entry)
        self.save()

    def status(self) -> Status:
        """Compare the working directory with the index."""
        result = Status(staged=[entry.path for entry in self.entries])

        for entry in self.entries:
            try:
                st = os.stat(self.root / entry.path)
            except OSError:
                result.unstaged.append(("deleted", entry.path))
                continue
            if int(st.st_mtime) != entry.mtime_sec or st.st_size != entry.size:
                result.unstaged.append(("modified", entry.path))

        tracked = {entry.path for entry in self.entries}
        try:
            with os.scandir(self.root) as listing:
                names = sorted(
                    item.name
                    for item in listing
                    if item.name not in _SKIPPED_NAMES
                    and ".o" not in item.name
                    and item.name not in tracked
                    and item.is_file()
                )
        except OSError:
            names = []
        result.untracked = names
        return result


def format_status(status: Status) -> str:
    """Render a Status as the three-section report."""

    def section(title: str, lines: list[str]) -> str:
        body = lines or ["  (nothing to show)"]
        return title + "\n" + "".join(line + "\n" for line in body) + "\n"

    return (
        section("Staged changes:", [f"  staged:     {p}" for p in status.staged])
        + section(
            "Unstaged changes:",
            [f"  {kind + ':':<12}{p}" for kind, p in status.unstaged],
        )
        + section("Untracked files:", [f"  untracked:  {p}" for p in status.untracked])
    )