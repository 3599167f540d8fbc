"""Content-addressable object store keyed by SHA-256."""

from __future__ import annotations

import enum
import hashlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

HASH_SIZE = 32
HASH_HEX_SIZE = 64
PES_DIR = ".pes"
OBJECTS_DIR = ".pes/objects"
REFS_DIR = ".pes/refs/heads"
INDEX_FILE = ".pes/index"
HEAD_FILE = ".pes/HEAD"
DEFAULT_AUTHOR = "PES User <pes@localhost>"


class ObjectType(enum.Enum):
    """Kind of object held in the store."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"


@dataclass(frozen=True, order=True)
class ObjectID:
    """A 32-byte SHA-256 digest naming an object."""

    digest: bytes

    def __post_init__(self) -> None:
        if len(self.digest) != HASH_SIZE:
            raise ValueError(
                f"object id must be {HASH_SIZE} bytes, got {len(self.digest)}"
            )

    @classmethod
    def from_hex(cls, text: str) -> ObjectID:
        """Parse the first 64 hex characters of ``text``."""
        if len(text) < HASH_HEX_SIZE:
            raise ValueError(f"hash too short: {text!r}")
        try:
            return cls(bytes.fromhex(text[:HASH_HEX_SIZE]))
        except ValueError as exc:
            raise ValueError(f"invalid hex hash: {text!r}") from exc

    def hex(self) -> str:
        """Return the 64-character lower-case hex form."""
        return self.digest.hex()

    def __str__(self) -> str:
        return self.hex()


class ObjectStoreError(Exception):
    """Raised when an object cannot be written or read."""


class CorruptObjectError(ObjectStoreError):
    """Raised when a stored object fails its integrity or format check."""


def compute_hash(data: bytes) -> ObjectID:
    """Return the SHA-256 of ``data`` as an ObjectID."""
    return ObjectID(hashlib.sha256(data).digest())


def pes_author() -> str:
    """Author name from PES_AUTHOR, or the default when unset or empty."""
    return os.environ.get("PES_AUTHOR") or DEFAULT_AUTHOR


def _fsync_directory(path: Path) -> None:
    flags = os.O_RDONLY | getattr(os, "O_DIRECTORY", 0)
    try:
        fd = os.open(path, flags)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


class ObjectStore:
    """Objects stored under ``<root>/.pes/objects/XX/YYYY...``."""

    def __init__(self, root: str | os.PathLike[str] = ".") -> None:
        self.root = Path(root)
        self.objects_dir = self.root / OBJECTS_DIR

    def path(self, object_id: ObjectID) -> Path:
        """Filesystem path where ``object_id`` is stored."""
        hex_id = object_id.hex()
        return self.objects_dir / hex_id[:2] / hex_id[2:]

    def exists(self, object_id: ObjectID) -> bool:
        """Whether the object is present in the store."""
        return self.path(object_id).exists()

    def write(self, object_type: ObjectType, data: bytes) -> ObjectID:
        """Store ``data`` as an object of ``object_type`` and return its id."""
        data = bytes(data)
        header = f"{object_type.value} {len(data)}\0".encode("ascii")
        full = header + data
        object_id = compute_hash(full)
        if self.exists(object_id):
            return object_id

        final_path = self.path(object_id)
        shard = final_path.parent
        try:
            shard.mkdir(mode=0o755, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=shard, prefix=".tmp-")
        except OSError as exc:
            raise ObjectStoreError(f"cannot create object {object_id}: {exc}") from exc

        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(full)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, final_path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise ObjectStoreError(f"cannot write object {object_id}: {exc}") from exc

        _fsync_directory(shard)
        return object_id

    def read(self, object_id: ObjectID) -> tuple[ObjectType, bytes]:
        """Return the type and payload of a stored object, verifying its hash."""
        path = self.path(object_id)
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise ObjectStoreError(f"cannot read object {object_id}: {exc}") from exc

        if compute_hash(raw) != object_id:
            raise CorruptObjectError(f"object {object_id} failed integrity check")

        header, sep, payload = raw.partition(b"\0")
        if not sep:
            raise CorruptObjectError(f"object {object_id} has no header terminator")
        type_name, _, size_text = header.partition(b" ")
        try:
            object_type = ObjectType(type_name.decode("ascii"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise CorruptObjectError(
                f"object {object_id} has unknown type {type_name!r}"
            ) from exc
        if not size_text.isdigit() or int(size_text) != len(payload):
            raise CorruptObjectError(f"object {object_id} has a bad size header")
        return object_type, payload