import pytest

from pesvcs.objects import (
    CorruptObjectError,
    DEFAULT_AUTHOR,
    ObjectID,
    ObjectStore,
    ObjectStoreError,
    ObjectType,
    compute_hash,
    pes_author,
)

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


@pytest.fixture
def store(tmp_path):
    (tmp_path / ".pes" / "objects").mkdir(parents=True)
    (tmp_path / ".pes" / "refs" / "heads").mkdir(parents=True)
    return ObjectStore(tmp_path)


def test_blob_storage(store):
    content = b"Hello, PES-VCS!\n"
    object_id = store.write(ObjectType.BLOB, content)
    path = store.path(object_id)
    assert path.is_file()
    hex_id = object_id.hex()
    assert path.parent.name == hex_id[:2]
    assert path.name == hex_id[2:]
    object_type, data = store.read(object_id)
    assert object_type is ObjectType.BLOB
    assert data == content
    assert len(data) == len(content)


def test_deduplication(store):
    content = b"Duplicate content\n"
    first = store.write(ObjectType.BLOB, content)
    second = store.write(ObjectType.BLOB, content)
    assert first == second


def test_integrity(store):
    object_id = store.write(ObjectType.BLOB, b"Test integrity\n")
    path = store.path(object_id)
    with open(path, "r+b") as handle:
        handle.seek(20)
        handle.write(b"X")
    with pytest.raises(CorruptObjectError):
        store.read(object_id)


def test_on_disk_format_has_header(store):
    content = b"Hello, PES-VCS!\n"
    object_id = store.write(ObjectType.BLOB, content)
    raw = store.path(object_id).read_bytes()
    assert raw == b"blob 16\0" + content
    assert compute_hash(raw) == object_id


def test_type_affects_hash(store):
    blob_id = store.write(ObjectType.BLOB, b"same")
    tree_id = store.write(ObjectType.TREE, b"same")
    assert blob_id.hex() != tree_id.hex()
    assert store.read(tree_id) == (ObjectType.TREE, b"same")
    assert store.read(blob_id) == (ObjectType.BLOB, b"same")


def test_commit_type_round_trip(store):
    object_id = store.write(ObjectType.COMMIT, b"tree abc\n")
    assert store.read(object_id) == (ObjectType.COMMIT, b"tree abc\n")


def test_empty_blob(store):
    object_id = store.write(ObjectType.BLOB, b"")
    assert store.read(object_id) == (ObjectType.BLOB, b"")


def test_exists(store):
    object_id = compute_hash(b"blob 3\0abc")
    assert store.exists(object_id) is False
    written = store.write(ObjectType.BLOB, b"abc")
    assert written == object_id
    assert store.exists(object_id) is True


def test_read_missing_object(store):
    with pytest.raises(ObjectStoreError):
        store.read(compute_hash(b"nothing here"))


def test_corrupt_object_is_store_error(store):
    object_id = store.write(ObjectType.BLOB, b"payload")
    store.path(object_id).write_bytes(b"garbage")
    with pytest.raises(ObjectStoreError):
        store.read(object_id)


def test_compute_hash_known_value():
    assert compute_hash(b"").hex() == EMPTY_SHA256


def test_hex_round_trip():
    object_id = ObjectID.from_hex(EMPTY_SHA256)
    assert object_id.hex() == EMPTY_SHA256
    assert str(object_id) == EMPTY_SHA256
    assert object_id == compute_hash(b"")


def test_from_hex_ignores_trailing_text():
    object_id = ObjectID.from_hex(EMPTY_SHA256 + "\n")
    assert object_id.hex() == EMPTY_SHA256


def test_from_hex_uppercase():
    assert ObjectID.from_hex(EMPTY_SHA256.upper()).hex() == EMPTY_SHA256


def test_from_hex_too_short():
    with pytest.raises(ValueError):
        ObjectID.from_hex("abc123")


def test_from_hex_invalid_characters():
    with pytest.raises(ValueError):
        ObjectID.from_hex("zz" * 32)


def test_object_id_requires_32_bytes():
    with pytest.raises(ValueError):
        ObjectID(b"\x00" * 31)


def test_pes_author_from_environment(monkeypatch):
    monkeypatch.setenv("PES_AUTHOR", "Alice <alice@example.com>")
    assert pes_author() == "Alice <alice@example.com>"


def test_pes_author_default_when_unset(monkeypatch):
    monkeypatch.delenv("PES_AUTHOR", raising=False)
    assert pes_author() == DEFAULT_AUTHOR == "PES User <pes@localhost>"


def test_pes_author_default_when_empty(monkeypatch):
    monkeypatch.setenv("PES_AUTHOR", "")
    assert pes_author() == DEFAULT_AUTHOR


def test_write_creates_shard_directory(tmp_path):
    store = ObjectStore(tmp_path)
    object_id = store.write(ObjectType.BLOB, b"data")
    shard = tmp_path / ".pes" / "objects" / object_id.hex()[:2]
    assert shard.is_dir()
    assert [p.name for p in shard.iterdir()] == [object_id.hex()[2:]]