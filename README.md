# pesvcs

A small version control system that keeps every file snapshot, directory
listing and commit as an object named by its SHA-256 hash. Repository data
lives in a `.pes/` directory next to your files. There are no dependencies
beyond the Python standard library.

## Installing

```
pip install .
```

This installs the `pes` command.

## Using the command

```
pes init                     # create .pes/ in the current directory
pes add README.md src/app.c  # stage files for the next commit
pes status                   # show staged, unstaged and untracked files
pes commit -m "First commit" # record the staged snapshot
pes log                      # list commits from HEAD back to the first one
```

`pes` with no arguments prints the list of commands and exits with status 1;
an unknown command does the same. Every command works on the current
directory.

- `pes add` stores each file as a blob and records it in the index; a file
  that cannot be read is reported and the rest are still added.
- `pes status` lists every staged path, then paths whose size or modification
  time differ from the index (`modified`) or that no longer exist
  (`deleted`), then untracked regular files in the top-level directory.
  Names containing `.o`, and the names `pes` and `.pes`, are not reported as
  untracked.
- `pes log` prints each commit's hash, author, Unix timestamp and message,
  newest first, or `No commits yet.` on an empty repository.

The author recorded in each commit comes from the `PES_AUTHOR` environment
variable, and is `PES User <pes@localhost>` when it is unset or empty:

```
export PES_AUTHOR="Ada Lovelace <ada@example.com>"
```

## How data is stored

- Objects are written to `.pes/objects/XX/YYYY...`, where `XX` is the first
  two hex digits of the hash. Each file holds a header `"<type> <size>\0"`
  followed by the data; the hash covers both. Writing the same content twice
  gives the same id and stores it once. Reading an object checks the hash
  again and raises `CorruptObjectError` if the content was altered.
- The staging area is the text file `.pes/index`, one line per file:
  `<octal mode> <hash> <mtime> <size> <path>`, sorted by path.
- A tree lists entries as `"<octal mode> <name>\0"` followed by the 32 raw
  hash bytes, sorted by name. Nested paths become subtrees with mode
  `40000`.
- A commit is text: `tree`, an optional `parent`, `author` and `committer`
  lines, a blank line, then the message.
- `.pes/HEAD` holds `ref: refs/heads/main` or a bare commit hash. Object,
  index and ref updates go through a temporary file and a rename.

## Using it from Python

```python
from pathlib import Path

from pesvcs.objects import ObjectStore, ObjectType
from pesvcs.index import Index, format_status
from pesvcs.commit import create_commit, walk_commits
from pesvcs.cli import init_repository

init_repository(".")
store = ObjectStore(".")
blob_id = store.write(ObjectType.BLOB, b"Hello, PES-VCS!\n")
object_type, data = store.read(blob_id)

Path("hello.txt").write_text("hello\n")
index = Index.load(".")
index.add("hello.txt")
print(format_status(index.status()), end="")

commit_id = create_commit(".", "Add hello")
for object_id, commit in walk_commits("."):
    print(object_id.hex(), commit.message)
```

Other pieces available: `Index.remove` and `Index.find`;
`pesvcs.tree` with `parse_tree`, `serialize_tree`, `tree_from_index` and
`get_file_mode`; `pesvcs.commit` with `parse_commit`, `serialize_commit`,
`head_read` and `head_update`. Errors are raised as `ObjectStoreError`,
`IndexError_`, `TreeError` and `CommitError`.

## What it does not do

There is no checkout, branch creation, diff, merge or remote support. The
command line has no way to unstage a file (`Index.remove` does this from
Python). `status` compares the working directory with the index only, not
with the last commit, and detects changes by size and modification time
rather than by content.

## Running the tests

```
pip install ".[test]"
pytest
```