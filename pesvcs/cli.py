"""Command-line entry point for the pes version control tool."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pesvcs.commit import CommitError, create_commit, walk_commits
from pesvcs.index import Index, IndexError_, format_status
from pesvcs.objects import HEAD_FILE, OBJECTS_DIR, PES_DIR, REFS_DIR

USAGE = (
    "Usage: pes <command> [args]\n"
    "\n"
    "Commands:\n"
    "  init            Create a new PES repository\n"
    "  add <file>...   Stage files for commit\n"
    "  status          Show working directory status\n"
    "  commit -m <msg> Create a commit from staged files\n"
    "  log             Show commit history\n"
)


def init_repository(root: str | os.PathLike[str] = ".") -> Path:
    """Create the repository layout under ``root`` and return the .pes path."""
    root = Path(root)
    pes_dir = root / PES_DIR
    pes_dir.mkdir(mode=0o755, exist_ok=True)
    for sub in (OBJECTS_DIR, f"{PES_DIR}/refs", REFS_DIR):
        (root / sub).mkdir(mode=0o755, exist_ok=True)
    head = root / HEAD_FILE
    if not head.exists():
        head.write_text("ref: refs/heads/main\n", encoding="ascii")
    return pes_dir


def _err(text: str) -> None:
    print(text, file=sys.stderr)


def _cmd_init() -> None:
    try:
        init_repository(".")
    except OSError:
        _err(f"error: failed to create {PES_DIR}")
        return
    print(f"Initialized empty PES repository in {PES_DIR}/")


def _cmd_add(paths: list[str]) -> None:
    if not paths:
        _err("Usage: pes add <file>...")
        return
    try:
        index = Index.load(".")
    except IndexError_:
        _err("error: failed to load index")
        return
    for path in paths:
        try:
            index.add(path)
        except IndexError_:
            _err(f"error: failed to add '{path}'")


def _cmd_status() -> None:
    try:
        index = Index.load(".")
    except IndexError_:
        _err("error: failed to load index")
        return
    print(format_status(index.status()), end="")


def _cmd_commit(args: list[str]) -> None:
    if len(args) < 2 or args[0] != "-m":
        _err('error: commit requires a message (-m "message")')
        return
    message = args[1]
    try:
        commit_id = create_commit(".", message)
    except CommitError:
        _err("error: commit failed")
        return
    print(f"Committed: {commit_id.hex()[:12]}... {message}")


def _cmd_log() -> None:
    try:
        for commit_id, commit in walk_commits("."):
            print(f"commit {commit_id.hex()}")
            print(f"Author: {commit.author}")
            print(f"Date:   {commit.timestamp}")
            print(f"\n    {commit.message}\n")
    except CommitError:
        _err("No commits yet.")


def main(argv: list[str] | None = None) -> int:
    """Run one pes command; returns the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write(USAGE)
        return 1

    command, rest = args[0], args[1:]
    if command == "init":
        _cmd_init()
    elif command == "add":
        _cmd_add(rest)
    elif command == "status":
        _cmd_status()
    elif command == "commit":
        _cmd_commit(rest)
    elif command == "log":
        _cmd_log()
    else:
        _err(f"Unknown command: {command}")
        _err("Run 'pes' with no arguments for usage.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())