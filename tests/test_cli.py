import pytest

from pesvcs.cli import init_repository, main
from pesvcs.commit import head_read


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_no_arguments_prints_usage(workdir, capsys):
    assert main([]) == 1
    assert "Usage: pes <command> [args]" in capsys.readouterr().err


def test_unknown_command(workdir, capsys):
    assert main(["frobnicate"]) == 1
    assert "Unknown command: frobnicate" in capsys.readouterr().err


def test_init_repository_layout(tmp_path):
    pes_dir = init_repository(tmp_path)
    assert pes_dir == tmp_path / ".pes"
    assert (tmp_path / ".pes" / "objects").is_dir()
    assert (tmp_path / ".pes" / "refs" / "heads").is_dir()
    assert (tmp_path / ".pes" / "HEAD").read_text() == "ref: refs/heads/main\n"


def test_init_keeps_existing_head(tmp_path):
    init_repository(tmp_path)
    (tmp_path / ".pes" / "HEAD").write_text("ref: refs/heads/dev\n")
    init_repository(tmp_path)
    assert (tmp_path / ".pes" / "HEAD").read_text() == "ref: refs/heads/dev\n"


def test_init_command_message(workdir, capsys):
    assert main(["init"]) == 0
    assert capsys.readouterr().out == "Initialized empty PES repository in .pes/\n"


def test_add_without_files_prints_usage(workdir, capsys):
    main(["init"])
    capsys.readouterr()
    assert main(["add"]) == 0
    assert "Usage: pes add <file>..." in capsys.readouterr().err


def test_add_missing_file_reports_error(workdir, capsys):
    main(["init"])
    capsys.readouterr()
    main(["add", "missing.txt"])
    assert "error: failed to add 'missing.txt'" in capsys.readouterr().err


def test_commit_requires_message(workdir, capsys):
    main(["init"])
    capsys.readouterr()
    main(["commit", "oops"])
    assert "commit requires a message" in capsys.readouterr().err


def test_log_before_commits(workdir, capsys):
    main(["init"])
    capsys.readouterr()
    main(["log"])
    assert "No commits yet." in capsys.readouterr().err


def test_status_lists_untracked_then_staged(workdir, capsys):
    main(["init"])
    (workdir / "a.txt").write_text("hello\n")
    capsys.readouterr()
    main(["status"])
    out = capsys.readouterr().out
    assert "  untracked:  a.txt\n" in out

    main(["add", "a.txt"])
    main(["status"])
    out = capsys.readouterr().out
    assert "  staged:     a.txt\n" in out
    assert "untracked:  a.txt" not in out


def test_full_workflow(workdir, capsys, monkeypatch):
    monkeypatch.setenv("PES_AUTHOR", "Frank <frank@example.com>")
    main(["init"])
    (workdir / "a.txt").write_text("hello\n")
    main(["add", "a.txt"])
    capsys.readouterr()

    assert main(["commit", "-m", "first commit"]) == 0
    out = capsys.readouterr().out
    commit_id = head_read(workdir)
    assert out == f"Committed: {commit_id.hex()[:12]}... first commit\n"

    main(["log"])
    log = capsys.readouterr().out
    assert log.startswith(f"commit {commit_id.hex()}\nAuthor: Frank <frank@example.com>\nDate:   ")
    assert "\n\n    first commit\n\n" in log