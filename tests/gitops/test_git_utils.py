"""Tests for the git command wrapper and the object reader."""

import pytest

from conftest import NOTES_REF
from gitops.errors import BackingStoreError
from gitops.git_utils import Repository, parse_blame_porcelain, unquote_c_path
from gitops.object_reader import ObjectReader

SHA_A = "a" * 40
SHA_B = "b" * 40

PORCELAIN = f"""{SHA_A} 1 1 2
author Ann
filename src/old.py
\tfirst
{SHA_A} 2 2
author Ann
filename src/old.py
\tsecond
{SHA_B} 1 3 1
author Bob
filename src/new.py
\tthird
"""


def test_parse_blame_porcelain():
    lines = parse_blame_porcelain(PORCELAIN)

    assert [(b.final_line, b.origin_commit, b.origin_line, b.origin_path) for b in lines] == [
        (1, SHA_A, 1, "src/old.py"),
        (2, SHA_A, 2, "src/old.py"),
        (3, SHA_B, 1, "src/new.py"),
    ]


def test_parse_blame_porcelain_quoted_filename():
    output = f"{SHA_A} 1 1 1\nfilename \"tab\\there.py\"\n\tx\n"

    assert parse_blame_porcelain(output)[0].origin_path == "tab\there.py"


class TestUnquoteCPath:
    def test_plain_text_unchanged(self):
        assert unquote_c_path("src/a.py") == "src/a.py"
        assert unquote_c_path("\"") == "\""

    def test_octal_bytes_decode_as_utf8(self):
        assert unquote_c_path(r'"b/caf\303\251.py"') == "b/café.py"

    def test_named_escapes(self):
        assert unquote_c_path(r'"a\tb\nc\"d\\e"') == "a\tb\nc\"d\\e"


class TestRepository:
    def test_discover_outside_repo(self, tmp_path):
        with pytest.raises(BackingStoreError):
            Repository.discover(tmp_path)

    def test_read_file_absent_is_none(self, git_repo):
        git_repo.write("a.py", ["x"])
        c1 = git_repo.commit()

        assert git_repo.repo.read_file(c1, "a.py") == "x\n"
        assert git_repo.repo.read_file(c1, "missing.py") is None

    def test_read_file_bad_revision_raises(self, git_repo):
        git_repo.write("a.py", ["x"])
        git_repo.commit()

        with pytest.raises(BackingStoreError):
            git_repo.repo.read_file("0" * 40, "a.py")

    def test_read_file_keeps_carriage_returns(self, git_repo):
        (git_repo.path / "a.py").write_bytes(b"one\rtwo\r\n")
        c1 = git_repo.commit()

        assert git_repo.repo.read_file(c1, "a.py") == "one\rtwo\r\n"

    def test_non_ascii_paths(self, git_repo):
        git_repo.write("café.py", ["x"])
        c1 = git_repo.commit()

        assert git_repo.repo.diff_changed_files(git_repo.repo.empty_tree(), c1) == ["café.py"]
        assert git_repo.repo.blame(c1, "café.py")[0].origin_path == "café.py"

    def test_blame_follows_moved_lines(self, git_repo):
        git_repo.write("a.py", ["one", "two"])
        c1 = git_repo.commit()
        git_repo.write("a.py", ["zero", "one", "two"])
        c2 = git_repo.commit()

        blamed = git_repo.repo.blame(c2, "a.py")

        assert [(b.origin_commit, b.origin_line) for b in blamed] == [(c2, 1), (c1, 1), (c1, 2)]

    def test_notes_listing(self, git_repo):
        git_repo.write("a.py", ["x"])
        c1 = git_repo.commit()

        assert git_repo.repo.notes_list(NOTES_REF) == {}
        assert git_repo.repo.show_note(NOTES_REF, c1) is None

        git_repo.add_note(c1, "hello")

        assert c1 in git_repo.repo.notes_list(NOTES_REF)
        assert git_repo.repo.show_note(NOTES_REF, c1).strip() == "hello"

    def test_failed_command_raises(self, git_repo):
        with pytest.raises(BackingStoreError):
            git_repo.repo.run_git("rev-parse", "--verify", "nothing-here")


class TestObjectReader:
    def test_reads_blobs_and_reports_missing(self, git_repo):
        git_repo.write("a.py", ["content"])
        git_repo.commit()
        blob_id = git_repo.repo.run_git("rev-parse", "HEAD:a.py").stdout.strip()

        with ObjectReader(git_repo.path) as reader:
            assert reader.read_blob(blob_id) == b"content\n"
            assert reader.read_blob("0" * 40) is None
            # a tree is not a blob
            assert reader.read_blob(git_repo.repo.run_git("rev-parse", "HEAD^{tree}").stdout.strip()) is None

    def test_closed_reader_raises(self, git_repo):
        reader = ObjectReader(git_repo.path)

        with pytest.raises(BackingStoreError):
            reader.read_object("HEAD")
