"""Tests for diff argument handling, endpoint resolution and rendering."""

import io

import pytest
from rich.console import Console

from conftest import make_log, make_prompt
from diffs.cli import SingleCommit, TwoCommit, execute_diff, parse_diff_args, resolve_diff_endpoints
from diffs.models import Attribution, DiffLineKey, LineSide
from diffs.render import format_plain_lines, print_annotated_diff
from gitops.errors import InvalidRangeError, UnresolvedCommitError


class TestParseDiffArgs:
    def test_single_commit(self):
        assert parse_diff_args("HEAD~1") == SingleCommit("HEAD~1")

    def test_two_commits(self):
        assert parse_diff_args("main..feature") == TwoCommit("main", "feature")

    @pytest.mark.parametrize("arg", ["main..", "..feature"])
    def test_missing_side(self, arg):
        with pytest.raises(InvalidRangeError):
            parse_diff_args(arg)


class TestResolveEndpoints:
    def test_root_commit_uses_empty_tree(self, git_repo):
        git_repo.write("a.py", ["x"])
        root = git_repo.commit()

        from_rev, to_rev = resolve_diff_endpoints(git_repo.repo, SingleCommit(root))

        assert to_rev == root
        assert from_rev == git_repo.repo.empty_tree()
        assert "+x" in git_repo.repo.diff(from_rev, to_rev)

    def test_single_commit_uses_parent(self, git_repo):
        git_repo.write("a.py", ["x"])
        c1 = git_repo.commit()
        git_repo.write("a.py", ["y"])
        c2 = git_repo.commit()

        assert resolve_diff_endpoints(git_repo.repo, SingleCommit("HEAD")) == (c1, c2)

    def test_unknown_revision(self, git_repo):
        git_repo.write("a.py", ["x"])
        git_repo.commit()

        with pytest.raises(UnresolvedCommitError):
            resolve_diff_endpoints(git_repo.repo, TwoCommit("HEAD", "no-such-branch"))


DIFF = """diff --git a/a.py b/a.py
--- a/a.py
+++ b/a.py
@@ -1,2 +1,2 @@
 same
-old
+new
"""


class TestRender:
    def test_plain_annotations(self):
        attributions = {
            DiffLineKey("a.py", 2, LineSide.OLD): Attribution.human("Ann"),
            DiffLineKey("a.py", 2, LineSide.NEW): Attribution.ai("claude"),
        }

        lines = format_plain_lines(DIFF, attributions)

        assert lines[4] == " same"
        assert lines[5] == "-old  👤Ann"
        assert lines[6] == "+new  🤖claude"

    def test_unannotated_lines_unchanged(self):
        assert format_plain_lines(DIFF, {})[5] == "-old"

    def test_no_styles_when_not_a_terminal(self):
        buffer = io.StringIO()
        console = Console(file=buffer, force_terminal=False)

        print_annotated_diff(DIFF, {DiffLineKey("a.py", 2, LineSide.NEW): Attribution.no_data()}, console)

        output = buffer.getvalue()
        assert "\x1b[" not in output
        assert "+new  [no-data]" in output

    def test_styles_on_a_terminal(self):
        buffer = io.StringIO()
        console = Console(file=buffer, force_terminal=True, color_system="standard", width=200)

        print_annotated_diff(DIFF, {}, console)

        assert "\x1b[" in buffer.getvalue()


def test_execute_diff_prints_annotated_root_commit(git_repo, capsys, monkeypatch):
    git_repo.write("a.py", ["x", "y"])
    root = git_repo.commit()
    git_repo.add_log(root, make_log(root, {"a.py": {"p1": [1], "human:Ann": [2]}}, [make_prompt("p1", tool="cursor")]))
    monkeypatch.setattr("diffs.render.default_console", Console(force_terminal=False))

    execute_diff(git_repo.repo, SingleCommit(root))

    out = capsys.readouterr().out
    assert "+x  🤖cursor" in out
    assert "+y  👤Ann" in out
