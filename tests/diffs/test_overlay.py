"""Tests for attaching attribution to diff lines."""

from authorship import notes
from conftest import make_log, make_prompt
from diffs.hunks import DiffHunk, get_diff_with_line_numbers
from diffs.models import Attribution, AttributionKind, DiffLineKey, LineSide
from diffs.overlay import overlay_diff_attributions


def _two_commits(git_repo):
    git_repo.write("a.py", ["one", "two", "three"])
    c1 = git_repo.commit("c1")
    git_repo.add_log(
        c1,
        make_log(c1, {"a.py": {"p1": [1, 2], "human:Ann": [3]}}, [make_prompt("p1", tool="cursor")]),
    )

    git_repo.write("a.py", ["one", "TWO", "three", "four"])
    c2 = git_repo.commit("c2")
    git_repo.add_log(
        c2,
        make_log(c2, {"a.py": {"human:Bob": [2], "p2": [4]}}, [make_prompt("p2", tool="claude")]),
    )
    return c1, c2


def test_attribution_format():
    assert Attribution.ai("cursor").format() == "🤖cursor"
    assert Attribution.human("Ann").format() == "👤Ann"
    assert Attribution.no_data().format() == "[no-data]"


def test_overlay_both_sides(git_repo):
    c1, c2 = _two_commits(git_repo)
    hunks = get_diff_with_line_numbers(git_repo.repo, c1, c2)

    result = overlay_diff_attributions(git_repo.repo, c1, c2, hunks)

    assert result[DiffLineKey("a.py", 2, LineSide.OLD)] == Attribution.ai("cursor")
    assert result[DiffLineKey("a.py", 2, LineSide.NEW)] == Attribution.human("Bob")
    assert result[DiffLineKey("a.py", 4, LineSide.NEW)] == Attribution.ai("claude")


def test_side_without_log_is_no_data(git_repo):
    git_repo.write("a.py", ["x"])
    c1 = git_repo.commit()
    git_repo.write("a.py", ["y"])
    c2 = git_repo.commit()

    result = overlay_diff_attributions(git_repo.repo, c1, c2, get_diff_with_line_numbers(git_repo.repo, c1, c2))

    assert {a.kind for a in result.values()} == {AttributionKind.NO_DATA}
    assert len(result) == 2


def test_undecodable_log_is_no_data(git_repo):
    git_repo.write("a.py", ["x"])
    c1 = git_repo.commit()
    git_repo.write("a.py", ["y"])
    c2 = git_repo.commit()
    git_repo.add_note(c2, "garbage")

    result = overlay_diff_attributions(git_repo.repo, c1, c2, get_diff_with_line_numbers(git_repo.repo, c1, c2))

    assert result[DiffLineKey("a.py", 1, LineSide.NEW)] == Attribution.no_data()


def test_each_log_loaded_at_most_once(git_repo, monkeypatch):
    c1, c2 = _two_commits(git_repo)
    calls = []
    original = notes.get_authorship_log

    def counting(repo, sha, notes_ref=None):
        calls.append(sha)
        return original(repo, sha, notes_ref)

    monkeypatch.setattr("diffs.overlay.get_authorship_log", counting)
    hunks = [
        DiffHunk("a.py", 1, 1, 1, 1, deleted_lines=[1], added_lines=[1]),
        DiffHunk("a.py", 2, 1, 2, 1, deleted_lines=[2], added_lines=[2]),
        DiffHunk("a.py", 3, 0, 4, 1, added_lines=[4]),
    ]

    overlay_diff_attributions(git_repo.repo, c1, c2, hunks)

    assert sorted(calls) == sorted([c1, c2])


def test_old_log_not_loaded_without_deletions(git_repo, monkeypatch):
    c1, c2 = _two_commits(git_repo)
    calls = []
    original = notes.get_authorship_log

    def counting(repo, sha, notes_ref=None):
        calls.append(sha)
        return original(repo, sha, notes_ref)

    monkeypatch.setattr("diffs.overlay.get_authorship_log", counting)

    overlay_diff_attributions(git_repo.repo, c1, c2, [DiffHunk("a.py", 3, 0, 4, 1, added_lines=[4])])

    assert calls == [c2]


def test_foreign_prompt_resolved_from_other_commit(git_repo):
    git_repo.write("a.py", ["x"])
    c1 = git_repo.commit()
    git_repo.add_log(c1, make_log(c1, {"a.py": {"p1": [1]}}, [make_prompt("p1", tool="codex")]))
    git_repo.write("a.py", ["x", "y"])
    c2 = git_repo.commit()
    # c2 credits p1 without recording the prompt itself
    git_repo.add_log(c2, make_log(c2, {"a.py": {"p1": [2]}}))

    result = overlay_diff_attributions(git_repo.repo, c1, c2, get_diff_with_line_numbers(git_repo.repo, c1, c2))

    assert result[DiffLineKey("a.py", 2, LineSide.NEW)] == Attribution.ai("codex")


def test_non_ascii_path(git_repo):
    git_repo.write("README.md", ["readme"])
    c1 = git_repo.commit()
    git_repo.write("café.py", ["a"])
    c2 = git_repo.commit()
    git_repo.add_log(c2, make_log(c2, {"café.py": {"p1": [1]}}, [make_prompt("p1", tool="claude")]))

    result = overlay_diff_attributions(git_repo.repo, c1, c2, get_diff_with_line_numbers(git_repo.repo, c1, c2))

    assert result == {DiffLineKey("café.py", 1, LineSide.NEW): Attribution.ai("claude")}
