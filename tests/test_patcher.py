"""Tests for applying fixes to a working copy."""

from __future__ import annotations

from pathlib import Path

from seoagent.models import Fix, FixAction
from seoagent.patcher import PatchApplier


def _modify(path: str, search: str, replace: str) -> Fix:
    return Fix(action=FixAction.MODIFY, path=path, description="edit", search=search, replace=replace)


def test_modify_replaces_search_text(tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("<head>\n</head>\n", encoding="utf-8")

    report = PatchApplier().apply(tmp_path, [_modify("index.html", "<head>\n", "<head>\n  <title>Hi</title>\n")])

    assert report.applied_count == 1
    assert (tmp_path / "index.html").read_text(encoding="utf-8") == "<head>\n  <title>Hi</title>\n</head>\n"


def test_mismatch_leaves_file_byte_identical(tmp_path: Path) -> None:
    original = b"<head>\r\n  <title>Old</title>\r\n</head>\r\n"
    (tmp_path / "index.html").write_bytes(original)

    report = PatchApplier().apply(tmp_path, [_modify("index.html", "<title>Gone</title>", "<title>New</title>")])

    assert report.applied == []
    assert len(report.skipped) == 1
    assert "Search text not found" in report.skipped[0][1]
    assert (tmp_path / "index.html").read_bytes() == original


def test_line_endings_are_preserved(tmp_path: Path) -> None:
    (tmp_path / "index.html").write_bytes(b"<title>Old</title>\r\n<p>x</p>\r\n")

    PatchApplier().apply(tmp_path, [_modify("index.html", "<title>Old</title>", "<title>New</title>")])

    assert (tmp_path / "index.html").read_bytes() == b"<title>New</title>\r\n<p>x</p>\r\n"


def test_only_first_occurrence_is_replaced(tmp_path: Path) -> None:
    (tmp_path / "page.html").write_text("<p>a</p><p>a</p>", encoding="utf-8")

    report = PatchApplier().apply(tmp_path, [_modify("page.html", "<p>a</p>", "<p>b</p>")])

    assert report.applied_count == 1
    assert (tmp_path / "page.html").read_text(encoding="utf-8") == "<p>b</p><p>a</p>"


def test_create_writes_text_and_bytes(tmp_path: Path) -> None:
    fixes = [
        Fix(action=FixAction.CREATE, path="public/robots.txt", description="robots", content="User-agent: *\n"),
        Fix(action=FixAction.CREATE, path="public/images/cover.webp", description="image", content=b"RIFF\x00"),
    ]

    report = PatchApplier().apply(tmp_path, fixes)

    assert report.applied_count == 2
    assert (tmp_path / "public/robots.txt").read_text(encoding="utf-8") == "User-agent: *\n"
    assert (tmp_path / "public/images/cover.webp").read_bytes() == b"RIFF\x00"


def test_delete_removes_file(tmp_path: Path) -> None:
    (tmp_path / "old.html").write_text("x", encoding="utf-8")

    report = PatchApplier().apply(tmp_path, [Fix(action=FixAction.DELETE, path="old.html", description="remove")])

    assert report.applied_count == 1
    assert not (tmp_path / "old.html").exists()


def test_failures_do_not_block_other_fixes(tmp_path: Path) -> None:
    (tmp_path / "a.html").write_text("<title>A</title>", encoding="utf-8")
    fixes = [
        _modify("missing.html", "x", "y"),
        Fix(action=FixAction.CREATE, path="../outside.txt", description="escape", content="nope"),
        _modify("a.html", "<title>A</title>", "<title>B</title>"),
    ]

    report = PatchApplier().apply(tmp_path, fixes)

    assert [fix.path for fix in report.applied] == ["a.html"]
    assert [fix.path for fix, _reason in report.skipped] == ["missing.html", "../outside.txt"]
    assert not (tmp_path.parent / "outside.txt").exists()
