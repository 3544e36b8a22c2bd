from __future__ import annotations

import os
from pathlib import Path

import pytest

from releaser.platform.files import atomic_write_text, copy_tree, remove_tree


def test_atomic_write_text_creates_parent_dirs(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "CHANGELOG.md"
    atomic_write_text(path, "# Changelog\n")

    assert path.read_text(encoding="utf-8") == "# Changelog\n"


def test_atomic_write_text_replaces_existing_content(tmp_path: Path) -> None:
    path = tmp_path / "version.py"
    path.write_text("old", encoding="utf-8")

    atomic_write_text(path, "new", encoding="utf-8")

    assert path.read_text(encoding="utf-8") == "new"


def test_atomic_write_text_cleans_temp_file_on_replace_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    path = tmp_path / "version.py"

    def fail_replace(_src: Path, _dst: Path) -> None:
        raise OSError("replace failed")

    monkeypatch.setattr(os, "replace", fail_replace)

    with pytest.raises(OSError, match="replace failed"):
        atomic_write_text(path, "payload", encoding="utf-8")

    assert list(tmp_path.iterdir()) == []


def test_remove_tree_handles_dirs_files_and_missing(tmp_path: Path) -> None:
    tree = tmp_path / "site"
    (tree / "sub").mkdir(parents=True)
    (tree / "sub" / "index.html").write_text("x", encoding="utf-8")
    single = tmp_path / "file.txt"
    single.write_text("x", encoding="utf-8")

    remove_tree(tree)
    remove_tree(single)
    remove_tree(tmp_path / "missing")

    assert not tree.exists()
    assert not single.exists()


def test_copy_tree(tmp_path: Path) -> None:
    src = tmp_path / "docs"
    (src / "api").mkdir(parents=True)
    (src / "api" / "index.html").write_text("<html/>", encoding="utf-8")

    copy_tree(src, tmp_path / "out" / "docs")

    assert (tmp_path / "out" / "docs" / "api" / "index.html").read_text(encoding="utf-8") == "<html/>"
