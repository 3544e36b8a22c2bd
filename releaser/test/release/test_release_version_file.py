from __future__ import annotations

from pathlib import Path

import pytest

from releaser.release.semver import Version
from releaser.release.version_file import VersionFile, current_version_from_content


@pytest.mark.parametrize(
    "content",
    [
        '__version__ = "1.2.3"\n',
        "__version__ = '1.2.3'\n",
        '__version__: str = "1.2.3"\n',
        '"""Docs."""\n\nimport os\n\n__version__ = "1.2.3"\n',
    ],
)
def test_current_version_forms(content: str) -> None:
    assert current_version_from_content(content) == Version.of(1, 2, 3)


def test_current_version_missing() -> None:
    assert current_version_from_content("VERSION = '1.0.0'\n") is None
    assert current_version_from_content(None) is None


def test_custom_constant(tmp_path: Path) -> None:
    path = tmp_path / "version.py"
    path.write_text('VERSION = "2.0.0"\n', encoding="utf-8")
    vf = VersionFile(path, "VERSION")

    assert vf.current_version() == Version.of(2, 0, 0)
    assert vf.eval_version() == "2.0.0"


def test_update_version_preserves_quotes(tmp_path: Path) -> None:
    path = tmp_path / "version.py"
    path.write_text("# generated\n__version__ = '1.2.3'\nOTHER = '1.2.3'\n", encoding="utf-8")
    vf = VersionFile(path)

    assert vf.update_version(Version.of(1, 3, 0)) is True
    assert path.read_text(encoding="utf-8") == "# generated\n__version__ = '1.3.0'\nOTHER = '1.2.3'\n"
    assert vf.eval_version() == "1.3.0"


def test_update_version_without_assignment(tmp_path: Path) -> None:
    path = tmp_path / "version.py"
    path.write_text("VERSION = '1.0.0'\n", encoding="utf-8")

    assert VersionFile(path).update_version("1.1.0") is False
    assert VersionFile(tmp_path / "missing.py").update_version("1.1.0") is False


def test_eval_version_last_assignment_wins(tmp_path: Path) -> None:
    path = tmp_path / "version.py"
    path.write_text('__version__ = "1.0.0"\n__version__ = "1.0.1"\n', encoding="utf-8")

    assert VersionFile(path).eval_version() == "1.0.1"


def test_eval_version_invalid(tmp_path: Path) -> None:
    path = tmp_path / "version.py"
    path.write_text("__version__ = (\n", encoding="utf-8")
    assert VersionFile(path).eval_version() is None

    path.write_text("__version__ = compute()\n", encoding="utf-8")
    assert VersionFile(path).eval_version() is None
