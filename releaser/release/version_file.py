from __future__ import annotations

import ast
import re
from pathlib import Path

from releaser.platform.files import atomic_write_text
from releaser.release.semver import Version


def _assignment_re(constant: str) -> re.Pattern[str]:
    return re.compile(
        rf"^(?P<lhs>{re.escape(constant)}\s*(?::\s*str\s*)?=\s*)(?P<q>[\"'])(?P<version>\d+(?:\.[a-zA-Z0-9]+)+)(?P=q)",
        re.MULTILINE,
    )


def current_version_from_content(content: str | None, constant: str = "__version__") -> Version | None:
    if not content:
        return None
    m = _assignment_re(constant).search(content)
    if m is None:
        return None
    return Version.parse(m.group("version"))


class VersionFile:
    """A Python module declaring the package version as a string constant."""

    def __init__(self, path: Path, constant: str = "__version__") -> None:
        self.path = path
        self.constant = constant

    def exists(self) -> bool:
        return self.path.is_file()

    def content(self) -> str | None:
        if not self.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def current_version(self) -> Version | None:
        return current_version_from_content(self.content(), self.constant)

    def eval_version(self) -> str | None:
        """Value of the module-level constant, read from the syntax tree.

        Returns None if the file is missing, does not parse, or never assigns a
        string literal to the constant.
        """
        content = self.content()
        if content is None:
            return None
        try:
            tree = ast.parse(content, filename=str(self.path))
        except SyntaxError:
            return None
        value: str | None = None
        for node in tree.body:
            if isinstance(node, ast.Assign):
                targets = node.targets
            elif isinstance(node, ast.AnnAssign) and node.value is not None:
                targets = [node.target]
            else:
                continue
            if any(isinstance(t, ast.Name) and t.id == self.constant for t in targets):
                if isinstance(node.value, ast.Constant) and isinstance(node.value.value, str):
                    value = node.value.value
        return value

    def update_version(self, version: Version | str) -> bool:
        """Rewrite the constant in place. Returns False if no assignment was found."""
        content = self.content()
        if content is None:
            return False
        pattern = _assignment_re(self.constant)
        if pattern.search(content) is None:
            return False
        updated = pattern.sub(
            lambda m: f"{m.group('lhs')}{m.group('q')}{version}{m.group('q')}", content, count=1
        )
        atomic_write_text(self.path, updated, encoding="utf-8")
        return True
