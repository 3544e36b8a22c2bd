from __future__ import annotations

import re
from datetime import date as _date
from pathlib import Path

from releaser.output.reporter import Reporter
from releaser.platform.files import atomic_write_text
from releaser.release.change_set import ChangeSet
from releaser.release.semver import Version

_HEADING_RE = re.compile(r"^### v(\d+(?:\.[a-zA-Z0-9]+)+) / \d\d\d\d-\d\d-\d\d", re.MULTILINE)
_ENTRY_START = "### "


def current_version_from_content(content: str | None) -> Version | None:
    """Version of the first entry heading, or None."""
    if not content:
        return None
    m = _HEADING_RE.search(content)
    if m is None:
        return None
    return Version.parse(m.group(1))


class ChangelogFile:
    """A Markdown changelog whose entries start with ``### v<version> / <date>``."""

    def __init__(self, path: Path, reporter: Reporter) -> None:
        self.path = path
        self._reporter = reporter

    def exists(self) -> bool:
        return self.path.is_file()

    def content(self) -> str | None:
        if not self.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def current_version(self) -> Version | None:
        return current_version_from_content(self.content())

    def read_and_verify_latest_entry(self, version: Version | str) -> str:
        """Return the text of the first entry, checking it is for ``version``.

        A mismatch or a changelog with no entries is reported as an error.
        """
        self._reporter.log(f"Verifying {self.path} changelog content...")
        today = _date.today().isoformat()
        lines = (self.content() or "").splitlines()
        start = next((i for i, line in enumerate(lines) if line.startswith(_ENTRY_START)), None)
        if start is None:
            self._reporter.error(
                f"The changelog {self.path} doesn't have any entries.",
                "The first changelog entry should start with:",
                f"### v{version} / {today}",
            )
            return ""
        if not lines[start].startswith(f"### v{version} / "):
            self._reporter.error(
                f"The first changelog entry in {self.path} isn't for version {version}.",
                "It should start with:",
                f"### v{version} / {today}",
                "But it actually starts with:",
                lines[start],
            )
            return ""
        end = next(
            (i for i in range(start + 1, len(lines)) if lines[i].startswith(_ENTRY_START)),
            len(lines),
        )
        self._reporter.log("Changelog OK")
        return "\n".join(lines[start:end]).strip()

    def append(self, change_set: ChangeSet, version: Version | str, *, date: str | None = None) -> None:
        """Insert a new entry above the existing ones."""
        date = date or _date.today().isoformat()
        entry = [f"### v{version} / {date}", ""]
        for group in change_set.groups:
            entry.extend(f"* {change}" for change in group.prefixed_changes)
        entry.append("")

        lines = (self.content() or "").splitlines()
        start = next((i for i, line in enumerate(lines) if line.startswith(_ENTRY_START)), None)
        if start is None:
            while lines and not lines[-1].strip():
                lines.pop()
            if lines:
                lines.append("")
            lines.extend(entry)
        else:
            lines[start:start] = entry
        atomic_write_text(self.path, "\n".join(lines).rstrip("\n") + "\n", encoding="utf-8")
