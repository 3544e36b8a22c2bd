"""Conventional-commit analysis.

A ChangeSet is fed commit messages oldest first, then sealed with
``finish()``. Sealing computes the overall severity and the ordered change
groups used to write changelog entries:

    cs = ChangeSet(settings)
    cs.add_message("a1b2c3", "feat: add widget (#42)")
    cs.add_message("d4e5f6", "fix!: drop legacy flag")
    cs.finish()
    cs.semver                      # Semver.MAJOR
    cs.groups[0].prefixed_changes  # ["BREAKING CHANGE: Drop legacy flag"]

Besides the configured tags, commit bodies may carry directives:

- ``BREAKING CHANGE: text`` records a breaking change.
- ``semver-change: minor`` pins the severity of that commit.
- ``revert-commit: <sha-prefix>`` drops an earlier commit from the set.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from releaser.release.semver import Semver, Version

if TYPE_CHECKING:
    from releaser.release.settings import RepoSettings

_LINE_RE = re.compile(r"^([\w-]+|(?i:BREAKING CHANGE))(?:\([^()]+\))?(!?):\s+(.*)$")
_BREAKING_RE = re.compile(r"^BREAKING[\s_-]CHANGE$", re.IGNORECASE)
_SEMVER_CHANGE_RE = re.compile(r"^semver-change$", re.IGNORECASE)
_REVERT_COMMIT_RE = re.compile(r"^revert-commit$", re.IGNORECASE)
_LOWER_START_RE = re.compile(r"^([a-z])(.*)$", re.DOTALL)
_PR_NUMBER_RE = re.compile(r"\s*\(#\d+\)$")

_BREAKING_KEY = "\0breaking"


def normalize_description(description: str, *, delete_pr_number: bool = False) -> str:
    m = _LOWER_START_RE.match(description)
    if m:
        description = m.group(1).upper() + m.group(2)
    if delete_pr_number:
        description = _PR_NUMBER_RE.sub("", description)
    return description


@dataclass(slots=True)
class Group:
    """Changes rendered under one header (or with no header)."""

    header: str | None
    changes: list[str] = field(default_factory=list)

    @property
    def prefixed_changes(self) -> list[str]:
        if self.header is None:
            return list(self.changes)
        return [f"{self.header}: {change}" for change in self.changes]

    @property
    def empty(self) -> bool:
        return not self.changes

    def __str__(self) -> str:
        return "\n".join(self.prefixed_changes)


@dataclass(slots=True)
class _Input:
    sha: str
    changes: list[tuple[str, str]] = field(default_factory=list)
    breaks: list[str] = field(default_factory=list)
    semver: Semver = Semver.NONE
    semver_locked: bool = False

    def apply_breaking_change(self, value: str) -> None:
        if not self.semver_locked:
            self.semver = Semver.MAJOR
        self.breaks.append(normalize_description(value, delete_pr_number=True))

    def apply_semver_change(self, value: str) -> None:
        level = Semver.for_name(value)
        if level is not None:
            self.semver = level
            self.semver_locked = True

    def apply_commit(self, tag: str, semver: Semver | None, bang: bool, description: str) -> None:
        description = normalize_description(description, delete_pr_number=True)
        if semver is not None:
            self.changes.append((tag, description))
            if not self.semver_locked and semver > self.semver:
                self.semver = semver
        if bang:
            if not self.semver_locked:
                self.semver = Semver.MAJOR
            self.breaks.append(description)


class ChangeSet:
    """A set of changes gathered from commit messages."""

    def __init__(self, settings: RepoSettings) -> None:
        self._commit_tags = settings.commit_tags
        self._breaking_change_header = settings.breaking_change_header
        self._no_significant_updates_notice = settings.no_significant_updates_notice
        self._inputs: list[_Input] | None = []
        self._groups: list[Group] = []
        self.semver = Semver.NONE

    @property
    def finished(self) -> bool:
        return self._inputs is None

    @property
    def empty(self) -> bool:
        return not self._groups

    @property
    def groups(self) -> list[Group]:
        if not self.finished:
            raise RuntimeError("ChangeSet not finished")
        return self._groups

    def add_message(self, sha: str, message: str) -> ChangeSet:
        if self._inputs is None:
            raise RuntimeError("ChangeSet locked")
        if not message:
            return self
        lines = message.split("\n")
        entry = _Input(sha)
        for line in lines:
            self._analyze_line(line, entry)
        self._inputs.append(entry)
        return self

    def finish(self) -> ChangeSet:
        if self._inputs is None:
            raise RuntimeError("ChangeSet locked")
        self.semver = Semver.NONE
        groups: dict[str, Group] = {_BREAKING_KEY: Group(self._breaking_change_header)}
        for tag, info in self._commit_tags.items():
            groups[tag] = Group(info.header)
        for entry in self._inputs:
            if entry.semver > self.semver:
                self.semver = entry.semver
            for tag, change in entry.changes:
                group = groups.get(tag)
                if group is not None:
                    group.changes.append(change)
            groups[_BREAKING_KEY].changes.extend(entry.breaks)
        self._groups = [group for group in groups.values() if not group.empty]
        self._inputs = None
        return self

    def force_release(self) -> ChangeSet:
        """Guarantee a changelog entry even with no significant changes."""
        if not self.finished:
            raise RuntimeError("ChangeSet not finished")
        if not self._groups:
            self.semver = Semver.PATCH
            self._groups.append(Group(None, [self._no_significant_updates_notice]))
        return self

    def suggested_version(self, last: Version | None) -> Version | None:
        if not self.finished:
            raise RuntimeError("ChangeSet not finished")
        if not self.semver.significant:
            return None
        return self.semver.bump(last)

    def __str__(self) -> str:
        return "\n".join([f"Semver: {self.semver}", *(str(g) for g in self._groups)])

    def _analyze_line(self, line: str, entry: _Input) -> None:
        m = _LINE_RE.match(line)
        if m is None:
            return
        tag, bang, description = m.group(1), m.group(2), m.group(3)
        if _BREAKING_RE.match(tag):
            entry.apply_breaking_change(description)
        elif _SEMVER_CHANGE_RE.match(tag):
            words = description.split()
            if words:
                entry.apply_semver_change(words[0])
        elif _REVERT_COMMIT_RE.match(tag):
            words = description.split()
            if words and self._inputs is not None:
                prefix = words[0]
                self._inputs = [e for e in self._inputs if not e.sha.startswith(prefix)]
        else:
            info = self._commit_tags.get(tag)
            entry.apply_commit(tag, info.semver if info else None, bang == "!", description)
