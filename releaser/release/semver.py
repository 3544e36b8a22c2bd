from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering

_VERSION_RE = re.compile(r"^\d+(?:\.[a-zA-Z0-9]+)*$")
_SEGMENT_RE = re.compile(r"\d+|[a-zA-Z]+")

type Segment = int | str


def _split_segments(text: str) -> tuple[Segment, ...]:
    segments: list[Segment] = []
    for part in text.split("."):
        # "1.0.0rc1" style parts split into numeric and alphabetic runs.
        for piece in _SEGMENT_RE.findall(part):
            segments.append(int(piece) if piece.isdigit() else piece)
    return tuple(segments)


def _compare_segment(a: Segment, b: Segment) -> int:
    if isinstance(a, int) and isinstance(b, int):
        return (a > b) - (a < b)
    if isinstance(a, str) and isinstance(b, str):
        return (a > b) - (a < b)
    # Prerelease markers sort before any number.
    return -1 if isinstance(a, str) else 1


@total_ordering
@dataclass(frozen=True, slots=True, eq=False)
class Version:
    """A dotted release version such as ``1.2.3``, ``1.2.3.4`` or ``1.0.0.beta``.

    Missing trailing segments compare as zero, so ``1.0 == 1.0.0``.
    """

    segments: tuple[Segment, ...]

    @classmethod
    def parse(cls, text: str) -> Version | None:
        s = text.strip()
        if s.startswith("v"):
            s = s[1:]
        if not _VERSION_RE.match(s):
            return None
        segments = _split_segments(s)
        if not segments or not isinstance(segments[0], int):
            return None
        return cls(segments)

    @classmethod
    def of(cls, *segments: int) -> Version:
        return cls(tuple(segments))

    @property
    def is_prerelease(self) -> bool:
        return any(isinstance(s, str) for s in self.segments)

    def _canonical(self) -> tuple[Segment, ...]:
        segs = list(self.segments)
        while len(segs) > 1 and segs[-1] == 0:
            segs.pop()
        return tuple(segs)

    def _compare(self, other: Version) -> int:
        length = max(len(self.segments), len(other.segments))
        for i in range(length):
            a = self.segments[i] if i < len(self.segments) else 0
            b = other.segments[i] if i < len(other.segments) else 0
            c = _compare_segment(a, b)
            if c:
                return c
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._compare(other) == 0

    def __lt__(self, other: Version) -> bool:
        return self._compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._canonical())

    def __str__(self) -> str:
        return ".".join(str(s) for s in self.segments)

    def __repr__(self) -> str:
        return f"Version('{self}')"


@total_ordering
class Semver(Enum):
    """Change severity levels.

    A level knows which version segment it bumps (0 is major). Ordering is by
    precedence: NONE < PATCH2 < PATCH < MINOR < MAJOR.
    """

    MAJOR = ("major", 0)
    MINOR = ("minor", 1)
    PATCH = ("patch", 2)
    PATCH2 = ("patch2", 3)
    NONE = ("none", None)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def segment(self) -> int | None:
        return self.value[1]

    @property
    def significant(self) -> bool:
        return self.segment is not None

    @classmethod
    def for_name(cls, name: str) -> Semver | None:
        key = name.strip().lower()
        for level in cls:
            if level.label == key:
                return level
        return None

    def _rank(self) -> int:
        return -(self.segment if self.segment is not None else 99)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Semver):
            return NotImplemented
        return self._rank() < other._rank()

    def __str__(self) -> str:
        return self.label

    def bump(self, version: Version | None) -> Version:
        """Bump ``version`` at this level's segment.

        The segment list is truncated (or zero padded) to at least the patch
        position. On a 0.x version a major bump moves the minor segment.
        Segments after the bumped one are zeroed.
        """
        if self.segment is None:
            return version if version is not None else Version.of(0, 0, 0)
        bump_seg = self.segment
        size = max(bump_seg, 2) + 1
        segs: list[int] = []
        source = version.segments if version is not None else (0, 0, 0)
        for i in range(size):
            value = source[i] if i < len(source) else 0
            segs.append(value if isinstance(value, int) else 0)
        if bump_seg == 0 and segs[0] == 0:
            bump_seg = 1
        segs[bump_seg] += 1
        for i in range(bump_seg + 1, size):
            segs[i] = 0
        return Version(tuple(segs))
