from __future__ import annotations

import pytest

from releaser.release.semver import Semver, Version


def test_parse_versions() -> None:
    assert Version.parse("1.2.3") == Version.of(1, 2, 3)
    assert Version.parse("v0.4.0") == Version.of(0, 4, 0)
    assert Version.parse(" 1.2.3.4 ") == Version.of(1, 2, 3, 4)


@pytest.mark.parametrize("text", ["", "abc", "1..2", "1.2-beta", "release-1.0"])
def test_parse_rejects_malformed(text: str) -> None:
    assert Version.parse(text) is None


def test_missing_trailing_segments_compare_as_zero() -> None:
    assert Version.parse("1.0") == Version.parse("1.0.0")
    assert hash(Version.of(1, 0)) == hash(Version.of(1, 0, 0))
    assert len({Version.of(2), Version.of(2, 0, 0)}) == 1


def test_ordering() -> None:
    versions = [Version.of(1, 10, 0), Version.of(1, 2, 0), Version.of(0, 9, 9), Version.of(1, 2, 0, 1)]
    assert sorted(versions) == [Version.of(0, 9, 9), Version.of(1, 2, 0), Version.of(1, 2, 0, 1), Version.of(1, 10, 0)]


def test_prerelease_sorts_before_release() -> None:
    rc = Version.parse("1.0.0.rc1")
    assert rc is not None
    assert rc.is_prerelease
    assert rc < Version.of(1, 0, 0)
    assert rc > Version.of(0, 9, 0)
    assert str(rc) == "1.0.0.rc.1"


def test_str_and_repr() -> None:
    assert str(Version.of(1, 2, 3)) == "1.2.3"
    assert repr(Version.of(1, 2, 3)) == "Version('1.2.3')"


@pytest.mark.parametrize(
    ("level", "start", "expected"),
    [
        (Semver.MAJOR, "1.2.3", "2.0.0"),
        (Semver.MINOR, "1.2.3", "1.3.0"),
        (Semver.PATCH, "1.2.3", "1.2.4"),
        (Semver.PATCH2, "1.2.3", "1.2.3.1"),
        (Semver.PATCH2, "1.2.3.4", "1.2.3.5"),
        (Semver.MAJOR, "1.2.3.4", "2.0.0"),
        (Semver.PATCH, "1.2", "1.2.1"),
        (Semver.NONE, "1.2.3", "1.2.3"),
    ],
)
def test_bump(level: Semver, start: str, expected: str) -> None:
    version = Version.parse(start)
    assert str(level.bump(version)) == expected


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        (Semver.MAJOR, "0.4.0"),
        (Semver.MINOR, "0.4.0"),
        (Semver.PATCH, "0.3.2"),
    ],
)
def test_bump_zero_major_redirects_to_minor(level: Semver, expected: str) -> None:
    assert str(level.bump(Version.of(0, 3, 1))) == expected


def test_bump_without_previous_version() -> None:
    assert str(Semver.MINOR.bump(None)) == "0.1.0"
    assert str(Semver.MAJOR.bump(None)) == "0.1.0"
    assert str(Semver.NONE.bump(None)) == "0.0.0"


def test_semver_ordering_by_precedence() -> None:
    assert Semver.NONE < Semver.PATCH2 < Semver.PATCH < Semver.MINOR < Semver.MAJOR
    assert max([Semver.PATCH, Semver.MAJOR, Semver.MINOR]) is Semver.MAJOR


def test_semver_for_name() -> None:
    assert Semver.for_name("Major") is Semver.MAJOR
    assert Semver.for_name(" patch2 ") is Semver.PATCH2
    assert Semver.for_name("huge") is None


def test_semver_significance() -> None:
    assert Semver.PATCH.significant
    assert not Semver.NONE.significant
    assert str(Semver.MINOR) == "minor"
