"""Repository release settings.

Settings live in a TOML file (``releases.toml`` or ``.github/releases.toml``)
and are parsed into frozen dataclasses. Problems are collected in
``RepoSettings.errors`` rather than raised, so a broken file is reported in
one pass.

Minimal example:

    repo = "example-org/widgets"

    [[components]]
    name = "widgets"
    type = "package"
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from releaser.core.result import Err, Ok, Result
from releaser.core.structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_bool,
    get_int,
    get_str,
)
from releaser.release.semver import Semver
from releaser.release.step_config import StepConfig, default_steps, parse_step_config

__all__ = [
    "CommitTagSettings",
    "ComponentSettings",
    "ConfigError",
    "PackageSettings",
    "RepoSettings",
    "SETTINGS_FILE_CANDIDATES",
    "find_settings_file",
    "load_settings",
]

SETTINGS_FILE_CANDIDATES = ("releases.toml", ".github/releases.toml")

DEFAULT_MAIN_BRANCH = "main"
DEFAULT_BREAKING_CHANGE_HEADER = "BREAKING CHANGE"
DEFAULT_NO_SIGNIFICANT_UPDATES_NOTICE = "No significant updates."
DEFAULT_RELEASE_PENDING_LABEL = "release: pending"
DEFAULT_RELEASE_ERROR_LABEL = "release: error"
DEFAULT_RELEASE_ABORTED_LABEL = "release: aborted"
DEFAULT_RELEASE_COMPLETE_LABEL = "release: complete"
DEFAULT_REQUIRED_CHECKS_TIMEOUT = 900
DEFAULT_RELEASE_JOBS_REGEXP = "^release-"
DEFAULT_RELEASE_BRANCH_PREFIX = "release"

DEFAULT_RELEASE_COMMIT_TAGS: tuple[object, ...] = (
    {"tag": "feat", "header": "ADDED", "semver": "minor"},
    {"tag": "fix", "header": "FIXED"},
    "docs",
)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when settings cannot be loaded or are invalid."""

    message: str
    path: Path | None = None
    details: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CommitTagSettings:
    """How a conventional commit tag feeds the changelog and the version bump."""

    tag: str
    header: str
    semver: Semver

    @classmethod
    def parse(cls, obj: object) -> Result[CommitTagSettings, str]:
        """Parse the accepted shapes of a commit tag entry.

        - ``"feat"``
        - ``{feat = {header = "ADDED", semver = "minor"}}``
        - ``{feat = "minor"}``
        - ``{tag = "feat", header = "ADDED", semver = "minor"}``
        """
        tag: str | None = None
        header: str | None = None
        semver_name: str | None = None
        if isinstance(obj, str):
            tag = obj.strip() or None
        else:
            data = as_str_dict(obj)
            if data is not None and len(data) == 1:
                key, value = next(iter(data.items()))
                inner = as_str_dict(value)
                if inner is not None:
                    tag = key
                    header = get_str(inner, "header") or get_str(inner, "label")
                    semver_name = get_str(inner, "semver")
                elif key == "tag":
                    tag = value if isinstance(value, str) else None
                else:
                    tag = key
                    semver_name = value if isinstance(value, str) else None
            elif data is not None:
                tag = get_str(data, "tag")
                header = get_str(data, "header") or get_str(data, "label")
                semver_name = get_str(data, "semver")
        if not tag:
            return Err(f"tag missing in {obj!r}")
        semver = Semver.for_name(semver_name or "patch")
        if semver is None:
            return Err(f"unknown semver: {semver_name} in {obj!r}")
        return Ok(cls(tag=tag, header=header or tag.upper(), semver=semver))


@dataclass(frozen=True, slots=True)
class ComponentSettings:
    """Settings for one releasable component.

    Paths are relative to the component directory, which is itself relative
    to the repository root.
    """

    name: str
    directory: str = "."
    changelog_path: str = "CHANGELOG.md"
    version_file_path: str = ""
    version_constant: str = "__version__"
    steps: tuple[StepConfig, ...] = ()
    type: str = "component"


@dataclass(frozen=True, slots=True)
class PackageSettings(ComponentSettings):
    """Settings for a Python distribution published to the package index."""

    gh_pages_enabled: bool = False
    gh_pages_directory: str = "."
    gh_pages_version_var: str = "version"
    type: str = "package"


def _default_version_file(name: str) -> str:
    return f"{name.replace('-', '_')}/version.py"


@dataclass(frozen=True, slots=True)
class RepoSettings:
    """Full repository configuration."""

    repo_path: str | None = None
    main_branch: str = DEFAULT_MAIN_BRANCH
    signoff_commits: bool = False
    gh_pages_enabled: bool = False
    enable_release_automation: bool = True
    required_checks_regexp: re.Pattern[str] | None = re.compile("")
    required_checks_timeout: int = DEFAULT_REQUIRED_CHECKS_TIMEOUT
    release_jobs_regexp: re.Pattern[str] = re.compile(DEFAULT_RELEASE_JOBS_REGEXP)
    release_branch_prefix: str = DEFAULT_RELEASE_BRANCH_PREFIX
    git_user_name: str | None = None
    git_user_email: str | None = None
    release_pending_label: str = DEFAULT_RELEASE_PENDING_LABEL
    release_error_label: str = DEFAULT_RELEASE_ERROR_LABEL
    release_aborted_label: str = DEFAULT_RELEASE_ABORTED_LABEL
    release_complete_label: str = DEFAULT_RELEASE_COMPLETE_LABEL
    commit_tags: Mapping[str, CommitTagSettings] = field(default_factory=dict)
    breaking_change_header: str = DEFAULT_BREAKING_CHANGE_HEADER
    no_significant_updates_notice: str = DEFAULT_NO_SIGNIFICANT_UPDATES_NOTICE
    components: Mapping[str, ComponentSettings] = field(default_factory=dict)
    coordination_groups: tuple[tuple[str, ...], ...] = ()
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def repo_owner(self) -> str:
        return (self.repo_path or "").split("/")[0]

    @property
    def all_component_names(self) -> list[str]:
        return list(self.components)

    @property
    def default_component_name(self) -> str | None:
        return next(iter(self.components), None)

    def component_settings(self, name: str) -> ComponentSettings | None:
        return self.components.get(name)

    @property
    def release_labels(self) -> tuple[str, str, str, str]:
        return (
            self.release_pending_label,
            self.release_error_label,
            self.release_aborted_label,
            self.release_complete_label,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, source: str = "releases.toml") -> RepoSettings:
        """Create RepoSettings from a mapping (parsed TOML)."""
        errors: list[str] = []
        warnings: list[str] = []

        repo_path = get_str(data, "repo")
        if repo_path is None:
            errors.append(f"Repo key missing from {source}")

        required_checks = data.get("required_checks", True)
        required_checks_regexp: re.Pattern[str] | None
        if required_checks is False:
            required_checks_regexp = None
        elif required_checks is True:
            required_checks_regexp = re.compile("")
        else:
            required_checks_regexp = _compile(str(required_checks), "required_checks", errors)

        release_jobs_regexp = _compile(
            get_str(data, "release_jobs_regexp") or DEFAULT_RELEASE_JOBS_REGEXP,
            "release_jobs_regexp",
            errors,
        ) or re.compile(DEFAULT_RELEASE_JOBS_REGEXP)

        timeout = get_int(data, "required_checks_timeout")
        gh_pages_enabled = get_bool(data, "gh_pages_enabled") or False

        commit_tags = _read_commit_tags(data, errors)
        components = _read_components(data, gh_pages_enabled, errors)
        coordination_groups = _read_coordination_groups(data, components, errors)

        return cls(
            repo_path=repo_path,
            main_branch=get_str(data, "main_branch") or DEFAULT_MAIN_BRANCH,
            signoff_commits=get_bool(data, "signoff_commits") or False,
            gh_pages_enabled=gh_pages_enabled,
            enable_release_automation=data.get("enable_release_automation") is not False,
            required_checks_regexp=required_checks_regexp,
            required_checks_timeout=timeout if timeout is not None else DEFAULT_REQUIRED_CHECKS_TIMEOUT,
            release_jobs_regexp=release_jobs_regexp,
            release_branch_prefix=get_str(data, "release_branch_prefix") or DEFAULT_RELEASE_BRANCH_PREFIX,
            git_user_name=get_str(data, "git_user_name"),
            git_user_email=get_str(data, "git_user_email"),
            release_pending_label=get_str(data, "release_pending_label") or DEFAULT_RELEASE_PENDING_LABEL,
            release_error_label=get_str(data, "release_error_label") or DEFAULT_RELEASE_ERROR_LABEL,
            release_aborted_label=get_str(data, "release_aborted_label") or DEFAULT_RELEASE_ABORTED_LABEL,
            release_complete_label=get_str(data, "release_complete_label") or DEFAULT_RELEASE_COMPLETE_LABEL,
            commit_tags=commit_tags,
            breaking_change_header=get_str(data, "breaking_change_header") or DEFAULT_BREAKING_CHANGE_HEADER,
            no_significant_updates_notice=get_str(data, "no_significant_updates_notice")
            or DEFAULT_NO_SIGNIFICANT_UPDATES_NOTICE,
            components=components,
            coordination_groups=coordination_groups,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )


def _compile(pattern: str, key: str, errors: list[str]) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as e:
        errors.append(f"Invalid regular expression for {key}: {e}")
        return None


def _read_commit_tags(data: Mapping[str, object], errors: list[str]) -> dict[str, CommitTagSettings]:
    raw = data.get("release_commit_tags")
    entries = as_obj_list(raw) if raw is not None else list(DEFAULT_RELEASE_COMMIT_TAGS)
    if entries is None:
        errors.append("release_commit_tags must be a list")
        return {}
    tags: dict[str, CommitTagSettings] = {}
    for entry in entries:
        match CommitTagSettings.parse(entry):
            case Ok(tag_settings):
                tags[tag_settings.tag] = tag_settings
            case Err(message):
                errors.append(message)
    return tags


def _read_steps(
    name: str,
    info: StrDict,
    component_type: str,
    gh_pages_enabled: bool,
    errors: list[str],
) -> tuple[StepConfig, ...]:
    if "steps" not in info:
        return default_steps(component_type, gh_pages_enabled=gh_pages_enabled)
    raw = as_obj_list(info["steps"])
    if raw is None:
        errors.append(f'Steps for component "{name}" must be a list of tables')
        return ()
    steps: list[StepConfig] = []
    seen: set[str] = set()
    for index, item in enumerate(raw, start=1):
        table = as_str_dict(item)
        if table is None:
            errors.append(f'Step {index} of component "{name}" must be a table')
            continue
        match parse_step_config(table):
            case Ok(step):
                if step.name in seen:
                    errors.append(f'Duplicate step "{step.name}" in component "{name}"')
                    continue
                seen.add(step.name)
                steps.append(step)
            case Err(message):
                errors.append(f'Step {index} of component "{name}": {message}')
    return tuple(steps)


def _read_components(
    data: Mapping[str, object],
    repo_gh_pages_enabled: bool,
    errors: list[str],
) -> dict[str, ComponentSettings]:
    raw = as_obj_list(data.get("components")) or []
    multiple = len(raw) > 1
    components: dict[str, ComponentSettings] = {}
    for item in raw:
        info = as_str_dict(item)
        if info is None:
            errors.append("A component under components is not a table")
            continue
        name = get_str(info, "name")
        if name is None:
            errors.append("A component under components is missing a name")
            continue
        if name in components:
            errors.append(f'Duplicate component "{name}" under components')
            continue
        components[name] = _read_component(name, info, multiple, repo_gh_pages_enabled, errors)
    if not components:
        errors.append("No components found")
    return components


def _read_component(
    name: str,
    info: StrDict,
    multiple: bool,
    repo_gh_pages_enabled: bool,
    errors: list[str],
) -> ComponentSettings:
    component_type = get_str(info, "type") or "component"
    if component_type not in ("component", "package"):
        errors.append(f'Unknown type "{component_type}" for component "{name}"')
        component_type = "component"
    directory = get_str(info, "directory") or (name if multiple else ".")
    changelog_path = get_str(info, "changelog_path") or "CHANGELOG.md"
    version_file_path = get_str(info, "version_file_path") or _default_version_file(name)
    version_constant = get_str(info, "version_constant") or "__version__"

    if component_type != "package":
        return ComponentSettings(
            name=name,
            directory=directory,
            changelog_path=changelog_path,
            version_file_path=version_file_path,
            version_constant=version_constant,
            steps=_read_steps(name, info, component_type, False, errors),
        )

    gh_pages_enabled = get_bool(info, "gh_pages_enabled")
    if gh_pages_enabled is None:
        gh_pages_enabled = (
            repo_gh_pages_enabled or "gh_pages_directory" in info or "gh_pages_version_var" in info
        )
    default_var = f"version_{name}".replace("-", "_") if multiple else "version"
    return PackageSettings(
        name=name,
        directory=directory,
        changelog_path=changelog_path,
        version_file_path=version_file_path,
        version_constant=version_constant,
        steps=_read_steps(name, info, component_type, gh_pages_enabled, errors),
        gh_pages_enabled=gh_pages_enabled,
        gh_pages_directory=get_str(info, "gh_pages_directory") or (name if multiple else "."),
        gh_pages_version_var=get_str(info, "gh_pages_version_var") or default_var,
    )


def _read_coordination_groups(
    data: Mapping[str, object],
    components: Mapping[str, ComponentSettings],
    errors: list[str],
) -> tuple[tuple[str, ...], ...]:
    if get_bool(data, "coordinate_versions"):
        return (tuple(components),) if components else ()
    raw = as_obj_list(data.get("coordination_groups")) or []
    # A flat list of names is a single group.
    if raw and isinstance(raw[0], str):
        raw = [raw]
    groups: list[tuple[str, ...]] = []
    seen: set[str] = set()
    for item in raw:
        members = as_obj_list(item)
        if members is None:
            errors.append("Each coordination group must be a list of component names")
            continue
        group: list[str] = []
        for member in members:
            if not isinstance(member, str) or member not in components:
                errors.append(f'Unrecognized component "{member}" listed in a coordination group')
            elif member in seen:
                errors.append(f'Component "{member}" is in multiple coordination groups')
            else:
                seen.add(member)
                group.append(member)
        if group:
            groups.append(tuple(group))
    return tuple(groups)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Settings root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Settings file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading settings: {e}", path=path))


def find_settings_file(repo_root: Path) -> Path | None:
    """Locate the settings file under a repository root."""
    for candidate in SETTINGS_FILE_CANDIDATES:
        path = repo_root / candidate
        if path.is_file():
            return path
    return None


def load_settings(path: Path) -> Result[RepoSettings, ConfigError]:
    """Load and validate release settings from a TOML file.

    Args:
        path: Path to the settings file

    Returns:
        Ok(RepoSettings) on success, Err(ConfigError) carrying every
        validation message on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    settings = RepoSettings.from_dict(result.value, source=path.name)
    if settings.errors:
        return Err(
            ConfigError(
                f"Errors while loading {path.name}",
                path=path,
                details=settings.errors,
            )
        )
    return Ok(settings)
