"""Typed configuration for release pipeline steps.

Every ``[[components.steps]]`` table is parsed into exactly one of the frozen
dataclasses below when settings are loaded, so a pipeline never discovers a
bad option halfway through a release.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from releaser.core.result import Err, Ok, Result
from releaser.core.structured import get_bool, get_str, get_str_list

type StepKind = Literal[
    "tool",
    "command",
    "bundle",
    "build_package",
    "build_docs",
    "release_package",
    "push_pages",
    "github_release",
]

STEP_KINDS: tuple[StepKind, ...] = (
    "tool",
    "command",
    "bundle",
    "build_package",
    "build_docs",
    "release_package",
    "push_pages",
    "github_release",
)


@dataclass(frozen=True, slots=True)
class ToolStepConfig:
    name: str
    tool: tuple[str, ...]
    abort_pipeline_on_error: bool = False
    kind: Literal["tool"] = "tool"


@dataclass(frozen=True, slots=True)
class CommandStepConfig:
    name: str
    command: tuple[str, ...]
    abort_pipeline_on_error: bool = False
    kind: Literal["command"] = "command"


@dataclass(frozen=True, slots=True)
class BundleStepConfig:
    name: str = "bundle"
    kind: Literal["bundle"] = "bundle"


@dataclass(frozen=True, slots=True)
class BuildPackageStepConfig:
    name: str = "build_package"
    pre_command: tuple[str, ...] | None = None
    pre_tool: tuple[str, ...] | None = None
    clean: bool = True
    kind: Literal["build_package"] = "build_package"


@dataclass(frozen=True, slots=True)
class BuildDocsStepConfig:
    name: str = "build_docs"
    pre_command: tuple[str, ...] | None = None
    pre_tool: tuple[str, ...] | None = None
    clean: bool = True
    command: tuple[str, ...] | None = None
    output_dir: str = "doc"
    require_gh_pages_enabled: bool = True
    kind: Literal["build_docs"] = "build_docs"


@dataclass(frozen=True, slots=True)
class ReleasePackageStepConfig:
    name: str = "release_package"
    input: str = "build_package"
    kind: Literal["release_package"] = "release_package"


@dataclass(frozen=True, slots=True)
class PushPagesStepConfig:
    name: str = "push_pages"
    input: str = "build_docs"
    kind: Literal["push_pages"] = "push_pages"


@dataclass(frozen=True, slots=True)
class GithubReleaseStepConfig:
    name: str = "github_release"
    kind: Literal["github_release"] = "github_release"


type StepConfig = (
    ToolStepConfig
    | CommandStepConfig
    | BundleStepConfig
    | BuildPackageStepConfig
    | BuildDocsStepConfig
    | ReleasePackageStepConfig
    | PushPagesStepConfig
    | GithubReleaseStepConfig
)


def default_steps(component_type: str, *, gh_pages_enabled: bool) -> tuple[StepConfig, ...]:
    """Pipeline used when a component does not list its own steps."""
    if component_type != "package":
        return (GithubReleaseStepConfig(),)
    steps: list[StepConfig] = [BundleStepConfig(), BuildPackageStepConfig()]
    if gh_pages_enabled:
        steps.append(BuildDocsStepConfig())
    steps.extend([GithubReleaseStepConfig(), ReleasePackageStepConfig()])
    if gh_pages_enabled:
        steps.append(PushPagesStepConfig())
    return tuple(steps)


def _optional_command(data: Mapping[str, object], key: str) -> Result[tuple[str, ...] | None, str]:
    if key not in data:
        return Ok(None)
    value = get_str_list(data, key)
    if not value:
        return Err(f'"{key}" must be a string or a list of strings')
    return Ok(tuple(value))


def _flag(data: Mapping[str, object], key: str, default: bool) -> Result[bool, str]:
    if key not in data:
        return Ok(default)
    value = get_bool(data, key)
    if value is None:
        return Err(f'"{key}" must be true or false')
    return Ok(value)


def parse_step_config(data: Mapping[str, object]) -> Result[StepConfig, str]:
    """Parse one step table. Errors are plain messages for the settings error list."""
    kind = get_str(data, "type")
    if kind is None:
        return Err('missing "type"')
    if kind not in STEP_KINDS:
        return Err(f'unknown step type "{kind}"')
    name = get_str(data, "name") or kind

    pre_command = _optional_command(data, "pre_command")
    if isinstance(pre_command, Err):
        return pre_command
    pre_tool = _optional_command(data, "pre_tool")
    if isinstance(pre_tool, Err):
        return pre_tool
    clean = _flag(data, "clean", True)
    if isinstance(clean, Err):
        return clean
    abort = _flag(data, "abort_pipeline_on_error", False)
    if isinstance(abort, Err):
        return abort

    match kind:
        case "tool":
            tool = get_str_list(data, "tool")
            if not tool:
                return Err('tool step requires "tool"')
            return Ok(ToolStepConfig(name=name, tool=tuple(tool), abort_pipeline_on_error=abort.value))
        case "command":
            command = get_str_list(data, "command")
            if not command:
                return Err('command step requires "command"')
            return Ok(
                CommandStepConfig(name=name, command=tuple(command), abort_pipeline_on_error=abort.value)
            )
        case "bundle":
            return Ok(BundleStepConfig(name=name))
        case "build_package":
            return Ok(
                BuildPackageStepConfig(
                    name=name,
                    pre_command=pre_command.value,
                    pre_tool=pre_tool.value,
                    clean=clean.value,
                )
            )
        case "build_docs":
            command = _optional_command(data, "command")
            if isinstance(command, Err):
                return command
            required = _flag(data, "require_gh_pages_enabled", True)
            if isinstance(required, Err):
                return required
            return Ok(
                BuildDocsStepConfig(
                    name=name,
                    pre_command=pre_command.value,
                    pre_tool=pre_tool.value,
                    clean=clean.value,
                    command=command.value,
                    output_dir=get_str(data, "output_dir") or "doc",
                    require_gh_pages_enabled=required.value,
                )
            )
        case "release_package":
            return Ok(ReleasePackageStepConfig(name=name, input=get_str(data, "input") or "build_package"))
        case "push_pages":
            return Ok(PushPagesStepConfig(name=name, input=get_str(data, "input") or "build_docs"))
        case _:
            return Ok(GithubReleaseStepConfig(name=name))
